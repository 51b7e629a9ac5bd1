"""Timeline models for ClearDesk.

Timeline events (actual and predicted) and the prediction summary
produced from similar completed projects.
"""

from enum import Enum
from typing import Dict, Any, Optional, List
from pydantic import BaseModel, Field


class TimelineEventType(str, Enum):
    """Kinds of project timeline events."""

    ESTIMATE_CREATED = "estimate_created"
    ESTIMATE_SENT = "estimate_sent"
    ESTIMATE_ACCEPTED = "estimate_accepted"
    ESTIMATE_REJECTED = "estimate_rejected"
    PERMIT_SUBMITTED = "permit_submitted"
    PERMIT_APPROVED = "permit_approved"
    PHASE_STARTED = "phase_started"
    PHASE_COMPLETED = "phase_completed"
    INSPECTION_SCHEDULED = "inspection_scheduled"
    INSPECTION_COMPLETED = "inspection_completed"
    MATERIAL_ORDERED = "material_ordered"
    MATERIAL_DELIVERED = "material_delivered"
    PROJECT_COMPLETED = "project_completed"
    MILESTONE = "milestone"
    CUSTOM = "custom"


class TimelineEventStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    DELAYED = "delayed"
    CANCELED = "canceled"


# Events after which existing predictions are stale (stored as plain values)
SIGNIFICANT_EVENT_TYPES = frozenset(
    event_type.value for event_type in (
        TimelineEventType.ESTIMATE_ACCEPTED,
        TimelineEventType.PERMIT_APPROVED,
        TimelineEventType.PHASE_STARTED,
        TimelineEventType.PHASE_COMPLETED,
        TimelineEventType.INSPECTION_COMPLETED,
    )
)


class TimelineEvent(BaseModel):
    """Timeline event stored at EVENT#{eventId} / METADATA.

    Indexed by PROJECT#{projectId} for per-project listing.
    """

    event_id: str = Field(alias="eventId")
    project_id: str = Field(alias="projectId")
    event_type: TimelineEventType = Field(alias="eventType")
    title: str
    description: str = ""
    status: TimelineEventStatus = Field(default=TimelineEventStatus.PENDING)
    scheduled_date: str = Field(alias="scheduledDate", description="ISO timestamp")
    actual_date: Optional[str] = Field(default=None, alias="actualDate")
    duration: Optional[int] = Field(default=None, description="Duration in days")
    related_entity_type: Optional[str] = Field(default=None, alias="relatedEntityType")
    related_entity_id: Optional[str] = Field(default=None, alias="relatedEntityId")
    is_prediction: bool = Field(default=False, alias="isPrediction")
    confidence_score: Optional[float] = Field(default=None, alias="confidenceScore", ge=0, le=1)
    created: Optional[str] = None
    updated: Optional[str] = None
    created_by: Optional[str] = Field(default=None, alias="createdBy")
    updated_by: Optional[str] = Field(default=None, alias="updatedBy")

    class Config:
        populate_by_name = True
        use_enum_values = True

    def to_firestore_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class SimilarProject(BaseModel):
    project_id: str = Field(alias="projectId")
    similarity: float

    class Config:
        populate_by_name = True


class TimelinePrediction(BaseModel):
    """Predicted schedule for a project."""

    project_id: str = Field(alias="projectId")
    predicted_events: List[TimelineEvent] = Field(default_factory=list, alias="predictedEvents")
    predicted_end_date: str = Field(alias="predictedEndDate")
    prediction_confidence: float = Field(alias="predictionConfidence")
    factors_considered: List[str] = Field(default_factory=list, alias="factorsConsidered")
    similar_projects: List[SimilarProject] = Field(default_factory=list, alias="similarProjects")

    class Config:
        populate_by_name = True
