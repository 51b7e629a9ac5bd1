"""Project timeline service for ClearDesk.

Records timeline events and predicts a project's remaining schedule from
completed projects of the same company:
1. Similar projects scored on type, size, customer and general contractor
2. Rough / Service / Finish phase start, completion and inspection events
   laid out after the latest actual event
3. Predictions stored as timeline events (isPrediction) and the project's
   predictedEndDate updated
"""

import random
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4
import structlog

from config.settings import settings
from config.errors import ErrorCode, NotFoundError
from models.timeline import (
    SIGNIFICANT_EVENT_TYPES,
    SimilarProject,
    TimelineEvent,
    TimelineEventStatus,
    TimelineEventType,
    TimelinePrediction,
)
from services.firestore_service import FirestoreService, utc_now_iso

logger = structlog.get_logger()

PREDICTED_PHASES = ["rough", "service", "finish"]
SIMILARITY_THRESHOLD = 0.3
MAX_PREDICTION_CONFIDENCE = 0.85

FACTORS_CONSIDERED = [
    "historical project data",
    "project type",
    "project size",
    "customer history",
    "current progress",
]


def _parse_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _nested_id(record: Dict[str, Any], key: str) -> Optional[str]:
    value = record.get(key)
    return value.get("id") if isinstance(value, dict) else None


class TimelinePredictionService:
    """Timeline events and schedule predictions."""

    def __init__(
        self,
        store: FirestoreService,
        rng: Optional[random.Random] = None,
        now: Optional[Callable[[], datetime]] = None
    ):
        self.store = store
        self.rng = rng or random.Random()
        self.now = now or (lambda: datetime.now(timezone.utc))

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    async def add_event(
        self,
        project_id: str,
        event_type: TimelineEventType,
        title: str,
        user_id: str,
        description: str = "",
        status: TimelineEventStatus = TimelineEventStatus.PENDING,
        scheduled_date: Optional[str] = None,
        actual_date: Optional[str] = None,
        duration: Optional[int] = None,
        related_entity_type: Optional[str] = None,
        related_entity_id: Optional[str] = None,
        is_prediction: bool = False,
        confidence_score: Optional[float] = None
    ) -> TimelineEvent:
        """Record a timeline event.

        A significant actual event (estimate accepted, permit approved, phase
        started/completed, inspection completed) cancels the project's
        outstanding predictions.
        """
        now = utc_now_iso()
        event = TimelineEvent(
            event_id=str(uuid4()),
            project_id=project_id,
            event_type=event_type,
            title=title,
            description=description,
            status=status,
            scheduled_date=scheduled_date or now,
            actual_date=actual_date,
            duration=duration,
            related_entity_type=related_entity_type,
            related_entity_id=related_entity_id,
            is_prediction=is_prediction,
            confidence_score=(confidence_score or 0.5) if is_prediction else None,
            created=now,
            updated=now,
            created_by=user_id,
            updated_by=user_id,
        )
        await self._save_event(event)

        if not event.is_prediction and event.event_type in SIGNIFICANT_EVENT_TYPES:
            await self.cancel_predictions(project_id, user_id)

        return event

    async def _save_event(self, event: TimelineEvent) -> None:
        await self.store.put_item(settings.timeline_events_table, {
            "PK": f"EVENT#{event.event_id}",
            "SK": "METADATA",
            "GSI1PK": f"PROJECT#{event.project_id}",
            "GSI1SK": f"EVENT#{event.scheduled_date}",
            **event.to_firestore_dict()
        })

    async def list_events(self, project_id: str) -> List[TimelineEvent]:
        """Project events, oldest scheduled first."""
        records = await self.store.query_index(settings.timeline_events_table, f"PROJECT#{project_id}")
        return [TimelineEvent(**record) for record in records]

    async def cancel_predictions(self, project_id: str, user_id: str) -> int:
        """Mark the project's pending predictions canceled (best effort).

        Predictions are not regenerated here; callers request a fresh
        prediction run explicitly.
        """
        canceled = 0
        try:
            records = await self.store.query_index(
                settings.timeline_events_table,
                f"PROJECT#{project_id}",
                filters={"isPrediction": True}
            )
            for record in records:
                if record.get("status") == TimelineEventStatus.CANCELED.value:
                    continue
                await self.store.update_item(
                    settings.timeline_events_table,
                    f"EVENT#{record['eventId']}",
                    "METADATA",
                    {
                        "status": TimelineEventStatus.CANCELED.value,
                        "updated": utc_now_iso(),
                        "updatedBy": user_id,
                    }
                )
                canceled += 1
        except Exception as e:
            logger.warning("prediction_cancel_failed", project_id=project_id, error=str(e))

        if canceled:
            logger.info("predictions_canceled", project_id=project_id, count=canceled)
        return canceled

    # -------------------------------------------------------------------------
    # Predictions
    # -------------------------------------------------------------------------

    async def generate_timeline_predictions(self, project_id: str, user_id: str) -> TimelinePrediction:
        """Predict and persist the project's remaining schedule.

        Raises:
            NotFoundError: Project does not exist.
        """
        project = await self.store.get_item(settings.projects_table, f"PROJECT#{project_id}", "METADATA")
        if project is None:
            raise NotFoundError("project", project_id, code=ErrorCode.PROJECT_NOT_FOUND)

        existing_events = await self.list_events(project_id)
        historical = await self.get_historical_projects(project.get("companyId"))
        similar = self.find_similar_projects(project, historical)
        prediction = self.generate_predictions(project_id, existing_events, similar)

        saved: List[TimelineEvent] = []
        for event in prediction.predicted_events:
            try:
                event = event.model_copy(update={"created_by": user_id, "updated_by": user_id})
                await self._save_event(event)
                saved.append(event)
            except Exception as e:
                logger.error("prediction_event_save_failed", project_id=project_id, event_type=event.event_type, error=str(e))

        await self.store.update_item(settings.projects_table, f"PROJECT#{project_id}", "METADATA", {
            "predictedEndDate": prediction.predicted_end_date,
            "updated": utc_now_iso(),
            "updatedBy": user_id,
        })

        logger.info(
            "timeline_predictions_generated",
            project_id=project_id,
            similar_projects=len(similar),
            events=len(saved),
            predicted_end_date=prediction.predicted_end_date
        )
        return prediction.model_copy(update={"predicted_events": saved})

    async def get_historical_projects(self, company_id: Optional[str]) -> List[Dict[str, Any]]:
        """Completed projects of the company; empty on lookup failure."""
        if not company_id:
            return []
        try:
            return await self.store.query_index(
                settings.projects_table,
                f"COMPANY#{company_id}",
                filters={"status": "completed"}
            )
        except Exception as e:
            logger.warning("historical_projects_lookup_failed", company_id=company_id, error=str(e))
            return []

    @staticmethod
    def find_similar_projects(
        project: Dict[str, Any],
        historical: List[Dict[str, Any]]
    ) -> List[SimilarProject]:
        """Score historical projects against the project, most similar first.

        Type match 0.3; square footage within 10% / 30% / 50% adds
        0.3 / 0.2 / 0.1; same customer 0.2; same general contractor 0.2.
        Only scores above 0.3 are kept.
        """
        similar: List[SimilarProject] = []
        customer_id = _nested_id(project, "customer")
        contractor_id = _nested_id(project, "generalContractor")
        square_footage = project.get("squareFootage")

        for candidate in historical:
            if candidate.get("projectId") == project.get("projectId"):
                continue

            similarity = 0.0
            if candidate.get("type") is not None and candidate.get("type") == project.get("type"):
                similarity += 0.3

            if square_footage and candidate.get("squareFootage"):
                size_difference = abs(candidate["squareFootage"] - square_footage) / square_footage
                if size_difference < 0.1:
                    similarity += 0.3
                elif size_difference < 0.3:
                    similarity += 0.2
                elif size_difference < 0.5:
                    similarity += 0.1

            if customer_id and _nested_id(candidate, "customer") == customer_id:
                similarity += 0.2
            if contractor_id and _nested_id(candidate, "generalContractor") == contractor_id:
                similarity += 0.2

            if similarity > SIMILARITY_THRESHOLD + 1e-9:
                similar.append(SimilarProject(project_id=candidate.get("projectId", ""), similarity=round(similarity, 2)))

        similar.sort(key=lambda p: p.similarity, reverse=True)
        return similar

    def generate_predictions(
        self,
        project_id: str,
        existing_events: List[TimelineEvent],
        similar: List[SimilarProject]
    ) -> TimelinePrediction:
        """Lay out the remaining schedule (events are not persisted)."""
        now = self.now()
        predicted_end = now + timedelta(days=settings.default_project_duration_days)

        if not similar:
            return TimelinePrediction(
                project_id=project_id,
                predicted_end_date=predicted_end.isoformat(),
                prediction_confidence=0.5,
                factors_considered=list(FACTORS_CONSIDERED),
            )

        actual_events = [event for event in existing_events if not event.is_prediction]
        event_dates = [
            date for date in (_parse_date(event.actual_date or event.scheduled_date) for event in actual_events)
            if date is not None
        ]
        latest = max(event_dates) if event_dates else now

        # Average duration with +/-10% variation
        duration_days = settings.default_project_duration_days * (1 + self.rng.uniform(-0.1, 0.1))
        predicted_end = latest + timedelta(days=int(duration_days))

        events: List[TimelineEvent] = []
        phase_start = latest

        for index, phase in enumerate(PREDICTED_PHASES):
            completed = any(
                event.event_type == TimelineEventType.PHASE_COMPLETED.value
                and phase in (event.description or "").lower()
                for event in actual_events
            )
            if completed:
                continue

            title = phase.capitalize()
            phase_duration = 14 + self.rng.randrange(14)
            phase_start = phase_start + timedelta(days=self.rng.randrange(7))
            phase_end = phase_start + timedelta(days=phase_duration)
            inspection = phase_end + timedelta(days=2 + self.rng.randrange(3))

            schedule = [
                (phase_start, TimelineEventType.PHASE_STARTED, f"{title} Phase Start",
                 f"Predicted start of {phase} phase", "phase", phase, 0.7),
                (phase_end, TimelineEventType.PHASE_COMPLETED, f"{title} Phase Complete",
                 f"Predicted completion of {phase} phase", "phase", phase, 0.65),
                (inspection, TimelineEventType.INSPECTION_SCHEDULED, f"{title} Inspection",
                 f"Predicted inspection for {phase} phase", "inspection", f"{phase}-inspection", 0.6),
            ]
            for date, event_type, event_title, description, entity_type, entity_id, confidence in schedule:
                if date <= now:
                    continue
                events.append(self._predicted_event(
                    project_id, event_type, event_title, description, date,
                    entity_type, entity_id, round(confidence - 0.1 * index, 2)
                ))

            phase_start = phase_end

        events.append(self._predicted_event(
            project_id,
            TimelineEventType.PROJECT_COMPLETED,
            "Project Completion",
            "Predicted project completion date",
            predicted_end,
            "project",
            project_id,
            0.5
        ))

        return TimelinePrediction(
            project_id=project_id,
            predicted_events=events,
            predicted_end_date=predicted_end.isoformat(),
            prediction_confidence=min(MAX_PREDICTION_CONFIDENCE, 0.5 + 0.05 * len(similar)),
            factors_considered=list(FACTORS_CONSIDERED),
            similar_projects=similar,
        )

    @staticmethod
    def _predicted_event(
        project_id: str,
        event_type: TimelineEventType,
        title: str,
        description: str,
        date: datetime,
        entity_type: str,
        entity_id: str,
        confidence: float
    ) -> TimelineEvent:
        now = utc_now_iso()
        return TimelineEvent(
            event_id=str(uuid4()),
            project_id=project_id,
            event_type=event_type,
            title=title,
            description=description,
            status=TimelineEventStatus.PENDING,
            scheduled_date=date.isoformat(),
            related_entity_type=entity_type,
            related_entity_id=entity_id,
            is_prediction=True,
            confidence_score=confidence,
            created=now,
            updated=now,
        )
