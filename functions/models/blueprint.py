"""Blueprint models for ClearDesk.

Pydantic models for extraction templates, positioned PDF text tokens and
the structured Blueprint aggregate stored under its owning project.
"""

import json
from enum import Enum
from typing import Dict, Any, Optional, List
from pydantic import BaseModel, Field


# =============================================================================
# ENUMS
# =============================================================================


class RoomType(str, Enum):
    """Room categories recognised on a blueprint."""

    LIVING = "living"
    KITCHEN = "kitchen"
    BEDROOM = "bedroom"
    MASTER_BEDROOM = "master-bedroom"
    BATHROOM = "bathroom"
    MASTER_BATHROOM = "master-bathroom"
    DINING = "dining"
    GARAGE = "garage"
    HALLWAY = "hallway"
    BASEMENT = "basement"
    ATTIC = "attic"
    CLOSET = "closet"
    LAUNDRY = "laundry"
    OFFICE = "office"
    DEN = "den"


class DeviceType(str, Enum):
    """Electrical device categories."""

    # Receptacles
    RECEPTACLE = "receptacle"
    GFCI_RECEPTACLE = "gfci-receptacle"
    WEATHER_RESISTANT_RECEPTACLE = "weather-resistant-receptacle"
    FLOOR_RECEPTACLE = "floor-receptacle"

    # Switches
    SWITCH = "switch"
    DIMMER_SWITCH = "dimmer-switch"
    THREE_WAY_SWITCH = "three-way-switch"
    FOUR_WAY_SWITCH = "four-way-switch"

    # Lights
    CEILING_LIGHT = "ceiling-light"
    RECESSED_LIGHT = "recessed-light"
    PENDANT_LIGHT = "pendant-light"
    TRACK_LIGHT = "track-light"
    UNDER_CABINET_LIGHT = "under-cabinet-light"

    # Other
    SMOKE_DETECTOR = "smoke-detector"
    CO_DETECTOR = "co-detector"
    THERMOSTAT = "thermostat"
    DOORBELL = "doorbell"
    FAN = "fan"
    CUSTOM = "custom"


class PatternType(str, Enum):
    """How a template pattern body is interpreted."""

    REGEX = "regex"
    COORDINATES = "coordinates"


class BlueprintStatus(str, Enum):
    """Processing status of a blueprint extraction run."""

    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


# =============================================================================
# TEMPLATES
# =============================================================================


class BoundingBox(BaseModel):
    """Rectangle in page coordinates (origin top-left)."""

    x1: float
    y1: float
    x2: float
    y2: float

    def contains(self, x0: float, top: float, x1: float, bottom: float) -> bool:
        """True if the given box lies fully inside this rectangle."""
        return (
            x0 >= self.x1 and x1 <= self.x2
            and top >= self.y1 and bottom <= self.y2
        )


class TemplatePattern(BaseModel):
    """One extraction rule of a blueprint template."""

    data_type: str = Field(
        alias="dataType",
        description="Field the pattern extracts (jobName, jobAddress, jobNumber, ...)"
    )
    pattern_type: PatternType = Field(
        alias="patternType",
        description="regex or coordinates"
    )
    pattern: str = Field(
        description="Regular expression, or JSON bounding box {x1,y1,x2,y2}"
    )
    examples: List[str] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0, le=1)

    class Config:
        populate_by_name = True

    def bounding_box(self) -> BoundingBox:
        """Parse the pattern body as a coordinate rectangle.

        Raises:
            ValueError: If the body is not a JSON rectangle.
        """
        return BoundingBox.model_validate(json.loads(self.pattern))


class BlueprintTemplate(BaseModel):
    """Reusable set of extraction patterns tuned to a vendor layout."""

    id: str = Field(alias="_id")
    name: str = ""
    description: str = ""
    patterns: List[TemplatePattern] = Field(default_factory=list)
    room_patterns: Optional[List[Dict[str, Any]]] = Field(
        default=None,
        alias="roomPatterns",
        description="Declared room patterns; matching them is not supported"
    )
    sample_files: List[str] = Field(default_factory=list, alias="sampleFiles")
    confidence: float = 0.0

    class Config:
        populate_by_name = True

    def pattern_for(self, data_type: str) -> Optional[TemplatePattern]:
        """First pattern that extracts the given field, if any."""
        return next((p for p in self.patterns if p.data_type == data_type), None)


# =============================================================================
# DOCUMENT TOKENS
# =============================================================================


class TextToken(BaseModel):
    """Positioned text run produced by the document extractor."""

    text: str = Field(alias="str")
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    class Config:
        populate_by_name = True

    def within(self, box: BoundingBox) -> bool:
        return box.contains(self.x, self.y, self.x + self.width, self.y + self.height)


class ExtractedPage(BaseModel):
    """One PDF page worth of tokens, in reading order."""

    page_number: int = Field(alias="pageNumber")
    width: float = 0.0
    height: float = 0.0
    content: List[TextToken] = Field(default_factory=list)

    class Config:
        populate_by_name = True


# =============================================================================
# BLUEPRINT AGGREGATE
# =============================================================================


class ExtractedDevice(BaseModel):
    """Device attached to exactly one extracted room."""

    device_id: str = Field(alias="deviceId")
    type: DeviceType
    count: int = Field(gt=0)
    notes: str = ""

    class Config:
        populate_by_name = True
        use_enum_values = True


class ExtractedRoom(BaseModel):
    """Room found on the blueprint, with its synthesized device bundle."""

    room_id: str = Field(alias="roomId")
    name: str
    type: RoomType
    floor: int = Field(default=1, ge=1)
    area: float = 0.0
    devices: List[ExtractedDevice] = Field(default_factory=list)

    class Config:
        populate_by_name = True
        use_enum_values = True


class Blueprint(BaseModel):
    """Structured result of extracting a blueprint PDF.

    Stored at PROJECT#{projectId} / BLUEPRINT#{blueprintId}.
    """

    blueprint_id: str = Field(alias="blueprintId")
    project_id: str = Field(alias="projectId")
    s3_key: str = Field(alias="s3Key", description="Storage key of the source PDF")

    job_name: str = Field(alias="jobName")
    job_address: str = Field(alias="jobAddress")
    job_number: str = Field(alias="jobNumber")
    classification_code: str = Field(alias="classificationCode")
    square_footage: int = Field(default=0, alias="squareFootage")
    floors: int = Field(default=1, ge=1)

    rooms: List[ExtractedRoom] = Field(default_factory=list)
    template_id: Optional[str] = Field(default=None, alias="templateId")
    status: BlueprintStatus = Field(default=BlueprintStatus.PROCESSING)

    processing_date: Optional[str] = Field(default=None, alias="processingDate")
    created: Optional[str] = None
    updated: Optional[str] = None
    created_by: Optional[str] = Field(default=None, alias="createdBy")
    updated_by: Optional[str] = Field(default=None, alias="updatedBy")

    class Config:
        populate_by_name = True
        use_enum_values = True

    def to_firestore_dict(self) -> Dict[str, Any]:
        """Convert to Firestore-compatible dictionary (camelCase keys)."""
        return self.model_dump(by_alias=True, exclude_none=True)
