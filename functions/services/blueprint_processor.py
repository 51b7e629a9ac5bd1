"""Blueprint processor service for ClearDesk.

Turns an uploaded blueprint PDF into a structured Blueprint: job metadata
(name, address, job number, classification code, square footage), the
rooms named on the drawing and a device bundle per room.

Field extraction tries the template pattern for the field first, then a
label heuristic, then the field's default. A failure while extracting one
field only degrades that field. Reading the PDF, resolving the template and
persisting the result are fatal and flip the project's blueprint status to
ERROR.
"""

import re
import time
from typing import Callable, Dict, Any, List, Optional, Sequence, Tuple
from uuid import uuid4
import structlog

from config.settings import settings
from config.errors import ErrorCode, NotFoundError
from models.blueprint import (
    Blueprint,
    BlueprintStatus,
    BlueprintTemplate,
    ExtractedDevice,
    ExtractedPage,
    ExtractedRoom,
    PatternType,
    RoomType,
    TemplatePattern,
)
from services.catalog_service import CatalogService
from services.device_mapping import KNOWN_ROOM_TYPES, device_bundle_for
from services.document_extractor import DocumentExtractor
from services.firestore_service import FirestoreService, utc_now_iso
from services.storage_service import StorageService
from utils.run_logger import log_run_start, log_run_complete, log_run_failed

logger = structlog.get_logger()

RUN_TYPE = "blueprint extraction"

# Field defaults
DEFAULT_JOB_NAME = "Untitled Project"
DEFAULT_JOB_ADDRESS = "Address not found"
DEFAULT_CLASSIFICATION_CODE = "R-3"
DEFAULT_SQUARE_FOOTAGE = 0
DEFAULT_ROOM_NAME = "Main Room"
DEVICE_NOTES = "Extracted from blueprint"

# Label heuristics: value is whatever follows the first colon
JOB_NAME_LABELS = ("project:", "job name:", "project name:")
JOB_ADDRESS_LABELS = ("address:", "location:", "site:")
JOB_NUMBER_LABELS = ("job number:", "job #:", "job no:", "project number:")

CLASSIFICATION_PATTERNS = [
    re.compile(r"classification[:\s]+([A-Z]-\d+)", re.I),
    re.compile(r"building type[:\s]+([A-Z]-\d+)", re.I),
    re.compile(r"construction type[:\s]+([A-Z]-\d+)", re.I),
]

SQUARE_FOOTAGE_PATTERNS = [
    re.compile(r"sq(?:\.|\s)?ft(?:\.)?[:\s]+([0-9,]+)", re.I),
    re.compile(r"square footage[:\s]+([0-9,]+)", re.I),
    re.compile(r"area[:\s]+([0-9,]+)\s*sq(?:\.|\s)?ft", re.I),
]

FLOOR_PATTERN = re.compile(r"floor\s*(\d+)", re.I)
LEGEND_MARKER = "legend"


def placeholder_job_number() -> str:
    """Timestamp-derived job number used when none is printed on the drawing."""
    return "JOB-" + str(int(time.time() * 1000))[5:]


def _parse_square_footage(value: str) -> int:
    return int(value.replace(",", "").strip())


class BlueprintProcessorService:
    """Extracts Blueprints from PDFs and persists them under their project."""

    def __init__(
        self,
        store: FirestoreService,
        catalog: CatalogService,
        storage: StorageService,
        extractor: Optional[DocumentExtractor] = None
    ):
        self.store = store
        self.catalog = catalog
        self.storage = storage
        self.extractor = extractor or DocumentExtractor()

    async def process_blueprint(
        self,
        project_id: str,
        file_key: str,
        template_id: Optional[str],
        user_id: str
    ) -> Blueprint:
        """Extract a blueprint PDF and persist the result.

        Raises:
            NotFoundError: Project, file or template does not exist.
            ExtractionError: PDF is empty or unreadable.
            PersistenceError: Store read or write failed.
        """
        project = await self.store.get_item(settings.projects_table, f"PROJECT#{project_id}", "METADATA")
        if project is None:
            raise NotFoundError("project", project_id, code=ErrorCode.PROJECT_NOT_FOUND)

        start_time = time.time()
        log_run_start(RUN_TYPE, project_id, file_key=file_key, template_id=template_id)
        await self._update_project_blueprint_status(project_id, BlueprintStatus.PROCESSING, user_id)

        try:
            pdf_bytes = await self.storage.download_bytes(file_key)
            pages = self.extractor.extract(pdf_bytes)

            if template_id:
                template = await self.catalog.get_template(template_id)
                if template is None:
                    raise NotFoundError("template", template_id, code=ErrorCode.TEMPLATE_NOT_FOUND)
            else:
                template = await self.find_matching_template(pages)

            extracted = self.extract_data(pages, template)
            now = utc_now_iso()

            blueprint = Blueprint(
                blueprint_id=str(uuid4()),
                project_id=project_id,
                s3_key=file_key,
                template_id=template.id if template else None,
                status=BlueprintStatus.COMPLETED,
                processing_date=now,
                created=now,
                updated=now,
                created_by=user_id,
                updated_by=user_id,
                **extracted
            )

            await self._save_blueprint(blueprint)

        except Exception as e:
            logger.error("blueprint_processing_failed", project_id=project_id, file_key=file_key, error=str(e))
            await self._update_project_blueprint_status(project_id, BlueprintStatus.ERROR, user_id)
            log_run_failed(RUN_TYPE, project_id, str(e))
            raise

        await self._update_project_blueprint_status(project_id, BlueprintStatus.COMPLETED, user_id)

        log_run_complete(
            RUN_TYPE,
            project_id,
            duration_ms=int((time.time() - start_time) * 1000),
            summary={
                "blueprint_id": blueprint.blueprint_id,
                "rooms": len(blueprint.rooms),
                "floors": blueprint.floors,
            }
        )
        return blueprint

    # -------------------------------------------------------------------------
    # Template resolution
    # -------------------------------------------------------------------------

    async def find_matching_template(self, pages: List[ExtractedPage]) -> Optional[BlueprintTemplate]:
        """Best stored template for the document.

        A template scores one point per pattern that yields a value; the
        highest scoring template wins, ties going to the first stored.
        Returns None when no template yields anything.
        """
        templates = await self.catalog.list_templates()

        best: Optional[BlueprintTemplate] = None
        best_score = 0
        for template in templates:
            score = sum(1 for pattern in template.patterns if self._safe_apply(pages, pattern) is not None)
            if score > best_score:
                best, best_score = template, score

        logger.info(
            "template_match_result",
            candidates=len(templates),
            template_id=best.id if best else None,
            score=best_score
        )
        return best

    def _safe_apply(self, pages: List[ExtractedPage], pattern: TemplatePattern) -> Optional[str]:
        try:
            return self._apply_pattern(pages, pattern)
        except (re.error, ValueError) as e:
            logger.warning("template_pattern_invalid", data_type=pattern.data_type, error=str(e))
            return None

    # -------------------------------------------------------------------------
    # Extraction
    # -------------------------------------------------------------------------

    def extract_data(
        self,
        pages: List[ExtractedPage],
        template: Optional[BlueprintTemplate] = None
    ) -> Dict[str, Any]:
        """Extract job metadata, floors and rooms from document tokens."""
        floors, rooms = self.extract_rooms_and_devices(pages, template)

        return {
            "job_name": self._extract_field(
                pages, template, "jobName",
                lambda: self._find_labeled_value(pages, JOB_NAME_LABELS),
                DEFAULT_JOB_NAME,
            ),
            "job_address": self._extract_field(
                pages, template, "jobAddress",
                lambda: self._find_labeled_value(pages, JOB_ADDRESS_LABELS),
                DEFAULT_JOB_ADDRESS,
            ),
            "job_number": self._extract_field(
                pages, template, "jobNumber",
                lambda: self._find_labeled_value(pages, JOB_NUMBER_LABELS),
                placeholder_job_number,
            ),
            "classification_code": self._extract_field(
                pages, template, "classificationCode",
                lambda: self._find_pattern_value(pages, CLASSIFICATION_PATTERNS),
                DEFAULT_CLASSIFICATION_CODE,
            ),
            "square_footage": self._extract_field(
                pages, template, "squareFootage",
                lambda: self._find_pattern_value(pages, SQUARE_FOOTAGE_PATTERNS),
                DEFAULT_SQUARE_FOOTAGE,
                convert=_parse_square_footage,
            ),
            "floors": floors,
            "rooms": rooms,
        }

    def _extract_field(
        self,
        pages: List[ExtractedPage],
        template: Optional[BlueprintTemplate],
        data_type: str,
        heuristic: Callable[[], Optional[str]],
        default: Any,
        convert: Callable[[str], Any] = str.strip
    ) -> Any:
        """Template pattern, then heuristic, then default.

        ``default`` may be a callable producing the default value.
        """
        try:
            value = None
            pattern = template.pattern_for(data_type) if template else None
            if pattern is not None:
                value = self._apply_pattern(pages, pattern)
            if value is None:
                value = heuristic()
            if value is not None:
                return convert(value)
        except Exception as e:
            logger.warning("field_extraction_failed", field=data_type, error=str(e))

        return default() if callable(default) else default

    def _apply_pattern(self, pages: List[ExtractedPage], pattern: TemplatePattern) -> Optional[str]:
        """First value the pattern yields in reading order, or None."""
        if pattern.pattern_type == PatternType.REGEX:
            regex = re.compile(pattern.pattern)
            for page in pages:
                for token in page.content:
                    match = regex.search(token.text)
                    if match and match.groups() and match.group(1):
                        return match.group(1).strip()

        elif pattern.pattern_type == PatternType.COORDINATES:
            box = pattern.bounding_box()
            for page in pages:
                for token in page.content:
                    if token.within(box):
                        return token.text.strip()

        return None

    @staticmethod
    def _find_labeled_value(pages: List[ExtractedPage], labels: Sequence[str]) -> Optional[str]:
        for page in pages:
            for token in page.content:
                lowered = token.text.lower()
                if not any(label in lowered for label in labels):
                    continue
                colon_index = token.text.find(":")
                value = token.text[colon_index + 1:].strip() if colon_index != -1 else ""
                if value:
                    return value
        return None

    @staticmethod
    def _find_pattern_value(pages: List[ExtractedPage], patterns: List[re.Pattern]) -> Optional[str]:
        for page in pages:
            for token in page.content:
                for regex in patterns:
                    match = regex.search(token.text)
                    if match and match.group(1):
                        return match.group(1)
        return None

    def extract_rooms_and_devices(
        self,
        pages: List[ExtractedPage],
        template: Optional[BlueprintTemplate] = None
    ) -> Tuple[int, List[ExtractedRoom]]:
        """Rooms named on the drawing, each with its device bundle.

        Every room is placed on floor 1; the highest "floor N" reference only
        sets the blueprint's floor count.
        """
        if template is not None and template.room_patterns:
            logger.warning(
                "template_room_patterns_unsupported",
                template_id=template.id,
                pattern_count=len(template.room_patterns)
            )

        rooms: List[ExtractedRoom] = []
        seen = set()
        max_floor = 1

        for page in pages:
            for token in page.content:
                lowered = token.text.lower()

                if LEGEND_MARKER not in lowered:
                    for name, room_type in KNOWN_ROOM_TYPES:
                        key = (name.lower(), 1)
                        if name.lower() in lowered and key not in seen:
                            seen.add(key)
                            rooms.append(self._new_room(name, room_type))

                floor_match = FLOOR_PATTERN.search(token.text)
                if floor_match:
                    max_floor = max(max_floor, int(floor_match.group(1)))

        if not rooms:
            rooms.append(self._new_room(DEFAULT_ROOM_NAME, RoomType.LIVING))

        for room in rooms:
            room.devices = [
                ExtractedDevice(device_id=str(uuid4()), type=device_type, count=count, notes=DEVICE_NOTES)
                for device_type, count in device_bundle_for(room.type)
            ]

        return max_floor, rooms

    @staticmethod
    def _new_room(name: str, room_type: RoomType) -> ExtractedRoom:
        return ExtractedRoom(room_id=str(uuid4()), name=name, type=room_type, floor=1, area=0)

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    async def _save_blueprint(self, blueprint: Blueprint) -> None:
        await self.store.put_item(settings.blueprints_table, {
            "PK": f"PROJECT#{blueprint.project_id}",
            "SK": f"BLUEPRINT#{blueprint.blueprint_id}",
            "GSI1PK": f"BLUEPRINT#{blueprint.blueprint_id}",
            "GSI1SK": f"PROJECT#{blueprint.project_id}",
            **blueprint.to_firestore_dict()
        })

    async def _update_project_blueprint_status(
        self,
        project_id: str,
        status: BlueprintStatus,
        user_id: str
    ) -> None:
        """Record the blueprint processing status on the project (best effort)."""
        try:
            await self.store.update_item(
                settings.projects_table,
                f"PROJECT#{project_id}",
                "METADATA",
                {
                    "blueprint.processingStatus": status.value,
                    "updated": utc_now_iso(),
                    "updatedBy": user_id,
                }
            )
        except Exception as e:
            logger.warning(
                "project_blueprint_status_update_failed",
                project_id=project_id,
                status=status.value,
                error=str(e)
            )
