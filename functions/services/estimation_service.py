"""Estimation service for ClearDesk.

Manual estimate workflow around the generated drafts:
- create / get / list estimates (versioned per project)
- update drafts, submit for approval, status changes, revisions
- materials takeoff and version-to-version comparison

Only draft estimates are editable. Status changes stamp the matching date
field and "rejected" is terminal.
"""

import math
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4
import structlog

from config.settings import settings
from config.errors import ErrorCode, NotFoundError, ValidationError
from models.company import CompanySettings
from models.estimate import (
    Estimate,
    EstimateComparison,
    EstimateFinancials,
    EstimateItem,
    EstimateRoom,
    EstimateStatus,
    EstimateUpdate,
    ItemChange,
    ItemFigures,
    MaterialTakeoffItem,
    MaterialsTakeoff,
    RoomChanges,
)
from models.timeline import TimelineEventStatus, TimelineEventType
from services.catalog_service import CatalogService
from services.estimation_engine import calculate_financials, new_phases, summarize_rooms
from services.firestore_service import FirestoreService, utc_now_iso
from services.timeline_service import TimelinePredictionService

logger = structlog.get_logger()

DEFAULT_WASTE_FACTOR = 1.1

# Status -> date field stamped when the estimate enters it
STATUS_DATE_FIELDS = {
    EstimateStatus.SENT.value: "sentDate",
    EstimateStatus.ACCEPTED.value: "acceptedDate",
    EstimateStatus.REJECTED.value: "rejectedDate",
    EstimateStatus.APPROVED.value: "approvedDate",
}

# Status -> timeline event recorded on the project
STATUS_TIMELINE_EVENTS = {
    EstimateStatus.SENT.value: (TimelineEventType.ESTIMATE_SENT, "Estimate Sent"),
    EstimateStatus.ACCEPTED.value: (TimelineEventType.ESTIMATE_ACCEPTED, "Estimate Accepted"),
    EstimateStatus.REJECTED.value: (TimelineEventType.ESTIMATE_REJECTED, "Estimate Rejected"),
}

TERMINAL_STATUSES = frozenset({EstimateStatus.REJECTED.value})


def _estimate_key(project_id: str, estimate_id: str) -> Tuple[str, str]:
    return f"PROJECT#{project_id}", f"ESTIMATE#{estimate_id}"


def _dump(models: List[Any]) -> List[Dict[str, Any]]:
    return [model.model_dump(by_alias=True, exclude_none=True) for model in models]


class EstimationService:
    """Estimate workflow operations over the keyed store."""

    def __init__(
        self,
        store: FirestoreService,
        catalog: CatalogService,
        timeline: Optional[TimelinePredictionService] = None
    ):
        self.store = store
        self.catalog = catalog
        self.timeline = timeline

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_estimate(self, project_id: str, estimate_id: str) -> Optional[Estimate]:
        pk, sk = _estimate_key(project_id, estimate_id)
        record = await self.store.get_item(settings.estimates_table, pk, sk)
        return Estimate(**record) if record else None

    async def list_project_estimates(self, project_id: str) -> List[Estimate]:
        """All estimates of a project, newest version first."""
        records = await self.store.query_items(settings.estimates_table, f"PROJECT#{project_id}", "ESTIMATE#")
        estimates = [Estimate(**record) for record in records]
        estimates.sort(key=lambda estimate: estimate.version, reverse=True)
        return estimates

    async def get_latest_estimate(self, project_id: str) -> Optional[Estimate]:
        estimates = await self.list_project_estimates(project_id)
        return estimates[0] if estimates else None

    async def _next_version(self, project_id: str) -> int:
        # Not guarded against concurrent writers; two callers can read the same latest version.
        latest = await self.get_latest_estimate(project_id)
        return (latest.version if latest else 0) + 1

    async def _require_estimate(self, project_id: str, estimate_id: str) -> Estimate:
        estimate = await self.get_estimate(project_id, estimate_id)
        if estimate is None:
            raise NotFoundError("estimate", estimate_id, code=ErrorCode.ESTIMATE_NOT_FOUND)
        return estimate

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    async def create_estimate(
        self,
        project_id: str,
        user_id: str,
        company_id: Optional[str] = None
    ) -> Estimate:
        """Create an empty draft at the project's next version.

        Raises:
            NotFoundError: Project (or given company) does not exist.
        """
        project = await self.store.get_item(settings.projects_table, f"PROJECT#{project_id}", "METADATA")
        if project is None:
            raise NotFoundError("project", project_id, code=ErrorCode.PROJECT_NOT_FOUND)

        company = None
        if company_id:
            record = await self.store.get_item(settings.companies_table, f"COMPANY#{company_id}", "METADATA")
            if record is None:
                raise NotFoundError("company", company_id, code=ErrorCode.COMPANY_NOT_FOUND)
            company = CompanySettings.from_record(company_id, record)

        phases = list(new_phases().values())
        now = utc_now_iso()
        estimate = Estimate(
            estimate_id=str(uuid4()),
            project_id=project_id,
            company_id=company_id,
            status=EstimateStatus.DRAFT,
            version=await self._next_version(project_id),
            customer_name=company.customer_name if company else "",
            job_name=project.get("name"),
            phases=phases,
            financials=calculate_financials(
                phases,
                labor_rate=company.hourly_rate if company else settings.default_hourly_rate,
                overhead_percentage=company.overhead_percentage if company else settings.default_overhead_percentage,
                profit_percentage=company.profit_percentage if company else settings.default_profit_percentage,
            ),
            created=now,
            updated=now,
            created_by=user_id,
            updated_by=user_id,
        )

        await self._save(estimate)
        logger.info("estimate_created", project_id=project_id, estimate_id=estimate.estimate_id, version=estimate.version)
        return estimate

    async def _save(self, estimate: Estimate) -> None:
        pk, sk = _estimate_key(estimate.project_id, estimate.estimate_id)
        await self.store.put_item(settings.estimates_table, {
            "PK": pk,
            "SK": sk,
            "GSI1PK": f"ESTIMATE#{estimate.estimate_id}",
            "GSI1SK": pk,
            **estimate.to_firestore_dict()
        })

    # -------------------------------------------------------------------------
    # Draft editing
    # -------------------------------------------------------------------------

    async def update_estimate(
        self,
        project_id: str,
        estimate_id: str,
        update: EstimateUpdate,
        user_id: str
    ) -> Optional[Estimate]:
        """Apply a partial update to a draft estimate.

        Replacing rooms re-prices every item at the estimate's labor rate and
        recomputes phases and financials.

        Raises:
            NotFoundError: Estimate does not exist.
            ValidationError: Estimate is not a draft.
        """
        current = await self._require_estimate(project_id, estimate_id)
        if current.status != EstimateStatus.DRAFT.value:
            raise ValidationError(
                "Only draft estimates can be updated",
                field="status",
                details={"status": current.status},
                code=ErrorCode.INVALID_STATE
            )

        data: Dict[str, Any] = {"updated": utc_now_iso(), "updatedBy": user_id}

        for field_name in ("notes", "customer_name", "job_name", "job_address", "job_number"):
            value = getattr(update, field_name)
            if value is not None:
                data[EstimateUpdate.model_fields[field_name].alias or field_name] = value

        rates_changed = update.overhead_percentage is not None or update.profit_percentage is not None
        if update.rooms is not None or rates_changed:
            rooms = self._reprice_rooms(update.rooms, current.financials.labor_rate) if update.rooms is not None else current.rooms
            phases = summarize_rooms(rooms, self._phase_accumulators(current))
            financials = calculate_financials(
                phases,
                labor_rate=current.financials.labor_rate,
                overhead_percentage=(
                    update.overhead_percentage
                    if update.overhead_percentage is not None
                    else current.financials.overhead_percentage
                ),
                profit_percentage=(
                    update.profit_percentage
                    if update.profit_percentage is not None
                    else current.financials.profit_percentage
                ),
            )
            data["rooms"] = _dump(rooms)
            data["phases"] = _dump(phases)
            data["financials"] = financials.model_dump(by_alias=True)

        pk, sk = _estimate_key(project_id, estimate_id)
        record = await self.store.update_item(settings.estimates_table, pk, sk, data)
        logger.info("estimate_updated", project_id=project_id, estimate_id=estimate_id, fields=list(data.keys()))
        return Estimate(**record) if record else None

    @staticmethod
    def _reprice_rooms(rooms: List[EstimateRoom], labor_rate: float) -> List[EstimateRoom]:
        repriced = []
        for room in rooms:
            items = [
                item.model_copy(update={"total_cost": item.labor_hours * labor_rate + item.material_cost})
                for item in room.items
            ]
            repriced.append(room.model_copy(update={"items": items}))
        return repriced

    @staticmethod
    def _phase_accumulators(estimate: Estimate):
        """Fresh accumulators that keep the estimate's existing phase ids."""
        phases = new_phases()
        existing_ids = {phase.name.lower(): phase.phase_id for phase in estimate.phases}
        for key, phase in phases.items():
            phase.phase_id = existing_ids.get(phase.name.lower(), phase.phase_id)
        return phases

    # -------------------------------------------------------------------------
    # Status workflow
    # -------------------------------------------------------------------------

    async def submit_estimate_for_approval(
        self,
        project_id: str,
        estimate_id: str,
        user_id: str
    ) -> Optional[Estimate]:
        """Move a draft to pending.

        Raises:
            NotFoundError: Estimate does not exist.
            ValidationError: Estimate is not a draft.
        """
        current = await self._require_estimate(project_id, estimate_id)
        if current.status != EstimateStatus.DRAFT.value:
            raise ValidationError(
                "Only draft estimates can be submitted for approval",
                field="status",
                details={"status": current.status},
                code=ErrorCode.INVALID_STATE
            )

        pk, sk = _estimate_key(project_id, estimate_id)
        record = await self.store.update_item(settings.estimates_table, pk, sk, {
            "status": EstimateStatus.PENDING.value,
            "updated": utc_now_iso(),
            "updatedBy": user_id,
        })
        logger.info("estimate_submitted", project_id=project_id, estimate_id=estimate_id)
        return Estimate(**record) if record else None

    async def update_estimate_status(
        self,
        project_id: str,
        estimate_id: str,
        status: str,
        user_id: str,
        note: Optional[str] = None
    ) -> Optional[Estimate]:
        """Set an estimate's status, stamping the matching date field.

        Returns:
            The updated estimate, or None if it does not exist.

        Raises:
            ValidationError: Unknown status, or the estimate was rejected.
        """
        try:
            new_status = EstimateStatus(status).value
        except ValueError:
            raise ValidationError(
                f"Invalid estimate status: {status}",
                field="status",
                details={"allowed": [s.value for s in EstimateStatus]}
            )

        current = await self.get_estimate(project_id, estimate_id)
        if current is None:
            return None

        if current.status in TERMINAL_STATUSES and new_status != current.status:
            raise ValidationError(
                f"Estimate is {current.status} and can no longer change status",
                field="status",
                details={"status": current.status, "requested": new_status},
                code=ErrorCode.INVALID_STATE
            )

        now = utc_now_iso()
        data: Dict[str, Any] = {"status": new_status, "updated": now, "updatedBy": user_id}
        date_field = STATUS_DATE_FIELDS.get(new_status)
        if date_field:
            data[date_field] = now
        if new_status == EstimateStatus.APPROVED.value:
            data["approvedBy"] = user_id
        if note:
            data["statusNote"] = note

        pk, sk = _estimate_key(project_id, estimate_id)
        record = await self.store.update_item(settings.estimates_table, pk, sk, data)
        if record is None:
            return None

        logger.info("estimate_status_updated", project_id=project_id, estimate_id=estimate_id, status=new_status)
        await self._record_status_event(project_id, estimate_id, new_status, note, user_id)
        return Estimate(**record)

    async def _record_status_event(
        self,
        project_id: str,
        estimate_id: str,
        status: str,
        note: Optional[str],
        user_id: str
    ) -> None:
        """Add the status change to the project timeline (best effort)."""
        if self.timeline is None:
            return

        event_type, title = STATUS_TIMELINE_EVENTS.get(
            status, (TimelineEventType.CUSTOM, f"Estimate {status.capitalize()}")
        )
        try:
            await self.timeline.add_event(
                project_id=project_id,
                event_type=event_type,
                title=title,
                user_id=user_id,
                description=note or f"Estimate status changed to {status}",
                status=TimelineEventStatus.COMPLETED,
                actual_date=utc_now_iso(),
                related_entity_type="estimate",
                related_entity_id=estimate_id,
            )
        except Exception as e:
            logger.warning("estimate_timeline_event_failed", project_id=project_id, estimate_id=estimate_id, error=str(e))

    async def revise_estimate(self, project_id: str, estimate_id: str, user_id: str) -> Estimate:
        """Copy a sent/accepted/approved/pending estimate into a new draft version.

        The source is marked revised.

        Raises:
            NotFoundError: Estimate does not exist.
            ValidationError: Source is a draft or was rejected.
        """
        source = await self._require_estimate(project_id, estimate_id)
        if source.status == EstimateStatus.DRAFT.value:
            raise ValidationError(
                "Draft estimates are edited in place, not revised",
                field="status",
                details={"status": source.status},
                code=ErrorCode.INVALID_STATE
            )
        if source.status in TERMINAL_STATUSES:
            raise ValidationError(
                "Rejected estimates cannot be revised",
                field="status",
                details={"status": source.status},
                code=ErrorCode.INVALID_STATE
            )

        now = utc_now_iso()
        rooms = [
            room.model_copy(update={
                "items": [item.model_copy(update={"item_id": str(uuid4())}) for item in room.items]
            })
            for room in source.rooms
        ]
        revision = source.model_copy(update={
            "estimate_id": str(uuid4()),
            "status": EstimateStatus.DRAFT.value,
            "version": await self._next_version(project_id),
            "rooms": rooms,
            "phases": [phase.model_copy() for phase in source.phases],
            "financials": source.financials.model_copy(),
            "status_note": None,
            "sent_date": None,
            "accepted_date": None,
            "rejected_date": None,
            "approved_date": None,
            "approved_by": None,
            "revised_from": source.estimate_id,
            "revised_by_estimate_id": None,
            "created": now,
            "updated": now,
            "created_by": user_id,
            "updated_by": user_id,
        })

        await self._save(revision)

        pk, sk = _estimate_key(project_id, estimate_id)
        await self.store.update_item(settings.estimates_table, pk, sk, {
            "status": EstimateStatus.REVISED.value,
            "revisedByEstimateId": revision.estimate_id,
            "updated": now,
            "updatedBy": user_id,
        })

        logger.info(
            "estimate_revised",
            project_id=project_id,
            source_estimate_id=estimate_id,
            estimate_id=revision.estimate_id,
            version=revision.version
        )
        return revision

    # -------------------------------------------------------------------------
    # Materials takeoff
    # -------------------------------------------------------------------------

    async def generate_materials_takeoff(
        self,
        project_id: str,
        estimate_id: str,
        user_id: str
    ) -> MaterialsTakeoff:
        """Aggregate the estimate's bills of materials into purchase lines.

        Waste factor comes from the assembly line, then the material, then
        1.1; adjustedQuantity = ceil(quantity * wasteFactor) per item.

        Raises:
            NotFoundError: Estimate does not exist.
        """
        estimate = await self._require_estimate(project_id, estimate_id)
        lines: "OrderedDict[str, MaterialTakeoffItem]" = OrderedDict()

        for room in estimate.rooms:
            for item in room.items:
                assembly = await self.catalog.get_assembly(item.assembly_id)
                if assembly is None or not assembly.materials:
                    continue

                for bill_line in assembly.materials:
                    material = await self.catalog.get_material(bill_line.material_id)
                    if material is None:
                        logger.warning("takeoff_material_missing", material_id=bill_line.material_id)
                        continue

                    quantity = item.quantity * bill_line.quantity
                    waste_factor = bill_line.waste_factor or material.waste_factor or DEFAULT_WASTE_FACTOR
                    adjusted_quantity = math.ceil(quantity * waste_factor)
                    total_cost = adjusted_quantity * material.current_cost

                    line = lines.get(material.id)
                    if line is None:
                        lines[material.id] = MaterialTakeoffItem(
                            material_id=material.id,
                            name=material.name,
                            unit=material.unit,
                            quantity=quantity,
                            waste_factor=waste_factor,
                            adjusted_quantity=adjusted_quantity,
                            unit_cost=material.current_cost,
                            total_cost=total_cost,
                            purchase_needed=adjusted_quantity,
                        )
                    else:
                        line.quantity += quantity
                        line.adjusted_quantity += adjusted_quantity
                        line.total_cost += total_cost
                        line.purchase_needed += adjusted_quantity

        existing = await self.store.query_items(settings.takeoffs_table, f"PROJECT#{project_id}", "TAKEOFF#")
        version = 1 + max(
            (record.get("version", 0) for record in existing if record.get("estimateId") == estimate_id),
            default=0
        )

        now = utc_now_iso()
        takeoff = MaterialsTakeoff(
            takeoff_id=str(uuid4()),
            project_id=project_id,
            estimate_id=estimate_id,
            version=version,
            items=list(lines.values()),
            total_cost=sum(line.total_cost for line in lines.values()),
            created=now,
            updated=now,
            created_by=user_id,
            updated_by=user_id,
        )

        await self.store.put_item(settings.takeoffs_table, {
            "PK": f"PROJECT#{project_id}",
            "SK": f"TAKEOFF#{takeoff.takeoff_id}",
            "GSI1PK": f"TAKEOFF#{takeoff.takeoff_id}",
            "GSI1SK": f"ESTIMATE#{estimate_id}",
            **takeoff.to_firestore_dict()
        })

        logger.info(
            "materials_takeoff_generated",
            project_id=project_id,
            estimate_id=estimate_id,
            takeoff_id=takeoff.takeoff_id,
            lines=len(takeoff.items)
        )
        return takeoff

    # -------------------------------------------------------------------------
    # Comparison
    # -------------------------------------------------------------------------

    async def compare_estimates(
        self,
        project_id: str,
        original_estimate_id: str,
        revised_estimate_id: str,
        user_id: str
    ) -> EstimateComparison:
        """Item-level diff keyed by room name and assembly code.

        Raises:
            NotFoundError: Either estimate does not exist.
        """
        original = await self._require_estimate(project_id, original_estimate_id)
        revised = await self._require_estimate(project_id, revised_estimate_id)

        original_items = self._index_items(original)
        revised_items = self._index_items(revised)

        changes: "OrderedDict[str, RoomChanges]" = OrderedDict()
        for key in list(original_items) + [k for k in revised_items if k not in original_items]:
            room_name, assembly_code = key
            before = original_items.get(key)
            after = revised_items.get(key)

            change = self._item_change(assembly_code, before, after)
            if change is None:
                continue
            changes.setdefault(room_name, RoomChanges(room_name=room_name)).items.append(change)

        difference = revised.financials.total_cost - original.financials.total_cost
        if original.financials.total_cost:
            difference_percent = difference / original.financials.total_cost * 100
        else:
            difference_percent = 0.0 if difference == 0 else 100.0

        return EstimateComparison(
            project_id=project_id,
            original_estimate_id=original_estimate_id,
            revised_estimate_id=revised_estimate_id,
            difference_amount=difference,
            difference_percent=difference_percent,
            labor_hours_difference=revised.financials.total_labor_hours - original.financials.total_labor_hours,
            material_cost_difference=revised.financials.total_material_cost - original.financials.total_material_cost,
            changes=list(changes.values()),
            created=utc_now_iso(),
            created_by=user_id,
        )

    @staticmethod
    def _index_items(estimate: Estimate) -> "OrderedDict[Tuple[str, str], EstimateItem]":
        """Items keyed by (room name, assembly code); duplicates are summed."""
        index: "OrderedDict[Tuple[str, str], EstimateItem]" = OrderedDict()
        for room in estimate.rooms:
            for item in room.items:
                key = (room.name, item.assembly_code)
                existing = index.get(key)
                if existing is None:
                    index[key] = item.model_copy()
                else:
                    existing.quantity += item.quantity
                    existing.labor_hours += item.labor_hours
                    existing.material_cost += item.material_cost
                    existing.total_cost += item.total_cost
        return index

    @staticmethod
    def _item_change(
        assembly_code: str,
        before: Optional[EstimateItem],
        after: Optional[EstimateItem]
    ) -> Optional[ItemChange]:
        original, revised = ItemFigures.of(before), ItemFigures.of(after)
        zero = ItemFigures()
        a, b = original or zero, revised or zero

        difference = ItemFigures(
            quantity=b.quantity - a.quantity,
            labor_hours=b.labor_hours - a.labor_hours,
            material_cost=b.material_cost - a.material_cost,
            total_cost=b.total_cost - a.total_cost,
        )

        if before is None:
            change_type = "added"
        elif after is None:
            change_type = "removed"
        elif any(abs(value) > 1e-9 for value in difference.model_dump().values()):
            change_type = "modified"
        else:
            return None

        return ItemChange(
            assembly_code=assembly_code,
            assembly_name=(after or before).assembly_name,
            change_type=change_type,
            original=original,
            revised=revised,
            difference=difference,
        )
