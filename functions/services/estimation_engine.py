"""Estimation engine for ClearDesk.

Prices a Blueprint into a draft Estimate:
1. Each extracted device resolves to a catalog assembly (device table,
   then MISC-STD, else the device is skipped)
2. Labor hours and material cost per item, bucketed into Rough / Trim /
   Service phases
3. A single service panel item in an "Electrical Service" room
4. Financial roll-up with the company's rate, overhead and profit
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
from uuid import uuid4
import structlog

from config.settings import settings
from config.errors import ErrorCode, NotFoundError
from models.blueprint import Blueprint, DeviceType, ExtractedRoom
from models.catalog import Assembly
from models.company import CompanySettings
from models.estimate import (
    Estimate,
    EstimateFinancials,
    EstimateItem,
    EstimatePhase,
    EstimateRoom,
    EstimateStatus,
)
from services.catalog_service import CatalogService
from services.device_mapping import (
    DEFAULT_ASSEMBLY_CODE,
    SERVICE_PANEL_ASSEMBLY_CODE,
    assembly_code_for,
)
from services.firestore_service import FirestoreService, utc_now_iso
from utils.run_logger import log_run_start, log_run_complete, log_run_failed

logger = structlog.get_logger()

RUN_TYPE = "estimate generation"

# Phase key -> (name, description); every estimate carries exactly these
PHASE_DEFINITIONS: Dict[str, Tuple[str, str]] = {
    "rough": ("Rough", "Rough-in phase including boxes, wiring, and general preparation"),
    "trim": ("Trim", "Trim phase including devices, fixtures, and finishes"),
    "service": ("Service", "Service phase including panel, service entrance, and grounding"),
}

SERVICE_ROOM_NAME = "Electrical Service"
SERVICE_PANEL_NOTES = "Main service panel"


def new_phases() -> Dict[str, EstimatePhase]:
    """Empty phase accumulators keyed by phase key."""
    return {
        key: EstimatePhase(phase_id=str(uuid4()), name=name, description=description)
        for key, (name, description) in PHASE_DEFINITIONS.items()
    }


def summarize_rooms(rooms: List[EstimateRoom], phases: Optional[Dict[str, EstimatePhase]] = None) -> List[EstimatePhase]:
    """Phase totals over every item of the rooms.

    Items whose phase is not rough/trim/service stay in their room but are
    left out of the phase totals.
    """
    phases = phases if phases is not None else new_phases()
    for room in rooms:
        for item in room.items:
            phase = phases.get((item.phase or "").strip().lower())
            if phase is not None:
                phase.add(item)
    return list(phases.values())


def calculate_financials(
    phases: List[EstimatePhase],
    labor_rate: float,
    overhead_percentage: float,
    profit_percentage: float
) -> EstimateFinancials:
    """Financial roll-up from phase totals."""
    return EstimateFinancials.from_totals(
        labor_rate=labor_rate,
        total_labor_hours=sum(phase.labor_hours for phase in phases),
        total_material_cost=sum(phase.material_cost for phase in phases),
        overhead_percentage=overhead_percentage,
        profit_percentage=profit_percentage,
    )


@dataclass
class CatalogLookups:
    """Catalog reads memoized for a single estimate run."""

    assemblies: Dict[str, Optional[Assembly]] = field(default_factory=dict)
    material_costs: Dict[str, Optional[float]] = field(default_factory=dict)


class EstimationEngineService:
    """Generates priced draft estimates from extracted blueprints."""

    def __init__(self, store: FirestoreService, catalog: CatalogService):
        self.store = store
        self.catalog = catalog

    async def generate_estimate(
        self,
        project_id: str,
        blueprint_id: str,
        company_id: str,
        user_id: str
    ) -> Estimate:
        """Generate and persist a draft estimate (version 1) from a blueprint.

        Raises:
            NotFoundError: Blueprint or company does not exist.
            PersistenceError: Store read or write failed.
        """
        blueprint = await self.get_blueprint(project_id, blueprint_id)
        if blueprint is None:
            raise NotFoundError("blueprint", blueprint_id, code=ErrorCode.BLUEPRINT_NOT_FOUND)

        company = await self.get_company(company_id)
        if company is None:
            raise NotFoundError("company", company_id, code=ErrorCode.COMPANY_NOT_FOUND)

        start_time = time.time()
        log_run_start(RUN_TYPE, project_id, blueprint_id=blueprint_id, company_id=company_id)

        try:
            rooms, phases = await self.price_rooms(blueprint.rooms, company.hourly_rate, CatalogLookups())
            financials = calculate_financials(
                phases,
                labor_rate=company.hourly_rate,
                overhead_percentage=company.overhead_percentage,
                profit_percentage=company.profit_percentage,
            )

            now = utc_now_iso()
            estimate = Estimate(
                estimate_id=str(uuid4()),
                project_id=project_id,
                blueprint_id=blueprint_id,
                company_id=company_id,
                status=EstimateStatus.DRAFT,
                version=1,
                customer_name=company.customer_name,
                job_name=blueprint.job_name,
                job_address=blueprint.job_address,
                job_number=blueprint.job_number,
                classification_code=blueprint.classification_code,
                square_footage=blueprint.square_footage,
                rooms=rooms,
                phases=phases,
                financials=financials,
                notes=f"Auto-generated from blueprint on {datetime.now(timezone.utc):%m/%d/%Y}",
                created=now,
                updated=now,
                created_by=user_id,
                updated_by=user_id,
            )

            await self.save_estimate(estimate)

        except Exception as e:
            logger.error("estimate_generation_failed", project_id=project_id, blueprint_id=blueprint_id, error=str(e))
            log_run_failed(RUN_TYPE, project_id, str(e))
            raise

        log_run_complete(
            RUN_TYPE,
            project_id,
            duration_ms=int((time.time() - start_time) * 1000),
            summary={
                "estimate_id": estimate.estimate_id,
                "rooms": len(estimate.rooms),
                "total_cost": round(financials.total_cost, 2),
            }
        )
        return estimate

    # -------------------------------------------------------------------------
    # Pricing
    # -------------------------------------------------------------------------

    async def price_rooms(
        self,
        blueprint_rooms: List[ExtractedRoom],
        labor_rate: float,
        lookups: Optional[CatalogLookups] = None
    ) -> Tuple[List[EstimateRoom], List[EstimatePhase]]:
        """Price every device of every room, plus the service panel."""
        lookups = lookups if lookups is not None else CatalogLookups()
        phases = new_phases()
        estimate_rooms: List[EstimateRoom] = []

        for room in blueprint_rooms:
            items: List[EstimateItem] = []

            for device in room.devices:
                assembly = await self.get_assembly_for_device(device.type, lookups)
                if assembly is None:
                    logger.warning("no_assembly_for_device", device_type=device.type, room=room.name)
                    continue

                item = await self.build_item(
                    assembly,
                    quantity=device.count,
                    labor_rate=labor_rate,
                    device_type=device.type,
                    phase=assembly.phase_key,
                    lookups=lookups,
                    notes=device.notes or "",
                )
                items.append(item)

            estimate_rooms.append(EstimateRoom(
                room_id=room.room_id,
                name=room.name,
                floor=room.floor,
                items=items,
            ))

        service_panel = await self.build_service_panel_item(labor_rate, lookups)
        if service_panel is not None:
            service_room = next((r for r in estimate_rooms if r.name == SERVICE_ROOM_NAME), None)
            if service_room is None:
                service_room = EstimateRoom(room_id=str(uuid4()), name=SERVICE_ROOM_NAME, floor=1)
                estimate_rooms.append(service_room)
            service_room.items.append(service_panel)

        return estimate_rooms, summarize_rooms(estimate_rooms, phases)

    async def build_item(
        self,
        assembly: Assembly,
        quantity: float,
        labor_rate: float,
        device_type: str,
        phase: str,
        lookups: CatalogLookups,
        notes: str = ""
    ) -> EstimateItem:
        labor_hours = (assembly.labor_minutes / 60) * quantity
        material_cost = await self.calculate_material_cost(assembly, quantity, lookups)

        return EstimateItem(
            item_id=str(uuid4()),
            assembly_id=assembly.id,
            assembly_code=assembly.code,
            assembly_name=assembly.name,
            device_type=device_type,
            quantity=quantity,
            labor_hours=labor_hours,
            material_cost=material_cost,
            total_cost=labor_hours * labor_rate + material_cost,
            phase=phase,
            notes=notes,
        )

    async def build_service_panel_item(self, labor_rate: float, lookups: CatalogLookups) -> Optional[EstimateItem]:
        """Single service panel item, or None when the catalog has no SVC-PNL."""
        assembly = await self._find_assembly(SERVICE_PANEL_ASSEMBLY_CODE, lookups)
        if assembly is None:
            logger.debug("service_panel_assembly_missing")
            return None

        return await self.build_item(
            assembly,
            quantity=1,
            labor_rate=labor_rate,
            device_type=DeviceType.CUSTOM.value,
            phase="service",
            lookups=lookups,
            notes=SERVICE_PANEL_NOTES,
        )

    async def get_assembly_for_device(self, device_type: str, lookups: CatalogLookups) -> Optional[Assembly]:
        """Assembly for a device type, falling back to MISC-STD."""
        assembly = await self._find_assembly(assembly_code_for(device_type), lookups)
        if assembly is None:
            assembly = await self._find_assembly(DEFAULT_ASSEMBLY_CODE, lookups)
        return assembly

    async def _find_assembly(self, code: str, lookups: CatalogLookups) -> Optional[Assembly]:
        if code not in lookups.assemblies:
            lookups.assemblies[code] = await self.catalog.find_assembly_by_code(code)
        return lookups.assemblies[code]

    async def calculate_material_cost(self, assembly: Assembly, quantity: float, lookups: CatalogLookups) -> float:
        """Bill-of-materials cost for quantity units of the assembly.

        Without a bill of materials the assembly's defaultMaterialCost is
        used; a missing material record contributes nothing.
        """
        if not assembly.materials:
            return (assembly.default_material_cost or 0) * quantity

        total = 0.0
        for line in assembly.materials:
            unit_cost = await self._material_cost(line.material_id, lookups)
            if unit_cost is None:
                logger.warning("material_not_found", material_id=line.material_id, assembly=assembly.code)
                continue
            total += unit_cost * line.quantity * quantity
        return total

    async def _material_cost(self, material_id: str, lookups: CatalogLookups) -> Optional[float]:
        if material_id not in lookups.material_costs:
            material = await self.catalog.get_material(material_id)
            lookups.material_costs[material_id] = material.current_cost if material else None
        return lookups.material_costs[material_id]

    # -------------------------------------------------------------------------
    # Store access
    # -------------------------------------------------------------------------

    async def get_blueprint(self, project_id: str, blueprint_id: str) -> Optional[Blueprint]:
        record = await self.store.get_item(
            settings.blueprints_table,
            f"PROJECT#{project_id}",
            f"BLUEPRINT#{blueprint_id}"
        )
        return Blueprint(**record) if record else None

    async def get_company(self, company_id: str) -> Optional[CompanySettings]:
        record = await self.store.get_item(settings.companies_table, f"COMPANY#{company_id}", "METADATA")
        return CompanySettings.from_record(company_id, record) if record else None

    async def save_estimate(self, estimate: Estimate) -> None:
        await self.store.put_item(settings.estimates_table, {
            "PK": f"PROJECT#{estimate.project_id}",
            "SK": f"ESTIMATE#{estimate.estimate_id}",
            "GSI1PK": f"ESTIMATE#{estimate.estimate_id}",
            "GSI1SK": f"PROJECT#{estimate.project_id}",
            **estimate.to_firestore_dict()
        })
