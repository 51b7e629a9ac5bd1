"""Electrical permit data derived from an estimate.

Counts outlets, switches, fixtures, appliances and HVAC units from the
estimate's items through the catalog's permit mappings, and adds one new
circuit per started group of eight outlets, fixtures or appliances.
"""

import math
from typing import Any, Dict, List, Optional
import structlog

from models.estimate import Estimate
from models.catalog import PermitMapping
from models.permit import CIRCUIT_BEARING_FIELDS, DEVICES_PER_CIRCUIT, ElectricalPermitData, PermitField
from services.catalog_service import CatalogService

logger = structlog.get_logger()

ELECTRICAL_PERMIT_TYPE = "electrical"


class PermitDataService:
    """Derives permit application data from estimates."""

    def __init__(self, catalog: CatalogService):
        self.catalog = catalog

    async def extract_electrical_data(
        self,
        estimate: Estimate,
        selections: Optional[Dict[str, Any]] = None
    ) -> ElectricalPermitData:
        """Electrical permit counters for the estimate.

        Args:
            estimate: Estimate whose items are counted
            selections: Customer selections; selections["electrical"] may
                override serviceSize, serviceType, voltageType and phase

        Raises:
            PersistenceError: Permit mappings could not be read.
        """
        data = ElectricalPermitData()

        assembly_ids: List[str] = [
            item.assembly_id
            for room in estimate.rooms
            for item in room.items
            if item.assembly_id
        ]

        mappings: Dict[str, PermitMapping] = {}
        if assembly_ids:
            for mapping in await self.catalog.find_permit_mappings(assembly_ids, ELECTRICAL_PERMIT_TYPE):
                mappings[mapping.assembly_id] = mapping

        for room in estimate.rooms:
            for item in room.items:
                mapping = mappings.get(item.assembly_id)
                if mapping is None:
                    continue

                field = PermitField.parse(mapping.permit_field_mapping)
                if field is None:
                    logger.debug("permit_field_unknown", assembly_id=item.assembly_id, field=mapping.permit_field_mapping)
                    continue

                quantity = (item.quantity or 1) * (mapping.count_factor or 1)
                data.add(field, quantity)

                if field in CIRCUIT_BEARING_FIELDS:
                    data.add(PermitField.NEW_CIRCUITS, math.ceil(quantity / DEVICES_PER_CIRCUIT))

        data.apply_selections(selections or {})

        logger.info(
            "permit_data_extracted",
            estimate_id=estimate.estimate_id,
            mapped_assemblies=len(mappings),
            new_circuits=data.new_circuits
        )
        return data
