"""Estimate models for ClearDesk.

Pydantic models for the priced, phase-bucketed Estimate aggregate, the
materials takeoff derived from it, and version-to-version comparisons.
"""

from enum import Enum
from typing import Dict, Any, Optional, List
from pydantic import BaseModel, Field


class EstimateStatus(str, Enum):
    """Status of an estimate.

    draft -> pending -> approved | rejected is the internal workflow;
    sent / accepted / rejected is the customer-facing vocabulary.
    revised marks an estimate superseded by a newer version.
    """

    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SENT = "sent"
    ACCEPTED = "accepted"
    REVISED = "revised"


class EstimateItem(BaseModel):
    """Priced line item for one device (or the service panel).

    Assembly identity is denormalized at creation time so later catalog
    changes do not alter saved estimates.
    """

    item_id: str = Field(alias="itemId")
    assembly_id: str = Field(alias="assemblyId")
    assembly_code: str = Field(alias="assemblyCode")
    assembly_name: str = Field(default="", alias="assemblyName")
    device_type: str = Field(alias="deviceType")
    quantity: float = Field(gt=0)
    labor_hours: float = Field(default=0.0, alias="laborHours")
    material_cost: float = Field(default=0.0, alias="materialCost")
    total_cost: float = Field(default=0.0, alias="totalCost")
    phase: str
    notes: str = ""

    class Config:
        populate_by_name = True


class EstimateRoom(BaseModel):
    """Room of an estimate; room_id carries over from the extracted room."""

    room_id: str = Field(alias="roomId")
    name: str
    floor: int = 1
    items: List[EstimateItem] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class EstimatePhase(BaseModel):
    """Cost bucket for one construction phase."""

    phase_id: str = Field(alias="phaseId")
    name: str
    description: str = ""
    labor_hours: float = Field(default=0.0, alias="laborHours")
    material_cost: float = Field(default=0.0, alias="materialCost")
    total_cost: float = Field(default=0.0, alias="totalCost")

    class Config:
        populate_by_name = True

    def add(self, item: EstimateItem) -> None:
        self.labor_hours += item.labor_hours
        self.material_cost += item.material_cost
        self.total_cost += item.total_cost


class EstimateFinancials(BaseModel):
    """Financial roll-up of an estimate.

    subtotal = totalMaterialCost + totalLaborCost
    overheadAmount = subtotal * overheadPercentage / 100
    profitAmount = (subtotal + overheadAmount) * profitPercentage / 100
    totalCost = subtotal + overheadAmount + profitAmount
    """

    labor_rate: float = Field(alias="laborRate")
    total_labor_hours: float = Field(default=0.0, alias="totalLaborHours")
    total_labor_cost: float = Field(default=0.0, alias="totalLaborCost")
    total_material_cost: float = Field(default=0.0, alias="totalMaterialCost")
    subtotal: float = 0.0
    overhead_percentage: float = Field(alias="overheadPercentage")
    overhead_amount: float = Field(default=0.0, alias="overheadAmount")
    profit_percentage: float = Field(alias="profitPercentage")
    profit_amount: float = Field(default=0.0, alias="profitAmount")
    total_cost: float = Field(default=0.0, alias="totalCost")

    class Config:
        populate_by_name = True

    @classmethod
    def from_totals(
        cls,
        labor_rate: float,
        total_labor_hours: float,
        total_material_cost: float,
        overhead_percentage: float,
        profit_percentage: float,
    ) -> "EstimateFinancials":
        total_labor_cost = total_labor_hours * labor_rate
        subtotal = total_material_cost + total_labor_cost
        overhead_amount = subtotal * (overhead_percentage / 100)
        profit_amount = (subtotal + overhead_amount) * (profit_percentage / 100)

        return cls(
            labor_rate=labor_rate,
            total_labor_hours=total_labor_hours,
            total_labor_cost=total_labor_cost,
            total_material_cost=total_material_cost,
            subtotal=subtotal,
            overhead_percentage=overhead_percentage,
            overhead_amount=overhead_amount,
            profit_percentage=profit_percentage,
            profit_amount=profit_amount,
            total_cost=subtotal + overhead_amount + profit_amount,
        )


class Estimate(BaseModel):
    """Estimate aggregate.

    Stored at PROJECT#{projectId} / ESTIMATE#{estimateId} with a secondary
    index on ESTIMATE#{estimateId}.
    """

    estimate_id: str = Field(alias="estimateId")
    project_id: str = Field(alias="projectId")
    blueprint_id: Optional[str] = Field(default=None, alias="blueprintId")
    company_id: Optional[str] = Field(default=None, alias="companyId")
    status: EstimateStatus = Field(default=EstimateStatus.DRAFT)
    version: int = Field(default=1, ge=1)

    # Job metadata copied from the blueprint / company
    customer_name: str = Field(default="", alias="customerName")
    job_name: Optional[str] = Field(default=None, alias="jobName")
    job_address: Optional[str] = Field(default=None, alias="jobAddress")
    job_number: Optional[str] = Field(default=None, alias="jobNumber")
    classification_code: Optional[str] = Field(default=None, alias="classificationCode")
    square_footage: Optional[int] = Field(default=None, alias="squareFootage")

    rooms: List[EstimateRoom] = Field(default_factory=list)
    phases: List[EstimatePhase] = Field(default_factory=list)
    financials: EstimateFinancials
    notes: str = ""

    # Status bookkeeping
    status_note: Optional[str] = Field(default=None, alias="statusNote")
    sent_date: Optional[str] = Field(default=None, alias="sentDate")
    accepted_date: Optional[str] = Field(default=None, alias="acceptedDate")
    rejected_date: Optional[str] = Field(default=None, alias="rejectedDate")
    approved_date: Optional[str] = Field(default=None, alias="approvedDate")
    approved_by: Optional[str] = Field(default=None, alias="approvedBy")
    revised_from: Optional[str] = Field(default=None, alias="revisedFrom")
    revised_by_estimate_id: Optional[str] = Field(default=None, alias="revisedByEstimateId")

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


class EstimateUpdate(BaseModel):
    """Partial update accepted for draft estimates."""

    rooms: Optional[List[EstimateRoom]] = None
    notes: Optional[str] = None
    customer_name: Optional[str] = Field(default=None, alias="customerName")
    job_name: Optional[str] = Field(default=None, alias="jobName")
    job_address: Optional[str] = Field(default=None, alias="jobAddress")
    job_number: Optional[str] = Field(default=None, alias="jobNumber")
    overhead_percentage: Optional[float] = Field(default=None, alias="overheadPercentage", ge=0)
    profit_percentage: Optional[float] = Field(default=None, alias="profitPercentage", ge=0)

    class Config:
        populate_by_name = True


# =============================================================================
# MATERIALS TAKEOFF
# =============================================================================


class MaterialTakeoffItem(BaseModel):
    """Aggregated purchase line for one material."""

    material_id: str = Field(alias="materialId")
    name: str = ""
    unit: Optional[str] = None
    quantity: float = 0.0
    waste_factor: float = Field(alias="wasteFactor")
    adjusted_quantity: int = Field(default=0, alias="adjustedQuantity")
    unit_cost: float = Field(default=0.0, alias="unitCost")
    total_cost: float = Field(default=0.0, alias="totalCost")
    inventory_allocated: float = Field(default=0.0, alias="inventoryAllocated")
    purchase_needed: float = Field(default=0.0, alias="purchaseNeeded")

    class Config:
        populate_by_name = True


class MaterialsTakeoff(BaseModel):
    """Materials takeoff stored at PROJECT#{projectId} / TAKEOFF#{takeoffId}."""

    takeoff_id: str = Field(alias="takeoffId")
    project_id: str = Field(alias="projectId")
    estimate_id: str = Field(alias="estimateId")
    status: str = "draft"
    version: int = 1
    items: List[MaterialTakeoffItem] = Field(default_factory=list)
    total_cost: float = Field(default=0.0, alias="totalCost")
    created: Optional[str] = None
    updated: Optional[str] = None
    created_by: Optional[str] = Field(default=None, alias="createdBy")
    updated_by: Optional[str] = Field(default=None, alias="updatedBy")

    class Config:
        populate_by_name = True

    def to_firestore_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# =============================================================================
# COMPARISON
# =============================================================================


class ItemFigures(BaseModel):
    quantity: float = 0.0
    labor_hours: float = Field(default=0.0, alias="laborHours")
    material_cost: float = Field(default=0.0, alias="materialCost")
    total_cost: float = Field(default=0.0, alias="totalCost")

    class Config:
        populate_by_name = True

    @classmethod
    def of(cls, item: Optional[EstimateItem]) -> Optional["ItemFigures"]:
        if item is None:
            return None
        return cls(
            quantity=item.quantity,
            labor_hours=item.labor_hours,
            material_cost=item.material_cost,
            total_cost=item.total_cost,
        )


class ItemChange(BaseModel):
    """Difference for one assembly within one room."""

    assembly_code: str = Field(alias="assemblyCode")
    assembly_name: str = Field(default="", alias="assemblyName")
    change_type: str = Field(alias="changeType", description="added | removed | modified")
    original: Optional[ItemFigures] = None
    revised: Optional[ItemFigures] = None
    difference: ItemFigures

    class Config:
        populate_by_name = True


class RoomChanges(BaseModel):
    room_name: str = Field(alias="roomName")
    items: List[ItemChange] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class EstimateComparison(BaseModel):
    """Item-level diff between two estimates of the same project."""

    project_id: str = Field(alias="projectId")
    original_estimate_id: str = Field(alias="originalEstimateId")
    revised_estimate_id: str = Field(alias="revisedEstimateId")
    difference_amount: float = Field(default=0.0, alias="differenceAmount")
    difference_percent: float = Field(default=0.0, alias="differencePercent")
    labor_hours_difference: float = Field(default=0.0, alias="laborHoursDifference")
    material_cost_difference: float = Field(default=0.0, alias="materialCostDifference")
    changes: List[RoomChanges] = Field(default_factory=list)
    created: Optional[str] = None
    created_by: Optional[str] = Field(default=None, alias="createdBy")

    class Config:
        populate_by_name = True
