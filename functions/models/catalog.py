"""Catalog models for ClearDesk.

Read-only assembly, material and permit-mapping records served by the
catalog collections. Records keep their document id in ``_id``.
"""

from typing import Optional, List
from pydantic import BaseModel, Field


class AssemblyMaterial(BaseModel):
    """Bill-of-materials line: quantity of a material per assembly unit."""

    material_id: str = Field(alias="materialId")
    quantity: float = Field(default=1.0, ge=0)
    waste_factor: Optional[float] = Field(
        default=None,
        alias="wasteFactor",
        description="Overrides the material's own waste factor in takeoffs"
    )

    class Config:
        populate_by_name = True


class Assembly(BaseModel):
    """Installable unit of labor plus materials (e.g. REC-GFCI)."""

    id: str = Field(alias="_id")
    code: str
    name: str = ""
    phase: str = Field(default="trim", description="rough | trim | service")
    labor_minutes: float = Field(default=0.0, alias="laborMinutes", ge=0)
    materials: Optional[List[AssemblyMaterial]] = Field(
        default=None,
        description="Bill of materials per unit; None means use defaultMaterialCost"
    )
    default_material_cost: Optional[float] = Field(default=None, alias="defaultMaterialCost")

    class Config:
        populate_by_name = True

    @property
    def phase_key(self) -> str:
        return (self.phase or "").strip().lower()


class Material(BaseModel):
    """Priced material record."""

    id: str = Field(alias="_id")
    name: str = ""
    unit: Optional[str] = None
    current_cost: float = Field(default=0.0, alias="currentCost")
    waste_factor: Optional[float] = Field(default=None, alias="wasteFactor")

    class Config:
        populate_by_name = True


class PermitMapping(BaseModel):
    """Maps an assembly onto a permit application counter."""

    assembly_id: str = Field(alias="assemblyId")
    permit_type: str = Field(default="electrical", alias="permitType")
    permit_field_mapping: Optional[str] = Field(default=None, alias="permitFieldMapping")
    count_factor: float = Field(default=1.0, alias="countFactor")

    class Config:
        populate_by_name = True
