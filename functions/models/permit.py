"""Electrical permit application data derived from an estimate."""

from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class PermitField(str, Enum):
    """Counters on an electrical permit application that assemblies map onto."""

    NEW_CIRCUITS = "newCircuits"
    OUTLETS = "outlets"
    SWITCHES = "switches"
    FIXTURES = "fixtures"
    APPLIANCES = "appliances"
    HVAC_UNITS = "hvacUnits"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["PermitField"]:
        """Resolve a stored mapping name, or None if it names no counter."""
        if not value:
            return None
        try:
            return cls(value)
        except ValueError:
            return None


# Every this many devices on these counters add one new circuit
CIRCUIT_BEARING_FIELDS = frozenset({PermitField.OUTLETS, PermitField.FIXTURES, PermitField.APPLIANCES})
DEVICES_PER_CIRCUIT = 8


class ElectricalPermitData(BaseModel):
    """Accumulator for the electrical section of a permit application."""

    service_size: int = Field(default=200, alias="serviceSize")
    service_type: str = Field(default="Permanent", alias="serviceType")
    voltage_type: str = Field(default="120/240V", alias="voltageType")
    phase: str = "Single-phase"
    new_circuits: float = Field(default=0, alias="newCircuits")
    outlets: float = 0
    switches: float = 0
    fixtures: float = 0
    appliances: float = 0
    hvac_units: float = Field(default=0, alias="hvacUnits")

    class Config:
        populate_by_name = True

    def add(self, field: PermitField, quantity: float) -> None:
        """Add quantity to the counter named by field."""
        match field:
            case PermitField.NEW_CIRCUITS:
                self.new_circuits += quantity
            case PermitField.OUTLETS:
                self.outlets += quantity
            case PermitField.SWITCHES:
                self.switches += quantity
            case PermitField.FIXTURES:
                self.fixtures += quantity
            case PermitField.APPLIANCES:
                self.appliances += quantity
            case PermitField.HVAC_UNITS:
                self.hvac_units += quantity

    def apply_selections(self, selections: Dict[str, Any]) -> None:
        """Override service fields from the estimate's electrical selections."""
        electrical = (selections or {}).get("electrical") or {}

        if electrical.get("serviceSize"):
            try:
                self.service_size = int(electrical["serviceSize"]) or 200
            except (TypeError, ValueError):
                self.service_size = 200
        if electrical.get("serviceType"):
            self.service_type = electrical["serviceType"]
        if electrical.get("voltageType"):
            self.voltage_type = electrical["voltageType"]
        if electrical.get("phase"):
            self.phase = electrical["phase"]
