"""Company pricing settings used by the estimation engine."""

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field

from config.settings import settings


class CompanySettings(BaseModel):
    """Pricing configuration for one company.

    Missing rate values fall back to the configured defaults (85/h, 15%
    overhead, 10% profit). Explicit zeros are kept.
    """

    company_id: str = Field(alias="companyId")
    name: str = ""
    customer_name: str = Field(default="", alias="customerName")
    hourly_rate: float = Field(alias="hourlyRate")
    overhead_percentage: float = Field(alias="overheadPercentage")
    profit_percentage: float = Field(alias="profitPercentage")

    class Config:
        populate_by_name = True

    @classmethod
    def from_record(cls, company_id: str, record: Dict[str, Any]) -> "CompanySettings":
        """Build settings from a stored company record, applying defaults."""

        def _value(key: str, default: float) -> float:
            value: Optional[Any] = record.get(key)
            return default if value is None else float(value)

        return cls(
            company_id=company_id,
            name=record.get("name") or "",
            customer_name=record.get("customerName") or "",
            hourly_rate=_value("hourlyRate", settings.default_hourly_rate),
            overhead_percentage=_value("overheadPercentage", settings.default_overhead_percentage),
            profit_percentage=_value("profitPercentage", settings.default_profit_percentage),
        )
