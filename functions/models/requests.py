"""Request body models for the HTTP functions.

Caller identity (userId, companyId) is taken from the body; token
verification happens in front of these functions.
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field

from models.estimate import EstimateStatus, EstimateUpdate


class _Request(BaseModel):
    class Config:
        populate_by_name = True
        use_enum_values = True


class ProcessBlueprintRequest(_Request):
    project_id: str = Field(alias="projectId", min_length=1)
    file_key: str = Field(alias="fileKey", min_length=1)
    template_id: Optional[str] = Field(default=None, alias="templateId")
    user_id: str = Field(alias="userId", min_length=1)


class GenerateEstimateRequest(_Request):
    project_id: str = Field(alias="projectId", min_length=1)
    blueprint_id: str = Field(alias="blueprintId", min_length=1)
    company_id: str = Field(alias="companyId", min_length=1)
    user_id: str = Field(alias="userId", min_length=1)


class CreateEstimateRequest(_Request):
    project_id: str = Field(alias="projectId", min_length=1)
    user_id: str = Field(alias="userId", min_length=1)
    company_id: Optional[str] = Field(default=None, alias="companyId")


class EstimateRefRequest(_Request):
    """Addresses one estimate of a project."""

    project_id: str = Field(alias="projectId", min_length=1)
    estimate_id: str = Field(alias="estimateId", min_length=1)
    user_id: Optional[str] = Field(default=None, alias="userId")


class ListEstimatesRequest(_Request):
    project_id: str = Field(alias="projectId", min_length=1)
    latest_only: bool = Field(default=False, alias="latestOnly")


class UpdateEstimateRequest(EstimateRefRequest):
    user_id: str = Field(alias="userId", min_length=1)
    update: EstimateUpdate


class UpdateEstimateStatusRequest(EstimateRefRequest):
    user_id: str = Field(alias="userId", min_length=1)
    status: EstimateStatus
    note: Optional[str] = None


class UserEstimateRequest(EstimateRefRequest):
    user_id: str = Field(alias="userId", min_length=1)


class CompareEstimatesRequest(_Request):
    project_id: str = Field(alias="projectId", min_length=1)
    original_estimate_id: str = Field(alias="originalEstimateId", min_length=1)
    revised_estimate_id: str = Field(alias="revisedEstimateId", min_length=1)
    user_id: str = Field(alias="userId", min_length=1)


class TimelinePredictionRequest(_Request):
    project_id: str = Field(alias="projectId", min_length=1)
    user_id: str = Field(alias="userId", min_length=1)


class PermitDataRequest(EstimateRefRequest):
    selections: Optional[Dict[str, Any]] = None
