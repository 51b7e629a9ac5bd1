"""Cloud Function entry points for ClearDesk estimating.

Provides HTTP endpoints for:
- Blueprint processing (PDF -> rooms/devices)
- Estimate generation from blueprints
- Manual estimate workflow (create, update, status, revise)
- Materials takeoff and estimate comparison
- Timeline predictions and electrical permit data
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, Type
from datetime import datetime, date

import structlog
from firebase_functions import https_fn, options
from firebase_admin import initialize_app
from pydantic import BaseModel, ValidationError as PydanticValidationError

from config.settings import settings
from config.errors import ClearDeskError, ErrorCode, NotFoundError, ValidationError
from models.requests import (
    CompareEstimatesRequest,
    CreateEstimateRequest,
    EstimateRefRequest,
    GenerateEstimateRequest,
    ListEstimatesRequest,
    PermitDataRequest,
    ProcessBlueprintRequest,
    TimelinePredictionRequest,
    UpdateEstimateRequest,
    UpdateEstimateStatusRequest,
    UserEstimateRequest,
)
from services.blueprint_processor import BlueprintProcessorService
from services.catalog_service import CatalogService
from services.estimation_engine import EstimationEngineService
from services.estimation_service import EstimationService
from services.firestore_service import FirestoreService
from services.permit_data_service import PermitDataService
from services.storage_service import StorageService
from services.timeline_service import TimelinePredictionService
from utils.logging_config import configure_logging

# Initialize Firebase Admin SDK
try:
    initialize_app()
except ValueError:
    # Already initialized
    pass

configure_logging()
logger = structlog.get_logger()

# ============================================================================
# Helper Functions
# ============================================================================


def success_response(data: Any) -> Dict[str, Any]:
    """Build success response."""
    return {"success": True, "data": data}


def error_response(code: str, message: str, details: Dict[str, Any] = None) -> Dict[str, Any]:
    """Build error response."""
    return {
        "success": False,
        "error": {
            "code": code,
            "message": message,
            "details": details or {}
        }
    }


def get_request_json(req: https_fn.Request) -> Dict[str, Any]:
    """Extract JSON from request body.

    Raises:
        ValidationError: If JSON is invalid.
    """
    try:
        return req.get_json(force=True) or {}
    except Exception as e:
        raise ValidationError(
            message=f"Invalid JSON in request body: {str(e)}"
        )


def parse_request(req: https_fn.Request, model: Type[BaseModel]) -> BaseModel:
    """Parse the request body into a request model.

    Raises:
        ValidationError: Body is not JSON or does not match the model;
            details.errors lists the offending fields.
    """
    data = get_request_json(req)
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        errors = [
            {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
            for error in e.errors()
        ]
        raise ValidationError(
            message="Invalid request body",
            details={"errors": errors},
            code=ErrorCode.INVALID_SCHEMA
        )


def _dump(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(by_alias=True, exclude_none=True)


# ============================================================================
# CORS / JSON
# ============================================================================

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Access-Control-Max-Age": "3600"
}


def _cors_response() -> https_fn.Response:
    """Return CORS preflight response."""
    return https_fn.Response(
        "",
        status=204,
        headers=CORS_HEADERS
    )


def _json_response(data: dict, status: int = 200) -> https_fn.Response:
    """Return JSON response with CORS headers."""

    def _json_default(o: Any):
        """JSON serializer for Firestore timestamp types."""
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        if hasattr(o, "isoformat"):
            return o.isoformat()
        return str(o)

    return https_fn.Response(
        json.dumps(data, default=_json_default),
        status=status,
        mimetype="application/json",
        headers=CORS_HEADERS
    )


def _handle_request(
    req: https_fn.Request,
    request_model: Type[BaseModel],
    operation: Callable[[Any], Awaitable[Any]],
    name: str
) -> https_fn.Response:
    """Run one endpoint: preflight, body parsing, service call, error mapping.

    ValidationError -> 400, NotFoundError -> 404, other ClearDeskError -> 500,
    anything else -> 500 INTERNAL_ERROR.
    """
    if req.method == "OPTIONS":
        return _cors_response()

    try:
        body = parse_request(req, request_model)
        result = asyncio.run(operation(body))
        return _json_response(success_response(result))

    except ValidationError as e:
        logger.warning(f"{name}_invalid_request", error=e.message, code=e.code)
        return _json_response(
            error_response(e.code, e.message, e.details),
            status=400
        )
    except NotFoundError as e:
        logger.info(f"{name}_not_found", error=e.message, code=e.code)
        return _json_response(
            error_response(e.code, e.message, e.details),
            status=404
        )
    except ClearDeskError as e:
        logger.error(f"{name}_error", error=e.message, code=e.code)
        return _json_response(
            error_response(e.code, e.message, e.details),
            status=500
        )
    except Exception as e:
        logger.exception(f"{name}_exception", error=str(e))
        return _json_response(
            error_response(
                ErrorCode.INTERNAL_ERROR,
                f"Request failed: {str(e)}"
            ),
            status=500
        )


def _estimation_service() -> EstimationService:
    store = FirestoreService()
    return EstimationService(
        store=store,
        catalog=CatalogService(),
        timeline=TimelinePredictionService(store)
    )


# Endpoint configurations
EXTRACTION_ENDPOINT_CONFIG = {
    "timeout_sec": 540,
    "memory": options.MemoryOption.GB_1,
    "region": settings.region
}

ESTIMATE_ENDPOINT_CONFIG = {
    "timeout_sec": 120,
    "memory": options.MemoryOption.MB_512,
    "region": settings.region
}

READ_ENDPOINT_CONFIG = {
    "timeout_sec": 30,
    "memory": options.MemoryOption.MB_256,
    "region": settings.region
}

# ============================================================================
# Blueprint -> Estimate
# ============================================================================


@https_fn.on_request(**EXTRACTION_ENDPOINT_CONFIG)
def process_blueprint(req: https_fn.Request) -> https_fn.Response:
    """Extract a blueprint from an uploaded PDF.

    Request body:
    {
        "projectId": "proj-xxx",
        "fileKey": "projects/proj-xxx/blueprints/plan.pdf",
        "templateId": "tpl-xxx",  // Optional
        "userId": "user-123"
    }

    Response data: the stored Blueprint.
    """
    return _handle_request(req, ProcessBlueprintRequest, _process_blueprint_async, "process_blueprint")


async def _process_blueprint_async(body: ProcessBlueprintRequest) -> Dict[str, Any]:
    processor = BlueprintProcessorService(
        store=FirestoreService(),
        catalog=CatalogService(),
        storage=StorageService()
    )
    blueprint = await processor.process_blueprint(
        project_id=body.project_id,
        file_key=body.file_key,
        template_id=body.template_id,
        user_id=body.user_id
    )
    return _dump(blueprint)


@https_fn.on_request(**ESTIMATE_ENDPOINT_CONFIG)
def generate_estimate(req: https_fn.Request) -> https_fn.Response:
    """Generate a priced draft estimate from a processed blueprint.

    Request body:
    {
        "projectId": "proj-xxx",
        "blueprintId": "bp-xxx",
        "companyId": "co-xxx",
        "userId": "user-123"
    }
    """
    return _handle_request(req, GenerateEstimateRequest, _generate_estimate_async, "generate_estimate")


async def _generate_estimate_async(body: GenerateEstimateRequest) -> Dict[str, Any]:
    engine = EstimationEngineService(store=FirestoreService(), catalog=CatalogService())
    estimate = await engine.generate_estimate(
        project_id=body.project_id,
        blueprint_id=body.blueprint_id,
        company_id=body.company_id,
        user_id=body.user_id
    )
    return _dump(estimate)


# ============================================================================
# Estimate workflow
# ============================================================================


@https_fn.on_request(**ESTIMATE_ENDPOINT_CONFIG)
def create_estimate(req: https_fn.Request) -> https_fn.Response:
    """Create an empty draft estimate at the project's next version."""
    return _handle_request(req, CreateEstimateRequest, _create_estimate_async, "create_estimate")


async def _create_estimate_async(body: CreateEstimateRequest) -> Dict[str, Any]:
    estimate = await _estimation_service().create_estimate(
        project_id=body.project_id,
        user_id=body.user_id,
        company_id=body.company_id
    )
    return _dump(estimate)


@https_fn.on_request(**READ_ENDPOINT_CONFIG)
def get_estimate(req: https_fn.Request) -> https_fn.Response:
    """Get one estimate of a project."""
    return _handle_request(req, EstimateRefRequest, _get_estimate_async, "get_estimate")


async def _get_estimate_async(body: EstimateRefRequest) -> Dict[str, Any]:
    estimate = await _estimation_service().get_estimate(body.project_id, body.estimate_id)
    if estimate is None:
        raise NotFoundError("estimate", body.estimate_id, code=ErrorCode.ESTIMATE_NOT_FOUND)
    return _dump(estimate)


@https_fn.on_request(**READ_ENDPOINT_CONFIG)
def list_estimates(req: https_fn.Request) -> https_fn.Response:
    """List a project's estimates, newest version first.

    With "latestOnly": true the list holds at most the latest version.
    """
    return _handle_request(req, ListEstimatesRequest, _list_estimates_async, "list_estimates")


async def _list_estimates_async(body: ListEstimatesRequest) -> Dict[str, Any]:
    service = _estimation_service()
    if body.latest_only:
        latest = await service.get_latest_estimate(body.project_id)
        estimates = [latest] if latest else []
    else:
        estimates = await service.list_project_estimates(body.project_id)
    return {"estimates": [_dump(estimate) for estimate in estimates]}


@https_fn.on_request(**ESTIMATE_ENDPOINT_CONFIG)
def update_estimate(req: https_fn.Request) -> https_fn.Response:
    """Apply a partial update to a draft estimate.

    Request body:
    {
        "projectId": "proj-xxx",
        "estimateId": "est-xxx",
        "userId": "user-123",
        "update": {"rooms": [...], "notes": "...", "profitPercentage": 12}
    }
    """
    return _handle_request(req, UpdateEstimateRequest, _update_estimate_async, "update_estimate")


async def _update_estimate_async(body: UpdateEstimateRequest) -> Dict[str, Any]:
    estimate = await _estimation_service().update_estimate(
        project_id=body.project_id,
        estimate_id=body.estimate_id,
        update=body.update,
        user_id=body.user_id
    )
    if estimate is None:
        raise NotFoundError("estimate", body.estimate_id, code=ErrorCode.ESTIMATE_NOT_FOUND)
    return _dump(estimate)


@https_fn.on_request(**ESTIMATE_ENDPOINT_CONFIG)
def update_estimate_status(req: https_fn.Request) -> https_fn.Response:
    """Change an estimate's status (sent, accepted, rejected, ...)."""
    return _handle_request(req, UpdateEstimateStatusRequest, _update_estimate_status_async, "update_estimate_status")


async def _update_estimate_status_async(body: UpdateEstimateStatusRequest) -> Dict[str, Any]:
    estimate = await _estimation_service().update_estimate_status(
        project_id=body.project_id,
        estimate_id=body.estimate_id,
        status=body.status,
        user_id=body.user_id,
        note=body.note
    )
    if estimate is None:
        raise NotFoundError("estimate", body.estimate_id, code=ErrorCode.ESTIMATE_NOT_FOUND)
    return _dump(estimate)


@https_fn.on_request(**ESTIMATE_ENDPOINT_CONFIG)
def submit_estimate(req: https_fn.Request) -> https_fn.Response:
    """Submit a draft estimate for approval."""
    return _handle_request(req, UserEstimateRequest, _submit_estimate_async, "submit_estimate")


async def _submit_estimate_async(body: UserEstimateRequest) -> Dict[str, Any]:
    estimate = await _estimation_service().submit_estimate_for_approval(
        project_id=body.project_id,
        estimate_id=body.estimate_id,
        user_id=body.user_id
    )
    if estimate is None:
        raise NotFoundError("estimate", body.estimate_id, code=ErrorCode.ESTIMATE_NOT_FOUND)
    return _dump(estimate)


@https_fn.on_request(**ESTIMATE_ENDPOINT_CONFIG)
def revise_estimate(req: https_fn.Request) -> https_fn.Response:
    """Copy an estimate into a new draft version."""
    return _handle_request(req, UserEstimateRequest, _revise_estimate_async, "revise_estimate")


async def _revise_estimate_async(body: UserEstimateRequest) -> Dict[str, Any]:
    estimate = await _estimation_service().revise_estimate(
        project_id=body.project_id,
        estimate_id=body.estimate_id,
        user_id=body.user_id
    )
    return _dump(estimate)


@https_fn.on_request(**ESTIMATE_ENDPOINT_CONFIG)
def generate_materials_takeoff(req: https_fn.Request) -> https_fn.Response:
    """Aggregate an estimate's bills of materials into purchase lines."""
    return _handle_request(req, UserEstimateRequest, _generate_materials_takeoff_async, "generate_materials_takeoff")


async def _generate_materials_takeoff_async(body: UserEstimateRequest) -> Dict[str, Any]:
    takeoff = await _estimation_service().generate_materials_takeoff(
        project_id=body.project_id,
        estimate_id=body.estimate_id,
        user_id=body.user_id
    )
    return _dump(takeoff)


@https_fn.on_request(**READ_ENDPOINT_CONFIG)
def compare_estimates(req: https_fn.Request) -> https_fn.Response:
    """Item-level comparison of two estimates of a project."""
    return _handle_request(req, CompareEstimatesRequest, _compare_estimates_async, "compare_estimates")


async def _compare_estimates_async(body: CompareEstimatesRequest) -> Dict[str, Any]:
    comparison = await _estimation_service().compare_estimates(
        project_id=body.project_id,
        original_estimate_id=body.original_estimate_id,
        revised_estimate_id=body.revised_estimate_id,
        user_id=body.user_id
    )
    return _dump(comparison)


# ============================================================================
# Timeline / permits
# ============================================================================


@https_fn.on_request(**ESTIMATE_ENDPOINT_CONFIG)
def generate_timeline_predictions(req: https_fn.Request) -> https_fn.Response:
    """Predict the project's remaining schedule from similar completed projects."""
    return _handle_request(req, TimelinePredictionRequest, _generate_timeline_predictions_async, "generate_timeline_predictions")


async def _generate_timeline_predictions_async(body: TimelinePredictionRequest) -> Dict[str, Any]:
    service = TimelinePredictionService(FirestoreService())
    prediction = await service.generate_timeline_predictions(body.project_id, body.user_id)
    return _dump(prediction)


@https_fn.on_request(**READ_ENDPOINT_CONFIG)
def extract_permit_data(req: https_fn.Request) -> https_fn.Response:
    """Electrical permit counters derived from an estimate.

    Request body:
    {
        "projectId": "proj-xxx",
        "estimateId": "est-xxx",
        "selections": {"electrical": {"serviceSize": "400"}}  // Optional
    }
    """
    return _handle_request(req, PermitDataRequest, _extract_permit_data_async, "extract_permit_data")


async def _extract_permit_data_async(body: PermitDataRequest) -> Dict[str, Any]:
    catalog = CatalogService()
    estimate = await EstimationService(store=FirestoreService(), catalog=catalog).get_estimate(
        body.project_id, body.estimate_id
    )
    if estimate is None:
        raise NotFoundError("estimate", body.estimate_id, code=ErrorCode.ESTIMATE_NOT_FOUND)

    permit_data = await PermitDataService(catalog).extract_electrical_data(estimate, body.selections)
    return _dump(permit_data)
