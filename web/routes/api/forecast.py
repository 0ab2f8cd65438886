"""Growth forecast endpoint."""
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import ORJSONResponse

from core.exceptions import DataFetchError, ValidationError
from core.forecast_service import GrowthForecastService
from core.observability import metrics
from core.validators import validate_location_id, validate_organization_id
from web.config import FORECAST_RATE_LIMIT
from web.schemas import ErrorResponse, ForecastRequest, ForecastResponse
from ._deps import limiter, get_logger, forecast_service_dependency

router = APIRouter()
logger = get_logger(__name__)


@router.post(
    "/growth-forecast",
    responses={
        200: {"model": ForecastResponse},
        400: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": ForecastRequest.model_json_schema()}},
        }
    },
)
@limiter.limit(FORECAST_RATE_LIMIT)
async def growth_forecast(
    request: Request,
    service: GrowthForecastService = Depends(forecast_service_dependency),
):
    """
    Quarterly growth forecast for an organization.

    Serves unexpired cached projections when present, otherwise computes
    conservative/baseline/optimistic projections for the next four quarters.
    """
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("body", "Invalid JSON body")
    if not isinstance(body, dict):
        raise ValidationError("body", "Invalid JSON body")

    organization_id = validate_organization_id(body.get("organizationId"))
    location_id = validate_location_id(body.get("locationId"))

    try:
        return await service.get_forecast(organization_id, location_id)
    except DataFetchError:
        raise
    except Exception as e:
        logger.error(f"Growth forecast error for {organization_id}: {e}", exc_info=True)
        metrics.record_error(type(e).__name__)
        return ORJSONResponse(status_code=500, content={"error": str(e)})


@router.options("/growth-forecast", include_in_schema=False)
async def growth_forecast_options():
    """Empty 200 for clients that probe the endpoint without a CORS preflight."""
    return Response(status_code=200)
