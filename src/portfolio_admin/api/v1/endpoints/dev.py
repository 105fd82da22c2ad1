"""Development-only helpers."""

from fastapi import APIRouter

from portfolio_admin.api.dependencies import RateLimitersDep, SettingsDep
from portfolio_admin.core.errors import Forbidden
from portfolio_admin.schemas.auth import SuccessResponse

router = APIRouter(prefix="/dev", tags=["development"])


@router.post("/clear-rate-limit", summary="Reset every rate-limit counter", response_model=SuccessResponse)
def clear_rate_limit(settings: SettingsDep, limiters: RateLimitersDep) -> SuccessResponse:
    if settings.is_production:
        raise Forbidden("This endpoint is only available in development mode")
    limiters.clear()
    return SuccessResponse(message="Rate limit store cleared")
