from datetime import datetime, timezone

from fastapi import APIRouter

from myai.api.dependencies import GatewayDep, SettingsDep
from myai.models.health.responses import GatewayHealthResponse, HealthResponse

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", response_model=HealthResponse)
async def health_check(settings: SettingsDep, gateway: GatewayDep) -> HealthResponse:
    gateway_health = await gateway.health_check()
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        timestamp=datetime.now(timezone.utc),
        gateway=GatewayHealthResponse(**gateway_health),
    )
