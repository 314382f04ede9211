from datetime import datetime

from pydantic import BaseModel


class GatewayHealthResponse(BaseModel):
    status: str
    models_available: int | None = None
    error: str | None = None


class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: datetime
    gateway: GatewayHealthResponse
