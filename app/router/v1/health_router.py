import time
from datetime import datetime, timezone

from fastapi import APIRouter

from app.core.config.settings import settings
from app.schemas.donation_schemas import HealthResponse


router = APIRouter(tags=["Health"])

STARTED_AT = time.monotonic()


@router.get("/health", response_model=HealthResponse, response_model_exclude_none=True)
async def health_router():
    """存活探针"""
    return HealthResponse(
        timestamp=datetime.now(timezone.utc).isoformat(),
        environment=settings.app.ENV,
        uptime=round(time.monotonic() - STARTED_AT, 3),
    )
