"""
Health check endpoint.
"""

from datetime import datetime, timezone

from fastapi import APIRouter

from app.config import APP_VERSION
from app.dependencies import Store
from app.models import HealthResponse

router = APIRouter(prefix="/api", tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    operation_id="getHealth",
    summary="Health check",
)
async def get_health(store: Store) -> HealthResponse:
    store_up = await store.ping()
    return HealthResponse(
        status="ok" if store_up else "degraded",
        version=APP_VERSION,
        store="up" if store_up else "down",
        timestamp=datetime.now(timezone.utc),
    )
