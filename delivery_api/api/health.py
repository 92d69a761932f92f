"""
Delivery API — Health endpoint
"""
import asyncio

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from delivery_api.core.config import get_settings
from delivery_api.core.redis_client import get_redis
from delivery_api.schemas.common import HealthResponse
from delivery_api.storage import Storage, get_storage

settings = get_settings()
router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(storage: Storage = Depends(get_storage)):
    """
    Deep health check: storage backend and Redis.
    Returns 200 if all dependencies are healthy, 503 otherwise.
    """
    deps: dict[str, str] = {}
    healthy = True

    try:
        await asyncio.wait_for(storage.ping(), timeout=settings.HEALTH_CHECK_TIMEOUT)
        deps["storage"] = "ok"
    except Exception as e:
        deps["storage"] = f"error: {str(e)[:100]}"
        healthy = False

    # Redis backs checkout idempotency
    try:
        redis = get_redis()
        await asyncio.wait_for(redis.ping(), timeout=settings.HEALTH_CHECK_TIMEOUT)
        deps["redis"] = "ok"
    except Exception as e:
        deps["redis"] = f"error: {str(e)[:100]}"
        healthy = False

    response = HealthResponse(
        status="healthy" if healthy else "degraded",
        service=settings.SERVICE_NAME,
        version=settings.SERVICE_VERSION,
        dependencies=deps,
    )
    return JSONResponse(content=response.model_dump(), status_code=200 if healthy else 503)
