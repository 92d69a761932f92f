"""
Delivery API — FastAPI application entrypoint
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from delivery_api import models  # noqa: F401  registers tables on Base.metadata
from delivery_api.api import drivers, health, notifications, orders
from delivery_api.core.config import get_settings
from delivery_api.core.exceptions import DeliveryError
from delivery_api.core.redis_client import close_redis
from delivery_api.db.database import Base, engine
from delivery_api.middleware.idempotency import IdempotencyMiddleware

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.STORAGE_BACKEND == "sql":
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    logger.info("%s %s started (storage=%s)", settings.SERVICE_NAME, settings.SERVICE_VERSION,
                settings.STORAGE_BACKEND)
    yield
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title="Delivery API",
    description="Order intake, driver assignment and delivery status tracking for the delivery app.",
    version=settings.SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
)

app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_credentials=True,
                   allow_methods=["*"], allow_headers=["*"])
app.add_middleware(IdempotencyMiddleware)

if settings.METRICS_ENABLED:
    Instrumentator().instrument(app).expose(app, endpoint="/metrics")

app.include_router(orders.router)
app.include_router(drivers.router)
app.include_router(notifications.router)
app.include_router(health.router)


@app.exception_handler(DeliveryError)
async def delivery_error_handler(request: Request, exc: DeliveryError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.get("/")
async def root():
    return {"service": settings.SERVICE_NAME, "version": settings.SERVICE_VERSION}
