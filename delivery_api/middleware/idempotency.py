"""
Delivery API — Idempotency Key Middleware

Order checkout is retried by flaky mobile clients; a repeated POST with the
same Idempotency-Key must not create a second order.
  - Cache hit  → return cached response immediately (no business logic)
  - Cache miss → execute handler, store response in Redis for 24h
"""
import json
import logging

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from delivery_api.core.config import get_settings
from delivery_api.core.redis_client import get_redis

settings = get_settings()
logger = logging.getLogger(__name__)

IDEMPOTENCY_PREFIX = "idempotent:"
IDEMPOTENCY_METHODS = {"POST"}
IDEMPOTENCY_PATHS = {"/api/orders", "/api/orders/"}


class IdempotencyMiddleware(BaseHTTPMiddleware):
    """
    Applies to order creation only. Requests without an Idempotency-Key
    header never touch Redis.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method not in IDEMPOTENCY_METHODS:
            return await call_next(request)

        if request.url.path not in IDEMPOTENCY_PATHS:
            return await call_next(request)

        idem_key = request.headers.get("Idempotency-Key")
        if not idem_key:
            return await call_next(request)

        redis = get_redis()
        cache_key = f"{IDEMPOTENCY_PREFIX}{request.method}:{request.url.path.rstrip('/')}:{idem_key}"

        # Cache HIT → replay stored response
        cached = await redis.get(cache_key)
        if cached:
            data = json.loads(cached)
            logger.info("Replaying response for Idempotency-Key %s", idem_key)
            return JSONResponse(
                content=data["body"],
                status_code=data["status_code"],
                headers={"X-Idempotency-Replay": "true"},
            )

        # Cache MISS → proceed to handler
        response = await call_next(request)

        body_bytes = b""
        async for chunk in response.body_iterator:
            body_bytes += chunk

        try:
            body = json.loads(body_bytes)
        except ValueError:
            body = body_bytes.decode("utf-8", errors="replace")

        # Only successful creations are replayed; validation errors may be fixed and resent
        if response.status_code < 400:
            await redis.setex(
                cache_key,
                settings.IDEMPOTENCY_KEY_TTL_SECONDS,
                json.dumps({"body": body, "status_code": response.status_code}),
            )

        return Response(
            content=body_bytes,
            status_code=response.status_code,
            media_type=response.media_type,
            headers=dict(response.headers),
        )
