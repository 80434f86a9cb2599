"""
Realite engine HTTP application.

The lifespan opens the database pool (required) and Redis (optional: without
it plan locks are process-local only). Feature routers are mounted below.
"""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from realite.config import settings
from realite.db.pool import db_pool
from realite.features.dating import dating_router
from realite.features.smart_meetings import smart_meetings_router
from realite.features.suggestions.api.router import router as suggestions_router
from realite.features.sync import sync_router
from realite.infrastructure.observability.logging import (
    bind_log_context,
    clear_log_context,
    get_logger,
    log_request,
    setup_logging,
)
from realite.routes import health
from realite.services.redis_client import fast_redis

setup_logging(log_level=settings.log_level)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Realite engine starting", environment=settings.environment, debug=settings.debug)

    await db_pool.initialize()
    try:
        await fast_redis.initialize()
        redis_available = True
    except RuntimeError as e:
        logger.warning("Starting without Redis, plan locks are process-local", error=str(e))
        redis_available = False

    logger.info("Realite engine ready", redis=redis_available)
    try:
        yield
    finally:
        logger.info("Realite engine shutting down")
        if redis_available:
            await fast_redis.close()
        await db_pool.close()


app = FastAPI(
    title="Realite Engine",
    description="Event suggestions, smart meeting negotiation and dating matches",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(suggestions_router)
app.include_router(smart_meetings_router)
app.include_router(dating_router)
app.include_router(sync_router)


@app.middleware("http")
async def request_logging(request: Request, call_next):
    """Tag log entries with a request id and log the request with its timing."""
    clear_log_context()
    bind_log_context(request_id=request.headers.get("x-request-id") or uuid.uuid4().hex[:12])

    started = time.perf_counter()
    response = await call_next(request)
    log_request(
        request.method,
        request.url.path,
        response.status_code,
        round((time.perf_counter() - started) * 1000, 2),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
