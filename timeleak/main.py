"""
FastAPI entrypoint.

The lifespan owns the sync runtime: it connects Redis, restores persisted
work, arms the daily slot, and tears everything down on shutdown.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from timeleak.config import settings
from timeleak.infrastructure.observability.logging import get_logger, setup_logging
from timeleak.routes import auth, goal, health, sync, usage
from timeleak.runtime import build_runtime
from timeleak.services.redis_client import RedisKeyValueStore

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown with proper resource management."""
    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    runtime = getattr(app.state, "runtime", None) or build_runtime()
    startup_tasks = []

    try:
        if isinstance(runtime.store, RedisKeyValueStore):
            logger.info("Initializing Redis connection")
            await runtime.store.initialize()
            startup_tasks.append("redis")

        await runtime.start()
        startup_tasks.append("work_scheduler")

        await runtime.midnight_scheduler.maybe_schedule_catch_up_sync()
        logger.info("All services initialized successfully", services=startup_tasks)

    except Exception as e:
        logger.error("Failed to initialize services", error=str(e), completed_tasks=startup_tasks)
        try:
            await runtime.close()
        except Exception as cleanup_error:
            logger.error("Error cleaning up runtime", error=str(cleanup_error))
        raise

    app.state.runtime = runtime
    yield

    logger.info("Application shutting down")
    try:
        await runtime.close()
        logger.info("All services closed successfully")
    except Exception as e:
        logger.error("Error closing runtime", error=str(e))


app = FastAPI(
    title="TimeLeak Sync",
    description="Screen-time aggregation and daily usage sync",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(usage.router)
app.include_router(goal.router)
app.include_router(sync.router)
app.include_router(auth.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    logger.info(
        "HTTP request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
