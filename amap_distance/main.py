import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from amap_distance.api.router import api_router
from amap_distance.core.config import settings
from amap_distance.core.logging import configure_logging
from amap_distance.core.tracing import ensure_trace_id, get_trace_id, reset_trace_id, set_trace_id

logger = configure_logging("amap-distance", settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s %s", settings.PROJECT_NAME, settings.VERSION)
    logger.info("Environment: %s", settings.ENVIRONMENT)
    if not settings.AMAP_API_KEY:
        logger.warning("AMAP_API_KEY not configured - runs must supply their own api_key")
    logger.info(
        "Batch size %s, page size %s, call delay %.2fs, batch delay %.2fs",
        settings.BATCH_SIZE,
        settings.PAGE_SIZE,
        settings.CALL_DELAY_SECONDS,
        settings.BATCH_DELAY_SECONDS,
    )

    yield

    logger.info("Shutting down %s", settings.PROJECT_NAME)


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)


@app.middleware("http")
async def trace_middleware(request: Request, call_next):
    trace_id = ensure_trace_id(headers=request.headers.items())
    token = set_trace_id(trace_id)
    start_time = time.time()
    try:
        response = await call_next(request)
    finally:
        reset_trace_id(token)
    duration = time.time() - start_time

    logger.info(
        "%s %s - status=%s duration=%.3fs",
        request.method,
        request.url.path,
        response.status_code,
        duration,
    )
    response.headers.setdefault("X-Trace-Id", trace_id)
    return response


app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/healthz")
async def health_check():
    return {
        "status": "ok",
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
        "trace_id": get_trace_id(),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "amap_distance.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development",
    )
