import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from driver_hub.config import settings
from driver_hub.db import close_pool, get_pool, init_schema
from driver_hub.errors import DriverHubError
from driver_hub.metrics import get_metrics_bytes, get_metrics_content_type
from driver_hub.queue import close_redis, get_redis
from driver_hub.routes import duty, earnings, notifications, orders, penalties, profile

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    pool = await get_pool()
    await init_schema(pool)
    await get_redis()
    logger.info("Schema ready. Serving driver API.")
    yield
    await close_redis()
    await close_pool()


app = FastAPI(title="Driver Hub", lifespan=lifespan)
app.include_router(orders.router)
app.include_router(duty.router)
app.include_router(earnings.router)
app.include_router(penalties.router)
app.include_router(notifications.router)
app.include_router(profile.router)


@app.exception_handler(DriverHubError)
async def driver_hub_error(request: Request, exc: DriverHubError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.reason, "detail": exc.message},
    )


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@app.get("/metrics")
async def metrics() -> Response:
    """Prometheus scrape endpoint."""
    return Response(
        content=get_metrics_bytes(),
        media_type=get_metrics_content_type(),
    )
