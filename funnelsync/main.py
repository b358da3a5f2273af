"""FunnelSync - FastAPI Application Entry Point.

Ads spend + CRM funnel reconciliation service.
"""

import secrets
import string
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request

from funnelsync.api.debug_routes import router as debug_router
from funnelsync.api.export_routes import router as export_router
from funnelsync.api.ingest_routes import router as ingest_router
from funnelsync.api.metrics_routes import router as metrics_router
from funnelsync.config import settings
from funnelsync.core.logging import get_logger
from funnelsync.scheduler.jobs import start_scheduler, stop_scheduler

logger = get_logger("main")

REQUEST_ID_ALPHABET = string.ascii_letters + string.digits


def generate_request_id(length: int = 16) -> str:
    return "".join(secrets.choice(REQUEST_ID_ALPHABET) for _ in range(length))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info("FunnelSync starting up...")
    start_scheduler()
    yield
    stop_scheduler()
    logger.info("FunnelSync shut down")


app = FastAPI(
    title="FunnelSync",
    description="Reconciles ad spend and CRM funnel feeds into daily per-channel marketing metrics.",
    version="1.0.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Tag every request with an X-Request-ID and log it on completion."""
    request_id = generate_request_id()
    request.state.request_id = request_id
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = round((time.perf_counter() - start) * 1000, 2)
    response.headers["X-Request-ID"] = request_id
    logger.info(
        f"{request.method} {request.url.path} {response.status_code}",
        extra={
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        },
    )
    return response


# Routers
app.include_router(ingest_router)
app.include_router(metrics_router)
app.include_router(export_router)
app.include_router(debug_router)


@app.get("/healthz", tags=["System"])
async def health_check():
    """Liveness probe."""
    return {"status": "healthy"}


@app.get("/readyz", tags=["System"])
async def ready_check():
    """Readiness probe."""
    return {"status": "ready"}


def run() -> None:
    """Console entry point."""
    uvicorn.run("funnelsync.main:app", host="0.0.0.0", port=settings.port)
