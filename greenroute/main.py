import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from greenroute.config import settings
from greenroute.db.session import engine
from greenroute.exceptions import InvalidInputError
from greenroute.services.cache import redis_client

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Starting %s v%s (refresh %s, schedule %s)",
        settings.app_name,
        settings.app_version,
        "enabled" if settings.refresh_enabled else "disabled",
        settings.forecast_refresh_cron,
    )
    yield
    logger.info("Shutting down: closing Redis and disposing DB engine")
    await redis_client.aclose()
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description=(
        "Carbon-aware compute placement. Forecasts grid carbon intensity per region, "
        "finds the lowest-carbon execution window, and ranks regions for green routing."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc)},
    )


# ── Root liveness check ────────────────────────────────────────────────────────
@app.get("/health", tags=["System"], summary="Liveness check")
async def health():
    """Returns 200 OK if the service is running."""
    return {"status": "ok"}


# ── Versioned API routes ────────────────────────────────────────────────────────
from greenroute.api.v1.router import api_v1_router  # noqa: E402

app.include_router(api_v1_router, prefix="/api/v1")
