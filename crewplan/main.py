from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

import structlog
from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from sqlalchemy import text

from crewplan.core.config import settings
from crewplan.core.errors import global_exception_handler, http_exception_handler
from crewplan.middleware.security import (
    RequestBodySizeLimitMiddleware,
    SecurityHeadersMiddleware,
)

import crewplan.models  # noqa: F401 (register all models at startup)

from crewplan.auth.router import router as auth_router
from crewplan.modules.catalog.router import router as catalog_router
from crewplan.modules.notifications.router import router as notifications_router
from crewplan.modules.progress.router import router as progress_router
from crewplan.modules.scheduling.router import router as scheduling_router
from crewplan.core.sentry import init_sentry

# ── Sentry: initialised before the FastAPI app is created ────────────────────
init_sentry(settings.SENTRY_DSN, settings.SENTRY_ENVIRONMENT, settings.APP_VERSION)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None]:
    logger.info("Starting crewplan API", env=settings.APP_ENV)

    if settings.SEED_TEMPLATES_ON_STARTUP:
        from crewplan.core.database import async_session_factory
        from crewplan.modules.catalog.seed_templates import seed_default_templates

        async with async_session_factory() as db:
            try:
                await seed_default_templates(db)
                await db.commit()
            except Exception as exc:  # noqa: BLE001
                logger.warning("template_seed_failed", error=str(exc))

    yield
    logger.info("Shutting down crewplan API")


_is_prod = settings.APP_ENV == "production"

app = FastAPI(
    title="crewplan API",
    description="Construction crew scheduling: estimates, schedules, conflicts and progress.",
    version="0.1.0",
    docs_url=None if _is_prod else "/docs",
    redoc_url=None if _is_prod else "/redoc",
    openapi_url=None if _is_prod else "/openapi.json",
    lifespan=lifespan,
)

app.add_exception_handler(HTTPException, http_exception_handler)  # type: ignore[arg-type]
app.add_exception_handler(Exception, global_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "X-Request-ID"],
)
# Security middleware (added last = outermost = first to see requests, last to touch responses)
app.add_middleware(
    RequestBodySizeLimitMiddleware,  # type: ignore[arg-type]
    max_bytes=settings.MAX_REQUEST_BODY_BYTES,
)
app.add_middleware(
    SecurityHeadersMiddleware,  # type: ignore[arg-type]
    is_production=_is_prod,
)


# ── X-API-Version response header ────────────────────────────────────────────


@app.middleware("http")
async def add_version_header(request: Request, call_next) -> Response:
    response = await call_next(request)
    response.headers["X-API-Version"] = "v1"
    return response


# ── Health check (root-level, not under /v1) ─────────────────────────────────


@app.get("/health")
async def health_check() -> dict:
    """Probe the database."""
    checks: dict[str, dict] = {}
    try:
        from crewplan.core.database import async_session_factory
        async with async_session_factory() as db:
            await db.execute(text("SELECT 1"))
        checks["postgresql"] = {"status": "healthy"}
    except Exception as exc:
        checks["postgresql"] = {"status": "unhealthy", "error": str(exc)}

    overall = (
        "healthy"
        if all(c["status"] == "healthy" for c in checks.values())
        else "degraded"
    )
    return {"status": overall, "service": "crewplan-api", "checks": checks}


# ── /v1 versioned router ──────────────────────────────────────────────────────

api_v1 = APIRouter(prefix="/v1")
api_v1.include_router(auth_router)
api_v1.include_router(catalog_router)
api_v1.include_router(scheduling_router)
api_v1.include_router(progress_router)
api_v1.include_router(notifications_router)

app.include_router(api_v1)
