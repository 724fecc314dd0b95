"""
Incident Report API

FastAPI application entry point.
"""

from contextlib import asynccontextmanager
import traceback
from urllib.parse import urlparse

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.app.api import auth, health, incidents, storage, users
from backend.app.core.config import get_settings
from backend.app.core.context import build_app_context
from backend.app.core.database import Base, engine, get_db_context
from backend.app.core.exceptions import IncidentReportError
from backend.app.core.logging import setup_logging, get_logger
from backend.app.core.observability import setup_tracing
from backend.app.middleware.origin import OriginGuardMiddleware, combined_origin_regex
from backend.app.middleware.trace import TracingMiddleware
from backend.app.services.auth_service import seed_bootstrap_admin

settings = get_settings()

# Initialize logging
setup_logging(level=settings.log_level)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version} on port {settings.port}")

    app.state.context = build_app_context(settings)
    logger.info(f"Blob store backend: {settings.storage_backend} (bucket={settings.storage_bucket})")

    if settings.auto_create_tables:
        import backend.app.models  # noqa: F401  registers ORM tables on Base.metadata
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async with get_db_context() as db:
        await seed_bootstrap_admin(db, settings)

    yield
    # Shutdown
    logger.info(f"Shutting down {settings.app_name}")
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    description="Workplace incident reporting with role-based review",
    version=settings.app_version,
    lifespan=lifespan,
)

# Initialize Tracing
setup_tracing(app, enabled=settings.tracing_enabled)

# Add Middleware (last added runs first: tracing -> origin guard -> CORS)
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=combined_origin_regex(settings.allowed_origin_patterns),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Correlation-ID"],
    expose_headers=["Content-Length", "X-Request-Id", "X-Correlation-ID"],
)
app.add_middleware(OriginGuardMiddleware, patterns=settings.allowed_origin_patterns)
app.add_middleware(TracingMiddleware)


def _error_body(message: str, code: str, **extra) -> dict:
    return {"error": message, "code": code, **extra}


@app.exception_handler(IncidentReportError)
async def incident_report_error_handler(request: Request, exc: IncidentReportError):
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.message, exc.code),
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content=_error_body("Invalid request", "VALIDATION_ERROR", details=jsonable_encoder(exc.errors())),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail), f"HTTP_{exc.status_code}"),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    body = _error_body("Internal server error", "INTERNAL_ERROR")
    if settings.debug and not settings.is_production:
        body["trace"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return JSONResponse(status_code=500, content=body)


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(
    auth.router,
    prefix=f"{settings.api_prefix}/auth",
    tags=["Authentication"],
)
app.include_router(
    incidents.router,
    prefix=f"{settings.api_prefix}/incidents",
    tags=["Incidents"],
)
app.include_router(
    users.router,
    prefix=f"{settings.api_prefix}/users",
    tags=["Users"],
)
app.include_router(
    storage.router,
    prefix=urlparse(settings.storage_public_base_url).path.rstrip("/") or "/storage",
    tags=["Storage"],
)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("backend.app.main:app", host="0.0.0.0", port=settings.port)
