"""
Optima AI - API Service
=======================
FastAPI application serving chat, artifacts, password reset and the video
assistant.
"""

import time
import uuid

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from config import get_settings
from database.session import dispose_engine, get_engine, init_db
from exceptions import OptimaBaseException
from logging_config import configure_logging, get_logger
from routers import auth_router, chat_router, documents_router, system_router, video_router
from services.providers import ProviderRegistry
import metrics as app_metrics

logger = get_logger(__name__)

VERSION = "0.1.0"

app = FastAPI(
    title="Optima AI",
    description="Multi-provider AI chat with generated artifacts and a video assistant",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Request Correlation Middleware
# =============================================================================

class RequestIDMiddleware(BaseHTTPMiddleware):
    """Inject request ID into all logs for request tracing."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        return response


app.add_middleware(RequestIDMiddleware)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record request metrics for observability."""

    async def dispatch(self, request: Request, call_next):
        # Skip metrics endpoint itself to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.perf_counter()

        response = await call_next(request)

        duration = time.perf_counter() - start_time

        # Route templates keep document ids out of the label values
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)

        app_metrics.http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status=response.status_code
        ).inc()

        app_metrics.http_request_duration_seconds.labels(
            method=request.method,
            endpoint=endpoint
        ).observe(duration)

        return response


app.add_middleware(MetricsMiddleware)

# Register routers
app.include_router(auth_router, prefix="/api/forgot-password", tags=["auth"])
app.include_router(chat_router, prefix="/api/chat", tags=["chat"])
app.include_router(documents_router, prefix="/api/document", tags=["documents"])
app.include_router(video_router, prefix="/api/video-generator", tags=["video"])
app.include_router(system_router, prefix="/api/system", tags=["system"])


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(OptimaBaseException)
async def optima_exception_handler(request: Request, exc: OptimaBaseException):
    """Handle all Optima AI exceptions with the ``{"error": ...}`` envelope."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Request failed",
        error=exc.message,
        error_type=exc.__class__.__name__,
        context=exc.context,
        status=exc.status_code,
    )

    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Framework HTTP errors (404 route, 405 method) in the same envelope."""
    if exc.status_code == 405:
        message = "Method not allowed"
    elif isinstance(exc.detail, str):
        message = exc.detail
    else:
        message = "Request failed"

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": message},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Unparseable or mistyped request bodies are 400s."""
    errors = exc.errors()
    logger.info("Request validation failed", error_count=len(errors))

    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"Invalid request: {field} {first.get('msg', '')}".strip() if field else "Invalid request body"

    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Catch-all handler for unexpected exceptions."""
    logger.exception("Unexpected error", error=str(exc), path=str(request.url.path))

    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# =============================================================================
# Service Endpoints
# =============================================================================

class HealthResponse(BaseModel):
    status: str
    version: str
    services: dict


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint for container orchestration.

    Returns 200 when the database answers, 503 otherwise. Provider keys are
    reported but never make the service unhealthy.
    """
    settings = get_settings()
    services = {}
    overall_healthy = True

    try:
        async with get_engine(settings.database_url).connect() as conn:
            await conn.execute(text("SELECT 1"))
        services["database"] = "healthy"
    except Exception as e:
        logger.warning("Database health check failed", error=str(e))
        services["database"] = "unavailable"
        overall_healthy = False

    key_status = ProviderRegistry(settings=settings).key_status()
    services["providers_configured"] = sorted(name for name, configured in key_status.items() if configured)

    response = HealthResponse(
        status="healthy" if overall_healthy else "degraded",
        version=VERSION,
        services=services,
    )

    if not overall_healthy:
        return JSONResponse(status_code=503, content=response.model_dump())

    return response


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Optima AI",
        "status": "operational",
        "docs": "/docs",
    }


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


@app.on_event("startup")
async def startup_event():
    """Configure logging, report provider keys and create tables."""
    settings = get_settings()
    configure_logging(environment=settings.environment, log_level=settings.log_level)

    key_status = ProviderRegistry(settings=settings).key_status()
    logger.info(
        "Starting backend",
        environment=settings.environment,
        version=VERSION,
        providers=sorted(name for name, configured in key_status.items() if configured),
    )
    missing = sorted(name for name, configured in key_status.items() if not configured)
    if missing:
        logger.warning("Providers without API keys", providers=missing)

    try:
        await init_db(settings.database_url)
    except Exception as e:
        # /health reports the database as unavailable
        logger.error("Database initialization failed", error=str(e), exc_info=True)


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup resources on shutdown."""
    logger.info("Shutting down backend")
    await dispose_engine(get_settings().database_url)
