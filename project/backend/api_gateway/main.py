"""
FastAPI application entry point.

Main application setup with CORS, middleware, and route registration.
"""

import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api_gateway.services.upload_staging import temp_uploads
from shared.config import settings
from shared.errors import (
    AccessDeniedError,
    AgentInvocationFailedError,
    ConcurrencyExhaustedError,
    NotFoundError,
    PipelineError,
    RetryableError,
    ServiceNotConfiguredError,
    ValidationError
)
from shared.logging import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    temp_uploads.start()
    logger.info("Upload sweeper started", extra={"interval": temp_uploads.sweep_interval_seconds})
    yield
    await temp_uploads.stop()


# Create FastAPI app
app = FastAPI(
    title="Video Studio API",
    description="Step pipeline for AI-assisted video projects",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
    allow_credentials=True,
    max_age=3600
)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Add unique request ID to each request."""
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    logger.info(
        "Request started",
        extra={
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path
        }
    )

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id

    return response


def error_response(
    request: Request,
    exc: PipelineError,
    status_code: int,
    default_code: str,
    retryable: bool = False,
    **extra
) -> JSONResponse:
    content = {
        "error": str(exc),
        "code": exc.code or default_code,
        "retryable": retryable,
        "request_id": getattr(request.state, "request_id", None)
    }
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    """Handle validation errors, listing unmet requirements when known."""
    return error_response(request, exc, 400, "VALIDATION_ERROR", missing=exc.missing)


@app.exception_handler(AccessDeniedError)
async def access_denied_handler(request: Request, exc: AccessDeniedError):
    return error_response(request, exc, 403, "ACCESS_DENIED")


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return error_response(request, exc, 404, "NOT_FOUND")


@app.exception_handler(ConcurrencyExhaustedError)
async def concurrency_error_handler(request: Request, exc: ConcurrencyExhaustedError):
    """Handle writes that lost every compare-and-swap attempt."""
    logger.warning("Concurrent write retries exhausted", extra={"attempts": exc.attempts})
    return error_response(request, exc, 409, "CONCURRENCY_EXHAUSTED", retryable=True)


@app.exception_handler(AgentInvocationFailedError)
async def agent_error_handler(request: Request, exc: AgentInvocationFailedError):
    """Handle agent failures; the client may retry with allowFallback."""
    return error_response(
        request,
        exc,
        502,
        "AGENT_INVOCATION_FAILED",
        retryable=True,
        agent_id=exc.agent_id,
        fallback_available=exc.fallback_available
    )


@app.exception_handler(ServiceNotConfiguredError)
async def not_configured_handler(request: Request, exc: ServiceNotConfiguredError):
    return error_response(request, exc, 503, "SERVICE_NOT_CONFIGURED")


@app.exception_handler(RetryableError)
async def retryable_error_handler(request: Request, exc: RetryableError):
    """Handle retryable errors."""
    return error_response(request, exc, 500, "RETRYABLE_ERROR", retryable=True)


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError):
    """Handle pipeline errors."""
    return error_response(request, exc, 500, "PIPELINE_ERROR")


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected errors."""
    logger.error(
        "Unhandled exception",
        exc_info=exc,
        extra={"request_id": getattr(request.state, "request_id", None)}
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "code": "INTERNAL_ERROR",
            "retryable": False,
            "request_id": getattr(request.state, "request_id", None)
        }
    )


# Register routes
from api_gateway.routes import export, health, uploads, videos  # noqa: E402

app.include_router(videos.router, prefix="/api/v1", tags=["videos"])
app.include_router(uploads.router, prefix="/api/v1", tags=["uploads"])
app.include_router(export.router, prefix="/api/v1", tags=["export"])
app.include_router(health.router, prefix="/api/v1", tags=["health"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Video Studio API", "version": "1.0.0"}
