"""
FastAPI application entry point.
Sets up the API with lifespan events for database initialization.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from upload_relay.config import settings
from upload_relay.database import init_db
from upload_relay.api.router import api_router
from upload_relay.exceptions import UploadRelayError
from upload_relay.middleware.metrics_middleware import MetricsMiddleware
from upload_relay.schemas.upload import ErrorResponse
from upload_relay.storage.local_store import get_local_store
from upload_relay.utils.logging import configure_logging, log_request_failed

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup/shutdown events.
    - Startup: Configure logging, create the local upload directory
      and the ledger tables
    """
    configure_logging('upload-relay', settings.log_level)
    get_local_store().ensure_root()

    await init_db()

    yield


# Create FastAPI app
app = FastAPI(
    title="Upload Relay API",
    description="File upload relay with pre-signed direct-to-storage uploads",
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.client_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Metrics middleware (must be after CORS to track all requests)
app.add_middleware(MetricsMiddleware)


@app.exception_handler(UploadRelayError)
async def upload_relay_exception_handler(request: Request, exc: UploadRelayError):
    """Render upload relay errors as {success: false, message, error}."""
    error_type = type(exc).__name__
    log_request_failed(
        logger, request.method, request.url.path,
        error_type, exc.message, exc.status_code, details=exc.details
    )
    body = ErrorResponse(message=exc.message, error=error_type)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are input problems: 400 with the error envelope."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"Invalid request: {location} {first.get('msg', '')}".strip()
    body = ErrorResponse(message=message, error="InvalidInput")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body.model_dump())


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Anything unexpected still leaves as a 500 envelope."""
    log_request_failed(
        logger, request.method, request.url.path,
        type(exc).__name__, str(exc), status.HTTP_500_INTERNAL_SERVER_ERROR,
        exc_info=exc
    )
    body = ErrorResponse(message="Internal server error", error="InternalError")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=body.model_dump()
    )


# Include API routes
app.include_router(api_router, prefix="/api")

# Locally stored uploads
app.mount(
    settings.local_public_path,
    StaticFiles(directory=settings.local_upload_dir, check_dir=False),
    name="local-uploads"
)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Upload Relay API",
        "version": "0.1.0",
        "environment": settings.environment
    }


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )
