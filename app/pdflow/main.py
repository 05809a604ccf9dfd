"""
FastAPI application for the PDF-to-structured-text service.

Provides endpoints for:
- Uploading a PDF and rasterizing it into page images
- Starting, resuming and polling per-page AI extraction
- Retrieving per-page and aggregated outputs
"""

import logging

from contextlib import asynccontextmanager

from fastapi import FastAPI, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Handle both package imports (when running as module) and standalone imports (uvicorn main:app)
try:
    from .config import get_settings
    from .models import HealthResponse
    from .routers import outputs, process, settings, upload
    from .services.ai import get_ai_service
    from .services.ai.exceptions import AIServiceError, InvalidCredentialsError
    from .services.exceptions import (
        AggregationFailure,
        NotFoundError,
        PDFConversionError,
        ValidationError,
    )
    from .services.progress import get_progress_store
except ImportError:
    import sys
    from pathlib import Path
    # Add parent directory to path for standalone imports
    package_dir = Path(__file__).parent
    if str(package_dir) not in sys.path:
        sys.path.insert(0, str(package_dir))
    from config import get_settings
    from models import HealthResponse
    from routers import outputs, process, settings, upload
    from services.ai import get_ai_service
    from services.ai.exceptions import AIServiceError, InvalidCredentialsError
    from services.exceptions import (
        AggregationFailure,
        NotFoundError,
        PDFConversionError,
        ValidationError,
    )
    from services.progress import get_progress_store

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if get_settings().debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info("Starting PDFlow service...")
    app_settings = get_settings()
    app_settings.uploads_dir.mkdir(parents=True, exist_ok=True)
    app_settings.outputs_dir.mkdir(parents=True, exist_ok=True)
    # Initialize services on startup
    get_ai_service()
    get_progress_store()
    logger.info("Services initialized successfully")
    yield
    logger.info("Shutting down PDFlow service...")


# Create FastAPI application
app = FastAPI(
    title="PDFlow API",
    description="Convert PDF documents to Markdown, JSON, XML and more with multimodal AI",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",  # Vite development server
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Health Endpoints
# =============================================================================


@app.get("/", response_model=HealthResponse)
async def root() -> HealthResponse:
    """Root endpoint - health check."""
    return HealthResponse(status="healthy", message="PDFlow API is running")


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy", message="Service is healthy")


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(upload.router)
app.include_router(process.router)
app.include_router(outputs.router)
app.include_router(settings.router)


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request, exc: RequestValidationError):
    """Handle malformed request bodies and parameters as bad requests."""
    logger.debug("Invalid request to %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request, exc: ValidationError):
    """Handle invalid caller input."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc)},
    )


@app.exception_handler(NotFoundError)
async def not_found_error_handler(request, exc: NotFoundError):
    """Handle unknown sessions and sessions without pages."""
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc)},
    )


@app.exception_handler(PDFConversionError)
async def pdf_conversion_error_handler(request, exc: PDFConversionError):
    """Handle PDF conversion errors."""
    logger.error("PDF conversion failed: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Failed to convert PDF to images. Please ensure the PDF is valid and not password protected.",
            "error": str(exc),
        },
    )


@app.exception_handler(AggregationFailure)
async def aggregation_failure_handler(request, exc: AggregationFailure):
    """Handle aggregation errors."""
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Failed to aggregate pages", "error": str(exc)},
    )


@app.exception_handler(InvalidCredentialsError)
async def invalid_credentials_handler(request, exc: InvalidCredentialsError):
    """Handle a rejected model API key."""
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": str(exc)},
    )


@app.exception_handler(AIServiceError)
async def ai_service_error_handler(request, exc: AIServiceError):
    """Handle AI service errors."""
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": str(exc)},
    )
