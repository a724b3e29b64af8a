# perfaudit/main.py
import logging
from functools import lru_cache
from pathlib import Path

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from perfaudit.core.config import settings
from perfaudit.core.exceptions import OrchestrationFailure, ValidationFailure
from perfaudit.core.logging_setup import setup_logging
from perfaudit.models import AuditRequest, AuditResponse, ErrorResponse
from perfaudit.services.orchestration_service import AuditOrchestrator, build_orchestrator, normalize_urls

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "An internal server error occurred."

# --- FastAPI App Initialization ---
app = FastAPI(
    title="PerfAudit",
    description="An API that audits websites several times with Lighthouse and reports averaged scores.",
    version="1.0.0"
)

# --- CORS Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Report artifacts, served read-only ---
reports_dir = Path(settings.REPORTS_DIR)
reports_dir.mkdir(parents=True, exist_ok=True)
app.mount(settings.REPORTS_URL_PREFIX, StaticFiles(directory=reports_dir), name="reports")

# --- Error Handlers ---
@app.exception_handler(ValidationFailure)
async def validation_failure_handler(request: Request, exc: ValidationFailure):
    return JSONResponse(status_code=400, content={"error": exc.message})

@app.exception_handler(OrchestrationFailure)
async def orchestration_failure_handler(request: Request, exc: OrchestrationFailure):
    logger.error("Audit batch failed: %s", exc.message, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": INTERNAL_ERROR_MESSAGE})

@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error while serving %s", request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": INTERNAL_ERROR_MESSAGE})

# --- Dependencies ---
@lru_cache
def get_orchestrator() -> AuditOrchestrator:
    """One orchestrator per process, so report names stay unique across batches."""
    return build_orchestrator(settings)

# --- API Endpoints ---
@app.post(
    "/audit",
    response_model=AuditResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def audit_websites(request: AuditRequest, orchestrator: AuditOrchestrator = Depends(get_orchestrator)):
    """
    Audits every submitted URL on mobile and desktop, several passes each.

    Pairs where every pass failed are left out of the results. The batch runs
    sequentially and can take minutes, so clients should use a generous timeout.
    """
    urls = normalize_urls(request.urls)
    if not urls:
        raise ValidationFailure("No URLs provided")

    results = await orchestrator.run_batch(urls)
    return AuditResponse(results=results)

# A simple root endpoint to confirm the API is running
@app.get("/")
def read_root():
    return {"message": "Welcome to the PerfAudit API"}
