"""
FastAPI application for the quiz assessment engine.

Provides REST API for:
- Quiz authoring (quizzes, questions, sections, banks)
- Quiz import/export (JSON snapshots and CSV question sheets)
- Taking quizzes (eligibility, attempts, submission, manual grading)
- Statistics and certificates
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from config import get_settings
from src.assessment.errors import AssessmentError, NotEligible, NotFound, ValidationFailure
from src.db.database import get_engine, init_db
from src.db.utils import utcnow
from src.logging_setup import configure_logging

settings = get_settings()

SERVICE_NAME = "quiz-assessment-engine"
SERVICE_VERSION = "0.1.0"


def _check_database_health() -> tuple[str, str | None]:
    """
    Check database connectivity.

    Returns:
        Tuple of (status, error_message). Status is "ok" or "error".
    """
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return "ok", None
    except SQLAlchemyError as e:
        return "error", str(e)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    configure_logging()
    logger.info(f"Starting {SERVICE_NAME} service...")
    init_db()
    logger.info(f"Service started on {settings.api_host}:{settings.api_port}")

    yield

    # Shutdown
    logger.info(f"Shutting down {SERVICE_NAME} service...")


app = FastAPI(
    title="Quiz Assessment Engine",
    description="""
    Quiz authoring, attempt lifecycle, grading and analytics.

    ## Features

    - **Authoring**: Quizzes, sections, question banks and eleven question types
    - **Attempts**: Eligibility, seeded question selection, submission and grading
    - **Manual Review**: Essay grading with score recomputation
    - **Analytics**: Pass rates, score distribution, per-question difficulty
    - **Certificates**: Issued once per passed attempt
    - **Transfer**: JSON snapshot export/import and CSV question sheets

    ## Identity

    Caller identity is taken from the `X-User-Id`, `X-User-Name` and
    `X-User-Email` headers.
    """,
    version=SERVICE_VERSION,
    lifespan=lifespan,
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ========================================
# Error Translation
# ========================================


def _error_body(exc: AssessmentError) -> tuple[int, dict[str, Any]]:
    if isinstance(exc, NotFound):
        return 404, {"error": "not_found", "detail": str(exc)}
    if isinstance(exc, ValidationFailure):
        return 422, {"error": "validation_failed", "detail": str(exc), "errors": exc.errors}
    if isinstance(exc, NotEligible):
        return 409, {
            "error": "not_eligible",
            "detail": exc.message,
            "reason": exc.reason,
            "attempts_remaining": exc.attempts_remaining,
            "next_available_date": exc.next_available_date.isoformat() if exc.next_available_date else None,
        }
    # GradingPrecondition, CertificateIneligible, ConcurrentUpdate
    name = "".join(f"_{c.lower()}" if c.isupper() else c for c in type(exc).__name__).lstrip("_")
    return 409, {"error": name, "detail": str(exc)}


@app.exception_handler(AssessmentError)
async def assessment_error_handler(request: Request, exc: AssessmentError) -> JSONResponse:
    status_code, body = _error_body(exc)
    logger.debug(f"{request.method} {request.url.path} -> {status_code}: {exc}")
    return JSONResponse(status_code=status_code, content=body)


# ========================================
# Health & Status Endpoints
# ========================================


@app.get("/", tags=["Health"])
def root() -> dict[str, str]:
    """Root endpoint returning service info."""
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "status": "ok",
    }


@app.get("/health", tags=["Health"])
def health_check() -> dict[str, Any]:
    """Health check with an actual database round trip."""
    db_status, db_error = _check_database_health()

    result = {
        "status": "healthy" if db_status == "ok" else "unhealthy",
        "timestamp": utcnow().isoformat(),
        "components": {"database": db_status},
    }
    if db_error:
        result["errors"] = {"database": db_error}
    return result


# ========================================
# Import and mount routers
# ========================================

from src.api.routers import attempt_router, quiz_router  # noqa: E402

# Attempt routes first: both routers share the prefix and the quiz router ends in /{quiz_id}
app.include_router(attempt_router.router, prefix="/api/quizzes", tags=["Attempts"])
app.include_router(quiz_router.router, prefix="/api/quizzes", tags=["Quizzes"])
