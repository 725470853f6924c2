# apps/api/main.py

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from apps.api.routers import admin_checks, companies, dashboards, forms, webhooks
from core.config import settings
from core.logging import configure_logging
from domain.errors import (
    IncompleteSpec,
    IntakeError,
    InvalidTransition,
    NotFound,
    StaleReview,
    StaleSubmission,
)
from services.persistence.store import ConcurrencyConflict
from services.storage.blob import BlobTooLarge

logger = logging.getLogger(__name__)

configure_logging()

app = FastAPI(title="Document Intake API", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

STATUS_BY_ERROR = (
    (NotFound, 404),
    (StaleSubmission, 409),
    (StaleReview, 409),
    (InvalidTransition, 422),
    (IncompleteSpec, 422),
)


@app.exception_handler(IntakeError)
def intake_error(request: Request, exc: IntakeError) -> JSONResponse:
    code = next((c for cls, c in STATUS_BY_ERROR if isinstance(exc, cls)), 400)
    logger.warning("%s %s -> %d %s: %s", request.method, request.url.path, code, type(exc).__name__, exc)
    return JSONResponse(status_code=code, content={"error": type(exc).__name__, "detail": str(exc)})


@app.exception_handler(ConcurrencyConflict)
def write_conflict(request: Request, exc: ConcurrencyConflict) -> JSONResponse:
    logger.warning("%s %s -> 409 after retries: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=409, content={"error": "ConcurrencyConflict", "detail": str(exc)})


@app.exception_handler(BlobTooLarge)
def blob_too_large(request: Request, exc: BlobTooLarge) -> JSONResponse:
    return JSONResponse(status_code=413, content={"error": "BlobTooLarge", "detail": str(exc)})


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(companies.router)
app.include_router(dashboards.router)
app.include_router(forms.router)
app.include_router(admin_checks.router)
app.include_router(webhooks.router)
