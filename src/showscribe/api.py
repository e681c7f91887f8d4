"""HTTP boundary of the orchestration core (FastAPI).

Routes:
    POST /api/generate             transcript -> show-notes
    POST /api/upload               multipart audio -> transcript | queued job
    POST /api/ingest               remote audio reference -> transcript | queued job
    GET  /api/queue-status?id=...  job status
    POST /api/worker/long-job      worker callback of the async dispatcher
    GET  /health

Errors render as ``{"error": {"code": ..., "message": ...}}``; 429 responses
carry a ``Retry-After`` header.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, FastAPI, File, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.concurrency import run_in_threadpool

from . import __version__
from .exceptions import InvalidInputError, RateLimitedError, ShowScribeError
from .intake import IntakeOutcome, MediaUpload, QueuedIntake
from .rate_limit import client_key_from_headers
from .service import ShowScribeService

logger = logging.getLogger(__name__)

API_PREFIX = "/api"
WORKER_PATH = f"{API_PREFIX}/worker/long-job"
QUEUE_STATUS_PATH = f"{API_PREFIX}/queue-status"

# Dispatcher deliveries and status polling do not consume the user's quota
RATE_LIMIT_EXEMPT_PATHS = frozenset({WORKER_PATH, QUEUE_STATUS_PATH})


# ============================================================================
# Request models
# ============================================================================


class _RequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class GenerateRequest(_RequestModel):
    transcript: Optional[str] = None


class IngestRequest(_RequestModel):
    url: str
    filename: str
    content_type: Optional[str] = Field(default=None, alias="contentType")
    size: Optional[int] = Field(default=None, ge=0)


class WorkerRequest(_RequestModel):
    queue_id: str = Field(alias="queueId", min_length=1)
    filename: Optional[str] = None
    content_type: Optional[str] = Field(default=None, alias="contentType")
    file_data: Optional[str] = Field(default=None, alias="fileData")
    blob_url: Optional[str] = Field(default=None, alias="blobUrl")


# ============================================================================
# Error rendering
# ============================================================================


def error_response(
    status_code: int, code: str, message: str, retry_after: Optional[int] = None
) -> JSONResponse:
    headers = {"Retry-After": str(retry_after)} if retry_after is not None else None
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}},
        headers=headers,
    )


async def _handle_showscribe_error(request: Request, exc: ShowScribeError) -> JSONResponse:
    if exc.is_user_facing:
        logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc)
        code = exc.code
    else:
        logger.error(
            "%s %s failed (%s): %s", request.method, request.url.path, exc.code, exc, exc_info=exc
        )
        code = ShowScribeError.code
    return error_response(
        exc.http_status, code, exc.public_message, getattr(exc, "retry_after", None)
    )


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("%s %s -> invalid request: %s", request.method, request.url.path, exc.errors())
    return error_response(400, InvalidInputError.code, "Invalid request body")


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
    return error_response(500, ShowScribeError.code, "Internal server error")


def _outcome_response(outcome: IntakeOutcome) -> JSONResponse:
    status_code = 202 if isinstance(outcome, QueuedIntake) else 200
    return JSONResponse(status_code=status_code, content=outcome.to_response())


# ============================================================================
# Router
# ============================================================================


def create_router(service: ShowScribeService) -> APIRouter:
    """Build the API routes bound to ``service``.

    Handlers are plain functions so FastAPI runs the blocking provider and file
    I/O in its worker thread pool.
    """
    router = APIRouter(prefix=API_PREFIX)

    @router.post("/generate")
    def generate(body: GenerateRequest) -> Dict[str, Any]:
        return service.generate(body.transcript).to_response()

    @router.post("/upload")
    def upload(file: Optional[UploadFile] = File(default=None)) -> JSONResponse:
        if file is None:
            raise InvalidInputError("No file uploaded")
        if file.size is not None:
            service.pipeline.check_upload_size(file.size)
        data = file.file.read()
        outcome = service.ingest(
            MediaUpload(
                filename=file.filename or "upload",
                content_type=file.content_type,
                data=data,
            )
        )
        return _outcome_response(outcome)

    @router.post("/ingest")
    def ingest(body: IngestRequest) -> JSONResponse:
        outcome = service.ingest(
            MediaUpload(
                filename=body.filename,
                content_type=body.content_type,
                size=body.size,
                blob_url=body.url,
            )
        )
        return _outcome_response(outcome)

    @router.get("/queue-status")
    def queue_status(job_id: Optional[str] = Query(default=None, alias="id")) -> Dict[str, Any]:
        if not job_id:
            raise InvalidInputError("Queue ID required")
        return service.job_status(job_id).to_dict()

    @router.post("/worker/long-job")
    def worker_long_job(body: WorkerRequest) -> Dict[str, Any]:
        payload = body.model_dump(by_alias=True, exclude_none=True)
        return service.process_queued_job(body.queue_id, payload).to_response()

    return router


def create_app(service: ShowScribeService) -> FastAPI:
    """Create the FastAPI application for ``service``."""
    app = FastAPI(title="showscribe", version=__version__)
    app.state.service = service

    app.add_exception_handler(ShowScribeError, _handle_showscribe_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
    app.add_exception_handler(Exception, _handle_unexpected_error)

    @app.middleware("http")
    async def rate_limit(request: Request, call_next):
        path = request.url.path
        if not path.startswith(API_PREFIX + "/") or path in RATE_LIMIT_EXEMPT_PATHS:
            return await call_next(request)

        peer = request.client.host if request.client else None
        client_key = client_key_from_headers(request.headers, peer)
        try:
            await run_in_threadpool(
                service.rate_limiter.check, client_key, request.headers.get("host")
            )
        except RateLimitedError as exc:
            return error_response(429, exc.code, exc.public_message, exc.retry_after)
        return await call_next(request)

    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "ok", "version": __version__}

    app.include_router(create_router(service))
    return app
