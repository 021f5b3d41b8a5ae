"""FastAPI entry point for the OCR worker.

Endpoints:
- POST /v1/extract: Extract text from a stored document (sync or 202 + callback)
- GET  /liveness: Process health and key configuration
- GET  /readiness: Engine availability check
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated, cast

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from ocr_service.auth import is_public_path, require_secret_on_cloud_run, verify_worker_secret
from ocr_service.config import WorkerConfig, get_config
from ocr_service.logging_config import generate_request_id, request_id_var, setup_logging
from ocr_service.models import AcceptedResponse, ExtractRequest, ExtractResponse, HealthResponse
from ocr_service.pipeline.engines.local import shutdown_local_engine
from ocr_service.worker import OcrWorker, build_worker

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Validate config and build the worker on startup; release the local engine on shutdown."""
    setup_logging()
    cfg = get_config()
    cfg.validate()
    require_secret_on_cloud_run(cfg)
    app.state.config = cfg
    app.state.worker = build_worker(cfg)
    logger.info(
        "OCR worker started (remote_ocr=%s, max_pages=%d, dpi=%d)",
        cfg.remote_configured,
        cfg.max_pages,
        cfg.raster_dpi,
    )
    yield
    shutdown_local_engine()
    logger.info("OCR worker stopped")


app = FastAPI(
    title="OCR Worker",
    version="0.1.0",
    lifespan=lifespan,
)

# -- Rate limiting ------------------------------------------------------------

limiter = Limiter(key_func=get_remote_address, default_limits=["120/minute"])
app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(status_code=429, content={"detail": "Rate limit exceeded"})


@app.exception_handler(RequestValidationError)
async def _validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


def _extract_rate_limit() -> str:
    return get_config().rate_limit


# -- Body size limit ----------------------------------------------------------

_MAX_BODY_BYTES = 1024 * 1024  # 1 MB; documents are fetched from storage, not uploaded


@app.middleware("http")
async def body_size_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Reject requests with bodies exceeding the size limit."""
    content_length = request.headers.get("content-length")
    if content_length is not None:
        try:
            size = int(content_length)
        except ValueError:
            return JSONResponse(status_code=400, content={"detail": "Invalid Content-Length header"})
        if size > _MAX_BODY_BYTES:
            return JSONResponse(status_code=413, content={"detail": "Request body too large"})
    return await call_next(request)


# -- Auth middleware ----------------------------------------------------------


@app.middleware("http")
async def auth_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Enforce the shared worker secret on all non-public paths."""
    if request.method == "OPTIONS" or is_public_path(request.url.path):
        return await call_next(request)

    try:
        verify_worker_secret(request, _get_config(request))
    except HTTPException as exc:
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    return await call_next(request)


# -- Request ID middleware ----------------------------------------------------


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Attach a unique request ID for trace correlation."""
    request_id = request.headers.get("x-request-id") or generate_request_id()
    request.state.request_id = request_id
    token = request_id_var.set(request_id)
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)
    response.headers["x-request-id"] = request_id
    return response


def _get_config(request: Request) -> WorkerConfig:
    cfg = getattr(request.app.state, "config", None)
    return cast(WorkerConfig, cfg) if cfg is not None else get_config()


def _get_worker(request: Request) -> OcrWorker:
    """Dependency: the worker built during startup."""
    worker = getattr(request.app.state, "worker", None)
    if worker is None:
        raise HTTPException(status_code=503, detail="Worker not initialized")
    return cast(OcrWorker, worker)


# -- Health -------------------------------------------------------------------


@app.get("/liveness", response_model=HealthResponse)
@app.get("/health", response_model=HealthResponse, include_in_schema=False)
async def liveness(request: Request) -> HealthResponse:
    cfg = _get_config(request)
    worker = getattr(request.app.state, "worker", None)
    return HealthResponse(
        status="ok",
        remote_ocr_configured=cfg.remote_configured,
        remote_model=cfg.gemini_model if cfg.remote_configured else None,
        engines=worker.pipeline.engine_names if worker is not None else None,
    )


@app.get("/readiness", response_model=HealthResponse)
async def readiness(worker: Annotated[OcrWorker, Depends(_get_worker)]) -> HealthResponse:
    engines = worker.pipeline.engines
    unavailable = [e.name for e in engines if not e.available]
    if len(unavailable) == len(engines):
        raise HTTPException(status_code=503, detail="No OCR engine available")
    local_ok = "local-ocr" not in unavailable
    if unavailable:
        return HealthResponse(
            status="degraded",
            local_ocr_available=local_ok,
            engines=[e.name for e in engines],
            error=f"Unavailable engines: {', '.join(unavailable)}",
        )
    return HealthResponse(status="ok", local_ocr_available=local_ok, engines=[e.name for e in engines])


# -- Extract ------------------------------------------------------------------


@app.post(
    "/v1/extract",
    response_model=ExtractResponse,
    responses={202: {"model": AcceptedResponse}},
)
@limiter.limit(_extract_rate_limit)
async def extract(
    request: Request,
    body: ExtractRequest,
    background_tasks: BackgroundTasks,
    worker: Annotated[OcrWorker, Depends(_get_worker)],
) -> ExtractResponse | JSONResponse:
    """Retrieve a document and extract its text (direct text layer or OCR)."""
    cfg = _get_config(request)
    job = body.to_job(max_pages=cfg.clamp_pages(body.max_pages))

    if not body.wait:
        if not worker.notifier.target_for(job):
            raise HTTPException(status_code=400, detail="notify_url is required when wait=false")
        background_tasks.add_task(worker.process, job)
        logger.info("doc=%s accepted for background extraction", job.document_id)
        return JSONResponse(
            status_code=202,
            content=AcceptedResponse(document_id=job.document_id).model_dump(),
        )

    outcome = await worker.process(job)
    return ExtractResponse.from_outcome(job.document_id, outcome)
