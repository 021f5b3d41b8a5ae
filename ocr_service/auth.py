"""Shared-secret authentication for inbound job submissions.

Callers send the secret in the ``x-worker-secret`` header. When
``OCR_WORKER_SECRET`` is unset the check is disabled (local dev only);
on Cloud Run a missing secret is a startup error.
"""

from __future__ import annotations

import hmac
import logging

from fastapi import HTTPException, Request

from ocr_service.config import IS_CLOUD_RUN, WorkerConfig

logger = logging.getLogger(__name__)

SECRET_HEADER = "x-worker-secret"

_PUBLIC_PATHS = {"/liveness", "/readiness", "/health", "/docs", "/openapi.json"}


def is_public_path(path: str) -> bool:
    """Check if the request path skips authentication."""
    return path in _PUBLIC_PATHS or path.startswith("/docs")


def verify_worker_secret(request: Request, cfg: WorkerConfig) -> None:
    """Raise 401 unless the request carries the configured shared secret."""
    expected = cfg.worker_secret
    if not expected:
        return

    provided = request.headers.get(SECRET_HEADER, "")
    if not provided:
        raise HTTPException(status_code=401, detail="Missing worker secret")
    if not hmac.compare_digest(provided.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Invalid worker secret")


def require_secret_on_cloud_run(cfg: WorkerConfig) -> None:
    """Safety check: the worker must not run unauthenticated on Cloud Run."""
    if IS_CLOUD_RUN and not cfg.worker_secret:
        raise RuntimeError("OCR_WORKER_SECRET must be set on Cloud Run")
    if not cfg.worker_secret:
        logger.warning("OCR_WORKER_SECRET is not set; inbound requests are not authenticated (dev mode)")
