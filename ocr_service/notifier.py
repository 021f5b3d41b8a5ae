"""Best-effort delivery of a job outcome to the caller's callback URL.

One POST, bounded timeout, no retry. Long text is truncated and flagged,
never rejected. Delivery failures are logged and do not change the outcome.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ocr_service.pipeline.types import ExtractionOutcome, Job

logger = logging.getLogger(__name__)

SECRET_HEADER = "x-worker-secret"


def build_payload(job: Job, outcome: ExtractionOutcome, *, max_chars: int) -> dict[str, Any]:
    text = outcome.text or ""
    truncated = len(text) > max_chars
    if truncated:
        text = text[:max_chars]
    return {
        "document_id": job.document_id,
        "ok": outcome.succeeded,
        "text": text,
        "length": len(outcome.text or ""),
        "truncated": truncated,
        "method": outcome.method,
        "page_count": outcome.page_count,
        "error": outcome.failure_reason,
    }


class ResultNotifier:
    def __init__(
        self,
        *,
        default_url: str | None = None,
        secret: str | None = None,
        timeout_seconds: float = 15.0,
        max_chars: int = 20_000,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._default_url = default_url
        self._secret = secret
        self._timeout = timeout_seconds
        self._max_chars = max_chars
        self._transport = transport

    def target_for(self, job: Job) -> str | None:
        return job.notify_url or self._default_url

    async def notify(self, job: Job, outcome: ExtractionOutcome) -> bool:
        """POST the outcome; returns whether the receiver acknowledged it."""
        url = self.target_for(job)
        if not url:
            return False

        headers = {SECRET_HEADER: self._secret} if self._secret else {}
        payload = build_payload(job, outcome, max_chars=self._max_chars)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(url, json=payload, headers=headers)
                resp.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("doc=%s notification to %s failed: %s", job.document_id, url, e)
            return False

        logger.info(
            "doc=%s notification delivered (status=%d, truncated=%s)",
            job.document_id,
            resp.status_code,
            payload["truncated"],
        )
        return True
