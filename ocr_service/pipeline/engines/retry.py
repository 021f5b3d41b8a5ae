"""Bounded retry with backoff for rate-limited provider calls."""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from ocr_service.errors import EngineError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RATE_LIMIT_MARKERS = ("resource_exhausted", "too many requests", "rate limit", "quota")
_RETRY_IN_RE = re.compile(r"retry in\s+([0-9]+(?:\.[0-9]+)?)\s*s", re.IGNORECASE)
_DURATION_RE = re.compile(r"^\s*([0-9]+(?:\.[0-9]+)?)\s*s\s*$")
_HTTP_429_RE = re.compile(r"(?<!\d)429(?!\d)")


def is_rate_limit_error(exc: BaseException) -> bool:
    """True when the provider signalled quota exhaustion / HTTP 429."""
    code = getattr(exc, "code", None) or getattr(exc, "status_code", None)
    if code == 429:
        return True
    status = str(getattr(exc, "status", "") or "").lower()
    if "resource_exhausted" in status:
        return True
    msg = str(exc).lower()
    return bool(_HTTP_429_RE.search(msg)) or any(m in msg for m in _RATE_LIMIT_MARKERS)


def _parse_duration(value: Any) -> float | None:
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        m = _DURATION_RE.match(value)
        if m:
            return float(m.group(1))
    return None


def retry_after_seconds(exc: BaseException) -> float | None:
    """Extract a provider-supplied retry delay from an error, if any.

    Gemini reports it as a ``google.rpc.RetryInfo`` entry (``retryDelay:
    "17s"``) in the error details and repeats it in the message
    ("Please retry in 17.4s").
    """
    details = getattr(exc, "details", None)
    if isinstance(details, dict):
        entries = (details.get("error") or {}).get("details") or details.get("details") or []
        for entry in entries if isinstance(entries, list) else []:
            if isinstance(entry, dict) and "retryDelay" in entry:
                delay = _parse_duration(entry["retryDelay"])
                if delay is not None:
                    return delay

    headers = getattr(getattr(exc, "response", None), "headers", None)
    if headers is not None:
        raw = str(headers.get("retry-after") or "").strip()
        if raw.replace(".", "", 1).isdigit():
            return float(raw)

    m = _RETRY_IN_RE.search(str(exc))
    if m:
        return float(m.group(1))
    return None


@dataclass
class RetryPolicy:
    max_attempts: int = 3
    base_seconds: float = 2.0
    max_seconds: float = 60.0
    is_retryable: Callable[[BaseException], bool] = is_rate_limit_error
    retry_after: Callable[[BaseException], float | None] = retry_after_seconds
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

    def delay_for(self, attempt: int, exc: BaseException) -> float:
        """Seconds to wait after failed ``attempt`` (1-based)."""
        hinted = self.retry_after(exc)
        if hinted is not None and hinted >= 0:
            return min(hinted, self.max_seconds)
        return min(self.base_seconds * (2 ** (attempt - 1)), self.max_seconds)

    async def run(self, fn: Callable[[], Awaitable[T]], *, label: str = "call") -> tuple[T, int]:
        """Await ``fn`` until it succeeds; return ``(result, attempts)``.

        Non-retryable errors propagate as ``EngineError`` right away.
        """
        attempts = max(1, self.max_attempts)
        for attempt in range(1, attempts + 1):
            try:
                return await fn(), attempt
            except EngineError as e:
                e.attempts = attempt
                raise
            except Exception as e:
                if not self.is_retryable(e):
                    raise EngineError(f"{label} failed: {type(e).__name__}: {e}", attempts=attempt) from e
                if attempt >= attempts:
                    raise EngineError(
                        f"{label} still rate limited after {attempt} attempts: {e}",
                        attempts=attempt,
                        retryable=True,
                    ) from e
                delay = self.delay_for(attempt, e)
                logger.warning(
                    "%s attempt %d/%d rate limited; retrying in %.2fs",
                    label,
                    attempt,
                    attempts,
                    delay,
                )
                await self.sleep(delay)

        raise RuntimeError("Unreachable retry path")
