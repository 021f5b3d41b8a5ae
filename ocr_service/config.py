"""Environment-variable-driven configuration for the OCR worker.

All settings are read once into an immutable ``WorkerConfig``; the FastAPI
lifespan and the CLI both call ``validate()`` so a bad value stops the
process before any job is accepted.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


def _get_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "t", "yes", "y", "on")


def _get_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or not v.strip():
        return default
    return int(v)


def _get_float(name: str, default: float) -> float:
    v = os.getenv(name)
    if v is None or not v.strip():
        return default
    return float(v)


def _get_csv(name: str) -> list[str] | None:
    v = os.getenv(name)
    if v is None:
        return None
    return [item.strip().lower() for item in v.split(",") if item.strip()]


@dataclass(frozen=True)
class WorkerConfig:
    # Inbound auth
    worker_secret: str | None

    # Remote OCR (Gemini)
    gemini_api_key: str | None
    gemini_model: str
    gemini_use_vertex: bool
    vertex_project: str | None
    vertex_location: str
    remote_max_attempts: int
    remote_backoff_base_seconds: float
    remote_backoff_max_seconds: float
    remote_timeout_seconds: float

    # Local OCR (Tesseract)
    default_language: str  # e.g. "ar+en"
    tesseract_config: str

    # Rasterization
    raster_dpi: int
    max_pages: int  # process-wide ceiling
    scratch_dir: str | None

    # Heuristics
    corruption_ratio: float
    corruption_run_length: int
    min_direct_text_chars: int
    always_ocr: bool
    force_ocr_languages: frozenset[str]

    # Notification
    notify_url: str | None
    notify_secret: str | None
    notify_timeout_seconds: float
    notify_max_chars: int

    # HTTP surface
    rate_limit: str

    @classmethod
    def from_env(cls) -> WorkerConfig:
        forced = _get_csv("OCR_FORCE_OCR_LANGUAGES")
        if forced is None:
            forced = ["ar"] if _get_bool("OCR_ARABIC_FORCES_OCR", True) else []

        return cls(
            worker_secret=os.getenv("OCR_WORKER_SECRET") or None,
            gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
            gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.0-flash"),
            gemini_use_vertex=_get_bool("OCR_GEMINI_USE_VERTEX", False),
            vertex_project=os.getenv("GOOGLE_CLOUD_PROJECT") or None,
            vertex_location=os.getenv("GOOGLE_CLOUD_LOCATION", "us-central1"),
            remote_max_attempts=_get_int("OCR_REMOTE_MAX_ATTEMPTS", 3),
            remote_backoff_base_seconds=_get_float("OCR_REMOTE_BACKOFF_BASE_SECONDS", 2.0),
            remote_backoff_max_seconds=_get_float("OCR_REMOTE_BACKOFF_MAX_SECONDS", 60.0),
            remote_timeout_seconds=_get_float("OCR_REMOTE_TIMEOUT_SECONDS", 90.0),
            default_language=(os.getenv("OCR_DEFAULT_LANGUAGE") or "").strip() or "ar+en",
            tesseract_config=os.getenv("OCR_TESSERACT_CONFIG", "--oem 1 --psm 6"),
            raster_dpi=_get_int("OCR_RASTER_DPI", 300),
            max_pages=_get_int("OCR_MAX_PAGES", 20),
            scratch_dir=os.getenv("OCR_SCRATCH_DIR") or None,
            corruption_ratio=_get_float("OCR_CORRUPTION_RATIO", 0.03),
            corruption_run_length=_get_int("OCR_CORRUPTION_RUN_LENGTH", 6),
            min_direct_text_chars=_get_int("OCR_MIN_DIRECT_TEXT_CHARS", 200),
            always_ocr=_get_bool("OCR_ALWAYS_OCR", False),
            force_ocr_languages=frozenset(forced),
            notify_url=os.getenv("OCR_NOTIFY_URL") or None,
            notify_secret=os.getenv("OCR_NOTIFY_SECRET") or None,
            notify_timeout_seconds=_get_float("OCR_NOTIFY_TIMEOUT_SECONDS", 15.0),
            notify_max_chars=_get_int("OCR_NOTIFY_MAX_CHARS", 20_000),
            rate_limit=os.getenv("OCR_RATE_LIMIT", "30/minute"),
        )

    @property
    def remote_configured(self) -> bool:
        if self.gemini_use_vertex:
            return bool(self.vertex_project)
        return bool(self.gemini_api_key)

    def validate(self) -> None:
        if self.remote_max_attempts < 1:
            raise ValueError("OCR_REMOTE_MAX_ATTEMPTS must be >= 1")
        if self.remote_backoff_base_seconds < 0 or self.remote_backoff_max_seconds < 0:
            raise ValueError("OCR_REMOTE_BACKOFF_* must be >= 0")
        if self.remote_timeout_seconds <= 0:
            raise ValueError("OCR_REMOTE_TIMEOUT_SECONDS must be > 0")
        if self.raster_dpi < 72:
            raise ValueError("OCR_RASTER_DPI must be >= 72")
        if self.max_pages < 1:
            raise ValueError("OCR_MAX_PAGES must be >= 1")
        if not 0 < self.corruption_ratio < 1:
            raise ValueError("OCR_CORRUPTION_RATIO must be between 0 and 1")
        if self.corruption_run_length < 2:
            raise ValueError("OCR_CORRUPTION_RUN_LENGTH must be >= 2")
        if self.min_direct_text_chars < 1:
            raise ValueError("OCR_MIN_DIRECT_TEXT_CHARS must be >= 1")
        if self.notify_timeout_seconds <= 0:
            raise ValueError("OCR_NOTIFY_TIMEOUT_SECONDS must be > 0")
        if self.notify_max_chars < 1:
            raise ValueError("OCR_NOTIFY_MAX_CHARS must be >= 1")
        if self.gemini_use_vertex and not self.vertex_project:
            raise ValueError("OCR_GEMINI_USE_VERTEX is set but GOOGLE_CLOUD_PROJECT is missing")

    def clamp_pages(self, requested: int | None) -> int:
        """Bound a job's page request by the process-wide ceiling."""
        if requested is None or requested < 1:
            return self.max_pages
        return min(requested, self.max_pages)


@lru_cache(maxsize=1)
def get_config() -> WorkerConfig:
    """Process-wide config, loaded lazily from the environment."""
    return WorkerConfig.from_env()


IS_CLOUD_RUN: bool = bool(os.getenv("K_SERVICE"))
