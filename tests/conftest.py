"""Shared test fixtures for the OCR worker test suite."""

from __future__ import annotations

import dataclasses
import io
from pathlib import Path

import pytest

from ocr_service.config import WorkerConfig


@pytest.fixture
def worker_config(monkeypatch: pytest.MonkeyPatch) -> WorkerConfig:
    """Config built from a clean environment (no credentials, no callbacks)."""
    for name in (
        "OCR_WORKER_SECRET",
        "GEMINI_API_KEY",
        "OCR_GEMINI_USE_VERTEX",
        "OCR_NOTIFY_URL",
        "OCR_NOTIFY_SECRET",
        "OCR_FORCE_OCR_LANGUAGES",
        "OCR_ARABIC_FORCES_OCR",
        "OCR_ALWAYS_OCR",
        "OCR_SCRATCH_DIR",
        "OCR_DEFAULT_LANGUAGE",
    ):
        monkeypatch.delenv(name, raising=False)
    return WorkerConfig.from_env()


@pytest.fixture
def make_config(worker_config: WorkerConfig):
    def _make(**overrides: object) -> WorkerConfig:
        return dataclasses.replace(worker_config, **overrides)

    return _make


@pytest.fixture
def png_bytes() -> bytes:
    """A small white PNG."""
    from PIL import Image

    buf = io.BytesIO()
    Image.new("RGB", (64, 32), "white").save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png_file(tmp_path: Path, png_bytes: bytes) -> Path:
    p = tmp_path / "page-1.png"
    p.write_bytes(png_bytes)
    return p
