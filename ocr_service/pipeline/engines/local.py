"""Local OCR through Tesseract.

Probing the Tesseract binary and its installed language packs is done once
per process; the engine instance is then shared by every job. Recognition
calls are serialized with a lock so two jobs never drive it concurrently.
"""

from __future__ import annotations

import asyncio
import logging
import threading

import pytesseract
from PIL import Image

from ocr_service.errors import EngineError
from ocr_service.pipeline.corruption import CorruptionDetector
from ocr_service.pipeline.direct_text import hint_languages
from ocr_service.pipeline.engines.base import OcrEngine
from ocr_service.pipeline.types import DEFAULT_LANGUAGE_HINT, PageImage, Recognition

logger = logging.getLogger(__name__)

# ISO 639-1 hint codes -> Tesseract traineddata names
_TESSERACT_LANGS: dict[str, str] = {
    "ar": "ara",
    "en": "eng",
    "fa": "fas",
    "fr": "fra",
    "de": "deu",
    "es": "spa",
    "it": "ita",
    "pt": "por",
    "ru": "rus",
    "tr": "tur",
    "ur": "urd",
    "he": "heb",
    "zh": "chi_sim",
    "ja": "jpn",
    "hi": "hin",
}


def tesseract_languages(
    language_hint: str | None,
    *,
    available: set[str] | None = None,
    default: str = DEFAULT_LANGUAGE_HINT,
) -> str:
    """Map a hint such as ``"ar+en"`` to a Tesseract language string (``"ara+eng"``).

    Codes that are not installed are dropped; if nothing survives, ``default``
    (bilingual Arabic+English unless configured) is used.
    """
    langs: list[str] = []
    for code in hint_languages(language_hint):
        lang = _TESSERACT_LANGS.get(code, code)
        if lang not in langs and (available is None or lang in available):
            langs.append(lang)
    if langs:
        return "+".join(langs)
    if language_hint != default:
        return tesseract_languages(default, available=available, default=default)
    return "eng"


class LocalOcrEngine(OcrEngine):
    name = "local-ocr"

    def __init__(
        self,
        *,
        detector: CorruptionDetector,
        tesseract_config: str = "--oem 1 --psm 6",
        default_language: str = DEFAULT_LANGUAGE_HINT,
    ) -> None:
        self._detector = detector
        self._config = tesseract_config
        self._default_language = default_language
        self._lock = threading.Lock()
        self._available: set[str] | None = None
        self._version: str | None = None
        self._init_error: str | None = None
        self._probe()

    def _probe(self) -> None:
        try:
            self._version = str(pytesseract.get_tesseract_version())
            self._available = set(pytesseract.get_languages(config=""))
            logger.info(
                "Tesseract %s ready (languages: %s)",
                self._version,
                ",".join(sorted(self._available)),
            )
        except Exception as e:
            self._init_error = f"{type(e).__name__}: {e}"
            logger.warning("Tesseract unavailable: %s", self._init_error)

    @property
    def available(self) -> bool:
        return self._init_error is None

    @property
    def languages(self) -> set[str]:
        return set(self._available or ())

    def _recognize_sync(self, page: PageImage, lang: str) -> str:
        with self._lock, Image.open(page.path) as img:
            return pytesseract.image_to_string(img, lang=lang, config=self._config) or ""

    async def recognize(self, page: PageImage, *, language_hint: str) -> Recognition:
        if self._init_error is not None:
            raise EngineError(f"local OCR unavailable: {self._init_error}")

        lang = tesseract_languages(language_hint, available=self._available, default=self._default_language)
        try:
            text = await asyncio.to_thread(self._recognize_sync, page, lang)
        except Exception as e:
            raise EngineError(f"local OCR failed on page {page.index}: {type(e).__name__}: {e}") from e

        text = text.strip()
        if not text:
            return Recognition(text="")
        if self._detector.is_corrupted(text):
            logger.warning("Local OCR output for page %d looks corrupted; discarding", page.index)
            return Recognition(text="", corrupted=True)
        return Recognition(text=text)

    def close(self) -> None:
        # pytesseract spawns one process per call; nothing is held open between pages
        self._init_error = "engine shut down"


_local_engine: LocalOcrEngine | None = None
_local_engine_guard = threading.Lock()


def get_local_engine(
    *,
    detector: CorruptionDetector,
    tesseract_config: str = "--oem 1 --psm 6",
    default_language: str = DEFAULT_LANGUAGE_HINT,
) -> LocalOcrEngine:
    """Process-wide engine: created on first use, reused until shutdown."""
    global _local_engine
    if _local_engine is None:
        with _local_engine_guard:
            if _local_engine is None:
                _local_engine = LocalOcrEngine(
                    detector=detector,
                    tesseract_config=tesseract_config,
                    default_language=default_language,
                )
    return _local_engine


def shutdown_local_engine() -> None:
    global _local_engine
    with _local_engine_guard:
        if _local_engine is not None:
            _local_engine.close()
            _local_engine = None
