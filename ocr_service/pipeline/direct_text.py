from __future__ import annotations

import io
import logging
import re
from collections.abc import Iterable

from pypdf import PdfReader

from ocr_service.pipeline.corruption import CorruptionDetector

logger = logging.getLogger(__name__)

_HSPACE_RE = re.compile(r"[ \t\f\v\u00a0]+")
_BLANK_LINES_RE = re.compile(r"\n\s*\n\s*\n+")


def normalize_text(text: str) -> str:
    if not text:
        return ""
    text = text.replace("\x00", "").replace("\r\n", "\n").replace("\r", "\n")
    text = _HSPACE_RE.sub(" ", text)
    text = "\n".join(line.strip() for line in text.split("\n"))
    # Keep paragraph breaks, drop runs of empty lines
    text = _BLANK_LINES_RE.sub("\n\n", text)
    return text.strip()


def hint_languages(language_hint: str | None) -> list[str]:
    """Split a hint such as ``"ar+en"`` or ``"ar, en"`` into lowercase codes."""
    if not language_hint:
        return []
    return [p for p in re.split(r"[+,;\s]+", language_hint.strip().lower()) if p]


class DirectTextExtractor:
    """Recover a PDF's embedded text layer, or decline so the caller can OCR.

    ``extract`` returns ``None`` instead of raising: a missing, short or
    garbled text layer is an expected outcome, not an error.
    """

    def __init__(
        self,
        *,
        detector: CorruptionDetector,
        min_chars: int = 200,
        force_ocr_languages: Iterable[str] = ("ar",),
        always_ocr: bool = False,
    ) -> None:
        self._detector = detector
        self._min = max(1, int(min_chars))
        self._forced = frozenset(lang.lower() for lang in force_ocr_languages)
        self._always_ocr = always_ocr

    def forces_ocr(self, language_hint: str | None) -> bool:
        if self._always_ocr:
            return True
        return any(lang in self._forced for lang in hint_languages(language_hint))

    def extract(self, data: bytes, *, language_hint: str | None = None) -> str | None:
        if self.forces_ocr(language_hint):
            logger.info("Direct text skipped: OCR forced (hint=%r, always_ocr=%s)", language_hint, self._always_ocr)
            return None

        try:
            r = PdfReader(io.BytesIO(data))
            parts: list[str] = []
            for p in r.pages:
                t = p.extract_text() or ""
                if t.strip():
                    parts.append(t)
            extracted = "\n".join(parts)
        except Exception as e:
            logger.warning("PyPDF text extraction failed, falling back to OCR: %s", e)
            return None

        text = normalize_text(extracted)
        if len(text) < self._min:
            logger.info("Direct text rejected: %d chars < %d", len(text), self._min)
            return None
        if self._detector.is_corrupted(text):
            logger.info("Direct text rejected: text layer looks corrupted")
            return None
        return text
