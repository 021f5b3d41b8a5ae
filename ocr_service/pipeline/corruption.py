"""Heuristic detection of garbled text.

Failed decodes and broken OCR output tend to cluster a handful of symbols
(the Unicode replacement character, stray control codes, ``%``, ``#``,
``@``). A sample is considered corrupted when those symbols are too
frequent or appear in a long run. False negatives are accepted.
"""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass

SAMPLE_CHARS = 800
_SYMBOLS = frozenset({"\ufffd", "%", "#", "@"})
_ALLOWED_CONTROLS = frozenset({"\n", "\r", "\t"})


def _is_suspicious(ch: str) -> bool:
    if ch in _SYMBOLS:
        return True
    return ch not in _ALLOWED_CONTROLS and unicodedata.category(ch) == "Cc"


@dataclass(frozen=True)
class CorruptionDetector:
    max_ratio: float = 0.03
    run_length: int = 6
    sample_chars: int = SAMPLE_CHARS

    def is_corrupted(self, text: str | None) -> bool:
        if not text or not text.strip():
            return True

        sample = text[: self.sample_chars]
        suspicious = 0
        run_char = ""
        run = 0
        for ch in sample:
            if not _is_suspicious(ch):
                run_char, run = "", 0
                continue
            suspicious += 1
            run = run + 1 if ch == run_char else 1
            run_char = ch
            if run >= self.run_length:
                return True

        return suspicious / len(sample) > self.max_ratio
