from __future__ import annotations

from abc import ABC, abstractmethod

from ocr_service.pipeline.types import PageImage, Recognition


class OcrEngine(ABC):
    """Turns one page image into text.

    Implementations return a ``Recognition`` (possibly empty or flagged
    corrupted) and raise ``EngineError`` when the page could not be
    processed at all.
    """

    name: str

    @property
    def available(self) -> bool:
        return True

    @abstractmethod
    async def recognize(self, page: PageImage, *, language_hint: str) -> Recognition: ...
