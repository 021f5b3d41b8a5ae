"""Exception types shared by the extraction pipeline."""

from __future__ import annotations


class RetrievalError(RuntimeError):
    """The source document could not be fetched from object storage."""


class DocumentNotFoundError(RetrievalError):
    pass


class RasterizationError(RuntimeError):
    """Rendering the document to page images produced nothing usable."""


class EngineError(RuntimeError):
    """An OCR engine failed on a single page.

    ``attempts`` is the number of provider calls made before giving up;
    ``retryable`` marks failures caused by a transient fault (rate limit).
    """

    def __init__(self, message: str, *, attempts: int = 1, retryable: bool = False) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.retryable = retryable
