from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

ExtractionMethod = Literal["direct-text", "remote-ocr", "local-ocr", "remote-ocr+local-ocr"]

DEFAULT_LANGUAGE_HINT = "ar+en"


@dataclass(frozen=True)
class Job:
    document_id: str  # opaque, echoed back unchanged
    bucket: str
    path: str  # object name in bucket
    mime_type: str | None = None
    language_hint: str | None = None
    max_pages: int | None = None
    notify_url: str | None = None

    def effective_language(self, default: str = DEFAULT_LANGUAGE_HINT) -> str:
        hint = (self.language_hint or "").strip()
        return hint or default

    @property
    def is_image(self) -> bool:
        return (self.mime_type or "").lower().startswith("image/")


@dataclass(frozen=True)
class PageImage:
    index: int  # 1-based, contiguous
    path: Path
    dpi: int | None
    mime_type: str = "image/png"

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()

    def release(self) -> None:
        """Remove the backing file; missing files are ignored."""
        try:
            self.path.unlink(missing_ok=True)
        except OSError:
            pass


@dataclass(frozen=True)
class Recognition:
    text: str
    attempts: int = 1
    corrupted: bool = False

    @property
    def usable(self) -> bool:
        return bool(self.text.strip()) and not self.corrupted


@dataclass(frozen=True)
class PageResult:
    index: int
    text: str
    engine: str | None  # engine tag that produced the text, None if no engine did
    attempts: dict[str, int] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ExtractionOutcome:
    succeeded: bool
    text: str
    method: ExtractionMethod | None
    page_count: int | None
    failure_reason: str | None = None
    pages: tuple[PageResult, ...] = ()

    def __post_init__(self) -> None:
        if self.succeeded and not self.text.strip():
            raise ValueError("A successful outcome requires non-empty text")
        if not self.succeeded and not self.failure_reason:
            raise ValueError("A failed outcome requires a failure reason")

    @classmethod
    def success(
        cls,
        text: str,
        *,
        method: ExtractionMethod,
        page_count: int | None,
        pages: tuple[PageResult, ...] = (),
    ) -> ExtractionOutcome:
        return cls(succeeded=True, text=text, method=method, page_count=page_count, pages=pages)

    @classmethod
    def failure(
        cls,
        reason: str,
        *,
        page_count: int | None = None,
        pages: tuple[PageResult, ...] = (),
    ) -> ExtractionOutcome:
        return cls(
            succeeded=False,
            text="",
            method=None,
            page_count=page_count,
            failure_reason=reason,
            pages=pages,
        )
