"""Pydantic request/response schemas for the OCR worker API."""

from __future__ import annotations

import httpx
from pydantic import BaseModel, Field, field_validator

from ocr_service.pipeline.types import ExtractionOutcome, Job

# -- Extract ------------------------------------------------------------------


class ExtractRequest(BaseModel):
    document_id: str = Field(..., min_length=1, max_length=500, description="Opaque id, echoed back")
    bucket: str = Field(..., min_length=1, max_length=222, description="Storage bucket")
    path: str = Field(..., min_length=1, max_length=1024, description="Object path in the bucket")
    mime_type: str | None = Field(None, max_length=100, description="e.g. application/pdf, image/png")
    language_hint: str | None = Field(None, max_length=50, description="e.g. 'ar+en'")
    max_pages: int | None = Field(None, ge=1, description="Clamped to the process ceiling")
    notify_url: str | None = Field(None, max_length=2048, description="Overrides the default callback")
    wait: bool = Field(True, description="Return the outcome in the response instead of 202")

    @field_validator("notify_url")
    @classmethod
    def _check_notify_url(cls, v: str | None) -> str | None:
        if v is None:
            return v
        try:
            url = httpx.URL(v)
        except httpx.InvalidURL as e:
            raise ValueError(f"invalid notify_url: {e}") from e
        if url.scheme not in ("http", "https") or not url.host:
            raise ValueError("notify_url must be an absolute http(s) URL")
        return v

    def to_job(self, *, max_pages: int) -> Job:
        return Job(
            document_id=self.document_id,
            bucket=self.bucket,
            path=self.path,
            mime_type=self.mime_type,
            language_hint=self.language_hint,
            max_pages=max_pages,
            notify_url=self.notify_url,
        )


class PageSummary(BaseModel):
    index: int
    engine: str | None = None
    chars: int
    attempts: dict[str, int] = Field(default_factory=dict)
    errors: dict[str, str] = Field(default_factory=dict)


class ExtractResponse(BaseModel):
    ok: bool
    document_id: str
    text: str = ""
    length: int = 0
    method: str | None = None
    page_count: int | None = None
    error: str | None = None
    pages: list[PageSummary] = Field(default_factory=list)

    @classmethod
    def from_outcome(cls, document_id: str, outcome: ExtractionOutcome) -> ExtractResponse:
        return cls(
            ok=outcome.succeeded,
            document_id=document_id,
            text=outcome.text,
            length=len(outcome.text),
            method=outcome.method,
            page_count=outcome.page_count,
            error=outcome.failure_reason,
            pages=[
                PageSummary(
                    index=p.index,
                    engine=p.engine,
                    chars=len(p.text),
                    attempts=p.attempts,
                    errors=p.errors,
                )
                for p in outcome.pages
            ],
        )


class AcceptedResponse(BaseModel):
    accepted: bool = True
    document_id: str


# -- Health -------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str
    service: str = "ocr-worker"
    remote_ocr_configured: bool | None = None
    remote_model: str | None = None
    local_ocr_available: bool | None = None
    engines: list[str] | None = None
    error: str | None = None
