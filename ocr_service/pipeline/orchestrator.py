"""Text-extraction pipeline for a single document.

Order of strategies:

1. Embedded text layer (PDF only), accepted when long enough, clean, and
   not overridden by the forced-OCR language policy.
2. Rasterize a bounded number of pages into a per-job scratch directory.
3. OCR each page in order through the engine chain (remote first when
   configured, then local). A page that no engine can read contributes
   nothing; it never aborts the job.
4. Join the page texts. An empty aggregate is the only OCR-stage failure.

The scratch directory is removed on every exit path.
"""

from __future__ import annotations

import asyncio
import logging
import tempfile
import time
from collections.abc import Sequence
from pathlib import Path
from typing import cast

from ocr_service.errors import EngineError, RasterizationError
from ocr_service.pipeline.direct_text import DirectTextExtractor
from ocr_service.pipeline.engines.base import OcrEngine
from ocr_service.pipeline.rasterizer import Rasterizer
from ocr_service.pipeline.types import (
    DEFAULT_LANGUAGE_HINT,
    ExtractionMethod,
    ExtractionOutcome,
    Job,
    PageImage,
    PageResult,
)

logger = logging.getLogger(__name__)

PAGE_SEPARATOR = "\n\n"


def _is_image_input(job: Job, data: bytes) -> bool:
    if job.mime_type:
        return job.is_image
    return b"%PDF" not in data[:1024]


class ExtractionPipeline:
    def __init__(
        self,
        *,
        direct_text: DirectTextExtractor,
        rasterizer: Rasterizer,
        engines: Sequence[OcrEngine],
        scratch_root: str | None = None,
        default_language: str = DEFAULT_LANGUAGE_HINT,
    ) -> None:
        if not engines:
            raise ValueError("At least one OCR engine is required")
        self._direct = direct_text
        self._rasterizer = rasterizer
        self._engines = list(engines)
        self._scratch_root = scratch_root
        self._default_language = default_language

    @property
    def engines(self) -> list[OcrEngine]:
        return list(self._engines)

    @property
    def engine_names(self) -> list[str]:
        return [e.name for e in self._engines]

    async def extract(self, data: bytes, job: Job) -> ExtractionOutcome:
        start = time.monotonic()
        is_image = _is_image_input(job, data)

        if not is_image:
            text = await asyncio.to_thread(self._direct.extract, data, language_hint=job.language_hint)
            if text:
                logger.info("doc=%s direct text accepted (%d chars)", job.document_id, len(text))
                return ExtractionOutcome.success(text, method="direct-text", page_count=None)

        with tempfile.TemporaryDirectory(
            prefix="ocr-job-",
            dir=self._scratch_root,
            ignore_cleanup_errors=True,
        ) as tmp:
            scratch = Path(tmp)
            try:
                if is_image:
                    pages = await asyncio.to_thread(
                        self._rasterizer.from_image, data, scratch_dir=scratch, mime_type=job.mime_type
                    )
                else:
                    pages = await asyncio.to_thread(
                        self._rasterizer.rasterize, data, scratch_dir=scratch, max_pages=job.max_pages
                    )
            except RasterizationError as e:
                logger.warning("doc=%s %s", job.document_id, e)
                return ExtractionOutcome.failure(str(e))

            if not pages:
                return ExtractionOutcome.failure("rasterization produced no images")

            language = job.effective_language(self._default_language)
            results: list[PageResult] = []
            for page in pages:
                try:
                    results.append(await self._ocr_page(page, language))
                finally:
                    page.release()

        text = PAGE_SEPARATOR.join(r.text for r in results if r.text.strip()).strip()
        elapsed = time.monotonic() - start
        if not text:
            logger.warning("doc=%s OCR generated no text (%d pages, %.1fs)", job.document_id, len(results), elapsed)
            return ExtractionOutcome.failure(
                "OCR generated no text",
                page_count=len(results),
                pages=tuple(results),
            )

        method = self._method_for(results)
        logger.info(
            "doc=%s OCR done method=%s pages=%d chars=%d in %.1fs",
            job.document_id,
            method,
            len(results),
            len(text),
            elapsed,
        )
        return ExtractionOutcome.success(text, method=method, page_count=len(results), pages=tuple(results))

    async def _ocr_page(self, page: PageImage, language_hint: str) -> PageResult:
        attempts: dict[str, int] = {}
        errors: dict[str, str] = {}
        for engine in self._engines:
            try:
                rec = await engine.recognize(page, language_hint=language_hint)
            except EngineError as e:
                attempts[engine.name] = e.attempts
                errors[engine.name] = f"{e} (retryable)" if e.retryable else str(e)
                logger.warning("Page %d: %s failed: %s", page.index, engine.name, e)
                continue
            except Exception as e:
                attempts[engine.name] = 1
                errors[engine.name] = f"{type(e).__name__}: {e}"
                logger.warning("Page %d: %s crashed", page.index, engine.name, exc_info=True)
                continue

            attempts[engine.name] = rec.attempts
            if rec.usable:
                return PageResult(
                    index=page.index, text=rec.text, engine=engine.name, attempts=attempts, errors=errors
                )
            errors[engine.name] = "corrupted output" if rec.corrupted else "empty output"
            logger.info("Page %d: %s returned no usable text", page.index, engine.name)

        return PageResult(index=page.index, text="", engine=None, attempts=attempts, errors=errors)

    def _method_for(self, results: Sequence[PageResult]) -> ExtractionMethod:
        used = {r.engine for r in results if r.engine and r.text.strip()}
        names = [name for name in self.engine_names if name in used]
        return cast(ExtractionMethod, "+".join(names))
