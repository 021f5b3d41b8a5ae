from __future__ import annotations

import asyncio
import logging

from google.cloud.storage import Client

from ocr_service.config import WorkerConfig
from ocr_service.errors import RetrievalError
from ocr_service.notifier import ResultNotifier
from ocr_service.pipeline.corruption import CorruptionDetector
from ocr_service.pipeline.direct_text import DirectTextExtractor
from ocr_service.pipeline.engines.base import OcrEngine
from ocr_service.pipeline.engines.local import get_local_engine
from ocr_service.pipeline.engines.remote import remote_engine_from_config
from ocr_service.pipeline.orchestrator import ExtractionPipeline
from ocr_service.pipeline.rasterizer import Rasterizer
from ocr_service.pipeline.types import ExtractionOutcome, Job
from ocr_service.storage import download_bytes

logger = logging.getLogger(__name__)


class OcrWorker:
    """Runs one job end to end: retrieve, extract, notify."""

    def __init__(
        self,
        *,
        pipeline: ExtractionPipeline,
        notifier: ResultNotifier,
        storage_client: Client | None = None,
    ) -> None:
        self._pipeline = pipeline
        self._notifier = notifier
        self._gcs = storage_client

    @property
    def pipeline(self) -> ExtractionPipeline:
        return self._pipeline

    @property
    def notifier(self) -> ResultNotifier:
        return self._notifier

    async def fetch(self, job: Job) -> bytes:
        if self._gcs is None:
            try:
                self._gcs = Client()
            except Exception as e:
                raise RetrievalError(f"retrieval failed: storage client unavailable: {e}") from e
        return await asyncio.to_thread(download_bytes, self._gcs, job.bucket, job.path)

    async def run(self, job: Job, *, data: bytes | None = None) -> ExtractionOutcome:
        """Produce the job's outcome without notifying anyone."""
        logger.info("doc=%s job started source=%s/%s", job.document_id, job.bucket, job.path)
        try:
            if data is None:
                data = await self.fetch(job)
        except RetrievalError as e:
            logger.warning("doc=%s %s", job.document_id, e)
            return ExtractionOutcome.failure(str(e))

        try:
            return await self._pipeline.extract(data, job)
        except Exception as e:
            logger.exception("doc=%s extraction crashed", job.document_id)
            return ExtractionOutcome.failure(f"extraction failed: {type(e).__name__}: {e}")

    async def process(self, job: Job, *, data: bytes | None = None) -> ExtractionOutcome:
        outcome = await self.run(job, data=data)
        if self._notifier.target_for(job):
            await self._notifier.notify(job, outcome)
        logger.info(
            "doc=%s job finished ok=%s method=%s pages=%s",
            job.document_id,
            outcome.succeeded,
            outcome.method,
            outcome.page_count,
        )
        return outcome


def build_engines(cfg: WorkerConfig, *, detector: CorruptionDetector) -> list[OcrEngine]:
    engines: list[OcrEngine] = []
    remote = remote_engine_from_config(cfg, detector=detector)
    if remote is not None:
        engines.append(remote)
    engines.append(
        get_local_engine(
            detector=detector,
            tesseract_config=cfg.tesseract_config,
            default_language=cfg.default_language,
        )
    )
    return engines


def build_worker(cfg: WorkerConfig, *, storage_client: Client | None = None) -> OcrWorker:
    detector = CorruptionDetector(max_ratio=cfg.corruption_ratio, run_length=cfg.corruption_run_length)
    pipeline = ExtractionPipeline(
        direct_text=DirectTextExtractor(
            detector=detector,
            min_chars=cfg.min_direct_text_chars,
            force_ocr_languages=cfg.force_ocr_languages,
            always_ocr=cfg.always_ocr,
        ),
        rasterizer=Rasterizer(dpi=cfg.raster_dpi, max_pages=cfg.max_pages),
        engines=build_engines(cfg, detector=detector),
        scratch_root=cfg.scratch_dir,
        default_language=cfg.default_language,
    )
    notifier = ResultNotifier(
        default_url=cfg.notify_url,
        secret=cfg.notify_secret,
        timeout_seconds=cfg.notify_timeout_seconds,
        max_chars=cfg.notify_max_chars,
    )
    return OcrWorker(pipeline=pipeline, notifier=notifier, storage_client=storage_client)
