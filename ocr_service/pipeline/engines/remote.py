"""Remote OCR through a hosted Gemini multimodal model.

The blocking SDK call runs in a worker thread; each attempt is bounded by
``timeout_seconds`` and rate-limit errors are retried by the injected
``RetryPolicy``. Anything else fails the page immediately so the
orchestrator can fall through to the local engine.
"""

from __future__ import annotations

import asyncio
import logging

from google import genai
from google.genai import types

from ocr_service.config import WorkerConfig
from ocr_service.errors import EngineError
from ocr_service.pipeline.corruption import CorruptionDetector
from ocr_service.pipeline.engines.base import OcrEngine
from ocr_service.pipeline.engines.retry import RetryPolicy
from ocr_service.pipeline.types import PageImage, Recognition

logger = logging.getLogger(__name__)

_PROMPT = (
    "Extract the complete text of this page verbatim and with high accuracy.\n"
    "Expected language(s): {language}.\n"
    "Rules:\n"
    "- Output only the text that appears on the page, exactly as written.\n"
    "- Do not summarize, translate, correct or explain anything.\n"
    "- Preserve the original reading order, line breaks and paragraph structure.\n"
    "- If the page contains no readable text, output nothing."
)


def build_prompt(language_hint: str) -> str:
    return _PROMPT.format(language=language_hint)


def build_gemini_client(cfg: WorkerConfig) -> genai.Client:
    """Gemini client using Vertex AI credentials or an API key."""
    http_options = types.HttpOptions(timeout=int(cfg.remote_timeout_seconds * 1000))
    if cfg.gemini_use_vertex:
        return genai.Client(
            vertexai=True,
            project=cfg.vertex_project,
            location=cfg.vertex_location,
            http_options=http_options,
        )
    if not cfg.gemini_api_key:
        raise ValueError("GEMINI_API_KEY not set. Set it or enable OCR_GEMINI_USE_VERTEX.")
    return genai.Client(api_key=cfg.gemini_api_key, http_options=http_options)


class RemoteOcrEngine(OcrEngine):
    name = "remote-ocr"

    def __init__(
        self,
        *,
        client: genai.Client,
        model: str,
        detector: CorruptionDetector,
        retry: RetryPolicy | None = None,
        timeout_seconds: float = 90.0,
    ) -> None:
        self._client = client
        self._model = model
        self._detector = detector
        self._retry = retry or RetryPolicy()
        self._timeout = timeout_seconds

    @property
    def model(self) -> str:
        return self._model

    def _generate(self, image: bytes, mime_type: str, language_hint: str) -> str:
        response = self._client.models.generate_content(
            model=self._model,
            contents=[
                types.Part.from_bytes(data=image, mime_type=mime_type),
                build_prompt(language_hint),
            ],
            config=types.GenerateContentConfig(temperature=0.0),
        )
        return response.text or ""

    async def recognize(self, page: PageImage, *, language_hint: str) -> Recognition:
        data = await asyncio.to_thread(page.read_bytes)

        async def _attempt() -> str:
            try:
                return await asyncio.wait_for(
                    asyncio.to_thread(self._generate, data, page.mime_type, language_hint),
                    timeout=self._timeout,
                )
            except TimeoutError as e:
                raise EngineError(f"remote OCR timed out after {self._timeout:.0f}s") from e

        text, attempts = await self._retry.run(_attempt, label=f"Remote OCR page {page.index}")
        text = text.strip()
        if not text:
            return Recognition(text="", attempts=attempts)
        if self._detector.is_corrupted(text):
            logger.warning("Remote OCR output for page %d looks corrupted; discarding", page.index)
            return Recognition(text="", attempts=attempts, corrupted=True)
        return Recognition(text=text, attempts=attempts)


def remote_engine_from_config(cfg: WorkerConfig, *, detector: CorruptionDetector) -> RemoteOcrEngine | None:
    """Build the remote engine, or ``None`` when no credentials are configured."""
    if not cfg.remote_configured:
        logger.info("Remote OCR not configured; pages go straight to the local engine")
        return None
    return RemoteOcrEngine(
        client=build_gemini_client(cfg),
        model=cfg.gemini_model,
        detector=detector,
        retry=RetryPolicy(
            max_attempts=cfg.remote_max_attempts,
            base_seconds=cfg.remote_backoff_base_seconds,
            max_seconds=cfg.remote_backoff_max_seconds,
        ),
        timeout_seconds=cfg.remote_timeout_seconds,
    )
