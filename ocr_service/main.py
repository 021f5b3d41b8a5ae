from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

from ocr_service.cli import build_parser
from ocr_service.config import WorkerConfig
from ocr_service.logging_config import setup_logging
from ocr_service.pipeline.engines.local import shutdown_local_engine
from ocr_service.pipeline.types import Job
from ocr_service.worker import build_worker


async def _amain(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(level=args.log_level.upper())
    logger = logging.getLogger("ocr_service.cli")

    if args.path and not args.bucket:
        parser.error("--bucket is required with --path")

    cfg = WorkerConfig.from_env()
    cfg.validate()

    data: bytes | None = None
    if args.file:
        src = Path(args.file)
        data = src.read_bytes()
        name = src.name
    else:
        name = args.path

    job = Job(
        document_id=args.document_id or name,
        bucket=args.bucket,
        path=args.path or str(args.file),
        mime_type=args.mime_type,
        language_hint=args.language,
        max_pages=cfg.clamp_pages(args.max_pages or None),
        notify_url=args.notify_url,
    )

    worker = build_worker(cfg)
    try:
        outcome = await worker.process(job, data=data)
    finally:
        shutdown_local_engine()

    if args.output and outcome.succeeded:
        Path(args.output).write_text(outcome.text, encoding="utf-8")
        logger.info("Wrote %d chars to %s", len(outcome.text), args.output)

    print(
        json.dumps(
            {
                "document_id": job.document_id,
                "ok": outcome.succeeded,
                "method": outcome.method,
                "page_count": outcome.page_count,
                "length": len(outcome.text),
                "error": outcome.failure_reason,
                "text": None if args.output else outcome.text,
            },
            ensure_ascii=False,
            indent=2,
        )
    )
    return 0 if outcome.succeeded else 2


def main() -> None:
    raise SystemExit(asyncio.run(_amain()))


if __name__ == "__main__":
    main()
