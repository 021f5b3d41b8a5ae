from __future__ import annotations

import argparse


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="ocr-extract",
        description="Extract text from one document (direct text layer or OCR) and print the outcome as JSON",
    )

    source = p.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", help="Local file to extract (skips object storage)")
    source.add_argument("--path", help="Object path in --bucket")

    p.add_argument("--bucket", default="", help="Storage bucket holding --path")
    p.add_argument("--document-id", default=None, help="Id echoed in the outcome (default: file/object name)")
    p.add_argument("--mime-type", default=None, help="e.g. application/pdf or image/png (default: sniffed)")
    p.add_argument("--language", default=None, help="Language hint, e.g. 'ar+en'")
    p.add_argument("--max-pages", type=int, default=0, help="Page cap (0 = process ceiling OCR_MAX_PAGES)")
    p.add_argument("--notify-url", default=None, help="POST the outcome here as well")
    p.add_argument("--output", default=None, help="Write extracted text to this file")
    p.add_argument("--log-level", default="INFO", help="Python logging level (INFO, DEBUG, ...)")
    return p
