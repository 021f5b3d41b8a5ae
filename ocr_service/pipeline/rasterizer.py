"""Render PDF pages (or a single raster image) into page image files.

Images are written into a caller-owned scratch directory; the orchestrator
removes that directory when the job ends.
"""

from __future__ import annotations

import io
import logging
import re
from pathlib import Path

from pdf2image import convert_from_bytes, pdfinfo_from_bytes
from pdf2image.exceptions import PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError
from PIL import Image, UnidentifiedImageError

from ocr_service.errors import RasterizationError
from ocr_service.pipeline.types import PageImage

logger = logging.getLogger(__name__)

_IMAGE_EXTS: dict[str, str] = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/webp": ".webp",
    "image/tiff": ".tiff",
    "image/bmp": ".bmp",
    "image/gif": ".gif",
}

# pdftoppm names its output <prefix>-<page>.png, page zero-padded to the width of the last page
_PAGE_NO_RE = re.compile(r"-(\d+)\.png$")


def _page_number(path: Path) -> int:
    m = _PAGE_NO_RE.search(path.name)
    return int(m.group(1)) if m else 0


class Rasterizer:
    def __init__(self, *, dpi: int = 300, max_pages: int = 20) -> None:
        self._dpi = dpi
        self._ceiling = max(1, max_pages)

    @property
    def dpi(self) -> int:
        return self._dpi

    def page_limit(self, requested: int | None) -> int:
        if requested is None or requested < 1:
            return self._ceiling
        return min(requested, self._ceiling)

    def rasterize(self, data: bytes, *, scratch_dir: Path, max_pages: int | None = None) -> list[PageImage]:
        """Render up to ``min(max_pages, ceiling)`` pages as PNG files, in page order."""
        limit = self.page_limit(max_pages)
        try:
            info = pdfinfo_from_bytes(data)
            total = int(info.get("Pages", 0) or 0)
        except (PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError, ValueError) as e:
            raise RasterizationError(f"rasterization failed: could not read PDF page count: {e}") from e

        last = min(limit, total)
        if last < 1:
            raise RasterizationError("rasterization produced no images: document has no pages")

        try:
            paths = convert_from_bytes(
                data,
                dpi=self._dpi,
                first_page=1,
                last_page=last,
                fmt="png",
                output_folder=str(scratch_dir),
                output_file="page",
                paths_only=True,
            )
        except Exception as e:
            raise RasterizationError(f"rasterization produced no images: {e}") from e

        if not paths:
            raise RasterizationError("rasterization produced no images")

        numbered = sorted((_page_number(Path(p)), Path(p)) for p in paths)
        missing = sorted(set(range(1, last + 1)) - {n for n, _ in numbered})
        if missing or len(numbered) != last:
            logger.warning("Rasterizer rendered %d of %d requested pages", len(numbered), last)
            raise RasterizationError(
                f"rasterization incomplete: missing pages {', '.join(map(str, missing)) or '?'} of {last}"
            )

        pages = [PageImage(index=n, path=p, dpi=self._dpi, mime_type="image/png") for n, p in numbered]
        logger.info("Rasterized %d/%d pages at %d dpi", len(pages), total, self._dpi)
        return pages

    def from_image(self, data: bytes, *, scratch_dir: Path, mime_type: str | None = None) -> list[PageImage]:
        """Treat a raster image upload as a one-page document."""
        try:
            with Image.open(io.BytesIO(data)) as img:
                img.verify()
                detected = Image.MIME.get(img.format or "", None)
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise RasterizationError(f"rasterization produced no images: unreadable image ({e})") from e

        mime = (detected or mime_type or "image/png").lower()
        path = scratch_dir / f"page-0001{_IMAGE_EXTS.get(mime, '.img')}"
        path.write_bytes(data)
        return [PageImage(index=1, path=path, dpi=None, mime_type=mime)]
