"""PDF page rasterization and image encoding."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Executor
from dataclasses import dataclass
from io import BytesIO
from typing import AsyncIterator, Callable

import fitz  # PyMuPDF
from PIL import Image

from .config import ConversionConfig
from .storage import PageImage

logger = logging.getLogger(__name__)

SURFACE_MODE = "RGB"
SURFACE_BACKGROUND = "white"


@dataclass(frozen=True)
class Viewport:
    """Pixel-space size of one page at a given scale."""

    width: int
    height: int
    scale: float

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)


class FitzPage:
    """A single PyMuPDF page."""

    def __init__(self, page: fitz.Page):
        self._page = page

    def get_viewport(self, scale: float) -> Viewport:
        rect = self._page.rect
        return Viewport(width=int(rect.width * scale), height=int(rect.height * scale), scale=scale)

    def render(self, viewport: Viewport) -> Image.Image:
        """Rasterize the page onto a surface sized to ``viewport``."""
        mat = fitz.Matrix(viewport.scale, viewport.scale)
        pix = self._page.get_pixmap(matrix=mat, alpha=False)
        img = Image.frombytes(SURFACE_MODE, (pix.width, pix.height), pix.samples)
        del pix
        if img.size == viewport.size:
            return img

        # PyMuPDF rounds the pixmap outward; clip/pad to the viewport
        surface = Image.new(SURFACE_MODE, viewport.size, SURFACE_BACKGROUND)
        surface.paste(img, (0, 0))
        img.close()
        return surface


class FitzDocument:
    """An opened PyMuPDF document with 1-based page addressing."""

    def __init__(self, doc: fitz.Document):
        self._doc = doc

    @property
    def page_count(self) -> int:
        return self._doc.page_count

    def get_page(self, page_number: int) -> FitzPage:
        if not 1 <= page_number <= self.page_count:
            raise IndexError(f"Page {page_number} out of range 1..{self.page_count}")
        return FitzPage(self._doc.load_page(page_number - 1))

    def close(self) -> None:
        self._doc.close()


class FitzEngine:
    """PDF engine backed by PyMuPDF."""

    def open(self, data: bytes) -> FitzDocument:
        return FitzDocument(fitz.open(stream=data, filetype="pdf"))


def encode_image(surface: Image.Image, config: ConversionConfig) -> bytes:
    """
    Encode a rendered surface in the configured format.

    Quality only applies to the lossy formats; PNG ignores it.
    """
    buffer = BytesIO()
    if config.is_lossless:
        surface.save(buffer, format="PNG", optimize=True)
    else:
        quality = int(round(config.image_quality * 100))
        surface.save(buffer, format=config.image_format.upper(), quality=quality)
    return buffer.getvalue()


def render_page(document, page_number: int, config: ConversionConfig) -> PageImage:
    """
    Render and encode one page.

    Args:
        document: Opened engine document (see FitzDocument).
        page_number: 1-based page number.
        config: Format, quality and scale for this run.

    Returns:
        The encoded page image record.
    """
    page = document.get_page(page_number)
    viewport = page.get_viewport(config.render_scale)
    surface = page.render(viewport)
    try:
        data = encode_image(surface, config)
    finally:
        surface.close()

    return PageImage(
        page_number=page_number,
        data=data,
        image_format=config.image_format,
        width=viewport.width,
        height=viewport.height,
    )


async def render_pages(
    document,
    config: ConversionConfig,
    on_page: Callable[[int, int], None] | None = None,
    executor: Executor | None = None,
) -> AsyncIterator[PageImage]:
    """
    Yield one PageImage per page, strictly in page order.

    Each page is rendered in a worker thread and awaited before the next
    one starts, so at most one pixel surface is alive at a time. The first
    engine error propagates to the caller and stops the loop.

    Args:
        document: Opened engine document.
        config: Format, quality and scale for this run.
        on_page: Called with (page_number, total) before each page starts.
        executor: Worker pool for the engine calls. Sessions pass a
            single-worker pool so renders never overlap across runs.
    """
    total = document.page_count
    for page_number in range(1, total + 1):
        if on_page is not None:
            on_page(page_number, total)
        logger.debug(f"Rendering page {page_number}/{total} at scale {config.render_scale}")
        if executor is None:
            record = await asyncio.to_thread(render_page, document, page_number, config)
        else:
            loop = asyncio.get_running_loop()
            record = await loop.run_in_executor(executor, render_page, document, page_number, config)
        yield record
