import threading
import time

import fitz
import pytest
from PIL import Image

from app.converter.pdf_pages import Viewport


def make_pdf(num_pages: int, width: float = 200, height: float = 100) -> bytes:
    """Build a small PDF in memory with one line of text per page."""
    doc = fitz.open()
    for i in range(num_pages):
        page = doc.new_page(width=width, height=height)
        page.insert_text((20, 50), f"Page {i + 1}")
    data = doc.tobytes()
    doc.close()
    return data


class FakePage:
    def __init__(self, width: int, height: int):
        self.width = width
        self.height = height

    def get_viewport(self, scale: float) -> Viewport:
        return Viewport(width=int(self.width * scale), height=int(self.height * scale), scale=scale)

    def render(self, viewport: Viewport) -> Image.Image:
        return Image.new("RGB", viewport.size, "white")


class FakeDocument:
    """Engine document that can fail or block on a chosen page."""

    def __init__(self, page_count: int, fail_on: int | None = None, gate_on: int | None = None,
                 engine: "FakeEngine | None" = None):
        self.page_count = page_count
        self.engine = engine
        self.fail_on = fail_on
        self.gate_on = gate_on
        self.release = threading.Event()
        self.attempted: list[int] = []
        self.closed = False

    def get_page(self, page_number: int) -> FakePage:
        self.attempted.append(page_number)
        if self.engine is not None and self.engine.delay:
            self.engine.busy(self.engine.delay)
        if page_number == self.gate_on:
            self.release.wait(5)
        if page_number == self.fail_on:
            raise RuntimeError(f"cannot render page {page_number}")
        return FakePage(100, 50)

    def close(self) -> None:
        self.closed = True


class FakeEngine:
    def __init__(self, page_count: int = 1, fail_on: int | None = None, gate_on: int | None = None,
                 fail_open: bool = False, delay: float = 0.0):
        self.page_count = page_count
        self.fail_on = fail_on
        self.gate_on = gate_on
        self.fail_open = fail_open
        self.documents: list[FakeDocument] = []
        self.delay = delay
        self.in_flight = 0
        self.peak_in_flight = 0
        self._lock = threading.Lock()

    def busy(self, seconds: float) -> None:
        """Simulate a slow engine call and record how many overlap."""
        with self._lock:
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        time.sleep(seconds)
        with self._lock:
            self.in_flight -= 1

    @property
    def document(self) -> FakeDocument:
        return self.documents[-1]

    def open(self, data: bytes) -> FakeDocument:
        if self.delay:
            self.busy(self.delay)
        if self.fail_open:
            raise ValueError("not a PDF")
        doc = FakeDocument(self.page_count, fail_on=self.fail_on, gate_on=self.gate_on, engine=self)
        self.documents.append(doc)
        return doc


@pytest.fixture
def pdf_bytes():
    return make_pdf(3)
