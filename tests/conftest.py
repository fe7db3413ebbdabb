"""
pytest fixtures: generated sample PDFs/images and a recording backend.

    def test_something(sample_pdf, recording_backend):
        ...
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Tuple

import pytest
from PIL import Image
from reportlab.lib.pagesizes import A4, landscape
from reportlab.pdfgen import canvas

from pdf_stamper.backend import Document, Page, PageHandle, RenderingBackend


def _make_pdf(path: Path, sizes: List[Tuple[float, float]]) -> Path:
    c = canvas.Canvas(str(path), pagesize=sizes[0])
    for i, size in enumerate(sizes, start=1):
        c.setPageSize(size)
        c.setFont("Helvetica", 12)
        c.drawString(50, 50, f"SamplePage{i}")
        c.showPage()
    c.save()
    return path


@pytest.fixture
def sample_pdf(tmp_path: Path) -> Path:
    """Two portrait A4 pages"""
    return _make_pdf(tmp_path / "sample.pdf", [A4, A4])


@pytest.fixture
def mixed_pdf(tmp_path: Path) -> Path:
    """Portrait A4, landscape A4, small square page"""
    return _make_pdf(tmp_path / "mixed.pdf", [A4, landscape(A4), (200, 200)])


@pytest.fixture
def sample_png(tmp_path: Path) -> Path:
    path = tmp_path / "logo.png"
    Image.new("RGBA", (60, 30), (200, 20, 20, 255)).save(path)
    return path


# ============================================================================
# Recording backend
# ============================================================================

class RecordingBackend(RenderingBackend):
    """Backend double that logs every call as (page number, method, args)."""

    def __init__(self, pages: List[Page]):
        self.document = Document(source=Path("memory.pdf"), data=b"", pages=tuple(pages))
        self.calls: List[tuple] = []
        self.metadata: dict = {}
        self.protection = None

    def open(self, path) -> Document:
        return self.document

    def begin(self, document: Document) -> None:
        self.calls = []

    @contextmanager
    def activate(self, page: Page) -> Iterator[PageHandle]:
        self.calls.append((page.number, "activate"))
        yield PageHandle(page=page)

    def _log(self, handle: PageHandle, name: str, *args) -> None:
        self.calls.append((handle.page.number, name) + args)

    def set_page_mark(self, handle):
        handle.layer = "under"
        self._log(handle, "set_page_mark")

    def set_font(self, handle, family, size, bold=False):
        self._log(handle, "set_font", family, size, bold)

    def set_text_color(self, handle, rgb):
        self._log(handle, "set_text_color", rgb)

    def set_alpha(self, handle, alpha):
        self._log(handle, "set_alpha", alpha)

    def start_transform(self, handle):
        self._log(handle, "start_transform")

    def rotate(self, handle, angle, x, y):
        self._log(handle, "rotate", angle, x, y)

    def stop_transform(self, handle):
        self._log(handle, "stop_transform")

    def draw_text(self, handle, x, y, text):
        self._log(handle, "draw_text", x, y, text, handle.layer)

    def draw_image(self, handle, source, x, y, width=0, height=0):
        self._log(handle, "draw_image", source, x, y, width, height)

    def draw_html(self, handle, html, x, y, width=0, height=0):
        self._log(handle, "draw_html", html, x, y, width, height)

    def set_metadata(self, info):
        self.metadata = dict(info)

    def set_protection(self, user_password, owner_password, permissions):
        self.protection = (user_password, owner_password, permissions)

    def output(self) -> bytes:
        return b"%PDF-recorded"

    def draws(self, name: str = "draw_text") -> List[tuple]:
        return [c for c in self.calls if c[1] == name]


def make_pages(count: int, width: float = 210.0, height: float = 297.0) -> List[Page]:
    return [Page(number=i, width=width, height=height, orientation="P") for i in range(1, count + 1)]


@pytest.fixture
def recording_backend() -> RecordingBackend:
    return RecordingBackend(make_pages(3))
