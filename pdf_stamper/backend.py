"""
Rendering backend.

``RenderingBackend`` is the contract the stamp queue draws through: page
import and metrics, page activation, drawing state, transforms, text, image
and rich-text drawing, document protection and serialization.

``ReportlabBackend`` implements it with PyPDF2 (import, merge, encryption,
output) and reportlab (one overlay canvas per page and layer). Coordinates
are given in the session unit with a top-left origin.
"""

from __future__ import annotations

import io
import logging
import re
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, Mapping, Optional, Set, Tuple, Union

from PyPDF2 import PageObject, PdfReader, PdfWriter
from PyPDF2.errors import PdfReadError
from PyPDF2.generic import NameObject, RectangleObject
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfgen import canvas as rl_canvas
from reportlab.platypus import Paragraph

from .errors import BackendDrawFailure, PdfStamperError, SourceUnreadable
from .utils import pick_font_name, pt_to_unit, unit_to_pt

logger = logging.getLogger(__name__)

OVER = "over"
UNDER = "under"


@dataclass(frozen=True)
class Page:
    """One imported source page; sizes are in the session unit."""

    number: int
    width: float
    height: float
    orientation: str


@dataclass
class Document:
    source: Path
    data: bytes
    pages: Tuple[Page, ...]

    @property
    def page_count(self) -> int:
        return len(self.pages)


@dataclass
class PageHandle:
    """The drawing target for one page during one operation."""

    page: Page
    layer: str = OVER
    font: Tuple[str, float] = ("Helvetica", 12.0)
    # layers whose graphics state was saved for this activation
    scopes: Set[str] = field(default_factory=set, repr=False)

    @property
    def width(self) -> float:
        return self.page.width

    @property
    def height(self) -> float:
        return self.page.height


class RenderingBackend(ABC):
    """Drawing contract used by the stamp queue"""

    @abstractmethod
    def open(self, path: Union[str, Path]) -> Document:
        """Import a source document. Raises SourceUnreadable."""
        ...

    @abstractmethod
    def begin(self, document: Document) -> None:
        """Start a fresh render pass over ``document``."""
        ...

    @abstractmethod
    def activate(self, page: Page):
        """Context manager yielding a PageHandle with clean drawing state."""
        ...

    @abstractmethod
    def set_page_mark(self, handle: PageHandle) -> None:
        """Route further drawing of this activation below the page content."""
        ...

    @abstractmethod
    def set_font(self, handle: PageHandle, family: str, size: float, bold: bool = False) -> None:
        ...

    @abstractmethod
    def set_text_color(self, handle: PageHandle, rgb: Tuple[int, int, int]) -> None:
        ...

    @abstractmethod
    def set_alpha(self, handle: PageHandle, alpha: float) -> None:
        ...

    @abstractmethod
    def start_transform(self, handle: PageHandle) -> None:
        ...

    @abstractmethod
    def rotate(self, handle: PageHandle, angle: float, x: float, y: float) -> None:
        ...

    @abstractmethod
    def stop_transform(self, handle: PageHandle) -> None:
        ...

    @abstractmethod
    def draw_text(self, handle: PageHandle, x: float, y: float, text: str) -> None:
        ...

    @abstractmethod
    def draw_image(self, handle: PageHandle, source: str, x: float, y: float, width: float = 0, height: float = 0) -> None:
        ...

    @abstractmethod
    def draw_html(self, handle: PageHandle, html: str, x: float, y: float, width: float = 0, height: float = 0) -> None:
        ...

    @abstractmethod
    def set_metadata(self, info: Mapping[str, str]) -> None:
        ...

    @abstractmethod
    def set_protection(self, user_password: str, owner_password: Optional[str], permissions: int) -> None:
        ...

    @abstractmethod
    def output(self) -> bytes:
        """Serialize the rendered document."""
        ...


# HTML tags reportlab's paragraph markup does not know, mapped to ones it does
_HTML_REWRITES = (
    (re.compile(r"<br\s*>", re.I), "<br/>"),
    (re.compile(r"<(/?)strong>", re.I), r"<\1b>"),
    (re.compile(r"<(/?)em>", re.I), r"<\1i>"),
    (re.compile(r"<(p|div)(\s[^>]*)?>", re.I), ""),
    (re.compile(r"</(p|div)>", re.I), "<br/>"),
)


def html_to_markup(html: str) -> str:
    markup = html.strip()
    for pattern, repl in _HTML_REWRITES:
        markup = pattern.sub(repl, markup)
    while markup.endswith("<br/>"):
        markup = markup[: -len("<br/>")]
    return markup


class ReportlabBackend(RenderingBackend):

    def __init__(self, unit: str = "mm"):
        self.unit = unit
        self._document: Optional[Document] = None
        self._reader: Optional[PdfReader] = None
        self._layers: Dict[Tuple[int, str], Tuple[io.BytesIO, rl_canvas.Canvas]] = {}
        self._metadata: Dict[str, str] = {}
        self._protection: Optional[Tuple[str, Optional[str], int]] = None

    # ─────────────────────────────────────────────────────────────────────
    # Import

    def open(self, path: Union[str, Path]) -> Document:
        source = Path(path)
        if not source.is_file():
            raise SourceUnreadable(f"source file not found: {source}")

        data = source.read_bytes()
        try:
            reader = PdfReader(io.BytesIO(data))
            if reader.is_encrypted:
                raise SourceUnreadable(f"source file is encrypted: {source}")
            pages = []
            for i, src_page in enumerate(reader.pages, start=1):
                box = src_page.mediabox
                w = pt_to_unit(float(box.width), self.unit)
                h = pt_to_unit(float(box.height), self.unit)
                pages.append(Page(number=i, width=w, height=h, orientation="L" if w > h else "P"))
        except (PdfReadError, ValueError, KeyError) as exc:
            raise SourceUnreadable(f"not a readable PDF: {source}") from exc

        logger.info("Imported %d page(s) from %s", len(pages), source)
        self._document = Document(source=source, data=data, pages=tuple(pages))
        return self._document

    def begin(self, document: Document) -> None:
        self._document = document
        self._reader = PdfReader(io.BytesIO(document.data))
        self._layers = {}
        self._metadata = {}
        self._protection = None

    # ─────────────────────────────────────────────────────────────────────
    # Page activation / state

    @contextmanager
    def activate(self, page: Page) -> Iterator[PageHandle]:
        handle = PageHandle(page=page)
        try:
            yield handle
        finally:
            for layer in handle.scopes:
                self._layers[(page.number, layer)][1].restoreState()
            handle.scopes.clear()

    def set_page_mark(self, handle: PageHandle) -> None:
        handle.layer = UNDER

    def _canvas(self, handle: PageHandle) -> rl_canvas.Canvas:
        key = (handle.page.number, handle.layer)
        if key not in self._layers:
            box = self._reader.pages[handle.page.number - 1].mediabox
            buf = io.BytesIO()
            can = rl_canvas.Canvas(buf, pagesize=(float(box.width), float(box.height)))
            # overlay origin follows the source media box origin
            can.translate(float(box.left), float(box.bottom))
            self._layers[key] = (buf, can)
        can = self._layers[key][1]
        if handle.layer not in handle.scopes:
            can.saveState()
            handle.scopes.add(handle.layer)
        return can

    def _to_pt(self, handle: PageHandle, x: float, y: float) -> Tuple[float, float]:
        page_h_pt = unit_to_pt(handle.height, self.unit)
        return unit_to_pt(x, self.unit), page_h_pt - unit_to_pt(y, self.unit)

    def set_font(self, handle: PageHandle, family: str, size: float, bold: bool = False) -> None:
        name = pick_font_name(family, bold=bold)
        try:
            self._canvas(handle).setFont(name, float(size))
        except KeyError as exc:
            raise BackendDrawFailure(f"font not registered with reportlab: {name!r}") from exc
        handle.font = (name, float(size))

    def set_text_color(self, handle: PageHandle, rgb: Tuple[int, int, int]) -> None:
        r, g, b = rgb
        self._canvas(handle).setFillColorRGB(r / 255.0, g / 255.0, b / 255.0)

    def set_alpha(self, handle: PageHandle, alpha: float) -> None:
        can = self._canvas(handle)
        alpha = max(0.0, min(1.0, float(alpha)))
        can.setFillAlpha(alpha)
        can.setStrokeAlpha(alpha)

    def start_transform(self, handle: PageHandle) -> None:
        self._canvas(handle).saveState()

    def rotate(self, handle: PageHandle, angle: float, x: float, y: float) -> None:
        can = self._canvas(handle)
        px, py = self._to_pt(handle, x, y)
        can.translate(px, py)
        can.rotate(angle)
        can.translate(-px, -py)

    def stop_transform(self, handle: PageHandle) -> None:
        self._canvas(handle).restoreState()

    # ─────────────────────────────────────────────────────────────────────
    # Drawing

    def draw_text(self, handle: PageHandle, x: float, y: float, text: str) -> None:
        can = self._canvas(handle)
        font_name, font_size = handle.font
        can.setFont(font_name, font_size)
        x_pt, top_pt = self._to_pt(handle, x, y)
        # y addresses the top of the line, reportlab draws on the baseline
        baseline = top_pt - pdfmetrics.getAscent(font_name, font_size)
        can.drawString(x_pt, baseline, text)

    def draw_image(self, handle: PageHandle, source: str, x: float, y: float, width: float = 0, height: float = 0) -> None:
        can = self._canvas(handle)
        try:
            img = ImageReader(str(source))
            iw, ih = img.getSize()
        except Exception as exc:
            raise BackendDrawFailure(f"cannot load image {source!r}: {exc}") from exc
        if iw <= 0 or ih <= 0:
            raise BackendDrawFailure(f"image has no pixels: {source!r}")

        w_pt = unit_to_pt(width, self.unit) if width else 0.0
        h_pt = unit_to_pt(height, self.unit) if height else 0.0
        # zero sizes fall back to the pixel size at 72 dpi, keeping the aspect ratio
        if not w_pt and not h_pt:
            w_pt, h_pt = float(iw), float(ih)
        elif not w_pt:
            w_pt = h_pt * iw / ih
        elif not h_pt:
            h_pt = w_pt * ih / iw

        x_pt, top_pt = self._to_pt(handle, x, y)
        can.drawImage(img, x_pt, top_pt - h_pt, width=w_pt, height=h_pt, mask="auto")

    def draw_html(self, handle: PageHandle, html: str, x: float, y: float, width: float = 0, height: float = 0) -> None:
        can = self._canvas(handle)
        font_name, font_size = handle.font
        x_pt, top_pt = self._to_pt(handle, x, y)
        page_w_pt = unit_to_pt(handle.width, self.unit)

        avail_w = unit_to_pt(width, self.unit) if width else max(page_w_pt - x_pt, 1.0)
        avail_h = unit_to_pt(height, self.unit) if height else top_pt

        style = ParagraphStyle("stamp", fontName=font_name, fontSize=font_size, leading=font_size * 1.2)
        try:
            para = Paragraph(html_to_markup(html), style)
        except ValueError as exc:
            raise BackendDrawFailure(f"cannot lay out HTML block: {exc}") from exc
        _, used_h = para.wrap(avail_w, avail_h)
        para.drawOn(can, x_pt, top_pt - used_h)

    # ─────────────────────────────────────────────────────────────────────
    # Document-level

    def set_metadata(self, info: Mapping[str, str]) -> None:
        self._metadata = dict(info)

    def set_protection(self, user_password: str, owner_password: Optional[str], permissions: int) -> None:
        self._protection = (user_password, owner_password, permissions)

    def _layer_page(self, page_number: int, layer: str) -> Optional[PageObject]:
        entry = self._layers.get((page_number, layer))
        if entry is None:
            return None
        buf, can = entry
        can.save()
        buf.seek(0)
        return PdfReader(buf).pages[0]

    def output(self) -> bytes:
        if self._document is None or self._reader is None:
            raise PdfStamperError("no render pass in progress")

        writer = PdfWriter()
        for page in self._document.pages:
            src = self._reader.pages[page.number - 1]
            under = self._layer_page(page.number, UNDER)
            over = self._layer_page(page.number, OVER)

            if under is not None:
                box = src.mediabox
                base = PageObject.create_blank_page(width=box.width, height=box.height)
                base.mediabox = RectangleObject([box.left, box.bottom, box.right, box.top])
                if "/Rotate" in src:
                    base[NameObject("/Rotate")] = src["/Rotate"]
                base.merge_page(under)
                base.merge_page(src)
            else:
                base = src
            if over is not None:
                base.merge_page(over)
            writer.add_page(base)

        if self._metadata:
            writer.add_metadata(self._metadata)

        if self._protection is not None:
            user_password, owner_password, permissions = self._protection
            try:
                writer.encrypt(
                    user_password=user_password,
                    owner_password=owner_password,
                    permissions_flag=permissions,
                    use_128bit=True,
                )
            except Exception as exc:
                raise PdfStamperError(f"PDF protection failed: {exc}") from exc

        out = io.BytesIO()
        writer.write(out)
        self._layers = {}
        return out.getvalue()
