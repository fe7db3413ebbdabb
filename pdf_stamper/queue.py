"""
Stamp queue and replay loop.

Replay is operation-major: every page receives operation A before any page
receives operation B when A was queued first. Stacking order of overlapping
stamps depends on this.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, Iterator, List

from .backend import UNDER, Page, PageHandle, RenderingBackend
from .geometry import parse_color, resolve_position, rotation
from .operations import HTML, IMAGE, TEXT, WATERMARK, StampOperation
from .settings import StamperSettings

logger = logging.getLogger(__name__)

Handler = Callable[[RenderingBackend, PageHandle, StampOperation, StamperSettings], None]


def _draw_text(backend: RenderingBackend, handle: PageHandle, op: StampOperation, settings: StamperSettings) -> None:
    opts = op.options
    with rotation(backend, handle, opts.rotate, op.x, op.y):
        size = opts.font_size if opts.font_size is not None else settings.default_font_size
        backend.set_font(handle, settings.default_font, size)
        if opts.color:
            backend.set_text_color(handle, parse_color(opts.color))
        backend.draw_text(handle, op.x, op.y, op.content)


def _draw_image(backend: RenderingBackend, handle: PageHandle, op: StampOperation, settings: StamperSettings) -> None:
    opts = op.options
    with rotation(backend, handle, opts.rotate, op.x, op.y):
        backend.draw_image(handle, op.content, op.x, op.y, opts.width or 0, opts.height or 0)


def _draw_html(backend: RenderingBackend, handle: PageHandle, op: StampOperation, settings: StamperSettings) -> None:
    opts = op.options
    with rotation(backend, handle, opts.rotate, op.x, op.y):
        size = opts.font_size if opts.font_size is not None else settings.default_font_size
        backend.set_font(handle, settings.default_font, size)
        backend.draw_html(handle, op.content, op.x, op.y, opts.width or 0, opts.height or 0)


def _draw_watermark(backend: RenderingBackend, handle: PageHandle, op: StampOperation, settings: StamperSettings) -> None:
    opts = op.options.with_defaults(
        opacity=settings.watermark_opacity,
        rotate=settings.watermark_rotate,
        position=settings.watermark_position,
    )
    if opts.layer == UNDER:
        backend.set_page_mark(handle)

    backend.set_alpha(handle, opts.opacity)
    x, y = resolve_position(handle.width, handle.height, opts.position)
    with rotation(backend, handle, opts.rotate, x, y):
        if opts.color:
            backend.set_text_color(handle, parse_color(opts.color))
        backend.set_font(handle, settings.watermark_font, settings.watermark_font_size, bold=True)
        backend.draw_text(handle, x, y, op.content)
        backend.set_alpha(handle, 1)


HANDLERS: Dict[str, Handler] = {
    TEXT: _draw_text,
    IMAGE: _draw_image,
    HTML: _draw_html,
    WATERMARK: _draw_watermark,
}


def execute(backend: RenderingBackend, handle: PageHandle, op: StampOperation, settings: StamperSettings) -> None:
    """Draw one operation on one activated page; unknown kinds draw as text."""
    handler = HANDLERS.get(op.kind, _draw_text)
    handler(backend, handle, op, settings)


class StampQueue:
    """Append-only sequence of stamp operations"""

    def __init__(self) -> None:
        self._ops: List[StampOperation] = []

    def enqueue(self, op: StampOperation) -> None:
        self._ops.append(op)

    def __len__(self) -> int:
        return len(self._ops)

    def __iter__(self) -> Iterator[StampOperation]:
        return iter(tuple(self._ops))

    def replay(self, pages: Iterable[Page], backend: RenderingBackend, settings: StamperSettings) -> int:
        """Apply every queued operation to every page it targets.

        Returns the number of (operation, page) draws performed.
        """
        ordered = sorted(pages, key=lambda p: p.number)
        draws = 0
        for op in self._ops:
            for page in ordered:
                if not op.applies_to(page.number):
                    continue
                with backend.activate(page) as handle:
                    execute(backend, handle, op, settings)
                draws += 1
            logger.debug("Replayed %s stamp %r", op.kind, op.content[:40])
        return draws
