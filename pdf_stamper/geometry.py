"""Anchor positions, rotation scopes and color parsing."""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Iterator, Optional, Sequence, Tuple, Union

if TYPE_CHECKING:
    from .backend import PageHandle, RenderingBackend

ANCHORS = ("top", "bottom", "left", "right", "center")


def resolve_position(page_width: float, page_height: float, anchor: Optional[str]) -> Tuple[float, float]:
    """Absolute (x, y) of a named anchor; unknown anchors fall back to center."""
    w, h = page_width, page_height
    if anchor == "top":
        return w / 2 - 40, 20
    if anchor == "bottom":
        return w / 2 - 40, h - 30
    if anchor == "left":
        return 10, h / 2
    if anchor == "right":
        return w - 80, h / 2
    return w / 2 - 40, h / 2


@contextmanager
def rotation(
    backend: "RenderingBackend",
    handle: "PageHandle",
    angle: Optional[float],
    pivot_x: float,
    pivot_y: float,
) -> Iterator[None]:
    """Rotate the coordinate system around a pivot for the duration of the block.

    A zero or missing angle opens no transform scope, so none is closed.
    """
    if not angle:
        yield
        return
    backend.start_transform(handle)
    backend.rotate(handle, float(angle), pivot_x, pivot_y)
    try:
        yield
    finally:
        backend.stop_transform(handle)


def _hex_channel(pair: str) -> int:
    try:
        return int(pair, 16)
    except ValueError:
        return 0


def parse_color(color: Union[str, Sequence[Any]]) -> Tuple[int, int, int]:
    """
    Parse a color into an (r, g, b) triple of 0-255 ints.

    Accepts ``"#RRGGBB"`` (the ``#`` is optional) or a sequence of up to
    three numbers. Malformed input never raises: missing or unparsable
    channels become 0.
    """
    if isinstance(color, str):
        hex_str = color.strip().lstrip("#")
        return (
            _hex_channel(hex_str[0:2]),
            _hex_channel(hex_str[2:4]),
            _hex_channel(hex_str[4:6]),
        )

    channels = []
    for i in range(3):
        try:
            channels.append(int(color[i]))
        except (IndexError, TypeError, ValueError):
            channels.append(0)
    return channels[0], channels[1], channels[2]
