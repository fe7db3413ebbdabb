"""
Deferred stamp operations.

An operation is an immutable record of one drawing request: what to draw,
where, with which options, and on which pages. Operations are built by the
session, queued, and replayed once per render pass.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, FrozenSet, Iterable, Mapping, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, field_validator

TEXT = "text"
IMAGE = "image"
HTML = "html"
WATERMARK = "watermark"

KINDS = (TEXT, IMAGE, HTML, WATERMARK)

# channels stay loose; parse_color degrades anything unparsable to 0
ColorValue = Union[str, Tuple[Any, ...]]


class StampOptions(BaseModel):
    """Per-operation options; ``None`` means "not set"."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    font_size: Optional[float] = None
    color: Optional[ColorValue] = None
    width: float = 0
    height: float = 0
    rotate: Optional[float] = None
    opacity: Optional[float] = None
    position: Optional[str] = None
    layer: str = "over"
    only_pages: Tuple[int, ...] = ()

    @field_validator("only_pages", mode="before")
    @classmethod
    def _coerce_pages(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, int):
            return (value,)
        return value

    @classmethod
    def coerce(cls, options: Union["StampOptions", Mapping[str, Any], None]) -> "StampOptions":
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        return cls.model_validate(dict(options))

    def with_defaults(self, **defaults: Any) -> "StampOptions":
        """Return a copy where every unset field listed in ``defaults`` is filled."""
        missing = {k: v for k, v in defaults.items() if getattr(self, k) is None}
        if not missing:
            return self
        return self.model_copy(update=missing)


@dataclass(frozen=True)
class StampOperation:
    kind: str
    content: str
    x: float = 0.0
    y: float = 0.0
    options: StampOptions = field(default_factory=StampOptions)
    # empty means every page
    pages: FrozenSet[int] = frozenset()

    def applies_to(self, page_number: int) -> bool:
        return not self.pages or page_number in self.pages


def capture_pages(options: StampOptions, session_pages: Iterable[int]) -> FrozenSet[int]:
    """Resolve the page filter for a new operation at enqueue time.

    An explicit ``only_pages`` option wins over the session default.
    """
    if options.only_pages:
        return frozenset(int(p) for p in options.only_pages)
    return frozenset(int(p) for p in session_pages)


def make_operation(
    kind: str,
    content: str,
    x: float = 0.0,
    y: float = 0.0,
    options: Union[StampOptions, Mapping[str, Any], None] = None,
    session_pages: Sequence[int] = (),
) -> StampOperation:
    opts = StampOptions.coerce(options)
    return StampOperation(
        kind=kind,
        content=content,
        x=float(x),
        y=float(y),
        options=opts,
        pages=capture_pages(opts, session_pages),
    )
