"""
Declarative stamp configuration.

    {
        "stamp": {"type": "text", "value": "APPROVED", "x": 100, "y": 150,
                  "page": 1, "options": {"font_size": 14}},
        "watermark": {"text": "CONFIDENTIAL", "opacity": 0.2},
    }

Applying a config is equivalent to the matching direct session calls.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .operations import IMAGE, KINDS, WATERMARK, StampOptions


class StampSection(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str = "text"
    value: str
    x: float = 0
    y: float = 0
    page: Optional[int] = None
    options: StampOptions = Field(default_factory=StampOptions)


class WatermarkSection(StampOptions):
    """Watermark text plus the watermark option set, flattened."""

    text: str = ""

    def stamp_options(self) -> StampOptions:
        return StampOptions.model_validate(self.model_dump(exclude={"text"}))


class StamperConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    stamp: Optional[StampSection] = None
    watermark: Optional[WatermarkSection] = None


# Stamp list templates used by the front-end; image bytes travel as base64
def stamps_to_template_dict(stamps: List[dict]) -> dict:
    return {"version": 1, "stamps": stamps}


def template_dict_to_stamps(data: dict) -> List[dict]:
    stamps = []
    for i, s in enumerate(data.get("stamps", [])):
        if not isinstance(s, dict):
            raise ValueError(f"stamp #{i + 1} is not an object")
        kind = s.get("type")
        if kind not in KINDS:
            raise ValueError(f"unknown stamp type: {kind!r}")
        required = ("value",) if kind == WATERMARK else ("value", "x", "y")
        if kind == IMAGE:
            required += ("image_b64",)
        missing = [key for key in required if key not in s]
        if missing:
            raise ValueError(f"stamp #{i + 1} ({kind}) is missing {', '.join(missing)}")
        stamps.append(s)
    return stamps
