"""
Runtime settings for stamping sessions.

Values can be overridden through environment variables prefixed with
``PDF_STAMPER_``, e.g. ``PDF_STAMPER_UNIT=pt``.
"""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class StamperSettings(BaseSettings):
    """Defaults consumed by the stamp queue and the metadata composer"""

    # coordinate unit exposed to callers
    unit: Literal["mm", "pt"] = "mm"

    default_font: str = "Helvetica"
    default_font_size: float = 12.0

    watermark_font: str = "Helvetica"
    watermark_font_size: float = 40.0
    watermark_opacity: float = 0.15
    watermark_rotate: float = 45.0
    watermark_position: str = "center"

    creator: str = "PDF Stamper"

    model_config = {
        "env_prefix": "PDF_STAMPER_",
    }
