from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Union

from reportlab.lib.units import mm

PT_PER_UNIT = {"mm": mm, "pt": 1.0}

# base-14 families and their bold/italic variants
_FONT_VARIANTS = {
    "helvetica": ("Helvetica", "Helvetica-Bold", "Helvetica-Oblique", "Helvetica-BoldOblique"),
    "times": ("Times-Roman", "Times-Bold", "Times-Italic", "Times-BoldItalic"),
    "times-roman": ("Times-Roman", "Times-Bold", "Times-Italic", "Times-BoldItalic"),
    "courier": ("Courier", "Courier-Bold", "Courier-Oblique", "Courier-BoldOblique"),
}


def unit_to_pt(value: float, unit: str) -> float:
    return float(value) * PT_PER_UNIT[unit]


def pt_to_unit(value: float, unit: str) -> float:
    return float(value) / PT_PER_UNIT[unit]


def pick_font_name(family: str, bold: bool = False, italic: bool = False) -> str:
    """Map a family plus style flags to a reportlab font name.

    Families outside the base-14 set are returned unchanged, so fonts
    registered with reportlab by the caller keep working.
    """
    variants = _FONT_VARIANTS.get(family.lower())
    if variants is None:
        return family
    regular, b, i, bi = variants
    if bold and italic: return bi
    if bold: return b
    if italic: return i
    return regular


def write_bytes_atomic(path: Union[str, Path], data: bytes) -> None:
    """Write ``data`` to ``path`` via a temporary sibling file and a rename."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp", delete=False) as tmp:
        tmp_path = tmp.name
        try:
            tmp.write(data)
        except BaseException:
            tmp.close()
            os.unlink(tmp_path)
            raise
    try:
        os.replace(tmp_path, target)
    except OSError:
        os.unlink(tmp_path)
        raise
