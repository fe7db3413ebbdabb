"""
Document information composer.

Custom metadata rides inside the Keywords field as a base64 JSON token
appended after ``META_SEPARATOR``, so any PDF reader can carry it.
"""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, MutableMapping, Optional

META_SEPARATOR = " | meta:"

DEFAULT_CREATOR = "PDF Stamper"


@dataclass
class DocumentMetadata:
    title: str = ""
    author: str = ""
    subject: str = ""
    keywords: str = ""
    creator: str = ""


def apply_standard_metadata(info: MutableMapping[str, str], fields: DocumentMetadata, default_creator: str = DEFAULT_CREATOR) -> None:
    """Set non-empty standard fields; Creator is always set."""
    for key, value in (
        ("/Title", fields.title),
        ("/Author", fields.author),
        ("/Subject", fields.subject),
        ("/Keywords", fields.keywords),
    ):
        if value:
            info[key] = value
    info["/Creator"] = fields.creator or default_creator


def encode_custom_metadata(custom: Mapping[str, Any]) -> str:
    payload = json.dumps(dict(custom), separators=(",", ":"))
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")


def apply_custom_metadata(info: MutableMapping[str, str], custom: Optional[Mapping[str, Any]]) -> None:
    """Append the encoded custom map to Keywords. Must run after the standard fields."""
    if not custom:
        return
    existing = info.get("/Keywords", "").strip()
    # no outer strip: with empty keywords the separator must stay intact
    info["/Keywords"] = f"{existing}{META_SEPARATOR}{encode_custom_metadata(custom)}"


def decode_custom_metadata(keywords: Optional[str]) -> Dict[str, Any]:
    """Recover the custom map from a Keywords value; ``{}`` if none is embedded."""
    if not keywords or META_SEPARATOR not in keywords:
        return {}
    token = keywords.rsplit(META_SEPARATOR, 1)[1].strip()
    return json.loads(base64.b64decode(token).decode("utf-8"))


def compose_metadata(
    fields: DocumentMetadata,
    custom: Optional[Mapping[str, Any]] = None,
    default_creator: str = DEFAULT_CREATOR,
) -> Dict[str, str]:
    info: Dict[str, str] = {}
    apply_standard_metadata(info, fields, default_creator)
    apply_custom_metadata(info, custom)
    return info
