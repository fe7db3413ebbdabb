"""
Stamping session.

A session owns one source document, its stamp queue and its output
settings. Sessions share nothing: start a new one for every document.

    session = (
        StampingSession()
        .from_file("in.pdf")
        .only_on_pages([1])
        .stamp_text("APPROVED", 20, 20, {"color": "#FF0000"})
        .watermark_text("CONFIDENTIAL")
    )
    session.save("out.pdf")
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import replace
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Tuple, Union

from .backend import Document, ReportlabBackend, RenderingBackend
from .config import StamperConfig
from .envelope import Passphrase, derive_key, seal
from .errors import PdfStamperError
from .metadata import DocumentMetadata, compose_metadata
from .operations import HTML, IMAGE, TEXT, WATERMARK, StampOptions, make_operation
from .queue import StampQueue
from .settings import StamperSettings
from .utils import write_bytes_atomic

logger = logging.getLogger(__name__)

Options = Union[StampOptions, Mapping[str, Any], None]

# PDF permission bits: 1-2 must be 0, 7-8 and 13-32 reserved as 1, bit 3 = print
_RESERVED_PERMISSION_BITS = 0xFFFFF0C0
PRINT_ONLY_PERMISSIONS = _RESERVED_PERMISSION_BITS | 0b100
if PRINT_ONLY_PERMISSIONS > 0x7FFFFFFF:
    PRINT_ONLY_PERMISSIONS -= 0x100000000


class StampingSession:
    def __init__(self, settings: Optional[StamperSettings] = None, backend: Optional[RenderingBackend] = None):
        self.settings = settings if settings is not None else StamperSettings()
        self.backend = backend if backend is not None else ReportlabBackend(unit=self.settings.unit)
        self.queue = StampQueue()
        self.document: Optional[Document] = None
        self.metadata = DocumentMetadata()
        self.custom_metadata: dict = {}
        self._only_pages: Tuple[int, ...] = ()
        self._pdf_password: Optional[str] = None
        self._passphrase: Optional[Passphrase] = None

    # ─────────────────────────────────────────────────────────────────────
    # Setup

    def from_file(self, path: Union[str, Path]) -> "StampingSession":
        self.document = self.backend.open(path)
        return self

    @property
    def page_count(self) -> int:
        return self.document.page_count if self.document is not None else 0

    def only_on_pages(self, pages: Iterable[int]) -> "StampingSession":
        """Set the default page filter for operations queued from now on."""
        self._only_pages = tuple(int(p) for p in pages)
        return self

    # ─────────────────────────────────────────────────────────────────────
    # Stamps

    def _enqueue(self, kind: str, content: str, x: float, y: float, options: Options) -> "StampingSession":
        op = make_operation(kind, content, x, y, options, session_pages=self._only_pages)
        self.queue.enqueue(op)
        logger.debug("Queued %s stamp on pages %s", kind, sorted(op.pages) or "all")
        return self

    def stamp_text(self, text: str, x: float, y: float, options: Options = None) -> "StampingSession":
        return self._enqueue(TEXT, text, x, y, options)

    def stamp_html(self, html: str, x: float, y: float, options: Options = None) -> "StampingSession":
        return self._enqueue(HTML, html, x, y, options)

    def stamp_image(self, path: Union[str, Path], x: float, y: float, options: Options = None) -> "StampingSession":
        return self._enqueue(IMAGE, str(path), x, y, options)

    def watermark_text(self, text: str, options: Options = None) -> "StampingSession":
        opts = StampOptions.coerce(options).with_defaults(
            opacity=self.settings.watermark_opacity,
            rotate=self.settings.watermark_rotate,
            position=self.settings.watermark_position,
        )
        return self._enqueue(WATERMARK, text, 0, 0, opts)

    def apply_config(self, config: Union[StamperConfig, Mapping[str, Any]]) -> "StampingSession":
        cfg = config if isinstance(config, StamperConfig) else StamperConfig.model_validate(dict(config))

        stamp = cfg.stamp
        if stamp is not None:
            if stamp.page:
                self.only_on_pages([stamp.page])
            if stamp.type == HTML:
                self.stamp_html(stamp.value, stamp.x, stamp.y, stamp.options)
            elif stamp.type == IMAGE:
                self.stamp_image(stamp.value, stamp.x, stamp.y, stamp.options)
            else:
                self.stamp_text(stamp.value, stamp.x, stamp.y, stamp.options)

        watermark = cfg.watermark
        if watermark is not None and watermark.text:
            self.watermark_text(watermark.text, watermark.stamp_options())
        return self

    # ─────────────────────────────────────────────────────────────────────
    # Metadata

    def set_metadata(self, **fields: str) -> "StampingSession":
        """Set any of title, author, subject, keywords, creator."""
        self.metadata = replace(self.metadata, **{k: v for k, v in fields.items() if v is not None})
        return self

    def set_custom_metadata(self, custom: Mapping[str, Any]) -> "StampingSession":
        self.custom_metadata = dict(custom)
        return self

    # ─────────────────────────────────────────────────────────────────────
    # Security

    def encrypt_pdf(self, password: str) -> "StampingSession":
        """Protect the PDF itself: opening needs ``password``, only printing is allowed."""
        self._pdf_password = password
        return self

    def encrypt_file(self, passphrase: Passphrase) -> "StampingSession":
        """Seal the whole output file with AES-256-GCM after rendering."""
        derive_key(passphrase)
        self._passphrase = passphrase
        return self

    # ─────────────────────────────────────────────────────────────────────
    # Output

    def output(self) -> bytes:
        """Render the stamped PDF and return its bytes (before any file envelope)."""
        if self.document is None:
            raise PdfStamperError("no source document loaded, call from_file() first")

        self.backend.begin(self.document)
        draws = self.queue.replay(self.document.pages, self.backend, self.settings)
        logger.info(
            "Applied %d stamp operation(s) as %d page draw(s) on %s",
            len(self.queue), draws, self.document.source,
        )

        self.backend.set_metadata(compose_metadata(self.metadata, self.custom_metadata, self.settings.creator))
        if self._pdf_password is not None:
            self.backend.set_protection(self._pdf_password, secrets.token_hex(16), PRINT_ONLY_PERMISSIONS)
        return self.backend.output()

    def save(self, path: Union[str, Path]) -> Path:
        data = self.output()
        if self._passphrase is not None:
            data = seal(data, self._passphrase)
            logger.info("Sealed output in file envelope")
        target = Path(path)
        write_bytes_atomic(target, data)
        logger.info("Wrote %s (%d bytes)", target, len(data))
        return target
