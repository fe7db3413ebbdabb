"""Overlay text, images, HTML blocks and watermarks onto existing PDFs."""

from .backend import Document, Page, PageHandle, RenderingBackend, ReportlabBackend
from .config import StamperConfig
from .envelope import decrypt_file, encrypt_file, open_envelope, seal
from .errors import (
    BackendDrawFailure,
    DecryptionFailed,
    EncryptionFailed,
    PdfStamperError,
    SourceUnreadable,
)
from .metadata import DocumentMetadata, decode_custom_metadata
from .operations import StampOperation, StampOptions
from .queue import StampQueue
from .session import StampingSession
from .settings import StamperSettings

__all__ = [
    "StampingSession",
    "StamperSettings",
    "StamperConfig",
    "StampQueue",
    "StampOperation",
    "StampOptions",
    "DocumentMetadata",
    "decode_custom_metadata",
    "Document",
    "Page",
    "PageHandle",
    "RenderingBackend",
    "ReportlabBackend",
    "seal",
    "open_envelope",
    "encrypt_file",
    "decrypt_file",
    "PdfStamperError",
    "SourceUnreadable",
    "BackendDrawFailure",
    "EncryptionFailed",
    "DecryptionFailed",
]
