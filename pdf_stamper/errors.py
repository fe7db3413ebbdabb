"""Exceptions raised by the stamping engine."""


class PdfStamperError(Exception):
    """Base error"""


class SourceUnreadable(PdfStamperError):
    """Source path missing, not a PDF, or not importable"""


class BackendDrawFailure(PdfStamperError):
    """The rendering backend rejected a drawing call"""


class EncryptionFailed(PdfStamperError):
    """The cipher could not seal the payload"""


class DecryptionFailed(PdfStamperError):
    """Wrong passphrase, tampered payload or tag mismatch"""
