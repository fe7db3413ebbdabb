"""
File-level authenticated encryption.

Layout of a sealed file: ``nonce(12) || ciphertext || tag(16)``, AES-256-GCM
with key = SHA-256(passphrase).

The key derivation is a single unsalted SHA-256 pass. That is weak against
offline guessing, but files already sealed depend on it, so it must not
change without a format version bump.
"""

from __future__ import annotations

import hashlib
import logging
import os
from pathlib import Path
from typing import Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import DecryptionFailed, EncryptionFailed
from .utils import write_bytes_atomic

logger = logging.getLogger(__name__)

NONCE_SIZE = 12
TAG_SIZE = 16

Passphrase = Union[str, bytes]
PathLike = Union[str, Path]


def derive_key(passphrase: Passphrase) -> bytes:
    if isinstance(passphrase, str):
        passphrase = passphrase.encode("utf-8")
    if not passphrase:
        raise ValueError("passphrase must not be empty")
    return hashlib.sha256(passphrase).digest()


def seal(data: bytes, passphrase: Passphrase) -> bytes:
    key = derive_key(passphrase)
    nonce = os.urandom(NONCE_SIZE)
    try:
        # AESGCM appends the tag to the ciphertext
        sealed = AESGCM(key).encrypt(nonce, data, None)
    except (ValueError, OverflowError) as exc:
        raise EncryptionFailed(str(exc)) from exc
    return nonce + sealed


def open_envelope(payload: bytes, passphrase: Passphrase) -> bytes:
    key = derive_key(passphrase)
    if len(payload) < NONCE_SIZE + TAG_SIZE:
        raise DecryptionFailed("payload too short to be an envelope")

    nonce = payload[:NONCE_SIZE]
    tag = payload[-TAG_SIZE:]
    ciphertext = payload[NONCE_SIZE:-TAG_SIZE]
    try:
        return AESGCM(key).decrypt(nonce, ciphertext + tag, None)
    except InvalidTag as exc:
        raise DecryptionFailed("authentication failed: wrong passphrase or tampered data") from exc


def encrypt_file(input_path: PathLike, passphrase: Passphrase, output_path: Optional[PathLike] = None) -> Path:
    """Seal a file, in place unless ``output_path`` is given."""
    src = Path(input_path)
    dest = Path(output_path) if output_path is not None else src
    sealed = seal(src.read_bytes(), passphrase)
    write_bytes_atomic(dest, sealed)
    logger.info("Sealed %s -> %s (%d bytes)", src, dest, len(sealed))
    return dest


def decrypt_file(input_path: PathLike, passphrase: Passphrase, output_path: PathLike) -> Path:
    """Open a sealed file; nothing is written unless authentication succeeds."""
    src = Path(input_path)
    plaintext = open_envelope(src.read_bytes(), passphrase)
    dest = Path(output_path)
    write_bytes_atomic(dest, plaintext)
    logger.info("Decrypted %s -> %s", src, dest)
    return dest
