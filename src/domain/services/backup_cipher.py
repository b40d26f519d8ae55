"""
Domain service: password-based authenticated encryption of backup payloads.

Layout of a sealed payload: ``nonce (12 bytes) || ciphertext || GCM tag``.

The key is SHA-256 of the password with no salt, so equal passwords always
derive equal keys. This keeps backups compatible with earlier exports; moving
to a salted KDF needs a new payload layout and is tracked as an open question.
"""

from __future__ import annotations

import hashlib
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from src.domain.errors import AuthenticationFailedError

NONCE_SIZE = 12


def derive_key(password: str) -> bytes:
    """32-byte AES-256 key from the password (single SHA-256, unsalted)."""
    return hashlib.sha256(password.encode("utf-8")).digest()


def seal(plaintext: bytes, password: str) -> bytes:
    if not password:
        raise ValueError("a password is required to encrypt a backup")
    nonce = os.urandom(NONCE_SIZE)
    return nonce + AESGCM(derive_key(password)).encrypt(nonce, plaintext, None)


def open_sealed(ciphertext: bytes, password: str) -> bytes:
    """Decrypt a sealed payload.

    Any failure (short input, wrong password, flipped bit) raises the same
    AuthenticationFailedError.
    """
    if len(ciphertext) < NONCE_SIZE:
        raise AuthenticationFailedError()
    nonce, body = ciphertext[:NONCE_SIZE], ciphertext[NONCE_SIZE:]
    try:
        return AESGCM(derive_key(password or "")).decrypt(nonce, body, None)
    except InvalidTag:
        raise AuthenticationFailedError() from None
