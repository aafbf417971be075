"""Symmetric authenticated encryption with ChaCha20-Poly1305.

Sealed messages are laid out as a 12-byte random nonce followed by the
ciphertext and its 16-byte authentication tag.
"""

from __future__ import annotations

import logging
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

__all__ = ["CryptoError", "KEY_SIZE", "NONCE_SIZE", "generate_keypair", "encrypt", "decrypt"]

logger = logging.getLogger(__name__)

KEY_SIZE = 32
NONCE_SIZE = 12


class CryptoError(Exception):
    """Raised when encryption or decryption fails."""


def _cipher(key: bytes) -> ChaCha20Poly1305:
    if len(key) != KEY_SIZE:
        raise CryptoError(f"Key must be {KEY_SIZE} bytes, got {len(key)}")
    return ChaCha20Poly1305(bytes(key))


def generate_keypair() -> bytes:
    """Return a fresh random 32-byte key."""
    key = secrets.token_bytes(KEY_SIZE)
    logger.info("Generated new keypair.")
    return key


def encrypt(data: bytes, key: bytes) -> bytes:
    """Encrypt ``data`` under ``key``; the result starts with the nonce."""
    cipher = _cipher(key)
    nonce = secrets.token_bytes(NONCE_SIZE)
    ciphertext = cipher.encrypt(nonce, bytes(data), None)
    logger.info("Data encrypted successfully.")
    return nonce + ciphertext


def decrypt(encrypted_data: bytes, key: bytes) -> bytes:
    """Decrypt a nonce-prefixed ciphertext produced by :func:`encrypt`."""
    if len(encrypted_data) < NONCE_SIZE:
        logger.error("Ciphertext too short to contain nonce.")
        raise CryptoError("Ciphertext too short to contain nonce")
    cipher = _cipher(key)
    nonce = bytes(encrypted_data[:NONCE_SIZE])
    ciphertext = bytes(encrypted_data[NONCE_SIZE:])
    try:
        return cipher.decrypt(nonce, ciphertext, None)
    except InvalidTag as exc:
        logger.error("Decryption error: authentication failed")
        raise CryptoError("Decryption error: authentication failed") from exc