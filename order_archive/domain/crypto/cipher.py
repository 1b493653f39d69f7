"""Authenticated symmetric encryption for JSON payloads (AES-256-GCM).

Nonces are 24 random bytes per call. Decryption fails closed: a wrong key,
wrong nonce width or tampered ciphertext raises ``AuthenticationFailure`` and
never yields plaintext.
"""
import base64
import binascii
import json
import os
from dataclasses import dataclass
from typing import Any, Dict

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from order_archive.domain.errors import (
    AuthenticationFailure,
    EnvelopeFormatError,
    InvalidKeyError,
    PayloadFormatError,
)

ALGORITHM_AES_256_GCM = "aes-256-gcm"
KEY_SIZE = 32
NONCE_SIZE = 24


@dataclass(frozen=True)
class EncryptionResult:
    ciphertext: str  # base64, GCM tag appended
    nonce: str       # base64, 24 bytes


def _b64decode(value: str, field: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError, TypeError):
        raise EnvelopeFormatError(f"Invalid base64 in {field}")


def _load_key(key: str) -> AESGCM:
    try:
        raw = base64.b64decode(key, validate=True)
    except (binascii.Error, ValueError, TypeError):
        raise InvalidKeyError("Key is not valid base64")
    if len(raw) != KEY_SIZE:
        raise InvalidKeyError(f"Invalid key length. Expected {KEY_SIZE}, got {len(raw)}")
    return AESGCM(raw)


def canonical_json_bytes(data: Dict[str, Any]) -> bytes:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def generate_key() -> str:
    """Return a random 256-bit key, base64 encoded."""
    return base64.b64encode(os.urandom(KEY_SIZE)).decode("ascii")


def encrypt(data: Dict[str, Any], key: str) -> EncryptionResult:
    """Encrypt a JSON-serializable object under ``key``."""
    aesgcm = _load_key(key)
    nonce = os.urandom(NONCE_SIZE)
    ct_and_tag = aesgcm.encrypt(nonce, canonical_json_bytes(data), None)
    return EncryptionResult(
        ciphertext=base64.b64encode(ct_and_tag).decode("ascii"),
        nonce=base64.b64encode(nonce).decode("ascii"),
    )


def decrypt(ciphertext: str, nonce: str, key: str) -> Dict[str, Any]:
    """Decrypt and parse a payload produced by :func:`encrypt`."""
    aesgcm = _load_key(key)
    ct_and_tag = _b64decode(ciphertext, "ciphertext")
    nonce_bytes = _b64decode(nonce, "nonce")

    if len(nonce_bytes) != NONCE_SIZE:
        raise AuthenticationFailure(
            f"Invalid nonce length. Expected {NONCE_SIZE}, got {len(nonce_bytes)}"
        )

    try:
        plaintext = aesgcm.decrypt(nonce_bytes, ct_and_tag, None)
    except InvalidTag:
        raise AuthenticationFailure("Decryption failed - invalid key or corrupted data")

    # Past this point the tag verified, so a parse failure is an envelope
    # format mismatch rather than a wrong key.
    try:
        data = json.loads(plaintext.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise PayloadFormatError(f"Decrypted payload is not valid JSON: {e}")
    if not isinstance(data, dict):
        raise PayloadFormatError("Decrypted payload is not a JSON object")
    return data
