"""Encrypted order envelope (the exact bytes submitted to the archive)."""
import json
from typing import Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

from order_archive.domain.crypto.cipher import ALGORITHM_AES_256_GCM, EncryptionResult
from order_archive.domain.errors import EnvelopeFormatError

ENVELOPE_TYPE = "encrypted_order"
ENVELOPE_VERSION = "1"


class EncryptedEnvelope(BaseModel):
    """
    Self-describing wrapper so a reader can tell an encrypted order apart from
    a legacy plaintext archive before attempting decryption.

    Salt and signature are deliberately absent: they live on the order row.
    """
    type: Literal["encrypted_order"] = ENVELOPE_TYPE
    ciphertext: str = Field(..., min_length=1)
    nonce: str = Field(..., min_length=1)
    algorithm: str = Field(default=ALGORITHM_AES_256_GCM)
    version: str = Field(default=ENVELOPE_VERSION)

    @field_validator("algorithm")
    @classmethod
    def validate_algorithm(cls, v):
        if v != ALGORITHM_AES_256_GCM:
            raise ValueError(f"Unsupported algorithm: {v}")
        return v

    @classmethod
    def from_encryption(cls, result: EncryptionResult) -> "EncryptedEnvelope":
        return cls(ciphertext=result.ciphertext, nonce=result.nonce)

    def to_bytes(self) -> bytes:
        return json.dumps(self.model_dump(), separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_bytes(cls, raw: bytes) -> "EncryptedEnvelope":
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            raise EnvelopeFormatError("Archived content is not JSON")
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data) -> "EncryptedEnvelope":
        if not isinstance(data, dict) or data.get("type") != ENVELOPE_TYPE:
            raise EnvelopeFormatError("Order is not encrypted")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise EnvelopeFormatError(f"Invalid encrypted data format: {e.error_count()} error(s)")
