"""Domain error taxonomy for the archival pipeline.

Every error carries a stable ``code`` so the HTTP layer can map it without
string matching on messages.
"""
from typing import Optional


class ArchiveError(Exception):
    """Base class for archival pipeline errors."""

    code = "ARCHIVE_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        if code:
            self.code = code
        super().__init__(message)


class ConfigurationError(ArchiveError):
    """A required credential or collaborator is not configured."""

    code = "NOT_CONFIGURED"


class ArchiveNetworkError(ArchiveError):
    """Transient storage network failure. Retryable."""

    code = "ARCHIVE_NETWORK_ERROR"


class ArchiveNotFoundError(ArchiveError):
    """CID absent or not yet propagated. Terminal, never retried."""

    code = "ARCHIVE_NOT_FOUND"


class ArchiveUploadError(ArchiveError):
    """Upload failed terminally (bounded retries exhausted or rejected)."""

    code = "ARCHIVE_UPLOAD_FAILED"


class RetrievalError(ArchiveError):
    """Archived envelope could not be downloaded."""

    code = "RETRIEVAL_FAILED"

    def __init__(self, message: str, not_found: bool = False):
        super().__init__(message)
        self.not_found = not_found


class InvalidKeyError(ArchiveError):
    """Key does not decode to exactly 32 bytes."""

    code = "INVALID_KEY"


class AuthenticationFailure(ArchiveError):
    """Authenticated decryption failed (wrong key, bad nonce or tampered data)."""

    code = "AUTHENTICATION_FAILED"


class WalletAuthorizationError(AuthenticationFailure):
    """The claimed wallet identity cannot open the archived envelope."""

    code = "WALLET_UNAUTHORIZED"


class EnvelopeFormatError(ArchiveError):
    """Archived blob is not an encrypted order envelope."""

    code = "ENVELOPE_FORMAT"


class PayloadFormatError(ArchiveError):
    """Decryption succeeded but the plaintext is not the expected JSON object."""

    code = "PAYLOAD_FORMAT"


class MissingKeyMaterialError(ArchiveError):
    """Salt, signature or wallet address needed for key derivation is absent."""

    code = "MISSING_KEY_MATERIAL"


class InvalidSignatureError(ArchiveError):
    """Wallet signature is not a well-formed hex signature."""

    code = "INVALID_SIGNATURE"


class OrderStoreError(ArchiveError):
    """Relational order store operation failed."""

    code = "ORDER_STORE_ERROR"


class OrderConflictError(OrderStoreError):
    """An order with this id already exists."""

    code = "ORDER_EXISTS"
