from fastapi import HTTPException
from typing import Optional, Dict, Any

from order_archive.domain.errors import (
    ArchiveError,
    AuthenticationFailure,
    ConfigurationError,
    EnvelopeFormatError,
    InvalidSignatureError,
    MissingKeyMaterialError,
    OrderConflictError,
    OrderStoreError,
    RetrievalError,
)

VERIFY_FAILED_MESSAGE = "Could not verify this order"


def raise_archive_error(
    code: str,
    status_code: int,
    message: str,
    details: Optional[Dict[str, Any]] = None
) -> None:
    """Raise a standardized HTTPException.

    Args:
        code: Error code (MISSING_KEY_MATERIAL, WALLET_UNAUTHORIZED, etc.)
        status_code: HTTP Status Code (400, 401, etc.)
        message: Human readable message
        details: Optional extra details
    """
    error_body: Dict[str, Any] = {
        "code": code,
        "message": message
    }
    if details:
        error_body["details"] = details

    raise HTTPException(status_code=status_code, detail={"error": error_body})


def status_for(exc: ArchiveError) -> int:
    """HTTP status for a domain error."""
    if isinstance(exc, RetrievalError):
        return 404 if exc.not_found else 502
    if isinstance(exc, AuthenticationFailure):
        return 401
    if isinstance(exc, (MissingKeyMaterialError, EnvelopeFormatError, InvalidSignatureError)):
        return 400
    if isinstance(exc, OrderConflictError):
        return 409
    if isinstance(exc, (ConfigurationError, OrderStoreError)):
        return 503
    return 500


def raise_verification_error(exc: ArchiveError) -> None:
    """Verification failures keep one user-facing message; the cause goes in details."""
    raise_archive_error(
        exc.code,
        status_for(exc),
        VERIFY_FAILED_MESSAGE,
        {"reason": exc.message},
    )
