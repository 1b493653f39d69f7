"""Logging Hardening and Redaction.

Keeps per-order key material (derived keys, wallet signatures, salts, and
envelope ciphertext/nonces) out of application logs.
"""
import logging
import re

KEY_MATERIAL_PATTERNS = [
    (re.compile(r'("(?:ciphertext|nonce|encryption_salt|encryptionSalt|wallet_signature|walletSignature)":\s*")[^"]*(")'), r'\1[REDACTED]\2'),
    # Keyword-based assignments
    (re.compile(r'\b(\w*(?:key|signature|salt))=[^\s,;&]+'), r'\1=[REDACTED]'),
    # Wallet signatures: 0x + at least 32 bytes of hex
    (re.compile(r'0x[0-9a-fA-F]{64,}'), '0x[REDACTED]'),
]


def redact(text: str) -> str:
    for pattern, replacement in KEY_MATERIAL_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class KeyMaterialRedactionFilter(logging.Filter):
    """Filter that redacts key-material patterns from log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not isinstance(record.msg, str):
            return True

        record.msg = redact(record.msg)

        # Also redact arguments if they are strings
        if record.args and isinstance(record.args, tuple):
            record.args = tuple(
                redact(arg) if isinstance(arg, str) else arg for arg in record.args
            )

        return True


def setup_logging_redaction() -> None:
    """Apply the KeyMaterialRedactionFilter to the root and all existing loggers."""
    redact_filter = KeyMaterialRedactionFilter()

    root_logger = logging.getLogger()

    # Remove existing filters if any (to avoid duplicates)
    for f in root_logger.filters[:]:
        if isinstance(f, KeyMaterialRedactionFilter):
            root_logger.removeFilter(f)

    root_logger.addFilter(redact_filter)

    # Filters on the root logger do not run for records from child loggers
    for name in list(logging.root.manager.loggerDict):
        logger = logging.getLogger(name)
        for f in logger.filters[:]:
            if isinstance(f, KeyMaterialRedactionFilter):
                logger.removeFilter(f)
        logger.addFilter(redact_filter)

    logging.info("Logging redaction filters active.")
