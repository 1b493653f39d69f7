"""Wallet-bound key derivation (PBKDF2-HMAC-SHA256).

The per-order key is stretched from ``walletAddress|signature`` with a fresh
per-order salt. Same inputs always produce the same 256-bit key; nothing here
touches I/O or persistence.
"""
import base64
import os

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

KEY_SIZE = 32
SALT_SIZE = 16
DEFAULT_ITERATIONS = 100_000


def generate_salt() -> str:
    """Return 16 random bytes, hex encoded. Never reuse across derivations."""
    return os.urandom(SALT_SIZE).hex()


def derive_key_bytes(
    wallet_address: str,
    signature: str,
    salt: str,
    iterations: int = DEFAULT_ITERATIONS,
) -> bytes:
    """Derive the raw 32-byte key.

    The salt is used as its UTF-8 text (the hex string itself), so a salt read
    back from the order row feeds the KDF exactly as it was generated.
    """
    if not wallet_address:
        raise ValueError("wallet_address is required for key derivation")
    if not signature:
        raise ValueError("signature is required for key derivation")
    if not salt:
        raise ValueError("salt is required for key derivation")
    if iterations < DEFAULT_ITERATIONS:
        raise ValueError(f"iterations must be >= {DEFAULT_ITERATIONS}")

    key_material = f"{wallet_address}|{signature}".encode("utf-8")
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=salt.encode("utf-8"),
        iterations=iterations,
    )
    return kdf.derive(key_material)


def derive_key(
    wallet_address: str,
    signature: str,
    salt: str,
    iterations: int = DEFAULT_ITERATIONS,
) -> str:
    """Derive the per-order key, base64 encoded (in-memory form only)."""
    raw = derive_key_bytes(wallet_address, signature, salt, iterations)
    return base64.b64encode(raw).decode("ascii")
