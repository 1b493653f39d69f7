"""CIDv1 computation for raw blocks (raw codec, sha2-256, base32 multibase)."""
import base64
import hashlib

CID_VERSION = 0x01
RAW_CODEC = 0x55
SHA2_256 = 0x12
SHA2_256_LEN = 0x20


def compute_cid(data: bytes) -> str:
    """Return the ``bafkrei...`` CID of a single raw block."""
    digest = hashlib.sha256(data).digest()
    cid_bytes = bytes([CID_VERSION, RAW_CODEC, SHA2_256, SHA2_256_LEN]) + digest
    return "b" + base64.b32encode(cid_bytes).decode("ascii").lower().rstrip("=")
