"""Tests for raw-block CIDv1 computation."""
from order_archive.adapters.archive.cid import compute_cid


def test_cid_is_content_derived():
    assert compute_cid(b"hello") == compute_cid(b"hello")
    assert compute_cid(b"hello") != compute_cid(b"hello!")


def test_cid_shape():
    cid = compute_cid(b"")
    # CIDv1, raw codec, sha2-256, base32 multibase
    assert cid.startswith("bafkrei")
    assert cid == cid.lower()
    assert len(cid) == 59


def test_known_vector():
    # Empty raw block
    assert compute_cid(b"") == "bafkreihdwdcefgh4dqkjv67uzcmw7ojee6xedzdetojuzjevtenxquvyku"
