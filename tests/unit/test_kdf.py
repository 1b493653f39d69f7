"""Tests for wallet-bound key derivation."""
import base64

import pytest

from order_archive.domain.crypto.kdf import (
    DEFAULT_ITERATIONS,
    KEY_SIZE,
    derive_key,
    derive_key_bytes,
    generate_salt,
)

ADDRESS = "0xABC0000000000000000000000000000000000001"
SIGNATURE = "0x" + "deadbeef" * 16


def test_derive_key_is_deterministic():
    k1 = derive_key(ADDRESS, SIGNATURE, "f00dsalt")
    k2 = derive_key(ADDRESS, SIGNATURE, "f00dsalt")
    assert k1 == k2


def test_derive_key_is_32_bytes():
    raw = base64.b64decode(derive_key(ADDRESS, SIGNATURE, generate_salt()))
    assert len(raw) == KEY_SIZE == 32


def test_each_input_changes_the_key():
    salt = generate_salt()
    base = derive_key_bytes(ADDRESS, SIGNATURE, salt)
    assert derive_key_bytes("0xWRONG", SIGNATURE, salt) != base
    assert derive_key_bytes(ADDRESS, SIGNATURE + "00", salt) != base
    assert derive_key_bytes(ADDRESS, SIGNATURE, generate_salt()) != base


def test_salt_is_fresh_16_byte_hex():
    salts = {generate_salt() for _ in range(20)}
    assert len(salts) == 20
    for s in salts:
        assert len(bytes.fromhex(s)) == 16


@pytest.mark.parametrize("address,signature,salt", [
    ("", SIGNATURE, "salt"),
    (ADDRESS, "", "salt"),
    (ADDRESS, SIGNATURE, ""),
])
def test_empty_inputs_rejected(address, signature, salt):
    with pytest.raises(ValueError):
        derive_key(address, signature, salt)


def test_low_iteration_count_rejected():
    with pytest.raises(ValueError):
        derive_key(ADDRESS, SIGNATURE, "salt", iterations=DEFAULT_ITERATIONS - 1)
