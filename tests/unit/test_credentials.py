"""Unit tests for signing PIN generation and hashing"""

import base64
from loan_origination.domain.credentials import (
    SALT_BYTES,
    generate_pin,
    hash_pin,
    hash_pin_with_salt,
    verify_pin,
)


def test_pin_is_six_digits_in_range():
    for _ in range(200):
        pin = generate_pin()
        assert len(pin) == 6
        assert 100000 <= int(pin) <= 999999


def test_hash_never_contains_raw_pin():
    pin_hash, salt = hash_pin("123456")

    assert "123456" not in pin_hash
    assert len(base64.b64decode(salt)) == SALT_BYTES


def test_same_pin_hashes_differently_under_new_salt():
    first, _ = hash_pin("123456")
    second, _ = hash_pin("123456")
    assert first != second


def test_verify_round_trip():
    pin_hash, salt = hash_pin("654321")

    assert verify_pin("654321", pin_hash, salt)
    assert not verify_pin("654322", pin_hash, salt)


def test_hash_is_deterministic_for_fixed_salt():
    salt = base64.b64encode(b"\x00" * SALT_BYTES).decode("ascii")
    assert hash_pin_with_salt("111111", salt) == hash_pin_with_salt("111111", salt)
