"""One-time signing PIN generation and salted hashing"""

import base64
import hashlib
import hmac
import secrets
from typing import Tuple

PIN_TTL_MINUTES = 10
MAX_FAILED_ATTEMPTS = 3
SALT_BYTES = 32
CONTRACT_VALIDITY_DAYS = 30


def generate_pin() -> str:
    """Six-digit numeric PIN in the inclusive range 100000-999999."""
    return str(100_000 + secrets.randbelow(900_000))


def hash_pin_with_salt(pin: str, salt: str) -> str:
    """SHA-256 over salt bytes followed by the PIN, base64 encoded."""
    digest = hashlib.sha256(base64.b64decode(salt) + pin.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


def hash_pin(pin: str) -> Tuple[str, str]:
    """Hash a PIN under a fresh random salt. Returns (hash, salt)."""
    salt = base64.b64encode(secrets.token_bytes(SALT_BYTES)).decode("ascii")
    return hash_pin_with_salt(pin, salt), salt


def verify_pin(pin: str, expected_hash: str, salt: str) -> bool:
    return hmac.compare_digest(hash_pin_with_salt(pin, salt), expected_hash)
