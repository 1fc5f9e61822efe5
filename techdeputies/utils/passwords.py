"""Password hashing and temporary password generation."""
import secrets
import string

from argon2 import PasswordHasher
from argon2.exceptions import VerificationError, InvalidHashError

MIN_PASSWORD_LENGTH = 8

_hasher = PasswordHasher()

_TEMP_ALPHABET = string.ascii_letters + string.digits


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return _hasher.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def is_password_acceptable(password: str) -> bool:
    return bool(password) and len(password) >= MIN_PASSWORD_LENGTH


def generate_temporary_password(length: int = 12) -> str:
    """Random password handed out by admin resets; always mixes letters and digits."""
    while True:
        candidate = "".join(secrets.choice(_TEMP_ALPHABET) for _ in range(length))
        if any(c.isdigit() for c in candidate) and any(c.isalpha() for c in candidate):
            return candidate
