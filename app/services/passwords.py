from functools import lru_cache

import bcrypt

from app.config import settings
from app.errors import WeakPassword

# bcrypt only considers the first 72 bytes of input.
MAX_PASSWORD_BYTES = 72


def hash_password(plain_password: str, rounds: int | None = None) -> str:
    """Hash a plain-text password with bcrypt."""
    salt = bcrypt.gensalt(rounds=rounds or settings.bcrypt_rounds)
    return bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str | None) -> bool:
    """Constant-time check of a plain-text password against a bcrypt hash."""
    if not password_hash or not plain_password:
        return False
    encoded = plain_password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))
    except ValueError:
        return False


@lru_cache(maxsize=1)
def dummy_hash() -> str:
    """Hash compared against when the account does not exist."""
    return hash_password("sayit-dummy-password")


def burn_comparison(plain_password: str) -> None:
    verify_password(plain_password or "x", dummy_hash())


def check_strength(plain_password: str) -> None:
    if not plain_password or len(plain_password) < settings.password_min_length:
        raise WeakPassword(
            f"Password must be at least {settings.password_min_length} characters long"
        )
    if len(plain_password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise WeakPassword(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long")
