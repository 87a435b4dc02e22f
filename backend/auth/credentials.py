"""Password hashing and verification (bcrypt)."""

import bcrypt as _bcrypt

# bcrypt only looks at the first 72 bytes
_MAX_PASSWORD_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_MAX_PASSWORD_BYTES]


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password with bcrypt."""
    salt = _bcrypt.gensalt(rounds=rounds)
    return _bcrypt.hashpw(_encode(password), salt).decode("utf-8")


def check_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash.

    A malformed stored hash counts as a mismatch.
    """
    try:
        return _bcrypt.checkpw(_encode(password), hashed.encode("utf-8"))
    except ValueError:
        return False
