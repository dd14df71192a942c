"""
bcrypt hashes for accounts that log in with a local password instead of the directory.
"""
import bcrypt

# bcrypt only reads the first 72 bytes of its input
_SIGNIFICANT_BYTES = 72


def _secret_bytes(password: str | None) -> bytes:
    return (password or "").encode("utf-8")[:_SIGNIFICANT_BYTES]


def hash_password(password: str) -> str:
    if password is None:
        raise ValueError("password is required")
    return bcrypt.hashpw(_secret_bytes(password), bcrypt.gensalt()).decode("ascii")


def verify_password(plain: str, hashed: str) -> bool:
    """False for a wrong password and for a stored value that is not a bcrypt hash."""
    try:
        return bcrypt.checkpw(_secret_bytes(plain), hashed.encode("ascii"))
    except (ValueError, UnicodeEncodeError):
        return False
