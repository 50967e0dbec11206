"""Password hashing and session token helpers."""
import hashlib
import secrets

import bcrypt

from .config import get_settings


def hash_password(password: str) -> str:
    """Hash a password with bcrypt using the configured work factor."""
    rounds = get_settings().bcrypt_rounds
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def generate_session_token() -> str:
    """Generate a new opaque bearer token."""
    return f"agy_{secrets.token_urlsafe(32)}"


def hash_token(token: str) -> str:
    """SHA-256 hash of a bearer token (what gets stored)."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
