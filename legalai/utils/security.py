"""
Security utilities for the LegalAI API.
Handles: password hashing, access tokens, one-time codes, input sanitization and email masking.
"""
import hashlib
import secrets
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import bcrypt
import jwt

from legalai.config import settings
from legalai.utils.clock import utcnow

OTP_LENGTH = 6


def hash_password(password: str) -> str:
    """Hashes a password with bcrypt.

    bcrypt only looks at the first 72 bytes, so longer inputs are truncated
    explicitly instead of letting the library reject them.
    """
    pw_bytes = password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8")[:72], password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in the store
        return False


def create_access_token(
    user_id: str,
    secret: str,
    algorithm: str = "HS256",
    expires_minutes: int = 60,
    now: Optional[datetime] = None,
) -> str:
    issued_at = now or utcnow()
    payload = {
        "sub": str(user_id),
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_access_token(token: str, secret: str, algorithm: str = "HS256") -> Dict[str, Any]:
    """Verifies signature and expiry. Raises jwt.InvalidTokenError (or a subclass) on failure."""
    return jwt.decode(token, secret, algorithms=[algorithm], options={"require": ["sub", "exp"]})


def generate_otp(length: int = OTP_LENGTH) -> str:
    """Generates a numeric one-time code, zero-padded to `length` digits."""
    return "".join(secrets.choice("0123456789") for _ in range(length))


def generate_reset_token() -> str:
    return secrets.token_urlsafe(32)


def digest_code(code: str) -> str:
    """SHA-256 of a one-time code or reset token; only digests are stored."""
    return hashlib.sha256(code.strip().encode("utf-8")).hexdigest()


def mask_email(email: str) -> str:
    """Masks an email address for safe logging.
    Example: jane.doe@example.com → ja****@example.com
    """
    if not email or "@" not in email:
        return "****"
    local, domain = email.split("@", 1)
    return local[:2] + "****@" + domain


def sanitize_text(text: Optional[str], max_length: Optional[int] = None) -> str:
    """Sanitizes user text input.
    - Removes null bytes
    - Strips leading/trailing whitespace
    - Enforces max length
    """
    if not text:
        return ""

    max_len = max_length or settings.MAX_TEXT_FIELD_LENGTH

    text = text.replace("\x00", "")
    text = text.strip()

    if len(text) > max_len:
        text = text[:max_len]

    return text


def normalize_email(email: Optional[str]) -> str:
    return sanitize_text(email).lower()
