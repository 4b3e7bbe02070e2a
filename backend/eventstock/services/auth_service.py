# Overview: Password hashing and credential checks for user accounts.

"""
Authentication Service

Only resolves who the caller is; what they may do lives in access_service.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Inactive accounts cannot authenticate
- Session tokens managed separately (see session_service.py)
"""

import logging

import bcrypt

from ..extensions import db
from ..models import User
from ..validation import ValidationError
from eventstock.time_utils import utcnow

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""

    def __init__(self, message: str):
        super().__init__(message, {"password": [message]})


def validate_password_strength(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if password.strip() != password:
        raise PasswordValidationError("Password cannot start or end with whitespace")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Returns True if password matches hash, False otherwise (malformed hashes included)."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def authenticate(email: str, password: str) -> User | None:
    """
    Check credentials and stamp last_login_at.

    Returns None for unknown email, wrong password or inactive account, so
    callers cannot tell which one failed.
    """
    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if user is None or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        logger.warning("Failed login for user %s", user.id)
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
