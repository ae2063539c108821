# Overview: Service-layer operations for users and unlock codes.

"""
Authentication Service

Users unlock the counting app with a short personal code. Codes are hashed
with bcrypt; the cost factor comes from BCRYPT_ROUNDS so tests can run
with a cheap one.
"""

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User
from ..time_utils import utcnow
from ..validation import ValidationError


MIN_UNLOCK_CODE_LENGTH = 4
MAX_UNLOCK_CODE_LENGTH = 32


def validate_unlock_code(code: str) -> None:
    if not isinstance(code, str) or not code.strip():
        raise ValidationError("unlock_code is required")
    if len(code) < MIN_UNLOCK_CODE_LENGTH:
        raise ValidationError(f"unlock_code must be at least {MIN_UNLOCK_CODE_LENGTH} characters")
    if len(code) > MAX_UNLOCK_CODE_LENGTH:
        raise ValidationError(f"unlock_code must be at most {MAX_UNLOCK_CODE_LENGTH} characters")


def hash_unlock_code(code: str) -> str:
    validate_unlock_code(code)
    rounds = int(current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(code.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")  # Store as string in database


def verify_unlock_code(code: str, code_hash: str) -> bool:
    """bcrypt.checkpw is timing-safe; malformed hashes count as a mismatch."""
    try:
        return bcrypt.checkpw(code.encode("utf-8"), code_hash.encode("utf-8"))
    except ValueError:
        return False


def create_user(username: str, name: str, unlock_code: str) -> User:
    username = (username or "").strip().lower()
    name = (name or "").strip()
    if not username:
        raise ValidationError("username is required")
    if not name:
        raise ValidationError("name is required")

    if db.session.query(User).filter_by(username=username).first():
        raise ValidationError(f"Username {username!r} is already taken")

    user = User(
        username=username,
        name=name,
        unlock_code_hash=hash_unlock_code(unlock_code),
        is_active=True,
    )
    db.session.add(user)
    db.session.flush()
    return user


def authenticate(username: str, unlock_code: str) -> User | None:
    """Return the active user whose code matches, else None."""
    if not username or not unlock_code:
        return None

    user = db.session.query(User).filter_by(username=username.strip().lower()).first()
    if not user or not user.is_active:
        return None
    if not verify_unlock_code(unlock_code, user.unlock_code_hash):
        return None

    user.last_unlock_at = utcnow()
    return user
