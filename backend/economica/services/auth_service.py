# Overview: Password hashing, user creation and credential checks.

"""
Authentication stand-in.

Identity normally comes from the external provider; this module keeps a
local user table so the API can issue and check bearer tokens on its own.

- Passwords hashed with bcrypt (cost factor 12)
- Session tokens live in session_service.py
"""

import bcrypt
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import User
from ..permissions import ROLES
from ..validation import ConflictError
from economica.time_utils import utcnow


MIN_PASSWORD_LENGTH = 8


class PasswordValidationError(Exception):
    """Raised when a password doesn't meet the minimum requirements."""
    pass


def validate_password_strength(password: str) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"La contraseña debe tener al menos {MIN_PASSWORD_LENGTH} caracteres"
        )


def hash_password(password: str, rounds: int = 12) -> str:
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in the database
        return False


def create_user(
    username: str,
    email: str,
    password: str,
    role: str = "customer",
    store_id: int | None = None,
    rounds: int = 12,
) -> User:
    """
    Create a user with a bcrypt hash.

    Raises PasswordValidationError, ValueError (unknown role) or
    ConflictError (username/email taken).
    """
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role}")

    user = User(
        username=username.strip(),
        email=email.strip().lower(),
        password_hash=hash_password(password, rounds=rounds),
        role=role,
        store_id=store_id,
        is_active=True,
    )
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Username or email already exists")
    return user


def authenticate(username: str, password: str) -> User | None:
    """Return the active user for these credentials, or None."""
    user = db.session.query(User).filter_by(username=(username or "").strip()).first()
    if not user or not user.is_active:
        return None
    if not verify_password(password or "", user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
