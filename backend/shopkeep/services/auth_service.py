# Overview: Service-layer operations for auth; password/PIN hashing and session sign-in/out.

"""
Authentication Service

WHY: Every sale is attributed to the cashier of the session that rang it up.
Signing in is the only way to obtain a PosSession with a user; signing out
tears the session down (cart and history cleared).

SECURITY NOTES:
- Passwords and PINs hashed with bcrypt (cost factor from BCRYPT_ROUNDS,
  12 by default)
- Passwords: minimum 8 characters, upper, lower, digit and special char
- PINs: 4-6 digits, used for quick till sign-in
"""

import re

import bcrypt
from flask import current_app

from ..constants import ROLE_CASHIER, VALID_ROLES
from ..extensions import db
from ..models import User
from ..validation import ValidationError, validate_pin
from shopkeep.time_utils import utcnow
from .session_service import PosSession, close_session, open_session


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class AuthError(Exception):
    """Raised when sign-in fails or a user cannot be created."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def _hash_secret(secret: str) -> str:
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(secret.encode('utf-8'), salt).decode('utf-8')


def _check_secret(secret: str, hashed: str | None) -> bool:
    if not secret or not hashed:
        return False
    try:
        return bcrypt.checkpw(secret.encode('utf-8'), hashed.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def hash_password(password: str) -> str:
    """Hash password with bcrypt after validating its strength."""
    validate_password_strength(password)
    return _hash_secret(password)


def verify_password(password: str, password_hash: str) -> bool:
    return _check_secret(password, password_hash)


def create_user(
    *,
    email: str,
    full_name: str,
    password: str,
    role: str = ROLE_CASHIER,
    phone: str | None = None,
    pin: str | None = None,
) -> User:
    """
    Create a user with a bcrypt password hash (and optional PIN).

    Raises:
        AuthError: duplicate email, unknown role
        PasswordValidationError: weak password
        ValidationError: malformed PIN
    """
    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise AuthError("A valid email is required")
    if role not in VALID_ROLES:
        raise AuthError(f"role must be one of {VALID_ROLES}")

    existing = db.session.query(User).filter(User.email == email).first()
    if existing:
        raise AuthError("Email already exists")

    user = User(
        email=email,
        full_name=(full_name or email.split("@")[0]).strip(),
        phone=phone,
        role=role,
        password_hash=hash_password(password),
        pin_hash=_hash_secret(validate_pin(pin)) if pin is not None else None,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def set_pin(*, user_id: int, pin: str) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise AuthError("User not found")
    user.pin_hash = _hash_secret(validate_pin(pin))
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Credentials check. Returns the active User or None.

    Updates last_login_at on success.
    """
    user = (
        db.session.query(User)
        .filter(User.email == (email or "").strip().lower(), User.is_active.is_(True))
        .first()
    )
    if user is None or not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def login(email: str, password: str) -> PosSession:
    user = authenticate(email, password)
    if user is None:
        current_app.logger.warning("Failed login for %s", email)
        raise AuthError("Invalid email or password")
    current_app.logger.info("User %s signed in", user.id)
    return open_session(user)


def login_with_pin(user_id: int, pin: str) -> PosSession:
    try:
        validate_pin(pin)
    except ValidationError as e:
        raise AuthError(str(e))

    user = db.session.get(User, user_id)
    if user is None or not user.is_active or not _check_secret(pin, user.pin_hash):
        current_app.logger.warning("Failed PIN login for user %s", user_id)
        raise AuthError("Invalid PIN")

    user.last_login_at = utcnow()
    db.session.commit()
    current_app.logger.info("User %s signed in with PIN", user.id)
    return open_session(user)


def logout(session: PosSession) -> None:
    user_id = session.user_id
    close_session(session)
    if user_id is not None:
        current_app.logger.info("User %s signed out", user_id)
