"""Registration and credential verification.

Session issuing and cookies stay in the auth blueprint; everything here works
on plain values plus the caller's :class:`RequestContext`.
"""
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from models import db
from models.user import User
from security import bruteforce
from security.password import dummy_password_hash, hash_password, verify_password
from utils.errors import AuthenticationError, ConflictError, RateLimitedError, ValidationError


def _is_valid_email(email: str) -> bool:
    return isinstance(email, str) and "@" in email and len(email) <= 255


def _clean(value) -> str:
    return value.strip() if isinstance(value, str) else ""


def public_user(user: User) -> dict:
    return {"id": user.id, "username": user.username, "email": user.email}


def get_user(user_id):
    return db.session.get(User, user_id)


def find_user_by_identifier(identifier: str):
    """Looks a user up by email or by username, case-insensitively."""
    key = _clean(identifier).lower()
    if not key:
        return None
    return User.query.filter(or_(User.email == key, User.username_lower == key)).first()


def _identifier_taken(*keys) -> bool:
    # Emails and usernames share one login namespace, so check each key against both columns
    return (
        User.query
        .filter(or_(User.email.in_(keys), User.username_lower.in_(keys)))
        .first()
        is not None
    )


def register_user(username, email, password) -> User:
    username = _clean(username)
    email = _clean(email).lower()
    if not username or not email or not isinstance(password, str) or not password:
        raise ValidationError("All fields are required")
    if len(username) > 50:
        raise ValidationError("Username must be at most 50 characters")
    if not _is_valid_email(email):
        raise ValidationError("Invalid email")

    if _identifier_taken(email, username.lower()):
        raise ConflictError("Email or username already exists")

    user = User(
        username=username,
        username_lower=username.lower(),
        email=email,
        password_hash=hash_password(password),
    )
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Email or username already exists")
    return user


def authenticate(ctx, identifier, password) -> User:
    """
    Verifies credentials for a login attempt coming from ``ctx.ip``.

    The brute-force guard is consulted first; a denied address never reaches the
    password check. Otherwise exactly one bcrypt comparison runs whether or not
    the identifier matches an account.
    """
    identifier = _clean(identifier)
    if not identifier or not isinstance(password, str) or not password:
        raise ValidationError("Email/username and password are required")

    decision = bruteforce.check(ctx.ip)
    if not decision.allowed:
        raise RateLimitedError(decision.message, retry_after=decision.retry_after,
                               code=f"LOGIN_{decision.reason.upper()}")

    user = find_user_by_identifier(identifier)
    hash_to_compare = user.password_hash if user else dummy_password_hash()
    password_ok = verify_password(password, hash_to_compare)

    if user is None or not password_ok:
        bruteforce.record(ctx.ip)
        raise AuthenticationError("Invalid credentials", code="INVALID_CREDENTIALS")

    bruteforce.clear(ctx.ip)
    return user
