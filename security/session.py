import hashlib
import secrets
from datetime import timedelta
from flask import request, current_app

from models import db
from models.session import Session
from utils import clock

def _hash_token(token: str) -> str:
    # SHA-256 is fine for hashing random session tokens
    return hashlib.sha256(token.encode("utf-8")).hexdigest()

def session_max_age(remember: bool) -> int:
    if remember:
        return current_app.config.get("REMEMBER_ME_SECONDS", 30 * 24 * 60 * 60)
    return current_app.config.get("SESSION_LIFETIME_SECONDS", 28800)

def cookie_name() -> str:
    return current_app.config.get("AUTH_COOKIE_NAME", "teamnest_session")

def set_session_cookie(resp, raw_token: str, remember: bool):
    resp.set_cookie(
        cookie_name(),
        raw_token,
        httponly=current_app.config.get("SESSION_COOKIE_HTTPONLY", True),
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Strict"),
        # no max_age: ends with the browser session unless "remember me"
        max_age=session_max_age(True) if remember else None,
        path="/",
    )
    return resp

def refresh_remembered_cookie(resp, sess):
    """Re-issues a remembered session's cookie so the browser keeps it as long as the server does."""
    if sess is None or not sess.remember or sess.revoked:
        return resp
    name = cookie_name()
    # The handler already set or cleared the cookie (login, logout)
    if any(h.startswith(name + "=") for h in resp.headers.getlist("Set-Cookie")):
        return resp
    raw_token = request.cookies.get(name)
    if raw_token:
        set_session_cookie(resp, raw_token, remember=True)
    return resp

def rotate_session(user_id: int, fingerprint, remember: bool = False, previous_token: str = None) -> str:
    """
    Issues a fresh server-side session and returns the RAW token (to set as cookie).

    The session the request arrived with (if any) is revoked, and the new row carries
    its fingerprint from the moment it exists: both happen in one commit, so no reader
    can see a rotated session without its fingerprint.
    """
    raw_token = secrets.token_urlsafe(32)
    now = clock.utcnow()

    if previous_token:
        Session.query.filter_by(token_hash=_hash_token(previous_token), revoked=False).update(
            {Session.revoked: True}, synchronize_session=False
        )

    row = Session(
        user_id=user_id,
        token_hash=_hash_token(raw_token),
        created_at=now,
        last_seen_at=now,
        expires_at=now + timedelta(seconds=session_max_age(remember)),
        remember=bool(remember),
        ip=fingerprint.ip,
        user_agent=fingerprint.user_agent,
    )
    db.session.add(row)
    db.session.commit()
    return raw_token

def get_session_from_request():
    raw_token = request.cookies.get(cookie_name())
    if not raw_token:
        return None

    token_hash = _hash_token(raw_token)
    now = clock.utcnow()

    sess = (
        Session.query
        .filter_by(token_hash=token_hash, revoked=False)
        .first()
    )
    if not sess:
        return None

    # Absolute expiry
    if sess.expires_at <= now:
        return None

    # Idle timeout (remembered sessions only expire absolutely)
    if not sess.remember:
        idle_seconds = current_app.config.get("IDLE_TIMEOUT_SECONDS", 7200)
        last_seen = sess.last_seen_at or sess.created_at
        if (last_seen + timedelta(seconds=idle_seconds)) <= now:
            return None

    return sess

def touch_session(sess):
    now = clock.utcnow()
    sess.last_seen_at = now
    # "Remember me" is rolling: every authenticated request pushes the expiry out again
    if sess.remember:
        sess.expires_at = now + timedelta(seconds=session_max_age(True))
    db.session.commit()

def destroy_session(sess) -> None:
    sess.revoked = True
    db.session.commit()

def revoke_session(raw_token: str) -> bool:
    if not raw_token:
        return False
    token_hash = _hash_token(raw_token)
    sess = Session.query.filter_by(token_hash=token_hash).first()
    if not sess:
        return False
    sess.revoked = True
    db.session.commit()
    return True

def purge_expired_sessions() -> int:
    count = (
        Session.query
        .filter((Session.revoked.is_(True)) | (Session.expires_at <= clock.utcnow()))
        .delete(synchronize_session=False)
    )
    db.session.commit()
    return count
