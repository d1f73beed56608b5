from dataclasses import dataclass

from flask import current_app, request
from sqlalchemy.exc import SQLAlchemyError

from models import db
from security.session import destroy_session
from utils.audit import log_event
from utils.errors import SecurityViolation

MAX_SIGNATURE_LENGTH = 255
LOGGED_SIGNATURE_LENGTH = 50


@dataclass(frozen=True)
class Fingerprint:
    ip: str
    user_agent: str


def fingerprint_from_request() -> Fingerprint:
    ip = request.remote_addr or "unknown"
    user_agent = (request.headers.get("User-Agent") or "unknown")[:MAX_SIGNATURE_LENGTH]
    return Fingerprint(ip=ip, user_agent=user_agent)


def stamped_fingerprint(sess):
    if not sess.ip or not sess.user_agent:
        return None
    return Fingerprint(ip=sess.ip, user_agent=sess.user_agent)


def _destroy(sess, action: str, metadata: dict) -> None:
    # A failed destroy must not turn into an allowed request
    try:
        destroy_session(sess)
        log_event(action, user_id=sess.user_id, entity="session", entity_id=sess.id, metadata=metadata)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to destroy session %s during %s", sess.id, action)


def enforce_session_fingerprint(sess, current: Fingerprint) -> None:
    """
    Raises SecurityViolation (after destroying ``sess``) unless the request
    matches the fingerprint stamped on the session at login.
    """
    stored = stamped_fingerprint(sess)
    if stored is None:
        _destroy(sess, "SESSION_INVALID", {"reason": "missing_fingerprint"})
        raise SecurityViolation(
            "Invalid session. Please login again.",
            code=SecurityViolation.INVALID_SESSION,
        )

    ip_changed = stored.ip != current.ip
    user_agent_changed = stored.user_agent != current.user_agent
    if not (ip_changed or user_agent_changed):
        return

    details = {
        "stored_ip": stored.ip,
        "current_ip": current.ip,
        "stored_user_agent": stored.user_agent[:LOGGED_SIGNATURE_LENGTH],
        "current_user_agent": current.user_agent[:LOGGED_SIGNATURE_LENGTH],
        "ip_changed": ip_changed,
        "user_agent_changed": user_agent_changed,
    }
    current_app.logger.warning("Session hijacking attempt detected for user %s: %s", sess.user_id, details)
    _destroy(sess, "SESSION_HIJACK_DETECTED", details)
    raise SecurityViolation(
        "Session security validation failed. Please login again.",
        code=SecurityViolation.HIJACK_DETECTED,
    )
