import math
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from flask import current_app
from sqlalchemy import case
from sqlalchemy.exc import IntegrityError

from models import db
from models.login_attempt import LoginAttempt
from utils import clock


@dataclass(frozen=True)
class GuardDecision:
    allowed: bool
    reason: Optional[str] = None          # "locked" or "delay"
    retry_after: Optional[int] = None     # seconds
    message: Optional[str] = None


ALLOWED = GuardDecision(allowed=True)


def _cfg(name: str, default: int) -> int:
    return int(current_app.config.get(name, default))


def required_delay_seconds(attempts: int) -> int:
    """Wait owed after ``attempts`` failures: 0 for the first few, then 5, 10, 20, 40, 80 ..."""
    free = _cfg("LOGIN_FREE_ATTEMPTS", 5)
    if attempts < free:
        return 0
    base = _cfg("LOGIN_BASE_DELAY_SECONDS", 5)
    return base * 2 ** (attempts - free)


def check(ip: str) -> GuardDecision:
    """
    Decide whether a login attempt from ``ip`` may proceed. Call before verifying credentials.
    """
    row = LoginAttempt.query.filter_by(ip=ip).first()
    if not row:
        return ALLOWED

    now = clock.utcnow()

    if row.locked_until:
        if row.locked_until > now:
            seconds = max(math.ceil((row.locked_until - now).total_seconds()), 1)
            return GuardDecision(
                allowed=False,
                reason="locked",
                retry_after=seconds,
                message=(
                    "Too many failed attempts. Your IP is temporarily blocked. "
                    f"Try again in {seconds // 60} minutes {seconds % 60} seconds."
                ),
            )
        # Lock has run out: start over
        clear(ip)
        return ALLOWED

    delay = required_delay_seconds(row.attempts)
    if delay and row.last_attempt:
        elapsed = (now - row.last_attempt).total_seconds()
        if elapsed < delay:
            wait = max(math.ceil(delay - elapsed), 1)
            return GuardDecision(
                allowed=False,
                reason="delay",
                retry_after=wait,
                message=f"Too many attempts. Please wait {wait} seconds before trying again.",
            )

    return ALLOWED


def _increment(ip: str, now) -> int:
    threshold = _cfg("LOGIN_LOCK_THRESHOLD", 10)
    lock_until = now + timedelta(minutes=_cfg("LOCKOUT_MINUTES", 30))

    # Single UPDATE so concurrent failures from one address are never under-counted
    return LoginAttempt.query.filter_by(ip=ip).update(
        {
            LoginAttempt.attempts: LoginAttempt.attempts + 1,
            LoginAttempt.last_attempt: now,
            LoginAttempt.locked_until: case(
                (LoginAttempt.attempts + 1 >= threshold, lock_until),
                else_=LoginAttempt.locked_until,
            ),
            LoginAttempt.updated_at: now,
        },
        synchronize_session=False,
    )


def record(ip: str) -> int:
    """
    Records one failed attempt for ``ip``. Returns the attempt count after the increment.
    """
    now = clock.utcnow()

    if not _increment(ip, now):
        db.session.add(LoginAttempt(ip=ip, attempts=1, last_attempt=now, created_at=now, updated_at=now))
        try:
            db.session.commit()
        except IntegrityError:
            # Another request created the row first; count on top of it
            db.session.rollback()
            _increment(ip, now)
            db.session.commit()
    else:
        db.session.commit()

    return db.session.query(LoginAttempt.attempts).filter_by(ip=ip).scalar() or 0


def clear(ip: str):
    """
    Forgets every failure recorded for ``ip`` (successful login or expired lock).
    """
    LoginAttempt.query.filter_by(ip=ip).delete(synchronize_session=False)
    db.session.commit()


def purge_expired_locks() -> int:
    """Drops records whose lock has elapsed. Used by the maintenance CLI."""
    count = (
        LoginAttempt.query
        .filter(LoginAttempt.locked_until.isnot(None), LoginAttempt.locked_until <= clock.utcnow())
        .delete(synchronize_session=False)
    )
    db.session.commit()
    return count
