from datetime import timedelta
from flask import current_app
from sqlalchemy.exc import IntegrityError

from models import db
from models.ip_rate_limit import IpRateLimit
from utils import clock

AUTH_SCOPE = "auth"
API_SCOPE = "api"


def _increment(scope: str, ip: str, now) -> int:
    return IpRateLimit.query.filter_by(scope=scope, ip=ip).update(
        {IpRateLimit.count: IpRateLimit.count + 1, IpRateLimit.updated_at: now},
        synchronize_session=False,
    )


def check_and_increment(scope: str, ip: str, window_seconds: int, max_requests: int) -> tuple[bool, int]:
    """
    Returns (allowed, retry_after_seconds).
    Fixed window per (scope, ip); each scope keeps its own count.
    """
    now = clock.utcnow()
    window_floor = now - timedelta(seconds=window_seconds)

    # Reset window if expired
    IpRateLimit.query.filter(
        IpRateLimit.scope == scope, IpRateLimit.ip == ip, IpRateLimit.window_start <= window_floor
    ).update({IpRateLimit.window_start: now, IpRateLimit.count: 0}, synchronize_session=False)

    if not _increment(scope, ip, now):
        db.session.add(IpRateLimit(scope=scope, ip=ip, window_start=now, count=1, updated_at=now))
        try:
            db.session.commit()
        except IntegrityError:
            # Another request opened the window first; count on top of it
            db.session.rollback()
            _increment(scope, ip, now)
            db.session.commit()
    else:
        db.session.commit()

    count, window_start = (
        db.session.query(IpRateLimit.count, IpRateLimit.window_start)
        .filter_by(scope=scope, ip=ip)
        .one()
    )
    if count > max_requests:
        window_end = window_start + timedelta(seconds=window_seconds)
        retry_after = int((window_end - now).total_seconds())
        return False, max(retry_after, 1)

    return True, 0


def check_and_increment_auth_rate(ip: str) -> tuple[bool, int]:
    """Shared by the register and login endpoints."""
    return check_and_increment(
        AUTH_SCOPE,
        ip,
        current_app.config.get("AUTH_RATE_WINDOW_SECONDS", 900),
        current_app.config.get("AUTH_RATE_MAX_REQUESTS", 300),
    )


def check_and_increment_api_rate(ip: str) -> tuple[bool, int]:
    """Looser limit over the whole project API."""
    return check_and_increment(
        API_SCOPE,
        ip,
        current_app.config.get("API_RATE_WINDOW_SECONDS", 900),
        current_app.config.get("API_RATE_MAX_REQUESTS", 1000),
    )
