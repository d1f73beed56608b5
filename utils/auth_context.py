from dataclasses import dataclass
from functools import wraps
from typing import Optional

from flask import g

from models.session import Session
from models.user import User
from security.fingerprint import enforce_session_fingerprint, fingerprint_from_request
from security.session import get_session_from_request, touch_session
from services.accounts import get_user
from utils.errors import AuthenticationError


@dataclass(frozen=True)
class RequestContext:
    """Who is calling and from where; handed explicitly to every service call."""

    ip: str
    user_agent: str
    user: Optional[User] = None
    session: Optional[Session] = None

    @property
    def user_id(self):
        return self.user.id if self.user is not None else None


def load_current_user():
    fp = fingerprint_from_request()
    g.ctx = RequestContext(ip=fp.ip, user_agent=fp.user_agent)

    sess = get_session_from_request()
    if not sess:
        return

    # Raises SecurityViolation (session already destroyed) on a missing or mismatched fingerprint
    enforce_session_fingerprint(sess, fp)

    user = get_user(sess.user_id)
    if user is None:
        return
    touch_session(sess)
    g.ctx = RequestContext(ip=fp.ip, user_agent=fp.user_agent, user=user, session=sess)

def current_context() -> RequestContext:
    return g.ctx

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if current_context().user is None:
            raise AuthenticationError("Authentication required")
        return fn(*args, **kwargs)
    return wrapper
