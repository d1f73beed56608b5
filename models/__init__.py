from .db import db
from .user import User
from .audit_log import AuditLog
from .session import Session
from .login_attempt import LoginAttempt
from .ip_rate_limit import IpRateLimit
from .project import Project
from .membership import Membership
from .join_request import JoinRequest
