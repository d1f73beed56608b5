from flask import Blueprint, request, jsonify

from security.rate_limit import check_and_increment_auth_rate
from security.session import cookie_name, revoke_session, rotate_session, set_session_cookie
from security.fingerprint import Fingerprint
from services.accounts import authenticate, public_user, register_user
from utils.audit import log_event
from utils.request_body import json_object
from utils.auth_context import current_context, login_required
from utils.errors import AppError, RateLimitedError


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _enforce_auth_rate(ctx, action_hint: str):
    allowed, retry_after = check_and_increment_auth_rate(ctx.ip)
    if not allowed:
        log_event("AUTH_RATE_LIMIT", metadata={"endpoint": action_hint, "retry_after": retry_after})
        raise RateLimitedError(
            "Too many authentication attempts, please try again later",
            retry_after=retry_after,
        )


def _start_session(resp, ctx, user, remember: bool):
    """Rotates the session id and stamps the request fingerprint, then sets the cookie."""
    raw_token = rotate_session(
        user.id,
        Fingerprint(ip=ctx.ip, user_agent=ctx.user_agent),
        remember=remember,
        previous_token=request.cookies.get(cookie_name()),
    )
    return set_session_cookie(resp, raw_token, remember)


@auth_bp.post("/register")
def register():
    ctx = current_context()
    _enforce_auth_rate(ctx, "register")
    data = json_object()

    try:
        user = register_user(data.get("username"), data.get("email"), data.get("password"))
    except AppError as exc:
        if exc.status_code == 409:
            log_event("REGISTER_FAIL_EXISTS", metadata={"email": (data.get("email") or "")[:255]})
        raise

    user_view = public_user(user)
    resp = jsonify(success=True, message="Account created successfully", user=user_view)
    _start_session(resp, ctx, user, remember=False)

    log_event("REGISTER_SUCCESS", user_id=user_view["id"])
    return resp, 201


@auth_bp.post("/login")
def login():
    ctx = current_context()
    _enforce_auth_rate(ctx, "login")

    data = json_object()
    identifier = data.get("identifier")
    # Only a JSON true asks for the long-lived cookie
    remember = data.get("remember") is True

    try:
        user = authenticate(ctx, identifier, data.get("password"))
    except AppError as exc:
        if exc.status_code == 429:
            log_event("LOGIN_BLOCKED", metadata={"reason": exc.code, "retry_after": getattr(exc, "retry_after", None)})
        elif exc.status_code == 401:
            log_event("LOGIN_FAIL", metadata={"identifier": str(identifier)[:255]})
        raise

    user_view = public_user(user)
    resp = jsonify(success=True, message="Login successful", user=user_view)
    _start_session(resp, ctx, user, remember=remember)

    log_event("LOGIN_SUCCESS", user_id=user_view["id"], metadata={"remember": remember})
    return resp, 200


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(success=True, user=public_user(current_context().user)), 200


@auth_bp.post("/logout")
def logout():
    ctx = current_context()
    name = cookie_name()

    # Idempotent: an unknown or already-revoked token is fine
    if revoke_session(request.cookies.get(name)):
        log_event("LOGOUT", user_id=ctx.user_id)

    resp = jsonify(success=True, message="Logged out successfully")
    resp.delete_cookie(name, path="/")
    return resp, 200
