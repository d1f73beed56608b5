class AppError(Exception):
    """Base for errors that become a ``{success: false, message, code}`` response."""

    status_code = 500
    code = "SERVER_ERROR"

    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        body = {"success": False, "message": self.message}
        if self.code:
            body["code"] = self.code
        return body


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"


class AuthenticationError(AppError):
    status_code = 401
    code = "AUTHENTICATION_REQUIRED"


class AuthorizationError(AppError):
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"


class RateLimitedError(AppError):
    status_code = 429
    code = "RATE_LIMITED"

    def __init__(self, message: str, retry_after: int = None, code: str = None):
        super().__init__(message, code=code)
        self.retry_after = retry_after

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.retry_after is not None:
            body["retry_after_seconds"] = self.retry_after
        return body


class SecurityViolation(AppError):
    """Session failed integrity checks; the session has already been destroyed."""

    status_code = 401
    code = "INVALID_SESSION"

    INVALID_SESSION = "INVALID_SESSION"
    HIJACK_DETECTED = "SESSION_HIJACKING_DETECTED"
