"""
Typed API errors.

Every domain failure is raised as a subclass of ApiError at the point of
detection and shaped into the response envelope by api.errors.
Each class carries a fixed HTTP status and a stable default message.
"""
from __future__ import annotations


class ApiError(Exception):
    status_code = 500
    message = "An unexpected error occurred"
    # When True the error handler also deletes the auth cookies
    clear_session = False

    def __init__(self, message: str | None = None, status_code: int | None = None):
        if message is not None:
            self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return self.__class__.__name__


class InvalidCredentials(ApiError):
    status_code = 401
    message = "Invalid credentials"


class AccountLocked(ApiError):
    status_code = 423
    message = "Account locked"


class AccountBanned(ApiError):
    status_code = 403
    message = "Account has been permanently suspended"


class AccountSuspended(ApiError):
    status_code = 403
    message = "Account is temporarily suspended"


class AccountNotActive(ApiError):
    status_code = 403
    message = "Account is not active"


class TokenExpired(ApiError):
    status_code = 401
    message = "Access token expired"


class InvalidToken(ApiError):
    status_code = 401
    message = "Invalid access token"


class MissingToken(ApiError):
    status_code = 401
    message = "Refresh token required"


class AuthRequired(ApiError):
    status_code = 401
    message = "Authentication required"


class SessionInvalidated(ApiError):
    status_code = 401
    message = "Session invalidated for security. Please login again"
    clear_session = True


class InvalidOrExpired(ApiError):
    status_code = 401
    message = "Invalid or expired refresh token"


class PasswordChanged(ApiError):
    status_code = 401
    message = "Password changed. Please login again"


class UserNotFound(ApiError):
    status_code = 403
    message = "User not found"


class NotFound(ApiError):
    status_code = 404
    message = "Session not found"


class InsufficientPermissions(ApiError):
    status_code = 403
    message = "Insufficient permissions"


class AccountStatusDenied(ApiError):
    status_code = 403
    message = "Account status does not allow this action"


class TooManyRequests(ApiError):
    status_code = 429
    message = "Too many requests. Please slow down"
