from __future__ import annotations
from functools import wraps
from flask import request, g, current_app
from models import storage
from models.user import User
from utils.exceptions import (
    ApiError,
    AuthRequired,
    UserNotFound,
    AccountNotActive,
    PasswordChanged,
    InsufficientPermissions,
    AccountStatusDenied,
)

ACCESS_COOKIE = "AccessToken"
REFRESH_COOKIE = "RefreshToken"


def _authenticate():
    """
    Resolve the caller from the AccessToken cookie.
    The Authorization header is deliberately not consulted.
    """
    token = request.cookies.get(ACCESS_COOKIE)
    if not token:
        raise AuthRequired()

    decoded = current_app.extensions["token_service"].verify_access(token)

    user = storage.get(User, decoded.get("sub"))
    if not user:
        raise UserNotFound()
    if not user.is_active:
        raise AccountNotActive()
    if user.password_changed_after(decoded["iat"]):
        raise PasswordChanged()
    return user, decoded


def jwt_required():
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            g.current_user, g.token_claims = _authenticate()
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def optional_auth():
    """Like jwt_required, but any auth failure leaves an anonymous caller (g.current_user = None)."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                g.current_user, g.token_claims = _authenticate()
            except ApiError:
                g.current_user, g.token_claims = None, None
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def roles_required(*required_roles: str):
    """
    Allow access if the user's role is ANY of the required roles.
    """
    req = {getattr(r, "value", r) for r in required_roles}

    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            role = getattr(g.current_user.role, "value", g.current_user.role)
            if role not in req:
                raise InsufficientPermissions()
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def account_status_required(*statuses: str):
    allowed = {getattr(s, "value", s) for s in statuses}

    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            status = getattr(g.current_user.account_status, "value", g.current_user.account_status)
            if status not in allowed:
                raise AccountStatusDenied()
            return fn(*args, **kwargs)

        return wrapper

    return decorator
