"""
Authentication blueprint:
- POST   /auth/login
- POST   /auth/refresh
- POST   /auth/logout
- POST   /auth/logout-all
- GET    /auth/me
- GET    /auth/sessions
- DELETE /auth/sessions/<session_id>
- POST   /auth/cleanup

Sessions live in two HttpOnly cookies: a short-lived access token and a
rotating refresh token (see utils.sessions for the rotation rules).
Neither token is ever returned in a response body.
"""
from __future__ import annotations

from flask import Blueprint, request, g, current_app

from models.schemas.user import UserLoginSchema, UserOutSchema
from models.schemas.session import SessionOutSchema
from utils.decorators import jwt_required, REFRESH_COOKIE
from utils.ratelimit import rate_limit, client_ip
from utils.sessions import ClientInfo, sanitize_identifier
from api.utils.cookies import set_session_cookies, clear_session_cookies
from api.utils.responses import api_response

bp = Blueprint("auth", __name__)

user_login_schema = UserLoginSchema()
user_out_schema = UserOutSchema()
sessions_out_schema = SessionOutSchema(many=True)


def _sessions():
    return current_app.extensions["session_manager"]


def _settings():
    return current_app.extensions["auth_settings"]


def client_info() -> ClientInfo:
    return ClientInfo(
        user_agent=request.headers.get("User-Agent") or "unknown",
        ip_address=request.remote_addr or "unknown",
    )


def login_key() -> str:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        payload = {}
    ident = sanitize_identifier(payload.get("username") or payload.get("email"))
    return f"{client_ip()}:{ident}"


@bp.post("/auth/login")
@rate_limit("RATELIMIT_LOGIN", "login", key_func=login_key,
            message="Too many login attempts. Please try again later")
def login():
    """
    Login with username or email; sets the AccessToken and RefreshToken cookies
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [password]
          properties:
            username: { type: string }
            email: { type: string }
            password: { type: string }
    responses:
      200:
        description: Logged in; returns the user
      401:
        description: Invalid credentials
      403:
        description: Account banned or suspended
      423:
        description: Account locked after repeated failures
      429:
        description: Too many login attempts
    """
    payload = user_login_schema.load(request.get_json(silent=True) or {})
    identifier = payload.get("username") or payload.get("email")

    issued = _sessions().login(identifier, payload["password"], client_info())

    response, status = api_response(200, "User logged in successfully", {
        "user": user_out_schema.dump(issued.user),
    })
    set_session_cookies(response, _settings(), issued.access_token, issued.refresh_token)
    return response, status


@bp.post("/auth/refresh")
@rate_limit("RATELIMIT_REFRESH", "refresh")
def refresh():
    """
    Rotate the refresh token cookie and issue a new access token
    ---
    tags:
      - Auth
    responses:
      200:
        description: Rotated cookies set
      401:
        description: Missing, invalid, expired or reused refresh token
      403:
        description: Account suspended or banned
    """
    issued = _sessions().refresh(request.cookies.get(REFRESH_COOKIE), client_info())

    response, status = api_response(200, "Tokens refreshed successfully", {
        "user": user_out_schema.dump(issued.user),
    })
    set_session_cookies(response, _settings(), issued.access_token, issued.refresh_token)
    return response, status


@bp.post("/auth/logout")
def logout():
    """
    Logout: revoke the current refresh token and clear the cookies
    ---
    tags:
      - Auth
    responses:
      200:
        description: Logged out
    """
    _sessions().logout(request.cookies.get(REFRESH_COOKIE))
    response, status = api_response(200, "User logged out successfully")
    clear_session_cookies(response, _settings())
    return response, status


@bp.post("/auth/logout-all")
@rate_limit("RATELIMIT_GENERAL", "general")
@jwt_required()
def logout_all():
    """
    Logout from every device
    ---
    tags:
      - Auth
    security:
      - CookieAuth: []
    responses:
      200:
        description: All sessions revoked
      401:
        description: Unauthorized
    """
    count = _sessions().logout_all(g.current_user.id)
    response, status = api_response(200, "Logged out from all devices", {"revoked": count})
    clear_session_cookies(response, _settings())
    return response, status


@bp.get("/auth/me")
@rate_limit("RATELIMIT_GENERAL", "general")
@jwt_required()
def me():
    """
    Current user
    ---
    tags:
      - Auth
    security:
      - CookieAuth: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    return api_response(200, "Current user fetched successfully", user_out_schema.dump(g.current_user))


@bp.get("/auth/sessions")
@rate_limit("RATELIMIT_GENERAL", "general")
@jwt_required()
def list_sessions():
    """
    Active sessions of the current user
    ---
    tags:
      - Auth
    security:
      - CookieAuth: []
    responses:
      200:
        description: List of active sessions (id, user agent, ip, created, expires)
    """
    rows = _sessions().list_sessions(g.current_user.id)
    return api_response(200, "Active sessions fetched successfully", sessions_out_schema.dump(rows))


@bp.delete("/auth/sessions/<session_id>")
@rate_limit("RATELIMIT_GENERAL", "general")
@jwt_required()
def revoke_session(session_id: str):
    """
    Revoke one session of the current user
    ---
    tags:
      - Auth
    security:
      - CookieAuth: []
    parameters:
      - in: path
        name: session_id
        type: string
        required: true
    responses:
      200:
        description: Session revoked
      404:
        description: Session not found
    """
    _sessions().revoke_session(session_id, g.current_user.id)
    return api_response(200, "Session revoked successfully")


@bp.post("/auth/cleanup")
@rate_limit("RATELIMIT_GENERAL", "general")
@jwt_required()
def cleanup():
    """
    Delete expired and stale revoked refresh tokens
    ---
    tags:
      - Auth
    security:
      - CookieAuth: []
    responses:
      200:
        description: Number of deleted records
    """
    deleted = _sessions().cleanup_expired_tokens()
    return api_response(200, "Expired tokens cleaned up", {"deleted": deleted})
