"""
Auth cookies. Both are HttpOnly and scoped to "/"; SameSite is None in
production (cross-site frontend) and Lax elsewhere.
"""
from utils.decorators import ACCESS_COOKIE, REFRESH_COOKIE


def _cookie_options(settings) -> dict:
    return {
        "httponly": True,
        "secure": settings.cookie_secure,
        "samesite": settings.cookie_samesite,
        "path": "/",
    }


def set_session_cookies(response, settings, access_token: str, refresh_token: str):
    opts = _cookie_options(settings)
    response.set_cookie(
        ACCESS_COOKIE, access_token,
        max_age=int(settings.access_token_ttl.total_seconds()), **opts
    )
    response.set_cookie(
        REFRESH_COOKIE, refresh_token,
        max_age=int(settings.refresh_token_ttl.total_seconds()), **opts
    )
    return response


def clear_session_cookies(response, settings):
    opts = _cookie_options(settings)
    response.delete_cookie(ACCESS_COOKIE, **opts)
    response.delete_cookie(REFRESH_COOKIE, **opts)
    return response
