"""
security helpers:
- Argon2 password hashing via argon2-cffi
- JWT creation/verification via PyJWT (TokenService)
- JTI generation for token identifiers

Access and refresh tokens are signed with separate secrets so a leaked token
of one class can never be presented as the other.
"""
from __future__ import annotations

import secrets
from datetime import datetime, timezone
from typing import Callable, Dict, Any

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError, VerificationError, InvalidHashError

from utils.exceptions import TokenExpired, InvalidToken

ph = PasswordHasher()

ACCESS = "access"
REFRESH = "refresh"


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """ Verify a plaintext password using argon2
    """
    try:
        return ph.verify(password_hash, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID), 16 random bytes as hex.
    """
    return secrets.token_hex(16)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Issues and verifies signed access and refresh tokens.

    Stateless: the only inputs are the user, the settings and the clock.
    """

    def __init__(self, settings, clock: Callable[[], datetime] = _now):
        self.settings = settings
        self.clock = clock

    def _encode(self, payload: Dict[str, Any], secret: str, ttl) -> str:
        now = self.clock()
        payload.update({
            "iat": int(now.timestamp()),
            "exp": int((now + ttl).timestamp()),
        })
        return jwt.encode(payload, secret, algorithm=self.settings.algorithm)

    def issue_access_token(self, user) -> str:
        payload = {
            "sub": str(user.id),
            "username": user.username,
            "email": user.email,
            "fullname": user.fullname,
            "role": getattr(user.role, "value", user.role),
            "type": ACCESS,
        }
        return self._encode(payload, self.settings.access_secret, self.settings.access_token_ttl)

    def issue_refresh_token(self, user) -> str:
        # jti keeps two tokens minted in the same second for one user distinct
        payload = {"sub": str(user.id), "jti": generate_jti(), "type": REFRESH}
        return self._encode(payload, self.settings.refresh_secret, self.settings.refresh_token_ttl)

    def verify(self, token: str, secret: str, expected_type: str | None = None,
               expired_message: str | None = None, invalid_message: str | None = None) -> Dict[str, Any]:
        """
        Decode and validate a JWT. Raises TokenExpired past `exp`, InvalidToken
        on a bad signature, malformed token or unexpected `type`.
        """
        try:
            decoded = jwt.decode(
                token,
                secret,
                algorithms=[self.settings.algorithm],
                options={"require": ["sub", "iat", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpired(expired_message)
        except jwt.InvalidTokenError:
            raise InvalidToken(invalid_message)

        if expected_type and decoded.get("type") != expected_type:
            raise InvalidToken(invalid_message)
        return decoded

    def verify_access(self, token: str) -> Dict[str, Any]:
        return self.verify(token, self.settings.access_secret, ACCESS)

    def verify_refresh(self, token: str) -> Dict[str, Any]:
        return self.verify(
            token,
            self.settings.refresh_secret,
            REFRESH,
            expired_message="Refresh token expired. Please login again",
            invalid_message="Invalid refresh token",
        )
