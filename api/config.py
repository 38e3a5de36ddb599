"""
Environment-aware configuration.

Flask config classes are selected by name or by APP_ENV (NODE_ENV is honoured
as a fallback for deployments that still export it). Values come from the
process environment after .env is loaded.

AuthSettings is the immutable view of the auth-related values; it is built
once in create_app() and handed to TokenService and SessionManager.
"""
import os
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Mapping

from dotenv import load_dotenv

load_dotenv()  # Read .env if present

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_DURATION_UNITS = {"": "seconds", "s": "seconds", "m": "minutes", "h": "hours", "d": "days"}


def parse_duration(value: str, default: timedelta) -> timedelta:
    """Parse "900", "15m", "1h" or "7d" into a timedelta."""
    if not value:
        return default
    match = _DURATION_RE.match(value)
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return timedelta(**{_DURATION_UNITS[unit]: int(amount)})


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _app_env() -> str:
    return os.getenv("APP_ENV", os.getenv("NODE_ENV", "dev")).lower()


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # Set a strong key in production
    DEBUG = False
    TESTING = False
    APP_ENV = _app_env()
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Comma-separated list; cookies need explicit origins, not "*"
    CORS_ORIGINS = [
        o.strip()
        for o in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
        if o.strip()
    ]

    # Database
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///video-platform.db")
    SQL_ECHO = _env_flag("SQL_ECHO", "false")
    DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "2"))
    DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "8"))
    DB_POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "30"))
    DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))

    # JWT: one secret per token class
    JWT_ACCESS_SECRET_KEY = os.getenv("JWT_ACCESS_SECRET_KEY", "dev-access-secret-change-me")
    JWT_REFRESH_SECRET_KEY = os.getenv("JWT_REFRESH_SECRET_KEY", "dev-refresh-secret-change-me")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRES = parse_duration(os.getenv("ACCESS_TOKEN_EXPIRES", ""), timedelta(minutes=15))
    REFRESH_TOKEN_EXPIRES = timedelta(days=int(os.getenv("REFRESH_TOKEN_EXPIRES_DAYS", "7")))

    # Login / session policy
    MAX_FAILED_LOGIN_ATTEMPTS = int(os.getenv("MAX_FAILED_LOGIN_ATTEMPTS", "5"))
    LOCKOUT_MINUTES = int(os.getenv("LOCKOUT_MINUTES", "15"))
    REVOKED_TOKEN_RETENTION_HOURS = int(os.getenv("REVOKED_TOKEN_RETENTION_HOURS", "24"))
    COOKIE_SECURE = _env_flag("COOKIE_SECURE", "true")

    # Rate limits: (max requests, window in seconds)
    RATELIMIT_ENABLED = _env_flag("RATELIMIT_ENABLED", "true")
    RATELIMIT_LOGIN = (5, 15 * 60)
    RATELIMIT_REFRESH = (30, 15 * 60)
    RATELIMIT_GENERAL = (100, 15 * 60)


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    # In dev, propagate exceptions so our error handler has full context
    PROPAGATE_EXCEPTIONS = True


class TestingConfig(BaseConfig):
    TESTING = True
    APP_ENV = "test"
    DATABASE_URL = "sqlite://"
    RATELIMIT_ENABLED = False
    JWT_ACCESS_SECRET_KEY = "test-access-secret-key-0123456789abcdef"
    JWT_REFRESH_SECRET_KEY = "test-refresh-secret-key-0123456789abcdef"


class ProductionConfig(BaseConfig):
    DEBUG = False
    APP_ENV = "production"


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/test/prod).
    """
    env = (name or _app_env()).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig


@dataclass(frozen=True)
class AuthSettings:
    access_secret: str
    refresh_secret: str
    algorithm: str = "HS256"
    access_token_ttl: timedelta = timedelta(minutes=15)
    refresh_token_ttl: timedelta = timedelta(days=7)
    max_failed_attempts: int = 5
    lockout_window: timedelta = timedelta(minutes=15)
    revoked_retention: timedelta = timedelta(hours=24)
    production: bool = False
    cookie_secure: bool = True

    @property
    def cookie_samesite(self) -> str:
        return "None" if self.production else "Lax"

    @classmethod
    def from_config(cls, config: Mapping) -> "AuthSettings":
        if config["JWT_ACCESS_SECRET_KEY"] == config["JWT_REFRESH_SECRET_KEY"]:
            raise ValueError("JWT_ACCESS_SECRET_KEY and JWT_REFRESH_SECRET_KEY must differ")
        return cls(
            access_secret=config["JWT_ACCESS_SECRET_KEY"],
            refresh_secret=config["JWT_REFRESH_SECRET_KEY"],
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
            access_token_ttl=config["ACCESS_TOKEN_EXPIRES"],
            refresh_token_ttl=config["REFRESH_TOKEN_EXPIRES"],
            max_failed_attempts=config["MAX_FAILED_LOGIN_ATTEMPTS"],
            lockout_window=timedelta(minutes=config["LOCKOUT_MINUTES"]),
            revoked_retention=timedelta(hours=config["REVOKED_TOKEN_RETENTION_HOURS"]),
            production=config.get("APP_ENV") in ("prod", "production"),
            cookie_secure=config.get("COOKIE_SECURE", True),
        )
