import math
from datetime import datetime, timedelta, timezone
from enum import Enum

from sqlalchemy import Column, String, Integer, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.types import Enum as SAEnum

from models.base_model import BaseModel, Base
from utils.security import hash_password, verify_password


class UserRole(str, Enum):
    user = "user"
    creator = "creator"
    moderator = "moderator"
    admin = "admin"


class AccountStatus(str, Enum):
    active = "active"
    suspended = "suspended"
    banned = "banned"


class User(BaseModel, Base):
    __tablename__ = "users"

    username = Column(String(30), nullable=False, unique=True, index=True)
    fullname = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    avatar = Column(String(512), nullable=False)
    cover_image = Column(String(512), nullable=False, default="")
    password_hash = Column(String(255), nullable=False)
    role = Column(SAEnum(UserRole, name="user_role", native_enum=False), nullable=False, default=UserRole.user)
    account_status = Column(
        SAEnum(AccountStatus, name="account_status", native_enum=False),
        nullable=False,
        default=AccountStatus.active,
    )
    failed_login_attempts = Column(Integer, nullable=False, default=0)
    lockout_until = Column(DateTime, nullable=True)
    last_login_at = Column(DateTime, nullable=True)
    password_changed_at = Column(DateTime, nullable=True)

    videos = relationship("Video", back_populates="owner", passive_deletes=True)
    refresh_tokens = relationship("RefreshToken", back_populates="user", passive_deletes=True)

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")

    @password.setter
    def password(self, value):
        self.password_hash = hash_password(value)

    @property
    def is_active(self) -> bool:
        return self.account_status == AccountStatus.active

    def check_password(self, candidate: str) -> bool:
        return verify_password(candidate, self.password_hash)

    def set_password(self, new_password: str, now: datetime) -> None:
        """Replace the hash and stamp password_changed_at; tokens issued before now stop working."""
        self.password_hash = hash_password(new_password)
        self.password_changed_at = now

    def password_changed_after(self, issued_at: int) -> bool:
        """True when the password changed after a token with this `iat` was issued."""
        if self.password_changed_at is None:
            return False
        changed = int(self.password_changed_at.replace(tzinfo=timezone.utc).timestamp())
        return int(issued_at) < changed

    def is_locked(self, now: datetime) -> bool:
        return self.lockout_until is not None and now < self.lockout_until

    def lockout_minutes_remaining(self, now: datetime) -> int:
        remaining = (self.lockout_until - now).total_seconds()
        return max(1, math.ceil(remaining / 60))

    def register_failed_login(self, now: datetime, max_attempts: int, lockout: timedelta) -> bool:
        """Count a failed attempt; returns True when this attempt locked the account."""
        self.failed_login_attempts = (self.failed_login_attempts or 0) + 1
        if self.failed_login_attempts >= max_attempts:
            self.lockout_until = now + lockout
            return True
        return False

    def register_successful_login(self, now: datetime) -> None:
        self.failed_login_attempts = 0
        self.lockout_until = None
        self.last_login_at = now
