"""
RefreshToken model: one row per issued refresh token.

Only a sha256 hash of the raw token is stored. Tokens descended from one login
share a token_family so a replayed token can take the whole lineage down.

A record is Active while not used, not revoked and not expired. Used and
Revoked are terminal; Expired is inferred from expires_at.
"""
from __future__ import annotations

import hashlib
import secrets
from datetime import datetime, timedelta
from enum import Enum

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Index, or_, and_
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base, utcnow


class RevocationReason(str, Enum):
    logout = "logout"
    logout_all = "logout_all"
    session_revoked = "session_revoked"
    reuse_detected = "reuse_detected"
    password_changed = "password_changed"
    account_inactive = "account_inactive"


# Presenting a token revoked for one of these reasons again means it leaked
REUSE_REVOCATIONS = frozenset({
    RevocationReason.reuse_detected.value,
})


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    token_family = Column(String(32), nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False, index=True)
    is_revoked = Column(Boolean, nullable=False, default=False, index=True)
    is_used = Column(Boolean, nullable=False, default=False, index=True)
    revoked_reason = Column(String(32), nullable=True)
    user_agent = Column(String(512), nullable=False, default="")
    ip_address = Column(String(64), nullable=False, default="")

    user = relationship("User", back_populates="refresh_tokens")

    __table_args__ = (
        Index("ix_refresh_tokens_lookup", "token_hash", "is_revoked", "is_used"),
    )

    def __repr__(self):
        return f"<RefreshToken {self.id} family={self.token_family}>"

    @property
    def is_reuse(self) -> bool:
        """Presenting this record's token again means the token leaked."""
        if self.is_used:
            return True
        return self.is_revoked and self.revoked_reason in REUSE_REVOCATIONS

    def is_active(self, now: datetime) -> bool:
        return not self.is_used and not self.is_revoked and self.expires_at > now

    # -- statics -----------------------------------------------------------

    @staticmethod
    def hash_token(token: str) -> str:
        return hashlib.sha256(token.encode("utf-8")).hexdigest()

    @staticmethod
    def generate_token_family() -> str:
        return secrets.token_hex(16)

    @classmethod
    def create_token(cls, session, *, user_id: str, token: str, token_family: str,
                     expires_at: datetime, user_agent: str = "", ip_address: str = "") -> "RefreshToken":
        record = cls(
            user_id=user_id,
            token_hash=cls.hash_token(token),
            token_family=token_family,
            expires_at=expires_at,
            is_revoked=False,
            is_used=False,
            revoked_reason=None,
            user_agent=(user_agent or "")[:512],
            ip_address=(ip_address or "")[:64],
        )
        session.add(record)
        return record

    @classmethod
    def find_by_token(cls, session, token: str) -> "RefreshToken | None":
        """Any record for this token, whatever its state."""
        return session.query(cls).filter(cls.token_hash == cls.hash_token(token)).first()

    @classmethod
    def find_valid_token(cls, session, token: str, now: datetime | None = None) -> "RefreshToken | None":
        now = now or utcnow()
        return (
            session.query(cls)
            .filter(
                cls.token_hash == cls.hash_token(token),
                cls.is_revoked.is_(False),
                cls.is_used.is_(False),
                cls.expires_at > now,
            )
            .first()
        )

    @classmethod
    def mark_as_used(cls, session, token_id: str) -> bool:
        """
        Compare-and-swap is_used false -> true.
        Returns False when another request already used or revoked the record.
        """
        updated = (
            session.query(cls)
            .filter(cls.id == token_id, cls.is_used.is_(False), cls.is_revoked.is_(False))
            .update({cls.is_used: True, cls.updated_at: utcnow()}, synchronize_session="fetch")
        )
        return updated == 1

    @classmethod
    def revoke_token(cls, session, token: str, reason: RevocationReason) -> int:
        return (
            session.query(cls)
            .filter(cls.token_hash == cls.hash_token(token), cls.is_revoked.is_(False))
            .update(
                {cls.is_revoked: True, cls.revoked_reason: reason.value, cls.updated_at: utcnow()},
                synchronize_session="fetch",
            )
        )

    @classmethod
    def revoke_token_family(cls, session, token_family: str, reason: RevocationReason) -> int:
        return (
            session.query(cls)
            .filter(cls.token_family == token_family, cls.is_revoked.is_(False))
            .update(
                {cls.is_revoked: True, cls.revoked_reason: reason.value, cls.updated_at: utcnow()},
                synchronize_session="fetch",
            )
        )

    @classmethod
    def revoke_all_user_tokens(cls, session, user_id: str, reason: RevocationReason) -> int:
        return (
            session.query(cls)
            .filter(cls.user_id == user_id, cls.is_revoked.is_(False))
            .update(
                {cls.is_revoked: True, cls.revoked_reason: reason.value, cls.updated_at: utcnow()},
                synchronize_session="fetch",
            )
        )

    @classmethod
    def get_user_sessions(cls, session, user_id: str, now: datetime | None = None) -> list:
        now = now or utcnow()
        return (
            session.query(cls)
            .filter(
                cls.user_id == user_id,
                cls.is_revoked.is_(False),
                cls.is_used.is_(False),
                cls.expires_at > now,
            )
            .order_by(cls.created_at.desc())
            .all()
        )

    @classmethod
    def cleanup_expired_tokens(cls, session, now: datetime | None = None,
                               revoked_retention: timedelta = timedelta(hours=24)) -> int:
        now = now or utcnow()
        return (
            session.query(cls)
            .filter(
                or_(
                    cls.expires_at < now,
                    and_(cls.is_revoked.is_(True), cls.created_at < now - revoked_retention),
                )
            )
            .delete(synchronize_session="fetch")
        )
