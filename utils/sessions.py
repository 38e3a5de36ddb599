"""
Session lifecycle: login, refresh-token rotation with reuse detection, logout,
session listing/revocation and cleanup.

Every refresh token belongs to a token family started at login. Refreshing
marks the presented record used (a conditional UPDATE, so only one concurrent
caller can win) and issues the next token in the same family. Presenting a
used token, or one revoked after reuse was detected, revokes the whole family:
either the legitimate client or a thief holds a stale copy, and we cannot
tell which.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List

from sqlalchemy import or_

from models.base_model import utcnow
from models.refresh_token import RefreshToken, RevocationReason
from models.user import User, AccountStatus
from utils.exceptions import (
    AccountBanned,
    AccountLocked,
    AccountNotActive,
    AccountSuspended,
    InvalidCredentials,
    InvalidOrExpired,
    MissingToken,
    NotFound,
    PasswordChanged,
    SessionInvalidated,
)

logger = logging.getLogger(__name__)

_STRIP_CHARS = str.maketrans("", "", "<>'\"")


def sanitize_identifier(value) -> str:
    """Lower-case, drop <>'" and surrounding whitespace."""
    if not isinstance(value, str):
        return ""
    return value.lower().translate(_STRIP_CHARS).strip()


@dataclass(frozen=True)
class ClientInfo:
    user_agent: str = "unknown"
    ip_address: str = "unknown"


@dataclass
class IssuedSession:
    """A fresh (access, refresh) pair plus the user it was issued to."""
    user: User
    access_token: str
    refresh_token: str
    record: RefreshToken


class SessionManager:
    def __init__(self, storage, tokens, settings, clock: Callable[[], datetime] = utcnow):
        self.storage = storage
        self.tokens = tokens
        self.settings = settings
        self.clock = clock

    @property
    def db(self):
        return self.storage.get_session()

    # -- issuing -------------------------------------------------------------

    def _issue(self, user: User, token_family: str, client: ClientInfo) -> IssuedSession:
        access = self.tokens.issue_access_token(user)
        refresh = self.tokens.issue_refresh_token(user)
        record = RefreshToken.create_token(
            self.db,
            user_id=user.id,
            token=refresh,
            token_family=token_family,
            expires_at=self.clock() + self.settings.refresh_token_ttl,
            user_agent=client.user_agent,
            ip_address=client.ip_address,
        )
        return IssuedSession(user=user, access_token=access, refresh_token=refresh, record=record)

    def _revoke_family_and_raise(self, record: RefreshToken, reason: RevocationReason, error):
        # Committed before raising: the revocation must outlive the failed request
        RefreshToken.revoke_token_family(self.db, record.token_family, reason)
        self.storage.save()
        raise error

    def _revoked_while_inactive(self, existing: RefreshToken | None) -> bool:
        if existing is None or existing.revoked_reason != RevocationReason.account_inactive.value:
            return False
        user = self.storage.get(User, existing.user_id)
        return user is not None and not user.is_active

    # -- operations ----------------------------------------------------------

    def login(self, identifier: str, password: str, client: ClientInfo = ClientInfo()) -> IssuedSession:
        ident = sanitize_identifier(identifier)
        user = None
        if ident:
            user = (
                self.db.query(User)
                .filter(or_(User.username == ident, User.email == ident))
                .first()
            )
        # Same error for unknown user and wrong password
        if user is None:
            raise InvalidCredentials()

        if user.account_status == AccountStatus.banned:
            raise AccountBanned()
        if user.account_status == AccountStatus.suspended:
            raise AccountSuspended()

        now = self.clock()
        if user.is_locked(now):
            minutes = user.lockout_minutes_remaining(now)
            raise AccountLocked(f"Account locked. Try again in {minutes} minutes")

        if not user.check_password(password or ""):
            locked = user.register_failed_login(
                now, self.settings.max_failed_attempts, self.settings.lockout_window
            )
            self.storage.save()
            if locked:
                logger.warning("Account %s locked after %d failed logins", user.id, user.failed_login_attempts)
            raise InvalidCredentials()

        user.register_successful_login(now)
        issued = self._issue(user, RefreshToken.generate_token_family(), client)
        self.storage.save()
        logger.info("User %s logged in from %s", user.id, client.ip_address)
        return issued

    def refresh(self, raw_token: str | None, client: ClientInfo = ClientInfo()) -> IssuedSession:
        if not raw_token:
            raise MissingToken()

        existing = RefreshToken.find_by_token(self.db, raw_token)
        if existing is not None and existing.is_reuse:
            logger.warning(
                "Refresh token reuse detected for user %s; revoking family %s",
                existing.user_id,
                existing.token_family,
            )
            self._revoke_family_and_raise(existing, RevocationReason.reuse_detected, SessionInvalidated())

        claims = self.tokens.verify_refresh(raw_token)

        record = RefreshToken.find_valid_token(self.db, raw_token, self.clock())
        if record is None and self._revoked_while_inactive(existing):
            raise AccountNotActive()
        if record is None or record.user_id != claims["sub"]:
            raise InvalidOrExpired()

        user = self.storage.get(User, record.user_id)
        if user is None:
            raise InvalidOrExpired("User not found")

        if user.password_changed_after(claims["iat"]):
            self._revoke_family_and_raise(record, RevocationReason.password_changed, PasswordChanged())

        if not user.is_active:
            self._revoke_family_and_raise(record, RevocationReason.account_inactive, AccountNotActive())

        if not RefreshToken.mark_as_used(self.db, record.id):
            # Lost the race against a concurrent refresh with the same token
            logger.warning("Concurrent use of refresh token in family %s", record.token_family)
            self._revoke_family_and_raise(record, RevocationReason.reuse_detected, SessionInvalidated())

        issued = self._issue(user, record.token_family, client)
        self.storage.save()
        return issued

    def logout(self, raw_token: str | None) -> None:
        if not raw_token:
            return
        RefreshToken.revoke_token(self.db, raw_token, RevocationReason.logout)
        self.storage.save()

    def logout_all(self, user_id: str) -> int:
        count = RefreshToken.revoke_all_user_tokens(self.db, user_id, RevocationReason.logout_all)
        self.storage.save()
        logger.info("Revoked %d sessions for user %s", count, user_id)
        return count

    def list_sessions(self, user_id: str) -> List[RefreshToken]:
        return RefreshToken.get_user_sessions(self.db, user_id, self.clock())

    def revoke_session(self, session_id: str, user_id: str) -> RefreshToken:
        record = (
            self.db.query(RefreshToken)
            .filter(
                RefreshToken.id == session_id,
                RefreshToken.user_id == user_id,
                RefreshToken.is_revoked.is_(False),
            )
            .first()
        )
        if record is None:
            raise NotFound()
        record.is_revoked = True
        record.revoked_reason = RevocationReason.session_revoked.value
        self.storage.save()
        return record

    def revoke_user_sessions(self, user_id: str, reason: RevocationReason) -> int:
        """Revoke every refresh token of a user for a security reason."""
        return RefreshToken.revoke_all_user_tokens(self.db, user_id, reason)

    def cleanup_expired_tokens(self) -> int:
        deleted = RefreshToken.cleanup_expired_tokens(
            self.db, self.clock(), self.settings.revoked_retention
        )
        self.storage.save()
        logger.info("Refresh token cleanup removed %d records", deleted)
        return deleted

    def change_password(self, user: User, current_password: str, new_password: str,
                        client: ClientInfo = ClientInfo()) -> IssuedSession:
        """Set a new password, end every session of the user and open a new one."""
        if not user.check_password(current_password or ""):
            raise InvalidCredentials("Current password is incorrect")
        user.set_password(new_password, self.clock())
        self.revoke_user_sessions(user.id, RevocationReason.password_changed)
        issued = self._issue(user, RefreshToken.generate_token_family(), client)
        self.storage.save()
        logger.info("Password changed for user %s", user.id)
        return issued
