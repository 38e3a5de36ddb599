import threading
from datetime import timedelta

import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from models import storage
from models.base_model import utcnow
from models.refresh_token import RefreshToken, RevocationReason
from models.user import AccountStatus
from utils.exceptions import (
    AccountBanned,
    AccountLocked,
    AccountNotActive,
    AccountSuspended,
    InvalidCredentials,
    InvalidOrExpired,
    InvalidToken,
    MissingToken,
    NotFound,
    PasswordChanged,
    SessionInvalidated,
)
from utils.sessions import ClientInfo, SessionManager, sanitize_identifier
from tests.helpers import PASSWORD, fresh


class Clock:
    def __init__(self):
        self.now = utcnow()

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def manager(app, clock):
    return SessionManager(
        storage, app.extensions["token_service"], app.extensions["auth_settings"], clock=clock
    )


def family_records(family):
    return storage.get_session().query(RefreshToken).filter(RefreshToken.token_family == family).all()


def test_sanitize_identifier():
    assert sanitize_identifier("  Alice<script> ") == "alicescript"
    assert sanitize_identifier("O'Neil@Example.com") == "oneil@example.com"
    assert sanitize_identifier(None) == ""


def test_login_by_username_or_email(manager, alice):
    issued = manager.login("  ALICE ", PASSWORD, ClientInfo("pytest-agent", "10.0.0.1"))
    assert issued.user.id == alice.id
    assert issued.access_token and issued.refresh_token
    assert issued.record.user_agent == "pytest-agent"
    assert issued.record.ip_address == "10.0.0.1"
    assert issued.record.token_hash == RefreshToken.hash_token(issued.refresh_token)

    again = manager.login("alice@example.com", PASSWORD)
    assert again.record.token_family != issued.record.token_family
    assert fresh(alice).last_login_at is not None


def test_unknown_user_and_wrong_password_look_the_same(manager, alice):
    with pytest.raises(InvalidCredentials) as unknown:
        manager.login("nobody", PASSWORD)
    with pytest.raises(InvalidCredentials) as wrong:
        manager.login("alice", "Wrong1")
    assert unknown.value.message == wrong.value.message
    assert fresh(alice).failed_login_attempts == 1


def test_lockout_after_five_failures(manager, clock, alice):
    for _ in range(5):
        with pytest.raises(InvalidCredentials):
            manager.login("alice", "Wrong1")

    with pytest.raises(AccountLocked) as exc:
        manager.login("alice", PASSWORD)
    assert exc.value.status_code == 423
    assert "15 minutes" in exc.value.message

    clock.advance(minutes=16)
    issued = manager.login("alice", PASSWORD)
    user = fresh(issued.user)
    assert user.failed_login_attempts == 0
    assert user.lockout_until is None


def test_successful_login_resets_counter(manager, alice):
    for _ in range(3):
        with pytest.raises(InvalidCredentials):
            manager.login("alice", "Wrong1")
    manager.login("alice", PASSWORD)
    assert fresh(alice).failed_login_attempts == 0


@pytest.mark.parametrize("status,error", [
    (AccountStatus.banned, AccountBanned),
    (AccountStatus.suspended, AccountSuspended),
])
def test_inactive_accounts_cannot_login(manager, make_user, status, error):
    make_user("carol", account_status=status)
    with pytest.raises(error):
        manager.login("carol", PASSWORD)


def test_refresh_rotates_within_family(manager, alice):
    first = manager.login("alice", PASSWORD)
    second = manager.refresh(first.refresh_token)

    assert second.refresh_token != first.refresh_token
    assert second.record.token_family == first.record.token_family
    assert fresh(first.record).is_used is True
    assert second.record.is_active(utcnow())


def test_refresh_requires_a_token(manager):
    with pytest.raises(MissingToken):
        manager.refresh(None)
    with pytest.raises(InvalidToken):
        manager.refresh("not-a-jwt")


def test_replayed_token_revokes_family(manager, alice):
    first = manager.login("alice", PASSWORD)
    other_device = manager.login("alice", PASSWORD)
    second = manager.refresh(first.refresh_token)

    with pytest.raises(SessionInvalidated):
        manager.refresh(first.refresh_token)

    records = family_records(first.record.token_family)
    assert len(records) == 2
    assert all(r.is_revoked for r in records)
    assert fresh(second.record).revoked_reason == "reuse_detected"

    # The legitimately rotated token is dead too
    with pytest.raises(SessionInvalidated):
        manager.refresh(second.refresh_token)

    # Other families are untouched
    assert manager.refresh(other_device.refresh_token).refresh_token


def test_sequential_double_refresh_only_one_wins(manager, alice):
    issued = manager.login("alice", PASSWORD)
    results = []
    for _ in range(2):
        try:
            results.append(manager.refresh(issued.refresh_token))
        except SessionInvalidated as err:
            results.append(err)
    assert sum(not isinstance(r, Exception) for r in results) == 1


def test_losing_the_rotation_race_is_treated_as_reuse(manager, alice, monkeypatch):
    issued = manager.login("alice", PASSWORD)
    real_find = RefreshToken.find_valid_token

    def racing(session, token, now=None):
        record = real_find(session, token, now)
        # A concurrent request marks the record used between lookup and update
        session.execute(
            update(RefreshToken).where(RefreshToken.id == record.id).values(is_used=True),
            execution_options={"synchronize_session": False},
        )
        return record

    monkeypatch.setattr(RefreshToken, "find_valid_token", racing)

    with pytest.raises(SessionInvalidated):
        manager.refresh(issued.refresh_token)

    records = family_records(issued.record.token_family)
    assert len(records) == 1
    assert records[0].is_revoked


def test_logout_all_makes_old_tokens_invalid_not_stolen(manager, alice):
    a = manager.login("alice", PASSWORD)
    b = manager.login("alice", PASSWORD)

    assert manager.logout_all(alice.id) == 2

    for issued in (a, b):
        with pytest.raises(InvalidOrExpired):
            manager.refresh(issued.refresh_token)
    assert manager.list_sessions(alice.id) == []


def test_logout_revokes_one_token(manager, alice):
    a = manager.login("alice", PASSWORD)
    b = manager.login("alice", PASSWORD)
    manager.logout(a.refresh_token)
    manager.logout(None)

    with pytest.raises(InvalidOrExpired):
        manager.refresh(a.refresh_token)
    assert manager.refresh(b.refresh_token)


def test_expired_record_is_invalid(manager, clock, alice):
    issued = manager.login("alice", PASSWORD)
    clock.advance(days=8)
    with pytest.raises(InvalidOrExpired):
        manager.refresh(issued.refresh_token)


def test_refresh_for_inactive_account_revokes_family(manager, alice):
    issued = manager.login("alice", PASSWORD)
    alice.account_status = AccountStatus.suspended
    storage.save()

    with pytest.raises(AccountNotActive):
        manager.refresh(issued.refresh_token)
    record = fresh(issued.record)
    assert record.is_revoked and record.revoked_reason == "account_inactive"

    # Presenting it again is still an inactive account, not a stolen token
    with pytest.raises(AccountNotActive):
        manager.refresh(issued.refresh_token)


def test_refresh_after_suspension_is_not_reuse(manager, alice, caplog):
    issued = manager.login("alice", PASSWORD)
    manager.revoke_user_sessions(alice.id, RevocationReason.account_inactive)
    alice.account_status = AccountStatus.suspended
    storage.save()

    with caplog.at_level("WARNING", logger="utils.sessions"):
        with pytest.raises(AccountNotActive):
            manager.refresh(issued.refresh_token)
    assert "reuse" not in caplog.text
    assert fresh(issued.record).revoked_reason == "account_inactive"

    # Once reactivated the old token is simply dead
    alice.account_status = AccountStatus.active
    storage.save()
    with pytest.raises(InvalidOrExpired):
        manager.refresh(issued.refresh_token)


def test_refresh_after_password_change_revokes_family(manager, alice):
    issued = manager.login("alice", PASSWORD)
    alice.password_changed_at = utcnow() + timedelta(seconds=5)
    storage.save()

    with pytest.raises(PasswordChanged):
        manager.refresh(issued.refresh_token)
    assert fresh(issued.record).revoked_reason == "password_changed"


def test_change_password_ends_every_session(manager, alice):
    old = manager.login("alice", PASSWORD)

    with pytest.raises(InvalidCredentials):
        manager.change_password(alice, "Wrong1", "Newpass123")

    issued = manager.change_password(alice, PASSWORD, "Newpass123")
    assert issued.record.token_family != old.record.token_family

    with pytest.raises(InvalidOrExpired):
        manager.refresh(old.refresh_token)
    assert manager.refresh(issued.refresh_token)

    with pytest.raises(InvalidCredentials):
        manager.login("alice", PASSWORD)
    assert manager.login("alice", "Newpass123")


def test_list_and_revoke_sessions(manager, alice, make_user):
    a = manager.login("alice", PASSWORD)
    b = manager.login("alice", PASSWORD)
    bob = make_user("bob")
    bob_session = manager.login("bob", PASSWORD)

    assert {s.id for s in manager.list_sessions(alice.id)} == {a.record.id, b.record.id}

    with pytest.raises(NotFound):
        manager.revoke_session(bob_session.record.id, alice.id)

    manager.revoke_session(a.record.id, alice.id)
    assert [s.id for s in manager.list_sessions(alice.id)] == [b.record.id]
    with pytest.raises(NotFound):
        manager.revoke_session(a.record.id, alice.id)
    assert manager.list_sessions(bob.id)


def test_cleanup_expired_tokens(manager, clock, alice):
    manager.login("alice", PASSWORD)
    clock.advance(days=8)
    current = manager.login("alice", PASSWORD)

    assert manager.cleanup_expired_tokens() == 1
    assert [s.id for s in manager.list_sessions(alice.id)] == [current.record.id]


def test_concurrent_refresh_on_shared_database(app, manager, make_user, tmp_path):
    # Real threads against a file database, so each thread gets its own connection
    app.config["DATABASE_URL"] = f"sqlite:///{tmp_path / 'race.db'}"
    storage.init_app(app)
    make_user("alice")
    issued = manager.login("alice", PASSWORD)
    storage.close()

    barrier = threading.Barrier(2)
    outcomes = []

    def attempt():
        barrier.wait()
        try:
            outcomes.append(manager.refresh(issued.refresh_token))
        except (SessionInvalidated, OperationalError) as err:
            # A writer that cannot get the SQLite lock fails without rotating
            outcomes.append(err)
        finally:
            storage.close()

    threads = [threading.Thread(target=attempt) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert len(outcomes) == 2
    assert sum(not isinstance(o, Exception) for o in outcomes) == 1

    records = family_records(issued.record.token_family)
    assert len(records) == 2
    original = next(r for r in records if r.id == issued.record.id)
    assert original.is_used is True
