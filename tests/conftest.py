import pytest

from api import create_app
from models import storage
from models.user import User, UserRole
from utils.decorators import ACCESS_COOKIE, REFRESH_COOKIE
from tests.helpers import PASSWORD, login, cookie_value


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        yield app
    storage.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def session_manager(app):
    return app.extensions["session_manager"]


@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make(username=None, password=PASSWORD, role=UserRole.user, **kwargs):
        counter["n"] += 1
        username = username or f"user{counter['n']}"
        user = User(
            username=username,
            fullname=kwargs.pop("fullname", username.title()),
            email=kwargs.pop("email", f"{username}@example.com"),
            avatar=kwargs.pop("avatar", "https://cdn.example.com/avatar.png"),
            password=password,
            role=role,
            **kwargs,
        )
        storage.new(user)
        storage.save()
        return user

    return _make


@pytest.fixture
def alice(make_user):
    return make_user("alice")


@pytest.fixture
def auth_client(app, alice):
    client = app.test_client()
    resp = login(client, "alice")
    assert resp.status_code == 200
    assert cookie_value(client, ACCESS_COOKIE)
    assert cookie_value(client, REFRESH_COOKIE)
    return client


@pytest.fixture
def client_for(app):
    """Logged-in test client for any user."""
    def _client(user):
        client = app.test_client()
        assert login(client, user.username).status_code == 200
        return client

    return _client
