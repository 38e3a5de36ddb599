from utils.ratelimit import RateLimiter
from tests.helpers import API, login


class FakeClock:
    def __init__(self):
        self.t = 1000.0

    def __call__(self):
        return self.t


def test_sliding_window():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)
    assert limiter.allow("k", 2, 60)
    assert limiter.allow("k", 2, 60)
    assert not limiter.allow("k", 2, 60)
    assert limiter.allow("other", 2, 60)

    clock.t += 61
    assert limiter.allow("k", 2, 60)


def test_reset():
    limiter = RateLimiter()
    assert limiter.allow("k", 1, 60)
    assert not limiter.allow("k", 1, 60)
    limiter.reset()
    assert limiter.allow("k", 1, 60)


def test_login_limit_is_per_identifier(app, client, alice, make_user):
    make_user("bob")
    app.config["RATELIMIT_ENABLED"] = True
    app.config["RATELIMIT_LOGIN"] = (2, 900)

    assert login(client, "alice", "Wrong1").status_code == 401
    assert login(client, "alice", "Wrong1").status_code == 401
    resp = login(client, "alice")
    assert resp.status_code == 429
    body = resp.get_json()
    assert body["success"] is False
    assert body["message"] == "Too many login attempts. Please try again later"

    assert login(client, "bob").status_code == 200


def test_refresh_limit(app, client):
    app.config["RATELIMIT_ENABLED"] = True
    app.config["RATELIMIT_REFRESH"] = (1, 900)
    assert client.post(f"{API}/auth/refresh").status_code == 401
    assert client.post(f"{API}/auth/refresh").status_code == 429


def test_disabled_in_testing(client):
    for _ in range(10):
        assert client.post(f"{API}/auth/refresh").status_code == 401


def test_idle_keys_are_forgotten():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock, sweep_interval=30)
    assert limiter.allow("login:1.2.3.4:mallory1", 5, 60)
    assert limiter.allow("login:1.2.3.4:mallory2", 5, 60)
    assert limiter.allow("refresh:1.2.3.4", 5, 600)

    clock.t += 61
    assert limiter.allow("login:1.2.3.4:alice", 5, 60)
    assert "login:1.2.3.4:mallory1" not in limiter.hits
    assert "login:1.2.3.4:mallory2" not in limiter.hits
    assert "login:1.2.3.4:mallory1" not in limiter.windows
    # Still inside its longer window
    assert "refresh:1.2.3.4" in limiter.hits
    assert set(limiter.hits) == {"refresh:1.2.3.4", "login:1.2.3.4:alice"}


def test_sweep_keeps_counting_live_keys():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock, sweep_interval=10)
    assert limiter.allow("k", 1, 60)
    clock.t += 20
    assert not limiter.allow("k", 1, 60)


def test_login_with_non_object_body_is_rejected(app, client):
    app.config["RATELIMIT_ENABLED"] = True
    resp = client.post(f"{API}/auth/login", json=["alice", "Secret123"])
    assert resp.status_code == 422
    assert resp.get_json()["success"] is False
