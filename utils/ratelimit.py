"""
In-memory sliding-window rate limiter.

Counts live in the process, so limits are per worker. Put a shared limiter
(e.g. at the proxy) in front when running several workers.
"""
from __future__ import annotations

import threading
from collections import defaultdict, deque
from functools import wraps
from time import monotonic
from typing import Callable

from flask import current_app, request

from utils.exceptions import TooManyRequests


class RateLimiter:
    def __init__(self, clock: Callable[[], float] = monotonic, sweep_interval: float = 60.0):
        self.clock = clock
        self.sweep_interval = sweep_interval
        self.hits = defaultdict(deque)
        self.windows = {}
        self._last_sweep = clock()
        self._lock = threading.Lock()

    def allow(self, key: str, limit: int, window: float) -> bool:
        now = self.clock()
        with self._lock:
            if now - self._last_sweep >= self.sweep_interval:
                self._sweep(now)
            q = self.hits[key]
            self.windows[key] = window
            while q and now - q[0] >= window:
                q.popleft()
            if len(q) >= limit:
                return False
            q.append(now)
            return True

    def _sweep(self, now: float):
        """Forget keys whose every hit fell out of their window."""
        stale = [k for k, q in self.hits.items() if not q or now - q[-1] >= self.windows.get(k, 0)]
        for key in stale:
            del self.hits[key]
            self.windows.pop(key, None)
        self._last_sweep = now

    def reset(self):
        with self._lock:
            self.hits.clear()
            self.windows.clear()


def client_ip() -> str:
    return request.remote_addr or "unknown"


def rate_limit(config_key: str, scope: str, key_func: Callable[[], str] = client_ip,
               message: str | None = None):
    """
    Reject with 429 once `key_func()` exceeded the (limit, window) stored
    under `config_key` in the app config. Disabled when RATELIMIT_ENABLED is off.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if current_app.config.get("RATELIMIT_ENABLED", True):
                limit, window = current_app.config[config_key]
                limiter = current_app.extensions["rate_limiter"]
                if not limiter.allow(f"{scope}:{key_func()}", limit, window):
                    raise TooManyRequests(message)
            return fn(*args, **kwargs)

        return wrapper

    return decorator
