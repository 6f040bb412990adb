"""Per-client fixed-window rate limiting for the auth endpoints."""
from __future__ import annotations

import threading
import time
from typing import Callable, Dict, Tuple

from fastapi import HTTPException, Request


class RateLimiter:
    """Counts hits per key inside a fixed window; one instance per app.

    Windows that have already reset are dropped on every check, so the map
    only holds keys seen within the last window.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._hits: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def __len__(self) -> int:
        with self._lock:
            return len(self._hits)

    def _prune(self, now: float) -> None:
        expired = [key for key, (_, reset) in self._hits.items() if reset <= now]
        for key in expired:
            del self._hits[key]

    def check(self, key: str, limit: int, window_seconds: int) -> None:
        now = self._clock()
        with self._lock:
            self._prune(now)
            count, reset = self._hits.get(key, (0, now + window_seconds))
            count += 1
            self._hits[key] = (count, reset)
            if count > limit:
                raise HTTPException(429, "Too many requests. Try again shortly.")


def client_ip(request: Request, *, trust_proxy_headers: bool = False) -> str:
    """Peer address of the request.

    ``X-Forwarded-For`` is client-controlled unless a proxy in front of the
    app rewrites it, so it is only read when ``trust_proxy_headers`` is set.
    """
    if trust_proxy_headers:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def rate_limit_ip(request: Request, scope: str, *, limit: int, window_seconds: int, trust_proxy_headers: bool = False) -> None:
    limiter: RateLimiter = request.app.state.rate_limiter
    ip = client_ip(request, trust_proxy_headers=trust_proxy_headers)
    limiter.check(f"{scope}:{ip}", limit, window_seconds)
