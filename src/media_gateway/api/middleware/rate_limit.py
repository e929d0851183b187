"""
Rate limiting middleware for the Media Gateway API.

Implements per-client rate limiting with an in-memory fixed window.
Each client key gets a counter and a reset time; the first request after
the reset time starts a new window. Stale entries are purged by a
background task owned by the limiter.

Features:
- Automatic rate limiting on all API routes via middleware
- Per-client limiting, keyed by peer address
- Forwarded headers (X-Forwarded-For, X-Real-IP) honoured only behind a trusted proxy
- Exempt paths for the root, health probes and documentation
- Standard rate limit headers (X-RateLimit-Limit, X-RateLimit-Remaining, X-RateLimit-Reset)

Limits are per process; several instances each enforce their own budget.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from media_gateway.api.schemas.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)

DEFAULT_MAX_REQUESTS = 100
DEFAULT_WINDOW_SECONDS = 15 * 60
DEFAULT_PURGE_INTERVAL_SECONDS = 5 * 60

DEFAULT_EXEMPT_PATHS = frozenset(
    {"/", "/health", "/live", "/ready", "/docs", "/redoc", "/openapi.json"}
)


@dataclass
class RateLimitEntry:
    """Request count for one client in its current window."""

    count: int
    window_reset_at: float


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of one admission check."""

    allowed: bool
    limit: int
    remaining: int
    reset_after: float

    @property
    def retry_after(self) -> int:
        """Whole seconds until the window resets, never less than one."""
        return max(1, math.ceil(self.reset_after))

    def headers(self) -> dict[str, str]:
        """Rate limit headers for the response."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.retry_after),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after)
        return headers


class FixedWindowRateLimiter:
    """
    In-memory fixed-window rate limiter.

    Entries are created lazily on a client's first request, reset lazily
    once their window has elapsed, and removed by `purge()`. All mutation
    happens synchronously inside a single event-loop step, so no lock is
    needed.
    """

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        *,
        purge_interval_seconds: float = DEFAULT_PURGE_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the rate limiter.

        Args:
            max_requests: Maximum requests allowed per window
            window_seconds: Window length in seconds
            purge_interval_seconds: Delay between stale-entry purges
            clock: Monotonic time source (injectable for tests)
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.purge_interval_seconds = purge_interval_seconds
        self._clock = clock
        self._entries: dict[str, RateLimitEntry] = {}
        self._purge_task: asyncio.Task | None = None

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def running(self) -> bool:
        """Return True while the background purge task is alive."""
        return self._purge_task is not None and not self._purge_task.done()

    def entry(self, key: str) -> RateLimitEntry | None:
        """Return the current entry for a client key, if any."""
        return self._entries.get(key)

    def hit(self, key: str, now: float | None = None) -> RateLimitDecision:
        """
        Count one request for a client and decide whether to admit it.

        Args:
            key: Client identifier (typically the peer address)
            now: Reference time (default: clock)

        Returns:
            RateLimitDecision for this request
        """
        now = self._clock() if now is None else now
        entry = self._entries.get(key)

        if entry is None or now >= entry.window_reset_at:
            entry = RateLimitEntry(count=1, window_reset_at=now + self.window_seconds)
            self._entries[key] = entry
        elif entry.count < self.max_requests:
            entry.count += 1
        else:
            return RateLimitDecision(
                allowed=False,
                limit=self.max_requests,
                remaining=0,
                reset_after=entry.window_reset_at - now,
            )

        return RateLimitDecision(
            allowed=True,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - entry.count),
            reset_after=entry.window_reset_at - now,
        )

    def purge(self, now: float | None = None) -> int:
        """
        Delete entries whose window has elapsed.

        Returns:
            Number of entries removed
        """
        now = self._clock() if now is None else now
        stale = [key for key, entry in self._entries.items() if now >= entry.window_reset_at]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug(
                "Rate limit entries purged",
                extra={"removed": len(stale), "remaining": len(self._entries)},
            )
        return len(stale)

    def start(self) -> None:
        """Start the periodic purge on the running event loop."""
        if self.running:
            return
        self._purge_task = asyncio.get_running_loop().create_task(
            self._purge_loop(), name="rate-limit-purge"
        )

    async def stop(self) -> None:
        """Cancel the periodic purge and wait for it to finish."""
        task, self._purge_task = self._purge_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _purge_loop(self) -> None:
        while True:
            await asyncio.sleep(self.purge_interval_seconds)
            try:
                self.purge()
            except Exception:
                logger.exception("Rate limit purge failed")


def get_client_ip(request: Request, *, trust_proxy: bool = False) -> str:
    """
    Extract the client address used as the rate limit key.

    Forwarded headers are only consulted when the service runs behind a
    trusted proxy; otherwise any client could pick its own key.

    Args:
        request: Incoming request
        trust_proxy: Honour X-Forwarded-For / X-Real-IP

    Returns:
        Client IP address as string
    """
    if trust_proxy:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip.strip()

    if request.client:
        return request.client.host

    return "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    ASGI middleware applying a FixedWindowRateLimiter to API requests.

    Requests over the limit receive a 429 error envelope with a
    Retry-After header. Admitted responses carry the X-RateLimit-* headers.

    Example:
        app.add_middleware(
            RateLimitMiddleware,
            limiter=FixedWindowRateLimiter(100, 900),
            exempt_paths={"/health"},
        )
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        limiter: FixedWindowRateLimiter,
        exempt_paths: set[str] | frozenset[str] | None = None,
        trust_proxy: bool = False,
    ) -> None:
        """
        Initialize the rate limit middleware.

        Args:
            app: ASGI application
            limiter: Limiter holding the per-client windows
            exempt_paths: Paths never rate limited
            trust_proxy: Key clients by forwarded headers
        """
        super().__init__(app)
        self._limiter = limiter
        self._exempt_paths = frozenset(exempt_paths or DEFAULT_EXEMPT_PATHS)
        self._trust_proxy = trust_proxy

        logger.info(
            "Rate limit middleware initialized",
            extra={
                "max_requests": limiter.max_requests,
                "window_seconds": limiter.window_seconds,
                "exempt_paths": sorted(self._exempt_paths),
                "trust_proxy": trust_proxy,
            },
        )

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """
        Process request with rate limiting.

        Args:
            request: Incoming request
            call_next: Next middleware/route handler

        Returns:
            Response from downstream handlers or 429 if rate limited
        """
        if request.url.path in self._exempt_paths:
            return await call_next(request)

        client_ip = get_client_ip(request, trust_proxy=self._trust_proxy)
        decision = self._limiter.hit(client_ip)

        if not decision.allowed:
            from media_gateway.api.errors import error_response

            logger.warning(
                "Rate limit exceeded",
                extra={
                    "client_ip": client_ip,
                    "path": request.url.path,
                    "retry_after": decision.retry_after,
                },
            )
            return error_response(
                request,
                RateLimitExceededError(headers=decision.headers()),
            )

        response = await call_next(request)

        for key, value in decision.headers().items():
            response.headers[key] = value

        return response
