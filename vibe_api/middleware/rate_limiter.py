# vibe_api/middleware/rate_limiter.py
# Per-client request throttling
# In-memory sliding window counters, one per route family (billing, api, general)

import logging
import time
from collections import defaultdict
from typing import Dict, Tuple

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from vibe_api.middleware.error_handler import RateLimitError, create_error_response

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60
EXEMPT_PATHS = ("/health", "/health/", "/health/live", "/health/ready")
BILLING_PREFIX = "/api/credits"
API_PREFIX = "/api/"


class SlidingWindowCounter:
    """
    Sliding window rate limiter.
    Weighs the previous window's count by how much of it still overlaps.
    """

    def __init__(self, window_size: int = WINDOW_SECONDS, max_requests: int = 100):
        self.window_size = window_size  # seconds
        self.max_requests = max_requests
        # key -> (prev_count, curr_count, window_index)
        self._counters: Dict[str, Tuple[int, int, float]] = defaultdict(lambda: (0, 0, 0.0))

    def is_allowed(self, key: str) -> Tuple[bool, int]:
        """Count one request for ``key``. Returns (allowed, remaining)."""
        now = time.time()
        prev_count, curr_count, window_start = self._counters[key]

        current_window = now // self.window_size

        if window_start < current_window - 1:
            prev_count = 0
            curr_count = 1
            window_start = current_window
        elif window_start < current_window:
            prev_count = curr_count
            curr_count = 1
            window_start = current_window
        else:
            curr_count += 1

        weight = (now % self.window_size) / self.window_size
        weighted_count = prev_count * (1 - weight) + curr_count

        self._counters[key] = (prev_count, curr_count, window_start)

        remaining = max(0, int(self.max_requests - weighted_count))
        return weighted_count <= self.max_requests, remaining

    def cleanup_old_entries(self, max_age: int = 300):
        """Drop clients not seen for ``max_age`` seconds."""
        current_window = time.time() // self.window_size
        stale = [
            key for key, (_, _, window_start) in self._counters.items()
            if current_window - window_start > max_age // self.window_size
        ]
        for key in stale:
            del self._counters[key]


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Throttles by client IP.
    Billing routes get the strictest limit, other API routes the middle one.
    Health probes are never throttled.
    """

    def __init__(self, app, billing_limit: int = 20, api_limit: int = 120, general_limit: int = 200):
        super().__init__(app)
        self.billing_limiter = SlidingWindowCounter(max_requests=billing_limit)
        self.api_limiter = SlidingWindowCounter(max_requests=api_limit)
        self.general_limiter = SlidingWindowCounter(max_requests=general_limit)
        self._last_cleanup = time.time()

    def _get_client_key(self, request: Request) -> str:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

        if request.client:
            return request.client.host

        return "unknown"

    def _limiter_for(self, path: str) -> SlidingWindowCounter:
        if path.startswith(BILLING_PREFIX):
            return self.billing_limiter
        if path.startswith(API_PREFIX):
            return self.api_limiter
        return self.general_limiter

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path in EXEMPT_PATHS:
            return await call_next(request)

        now = time.time()
        if now - self._last_cleanup > 300:
            for limiter in (self.billing_limiter, self.api_limiter, self.general_limiter):
                limiter.cleanup_old_entries()
            self._last_cleanup = now

        client_key = self._get_client_key(request)
        limiter = self._limiter_for(path)
        allowed, remaining = limiter.is_allowed(client_key)

        if not allowed:
            logger.warning(f"Rate limit exceeded for {client_key} on {path}")
            err = RateLimitError(retry_after=WINDOW_SECONDS)
            return create_error_response(
                error_code=err.error_code,
                message=err.message,
                status_code=err.status_code,
                details=err.details,
                headers={"Retry-After": str(WINDOW_SECONDS), "X-RateLimit-Remaining": "0"},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Limit"] = str(limiter.max_requests)
        return response
