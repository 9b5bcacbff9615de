# vibe_api/middleware/circuit_breaker.py
# Resilience helpers for calls that leave the process
# Circuit breaker for the payment server, retry for optimistic session writes,
# timeout for health probes

import asyncio
import logging
import time
from enum import Enum
from functools import wraps
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"       # calls pass through
    OPEN = "open"           # calls fail fast
    HALF_OPEN = "half_open" # probing for recovery


class CircuitBreakerError(Exception):
    """Raised when the circuit is open and the call is rejected."""
    def __init__(self, service_name: str, recovery_time: float):
        self.service_name = service_name
        self.recovery_time = recovery_time
        super().__init__(
            f"Circuit breaker open for {service_name}. "
            f"Retry after {recovery_time:.1f} seconds."
        )


class CircuitBreaker:
    """
    Stops hammering an upstream that keeps failing.

    - CLOSED counts consecutive failures; ``failure_threshold`` of them opens it.
    - OPEN rejects calls with ``CircuitBreakerError`` until ``recovery_timeout`` passes.
    - HALF_OPEN lets calls through; ``success_threshold`` successes close it,
      any failure reopens it.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        success_threshold: int = 2
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.success_threshold = success_threshold

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time: Optional[float] = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == CircuitState.OPEN

    def _recovery_elapsed(self) -> bool:
        if self._last_failure_time is None:
            return True
        return time.time() - self._last_failure_time >= self.recovery_timeout

    def _transition_to(self, new_state: CircuitState):
        if self._state != new_state:
            logger.info(
                f"Circuit breaker '{self.name}': {self._state.value} -> {new_state.value}"
            )
            self._state = new_state

    async def _record_success(self):
        async with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._success_count += 1
                if self._success_count >= self.success_threshold:
                    self._transition_to(CircuitState.CLOSED)
                    self._failure_count = 0
                    self._success_count = 0
            elif self._state == CircuitState.CLOSED:
                self._failure_count = 0

    async def _record_failure(self):
        async with self._lock:
            self._failure_count += 1
            self._last_failure_time = time.time()

            if self._state == CircuitState.HALF_OPEN:
                self._transition_to(CircuitState.OPEN)
                self._success_count = 0
            elif self._state == CircuitState.CLOSED and self._failure_count >= self.failure_threshold:
                self._transition_to(CircuitState.OPEN)

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        """Run ``func`` through the breaker. Raises CircuitBreakerError when open."""
        async with self._lock:
            if self._state == CircuitState.OPEN:
                if self._recovery_elapsed():
                    self._transition_to(CircuitState.HALF_OPEN)
                    self._success_count = 0
                else:
                    remaining = self.recovery_timeout - (time.time() - (self._last_failure_time or 0))
                    raise CircuitBreakerError(self.name, max(0, remaining))

        try:
            if asyncio.iscoroutinefunction(func):
                result = await func(*args, **kwargs)
            else:
                result = func(*args, **kwargs)
        except Exception:
            await self._record_failure()
            raise

        await self._record_success()
        return result

    def reset(self):
        """Force the breaker back to CLOSED."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time = None
        logger.info(f"Circuit breaker '{self.name}' manually reset")


# Process-wide registry, one breaker per upstream name
_circuit_breakers: dict[str, CircuitBreaker] = {}


def get_circuit_breaker(
    name: str,
    failure_threshold: int = 5,
    recovery_timeout: float = 30.0,
    success_threshold: int = 2
) -> CircuitBreaker:
    """Get or create a circuit breaker by name."""
    if name not in _circuit_breakers:
        _circuit_breakers[name] = CircuitBreaker(
            name=name,
            failure_threshold=failure_threshold,
            recovery_timeout=recovery_timeout,
            success_threshold=success_threshold
        )
    return _circuit_breakers[name]


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    exceptions: tuple = (Exception,)
):
    """
    Retry an async function on ``exceptions`` with exponential backoff.

    Makes ``max_retries + 1`` attempts in total and re-raises the last error.

    Usage:
        @retry_with_backoff(max_retries=4, base_delay=0.05, exceptions=(WatchError,))
        async def write_session():
            ...
    """
    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_retries:
                        logger.error(
                            f"All {max_retries + 1} attempts failed for {func.__name__}: {e}"
                        )
                        raise

                    delay = min(base_delay * (2 ** attempt), max_delay)
                    logger.warning(
                        f"Attempt {attempt + 1} failed for {func.__name__}: {e}. "
                        f"Retrying in {delay:.2f}s..."
                    )
                    await asyncio.sleep(delay)
            raise RuntimeError("Retry loop exited without result")

        return wrapper
    return decorator


def with_timeout(seconds: float):
    """
    Bound an async function's run time; raises asyncio.TimeoutError.

    Usage:
        @with_timeout(2.0)
        async def ping():
            ...
    """
    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await asyncio.wait_for(func(*args, **kwargs), timeout=seconds)
            except asyncio.TimeoutError:
                logger.error(f"Timeout ({seconds}s) exceeded for {func.__name__}")
                raise

        return wrapper
    return decorator
