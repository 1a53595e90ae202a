"""
Back-office Console - Circuit Breaker
=====================================
Stops calling a backend service that keeps failing, so a dead service
turns into an immediate query error instead of a page full of timeouts.

    closed ──threshold failures──▶ open ──timeout──▶ half_open
       ▲                                               │
       └───────────── enough successes ◀───────────────┘
                       (any failure re-opens)

Usage:
    breaker = get_breaker("api.products.v1.ProductsService")
    response = await breaker.call_async(asyncio.to_thread, post, body)
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Awaitable, Callable
from typing import Any, ParamSpec, TypeVar

from backoffice.exceptions import CircuitBreakerOpenError

P = ParamSpec("P")
T = TypeVar("T")

logger = logging.getLogger(__name__)

CLOSED = "closed"
OPEN = "open"
HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Failure counter guarding one backend service.

    Args:
        failure_threshold: Consecutive failures that open the circuit.
        timeout: Seconds the circuit stays open before a trial call is let through.
        name: Service name, used in logs and in ``CircuitBreakerOpenError``.
        half_open_max_calls: Successful trial calls needed to close again.
        expected_exceptions: Only these count as failures; anything else
            propagates without touching the counters.
        clock: Monotonic time source.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        timeout: float = 30,
        *,
        name: str = "default",
        half_open_max_calls: int = 1,
        expected_exceptions: tuple[type[BaseException], ...] = (Exception,),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._threshold = failure_threshold
        self._timeout = timeout
        self._name = name
        self._trial_successes_needed = half_open_max_calls
        self._counted = expected_exceptions
        self._clock = clock

        self._state = CLOSED
        self._failures = 0
        self._trial_successes = 0
        self._opened_at: float | None = None
        # Sync callers run in worker threads
        self._lock = threading.RLock()

    # -- calls ------------------------------------------------------------------

    def call(self, func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
        """Run ``func`` unless the circuit is open (then raise ``CircuitBreakerOpenError``)."""
        self._admit()
        try:
            result = func(*args, **kwargs)
        except self._counted:
            self._record_failure()
            raise
        self._record_success()
        return result

    async def call_async(self, func: Callable[P, Awaitable[T]], *args: P.args, **kwargs: P.kwargs) -> T:
        self._admit()
        try:
            result = await func(*args, **kwargs)
        except self._counted:
            self._record_failure()
            raise
        self._record_success()
        return result

    def reset(self) -> None:
        with self._lock:
            self._move_to(CLOSED, "manual reset")

    # -- introspection ------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> str:
        with self._lock:
            return self._state

    @property
    def failure_count(self) -> int:
        with self._lock:
            return self._failures

    @property
    def is_open(self) -> bool:
        return self.state == OPEN

    def __repr__(self) -> str:
        return f"CircuitBreaker(name={self._name!r}, state={self.state}, failures={self._failures}/{self._threshold})"

    # -- state machine ------------------------------------------------------------

    def _admit(self) -> None:
        with self._lock:
            if self._state != OPEN:
                return
            open_for = self._clock() - (self._opened_at or 0.0)
            if open_for >= self._timeout:
                self._move_to(HALF_OPEN, f"open for {open_for:.1f}s")
                return
            logger.warning("Circuit %s open, rejecting call (%.1fs left)", self._name, self._timeout - open_for)
            raise CircuitBreakerOpenError(
                self._name,
                retry_after_seconds=max(1, int(self._timeout - open_for)),
                failure_count=self._failures,
            )

    def _record_success(self) -> None:
        with self._lock:
            self._failures = 0
            if self._state != HALF_OPEN:
                return
            self._trial_successes += 1
            if self._trial_successes >= self._trial_successes_needed:
                self._move_to(CLOSED, "service recovered")

    def _record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            if self._state == HALF_OPEN:
                self._move_to(OPEN, "trial call failed")
            elif self._failures >= self._threshold:
                self._move_to(OPEN, f"{self._failures} consecutive failures")
            else:
                logger.warning("Circuit %s failure %d/%d", self._name, self._failures, self._threshold)

    def _move_to(self, state: str, reason: str) -> None:
        previous, self._state = self._state, state
        self._trial_successes = 0
        if state == OPEN:
            self._opened_at = self._clock()
        elif state == CLOSED:
            self._failures = 0
            self._opened_at = None
        level = logging.ERROR if state == OPEN else logging.INFO
        logger.log(level, "Circuit %s %s -> %s (%s)", self._name, previous, state, reason)


# =============================================================================
# Registry
# =============================================================================

_breakers: dict[str, CircuitBreaker] = {}
_registry_lock = threading.Lock()


def get_breaker(service: str, **overrides: Any) -> CircuitBreaker:
    """
    The breaker for ``service``, created from settings on first use.

    Only ``RemoteProcedureError`` trips registered breakers; a bug in
    decoding or a bad argument is not a sign the service is down.
    """
    with _registry_lock:
        breaker = _breakers.get(service)
        if breaker is None:
            from backoffice.config import get_settings
            from backoffice.exceptions import RemoteProcedureError

            settings = get_settings()
            options: dict[str, Any] = {
                "failure_threshold": settings.circuit_breaker_failure_threshold,
                "timeout": settings.circuit_breaker_timeout_seconds,
                "expected_exceptions": (RemoteProcedureError,),
                **overrides,
            }
            breaker = _breakers[service] = CircuitBreaker(name=service, **options)
        return breaker


def reset_all_breakers() -> None:
    with _registry_lock:
        breakers = list(_breakers.values())
    for breaker in breakers:
        breaker.reset()


def clear_breakers() -> None:
    """Forget every registered breaker (test teardown)."""
    with _registry_lock:
        _breakers.clear()
