"""
Process-wide remote query cache.

Maps ``QueryKey`` to the latest ``QueryState`` of that invocation and owns
the in-flight operation for each key. All mutation happens on the event
loop thread, so no locks are taken.

Guarantees:
- at most one in-flight operation per key; later callers attach to it
- a disabled request never calls its fetcher and stays ``idle``
- failures keep the last good payload (as ``stale_data``)
- a result whose operation was superseded (entry invalidated or removed)
  is dropped instead of applied

Usage:
    cache = get_query_cache()
    state = await cache.execute(resolve_query(LIST_PRODUCTS, params, required=["familyExternalId"]), fetcher)
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from backoffice.exceptions import QueryCancelledError
from backoffice.logging_config import LogContext
from backoffice.query.keys import QueryKey, QueryRequest
from backoffice.query.state import IDLE, QueryState

logger = logging.getLogger(__name__)


class CancellationToken:
    """Soft cancellation flag handed to a fetcher."""

    def __init__(self, label: str = "") -> None:
        self._label = label
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise QueryCancelledError(self._label)

    def __repr__(self) -> str:
        return f"CancellationToken({self._label!r}, cancelled={self._cancelled})"


Fetcher = Callable[[Mapping[str, Any], CancellationToken], Awaitable[Any]]
Listener = Callable[[QueryState], None]


@dataclass(eq=False)
class _Entry:
    key: QueryKey
    fetcher: Fetcher
    state: QueryState = IDLE
    task: asyncio.Task | None = None
    token: CancellationToken | None = None
    observers: int = 0

    @property
    def in_flight(self) -> bool:
        return self.task is not None and not self.task.done()


@dataclass
class CacheStats:
    calls: int = 0
    attached: int = 0
    discarded: int = 0
    fresh_hits: int = 0
    by_procedure: dict[str, int] = field(default_factory=dict)


class QueryCache:
    """
    Keyed query state with deduplicated execution.

    Args:
        stale_after: Seconds a successful result stays fresh. A fresh entry
            is served by ``execute`` without calling the fetcher again.
        clock: Time source for ``fetched_at`` (patched in tests).
    """

    def __init__(self, *, stale_after: float = 0.0, clock: Callable[[], float] = time.time) -> None:
        self._entries: dict[QueryKey, _Entry] = {}
        self._listeners: dict[QueryKey, list[Listener]] = {}
        self._stale_after = stale_after
        self._clock = clock
        self.stats = CacheStats()

    # =========================================================================
    # Storage
    # =========================================================================

    def get(self, key: QueryKey | None) -> QueryState:
        """Current state for ``key``; ``idle`` when nothing is cached."""
        if key is None:
            return IDLE
        entry = self._entries.get(key)
        return entry.state if entry else IDLE

    def set(self, key: QueryKey, state: QueryState) -> None:
        """Replace the state of an existing entry (e.g. after a local edit)."""
        entry = self._entries.get(key)
        if entry is None:
            raise KeyError(f"No cached query for {key}")
        self._apply(entry, state)

    def invalidate(self, key: QueryKey) -> asyncio.Task | None:
        """
        Mark ``key`` as outdated.

        An entry someone still observes is re-fetched (the in-flight call,
        if any, is superseded); an unobserved entry is evicted.
        """
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.observers <= 0:
            self.remove(key)
            return None
        self._cancel(entry)
        return self._begin(entry)

    def remove(self, key: QueryKey) -> None:
        """Evict ``key``; an in-flight result for it will be dropped."""
        entry = self._entries.pop(key, None)
        if entry is None:
            return
        self._cancel(entry)
        logger.debug("Evicted query %s", key)

    def clear(self) -> None:
        for key in list(self._entries):
            self.remove(key)
        self._listeners.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def in_flight(self, key: QueryKey | None) -> bool:
        entry = self._entries.get(key) if key is not None else None
        return bool(entry and entry.in_flight)

    # =========================================================================
    # Observation
    # =========================================================================

    def subscribe(self, key: QueryKey, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with every state transition of ``key``."""
        self._listeners.setdefault(key, []).append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(key)
            if listeners and listener in listeners:
                listeners.remove(listener)
                if not listeners:
                    del self._listeners[key]

        return unsubscribe

    def retain(self, key: QueryKey, fetcher: Fetcher) -> None:
        """Register a component's interest in ``key``."""
        self._entry_for(key, fetcher).observers += 1

    def release(self, key: QueryKey) -> None:
        """Drop a component's interest; the last release evicts the entry."""
        entry = self._entries.get(key)
        if entry is None:
            return
        entry.observers -= 1
        if entry.observers <= 0:
            self.remove(key)

    # =========================================================================
    # Execution
    # =========================================================================

    def start(self, request: QueryRequest, fetcher: Fetcher) -> QueryState:
        """
        Begin (or attach to) the operation for ``request`` without waiting.

        Must be called on the event loop thread.
        """
        if not request.enabled:
            return IDLE
        entry = self._entry_for(request.key, fetcher)
        if entry.in_flight:
            self.stats.attached += 1
            return entry.state
        if self._is_fresh(entry.state):
            self.stats.fresh_hits += 1
            return entry.state
        self._begin(entry)
        return entry.state

    async def execute(self, request: QueryRequest, fetcher: Fetcher) -> QueryState:
        """Run ``request`` (deduplicated) and return the settled state."""
        self.start(request, fetcher)
        if not request.enabled:
            return IDLE
        return await self.settle(request.key)

    async def settle(self, key: QueryKey) -> QueryState:
        """Wait out any in-flight operation for ``key`` and return its state."""
        # Loops when an invalidation replaced the call we were waiting on
        while (entry := self._entries.get(key)) is not None and entry.in_flight:
            # Shielded: a caller going away must not abort a shared call
            await asyncio.shield(entry.task)
        return self.get(key)

    def refetch(self, key: QueryKey) -> asyncio.Task | None:
        """
        Re-invoke the procedure for ``key``, keeping the displayed data.

        Returns the in-flight task (an existing one when already loading),
        or ``None`` when ``key`` was never executed.
        """
        entry = self._entries.get(key)
        if entry is None:
            logger.debug("Refetch of unknown query %s ignored", key)
            return None
        if entry.in_flight:
            self.stats.attached += 1
            return entry.task
        return self._begin(entry)

    # =========================================================================
    # Internals
    # =========================================================================

    def _entry_for(self, key: QueryKey, fetcher: Fetcher) -> _Entry:
        entry = self._entries.get(key)
        if entry is None:
            entry = _Entry(key=key, fetcher=fetcher)
            self._entries[key] = entry
        else:
            entry.fetcher = fetcher
        return entry

    def _is_fresh(self, state: QueryState) -> bool:
        if not state.is_success or self._stale_after <= 0:
            return False
        age = state.age(self._clock())
        return age is not None and age < self._stale_after

    def _begin(self, entry: _Entry) -> asyncio.Task:
        loop = asyncio.get_running_loop()
        token = CancellationToken(str(entry.key))
        entry.token = token
        self.stats.calls += 1
        name = entry.key.procedure.name
        self.stats.by_procedure[name] = self.stats.by_procedure.get(name, 0) + 1
        self._apply(entry, QueryState.loading(entry.state))
        entry.task = loop.create_task(self._run(entry, token), name=f"query:{entry.key}")
        return entry.task

    async def _run(self, entry: _Entry, token: CancellationToken) -> None:
        # Task-local; each query task runs in a copied context
        LogContext.set_query(str(entry.key))
        started = time.perf_counter()
        try:
            result = await entry.fetcher(entry.key.as_dict(), token)
        except Exception as exc:
            if self._superseded(entry, token):
                self._discard(entry, token, "failure")
                return
            logger.warning(
                "Query %s failed: %s",
                entry.key,
                exc,
                extra={"procedure": entry.key.procedure.name, "error_type": type(exc).__name__},
            )
            self._apply(entry, QueryState.failed(exc, entry.state))
            return
        finally:
            if entry.token is token:
                entry.task = None
                entry.token = None

        if self._superseded(entry, token):
            self._discard(entry, token, "result")
            return
        logger.debug(
            "Query %s settled in %.1fms",
            entry.key,
            (time.perf_counter() - started) * 1000,
        )
        self._apply(entry, QueryState.succeeded(result, fetched_at=self._clock()))

    def _superseded(self, entry: _Entry, token: CancellationToken) -> bool:
        return token.cancelled or self._entries.get(entry.key) is not entry

    def _discard(self, entry: _Entry, token: CancellationToken, what: str) -> None:
        self.stats.discarded += 1
        logger.debug("Dropped superseded %s for %s (%r)", what, entry.key, token)

    def _cancel(self, entry: _Entry) -> None:
        if entry.token is not None:
            entry.token.cancel()
        entry.token = None
        entry.task = None

    def _apply(self, entry: _Entry, state: QueryState) -> None:
        entry.state = state
        for listener in list(self._listeners.get(entry.key, ())):
            try:
                listener(state)
            except Exception:
                logger.exception("Query listener failed for %s", entry.key)


# =============================================================================
# Process-wide instance
# =============================================================================

_cache: QueryCache | None = None


def get_query_cache() -> QueryCache:
    """Get the process-wide query cache."""
    global _cache
    if _cache is None:
        from backoffice.config import get_settings

        _cache = QueryCache(stale_after=get_settings().query_stale_seconds)
    return _cache


def reset_query_cache() -> None:
    """Drop every cached query (teardown / tests)."""
    global _cache
    if _cache is not None:
        _cache.clear()
    _cache = None
