"""
Per-page binding to the query cache.

A page owns one ``QueryObserver`` per data source. The observer tracks
the page's *active* request; when the request changes it releases the
old key (the last release evicts it and soft-cancels its call) and only
ever reports the state of the active key. A response that belongs to
any other key can therefore never show up as the page's state.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from backoffice.query.cache import Fetcher, QueryCache, get_query_cache
from backoffice.query.keys import DISABLED, QueryKey, QueryRequest
from backoffice.query.state import IDLE, QueryState

logger = logging.getLogger(__name__)

StateListener = Callable[[QueryState], None]


class QueryObserver:
    def __init__(self, fetcher: Fetcher, *, cache: QueryCache | None = None, name: str = "query") -> None:
        self._fetcher = fetcher
        self._cache = cache if cache is not None else get_query_cache()
        self._name = name
        self._request: QueryRequest = DISABLED
        self._unsubscribe: Callable[[], None] | None = None
        self._listeners: list[StateListener] = []

    @property
    def request(self) -> QueryRequest:
        return self._request

    @property
    def key(self) -> QueryKey | None:
        return self._request.key

    @property
    def enabled(self) -> bool:
        return self._request.enabled

    @property
    def state(self) -> QueryState:
        """State of the active key only."""
        if not self._request.enabled:
            return IDLE
        return self._cache.get(self._request.key)

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def set_request(self, request: QueryRequest) -> QueryState:
        """
        Make ``request`` the active one and start it.

        Setting the request that is already active is a no-op unless its
        entry was dropped from the cache in the meantime.
        """
        if request == self._request:
            if not (request.enabled and request.key not in self._cache):
                return self.state
            # Entry was evicted behind our back; attach from scratch
            self._detach()
            self._request = DISABLED

        previous = self._request
        self._detach()
        self._request = request

        if not request.enabled:
            logger.debug("%s disabled (was %s)", self._name, previous.key)
            self._emit(IDLE)
            return IDLE

        key = request.key
        self._cache.retain(key, self._fetcher)
        self._unsubscribe = self._cache.subscribe(key, lambda state: self._on_state(key, state))
        current = self._cache.get(key)
        state = self._cache.start(request, self._fetcher)
        logger.debug("%s active key %s -> %s", self._name, previous.key, key)
        if state is current:
            # Attaching to a running call or a fresh hit does not notify on its own
            self._emit(state)
        return state

    async def settle(self) -> QueryState:
        """Wait for the active request's in-flight call, if any, and return its state."""
        if not self._request.enabled:
            return IDLE
        await self._cache.settle(self._request.key)
        return self.state

    def refetch(self) -> asyncio.Task | None:
        if not self._request.enabled:
            return None
        return self._cache.refetch(self._request.key)

    def invalidate(self) -> asyncio.Task | None:
        if not self._request.enabled:
            return None
        return self._cache.invalidate(self._request.key)

    def close(self) -> None:
        self._detach()
        self._request = DISABLED
        self._listeners.clear()

    def _detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._request.enabled:
            self._cache.release(self._request.key)

    def _on_state(self, key: QueryKey, state: QueryState) -> None:
        if key != self._request.key:
            logger.debug("%s ignored state for inactive key %s", self._name, key)
            return
        self._emit(state)

    def _emit(self, state: QueryState) -> None:
        for listener in list(self._listeners):
            listener(state)

    def __repr__(self) -> str:
        return f"QueryObserver({self._name!r}, key={self.key}, status={self.state.status.value})"
