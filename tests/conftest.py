"""
Pytest configuration and shared fixtures for back-office tests.
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import pytest

# Add repo root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from backoffice.circuit_breaker import clear_breakers  # noqa: E402
from backoffice.config import reload_settings  # noqa: E402
from backoffice.logging_config import LogContext  # noqa: E402
from backoffice.query.cache import CancellationToken, QueryCache, reset_query_cache  # noqa: E402
from backoffice.query.keys import Procedure  # noqa: E402


class FakeFetcher:
    """
    Scriptable async fetcher.

    Records every call; ``hold(**params)`` returns an event that blocks
    calls with matching params until it is set.
    """

    def __init__(
        self,
        respond: Callable[[Mapping[str, Any]], Any] | None = None,
        *,
        fail: Callable[[Mapping[str, Any]], Exception | None] | None = None,
    ) -> None:
        self.respond = respond or (lambda params: {"items": [dict(params)]})
        self.fail = fail
        self.calls: list[dict[str, Any]] = []
        self.tokens: list[CancellationToken] = []
        self._gates: list[tuple[dict[str, Any], asyncio.Event]] = []

    def hold(self, **match: Any) -> asyncio.Event:
        event = asyncio.Event()
        self._gates.append((match, event))
        return event

    async def __call__(self, params: Mapping[str, Any], token: CancellationToken) -> Any:
        self.calls.append(dict(params))
        self.tokens.append(token)
        for match, event in self._gates:
            if all(params.get(k) == v for k, v in match.items()):
                await event.wait()
        if self.fail is not None:
            exc = self.fail(params)
            if exc is not None:
                raise exc
        return self.respond(params)


async def drain(rounds: int = 5) -> None:
    """Let scheduled query tasks run to their next suspension point."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture(autouse=True)
def _isolated_globals():
    """Each test starts with fresh settings, cache, breakers and log context."""
    reload_settings()
    reset_query_cache()
    clear_breakers()
    LogContext.clear()
    yield
    reset_query_cache()
    clear_breakers()
    LogContext.clear()


@pytest.fixture
def products() -> Procedure:
    return Procedure("api.products.v1.ProductsService", "ListProducts")


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def cache() -> QueryCache:
    return QueryCache()
