"""
The UI event loop.

Streamlit runs each script rerun in its own thread, but the query core
expects every state transition on one event loop. ``LoopRunner`` owns
that loop in a daemon thread; script code hands work to it and waits.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class LoopRunner:
    def __init__(self, name: str = "backoffice-loop") -> None:
        self._name = name
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._ready = threading.Event()
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if not self.running:
                self._ready.clear()
                self._thread = threading.Thread(target=self._serve, name=self._name, daemon=True)
                self._thread.start()
                self._ready.wait()
                logger.info("Started UI event loop thread %s", self._name)
        if self._loop is None:
            raise RuntimeError(f"UI event loop thread {self._name} did not start")
        return self._loop

    def submit(self, coro: Coroutine[Any, Any, T]) -> concurrent.futures.Future[T]:
        """Schedule ``coro`` on the loop; returns a thread-safe future."""
        return asyncio.run_coroutine_threadsafe(coro, self.start())

    def run(self, coro: Coroutine[Any, Any, T], timeout: float | None = None) -> T:
        """Run ``coro`` on the loop and block the calling thread for its result."""
        future = self.submit(coro)
        try:
            return future.result(timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            raise

    def call(self, func: Callable[..., T], *args: Any, timeout: float | None = None, **kwargs: Any) -> T:
        """Run a plain function on the loop thread (for code that must not race the loop)."""

        async def invoke() -> T:
            return func(*args, **kwargs)

        return self.run(invoke(), timeout)

    def stop(self, timeout: float = 5.0) -> None:
        with self._lock:
            if not self.running or self._loop is None:
                return
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout)
            self._thread = None
            self._loop = None

    def _serve(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self._ready.set()
        try:
            loop.run_forever()
        finally:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.close()


_runner: LoopRunner | None = None
_runner_lock = threading.Lock()


def get_runner() -> LoopRunner:
    """Process-wide UI loop, shared by every Streamlit session."""
    global _runner
    with _runner_lock:
        if _runner is None:
            _runner = LoopRunner()
        return _runner
