"""Single reload action wired to a page's refresh control."""

from __future__ import annotations

import asyncio
import logging

from backoffice.query.observer import QueryObserver

logger = logging.getLogger(__name__)


class RefetchCoordinator:
    """
    Reloads the page's active query.

    ``reload()`` while a call is already running is a no-op, not a queued
    second call. Pagination and panel state are never touched.
    """

    def __init__(self, observer: QueryObserver) -> None:
        self._observer = observer

    @property
    def is_loading(self) -> bool:
        """Drive a spinner or disable the trigger with this."""
        return self._observer.state.is_loading

    @property
    def available(self) -> bool:
        return self._observer.enabled

    def reload(self) -> asyncio.Task | None:
        """Start a reload; returns its task, or ``None`` when nothing was started."""
        if not self._observer.enabled:
            logger.debug("Reload ignored: query disabled")
            return None
        if self.is_loading:
            logger.debug("Reload ignored: %s already loading", self._observer.key)
            return None
        return self._observer.refetch()
