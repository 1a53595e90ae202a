"""
Page-level composition of the query core.

``ListPage`` is what a list screen talks to: it gates the query on route
parameters, keeps pagination in step with the rows of the active key,
tracks the edit panel and exposes a single reload action. Renderers only
read ``view()``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from backoffice.exceptions import UnimplementedFeatureError
from backoffice.logging_config import log_event
from backoffice.query.cache import Fetcher, QueryCache
from backoffice.query.keys import Procedure, QueryRequest, resolve_query
from backoffice.query.observer import QueryObserver
from backoffice.query.pagination import ItemsOf, PaginationController, PaginationState
from backoffice.query.panel import PanelController, PanelState
from backoffice.query.refetch import RefetchCoordinator
from backoffice.query.state import QueryState

logger = logging.getLogger(__name__)

Notifier = Callable[[UnimplementedFeatureError], None]


@dataclass(frozen=True)
class PageView:
    """Everything a renderer needs for one frame."""

    query: QueryState
    pagination: PaginationState
    panel: PanelState
    rows: list[Any]
    enabled: bool

    @property
    def is_loading(self) -> bool:
        return self.query.is_loading

    @property
    def total_count(self) -> int:
        return self.pagination.total_count

    @property
    def error_message(self) -> str | None:
        return self.query.error_message


class ListPage:
    """
    A list screen bound to one remote procedure.

    Args:
        procedure: Procedure listing the rows.
        fetcher: Async callable ``(params, token) -> result``.
        required: Parameters that must be present for the query to run.
        items: Extracts the row sequence from a result (default: the result).
        page_size: Initial page size (default from settings).
        notify: Shows a transient notice; without one, notices are raised.
    """

    def __init__(
        self,
        procedure: Procedure,
        fetcher: Fetcher,
        *,
        required: Iterable[str] = (),
        items: ItemsOf | None = None,
        page_size: int | None = None,
        cache: QueryCache | None = None,
        notify: Notifier | None = None,
        name: str | None = None,
    ) -> None:
        self.procedure = procedure
        self.name = name or procedure.method
        self._required = tuple(required)
        self._items = items or (lambda data: data if data is not None else ())
        self._notify = notify
        self._params: dict[str, Any] = {}

        self.observer = QueryObserver(fetcher, cache=cache, name=self.name)
        self.pagination = PaginationController(page_size, items=self._items)
        self.panel = PanelController()
        self.refetcher = RefetchCoordinator(self.observer)

        self.observer.add_listener(self.pagination.sync)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def mount(self, params: Mapping[str, Any] | None = None) -> QueryState:
        self.panel.reset()
        return self.update_params(params)

    def update_params(self, params: Mapping[str, Any] | None) -> QueryState:
        """Re-gate and re-key the query from new route parameters."""
        self._params = dict(params or {})
        request = self.request_for(self._params)
        if not request.enabled:
            logger.debug("%s waiting for %s", self.name, ", ".join(self._required))
        if request != self.observer.request:
            # Another key's rows never carry over
            self.pagination.reset_count()
        return self.observer.set_request(request)

    def request_for(self, params: Mapping[str, Any]) -> QueryRequest:
        return resolve_query(self.procedure, params, required=self._required)

    def unmount(self) -> None:
        self.observer.close()
        self.panel.reset()

    async def settle(self) -> QueryState:
        """Wait for the active query to finish loading."""
        return await self.observer.settle()

    # =========================================================================
    # User actions
    # =========================================================================

    def reload(self) -> asyncio.Task | None:
        return self.refetcher.reload()

    def open_panel(self, target_id: str | None = None) -> PanelState:
        log_event("panel_opened", page=self.name, target_id=target_id)
        return self.panel.open(target_id)

    def close_panel(self) -> PanelState:
        return self.panel.close()

    def set_pagination(self, page_index: int | None = None, page_size: int | None = None) -> PaginationState:
        return self.pagination.set_pagination(page_index=page_index, page_size=page_size)

    def report_unimplemented(self, feature: str) -> UnimplementedFeatureError:
        """Surface a notice for a feature this page does not offer yet."""
        notice = UnimplementedFeatureError(feature)
        notice.log(logging.INFO)
        if self._notify is None:
            raise notice
        self._notify(notice)
        return notice

    # =========================================================================
    # Reads
    # =========================================================================

    @property
    def params(self) -> dict[str, Any]:
        return dict(self._params)

    @property
    def state(self) -> QueryState:
        return self.observer.state

    @property
    def rows(self) -> Sequence[Any]:
        return self._items(self.state.display_data)

    @property
    def visible_rows(self) -> list[Any]:
        return self.pagination.slice(self.rows)

    def view(self) -> PageView:
        return PageView(
            query=self.state,
            pagination=self.pagination.state,
            panel=self.panel.state,
            rows=self.visible_rows,
            enabled=self.observer.enabled,
        )
