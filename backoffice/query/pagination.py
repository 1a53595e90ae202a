"""
Client-side pagination over an already-fetched result set.

There is no server-side count: ``total_count`` is the length of the rows the
page displays for its active key, and zero while nothing is displayed.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from typing import Any

from backoffice.exceptions import InvalidPaginationError
from backoffice.query.state import QueryState

logger = logging.getLogger(__name__)

ItemsOf = Callable[[Any], Sequence[Any]]


def _as_items(data: Any) -> Sequence[Any]:
    return data if data is not None else ()


@dataclass(frozen=True)
class PaginationState:
    page_index: int = 0
    page_size: int = 20
    total_count: int = 0

    @property
    def page_count(self) -> int:
        """Number of pages; an empty result still has one (empty) page."""
        return max(1, math.ceil(self.total_count / self.page_size))

    @property
    def offset(self) -> int:
        return self.page_index * self.page_size

    @property
    def has_previous(self) -> bool:
        return self.page_index > 0

    @property
    def has_next(self) -> bool:
        return self.page_index < self.page_count - 1


class PaginationController:
    """
    Owns page index and size for one page.

    Survives refetches of the same resource; ``sync`` and ``reset_count``
    change ``total_count``.
    """

    def __init__(self, page_size: int | None = None, *, items: ItemsOf | None = None) -> None:
        if page_size is None:
            from backoffice.config import get_settings

            page_size = get_settings().default_page_size
        _check_size(page_size)
        self._items = items or _as_items
        self._state = PaginationState(page_size=page_size)

    @property
    def state(self) -> PaginationState:
        return self._state

    def set_pagination(self, page_index: int | None = None, page_size: int | None = None) -> PaginationState:
        """
        Replace page index and/or size.

        A new page size always re-anchors to the first page. An index past
        the last page is accepted here and clamped by the next ``sync``.
        """
        current = self._state
        if page_size is not None and page_size != current.page_size:
            _check_size(page_size)
            self._state = replace(current, page_index=0, page_size=page_size)
            return self._state
        if page_index is not None:
            if isinstance(page_index, bool) or not isinstance(page_index, int) or page_index < 0:
                raise InvalidPaginationError("page_index", page_index, reason="must be a non-negative integer")
            self._state = replace(current, page_index=page_index)
        return self._state

    def next_page(self) -> PaginationState:
        if self._state.has_next:
            self._state = replace(self._state, page_index=self._state.page_index + 1)
        return self._state

    def previous_page(self) -> PaginationState:
        if self._state.has_previous:
            self._state = replace(self._state, page_index=self._state.page_index - 1)
        return self._state

    def reset_count(self) -> PaginationState:
        """Forget the previous result: back to the first page with no rows."""
        self._state = replace(self._state, page_index=0, total_count=0)
        return self._state

    def sync(self, query: QueryState) -> PaginationState:
        """
        Recompute ``total_count`` from the rows the page displays and clamp the index.

        A reload or a failed refresh still displays the previous payload, so
        the count and index survive it. With nothing to display (idle, or a
        new key that has not answered yet) the count drops to zero.
        """
        data = query.display_data
        if data is None:
            return self.reset_count()
        total = len(self._items(data))
        state = replace(self._state, total_count=total)
        last = state.page_count - 1
        if state.page_index > last:
            logger.debug("Clamping page index %d to %d (total %d)", state.page_index, last, total)
            state = replace(state, page_index=last)
        self._state = state
        return state

    def slice(self, rows: Sequence[Any]) -> list[Any]:
        """Rows of the current page."""
        start = self._state.offset
        return list(rows[start:start + self._state.page_size])


def _check_size(page_size: Any) -> None:
    if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size <= 0:
        raise InvalidPaginationError("page_size", page_size, reason="must be a positive integer")
