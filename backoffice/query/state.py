"""
Query state snapshots.

A ``QueryState`` is immutable: every status transition produces a new
instance. ``data`` is only visible while the status is ``success`` and
``error`` only while it is ``error``. The last successful payload is
carried along as ``stale_data`` during a reload or after a failure so a
page can keep rendering it.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class QueryStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class QueryState(Generic[T]):
    status: QueryStatus = QueryStatus.IDLE
    data: T | None = None
    error: BaseException | None = None
    fetched_at: float | None = None
    stale_data: T | None = None

    def __post_init__(self) -> None:
        if self.data is not None and self.status is not QueryStatus.SUCCESS:
            raise ValueError(f"data is only allowed on success, got status {self.status.value}")
        if self.error is not None and self.status is not QueryStatus.ERROR:
            raise ValueError(f"error is only allowed on error, got status {self.status.value}")

    # -- transitions ------------------------------------------------------------

    @classmethod
    def idle(cls) -> QueryState[Any]:
        return IDLE

    @classmethod
    def loading(cls, previous: QueryState[T] | None = None) -> QueryState[T]:
        previous = previous or IDLE
        return cls(
            status=QueryStatus.LOADING,
            fetched_at=previous.fetched_at,
            stale_data=previous.display_data,
        )

    @classmethod
    def succeeded(cls, data: T, *, fetched_at: float | None = None) -> QueryState[T]:
        return cls(
            status=QueryStatus.SUCCESS,
            data=data,
            fetched_at=time.time() if fetched_at is None else fetched_at,
        )

    @classmethod
    def failed(cls, error: BaseException, previous: QueryState[T] | None = None) -> QueryState[T]:
        previous = previous or IDLE
        return cls(
            status=QueryStatus.ERROR,
            error=error,
            fetched_at=previous.fetched_at,
            stale_data=previous.display_data,
        )

    # -- accessors --------------------------------------------------------------

    @property
    def display_data(self) -> T | None:
        """What a page should render: fresh data, or the last good payload."""
        return self.data if self.status is QueryStatus.SUCCESS else self.stale_data

    @property
    def is_idle(self) -> bool:
        return self.status is QueryStatus.IDLE

    @property
    def is_loading(self) -> bool:
        return self.status is QueryStatus.LOADING

    @property
    def is_success(self) -> bool:
        return self.status is QueryStatus.SUCCESS

    @property
    def is_error(self) -> bool:
        return self.status is QueryStatus.ERROR

    @property
    def error_message(self) -> str | None:
        if self.error is None:
            return None
        return getattr(self.error, "message", None) or str(self.error)

    def age(self, now: float | None = None) -> float | None:
        """Seconds since the last successful fetch."""
        if self.fetched_at is None:
            return None
        return (time.time() if now is None else now) - self.fetched_at


IDLE: QueryState[Any] = QueryState()
