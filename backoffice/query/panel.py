"""Visibility of the overlay editor that sits on top of a list."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PanelState:
    visible: bool = False
    target_id: str | None = None

    def __post_init__(self) -> None:
        if not self.visible and self.target_id is not None:
            raise ValueError("a closed panel cannot have a target")


CLOSED = PanelState()

PanelListener = Callable[[PanelState], None]


class PanelController:
    """
    Two states: closed, or open on an optional target (``None`` = create).

    Closing always clears the target.
    """

    def __init__(self) -> None:
        self._state = CLOSED
        self._listeners: list[PanelListener] = []

    @property
    def state(self) -> PanelState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state.visible

    def on_change(self, listener: PanelListener) -> None:
        self._listeners.append(listener)

    def open(self, target_id: str | None = None) -> PanelState:
        return self._set(PanelState(visible=True, target_id=target_id))

    def close(self) -> PanelState:
        return self._set(CLOSED)

    def reset(self) -> PanelState:
        """Back to closed without notifying (page mount)."""
        self._state = CLOSED
        return self._state

    def _set(self, state: PanelState) -> PanelState:
        if state != self._state:
            logger.debug("Panel %s -> %s", self._state, state)
        self._state = state
        for listener in list(self._listeners):
            listener(state)
        return state
