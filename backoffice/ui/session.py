"""
Session state helpers for the Streamlit UI.

Page objects live in ``st.session_state`` so pagination and panel state
survive reruns; the query cache behind them is process-wide.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from typing import TypeVar

import streamlit as st

from backoffice.logging_config import LogContext
from backoffice.ui.runtime import get_runner

T = TypeVar("T")


def init_session_state() -> None:
    if "_session_id" not in st.session_state:
        st.session_state["_session_id"] = str(uuid.uuid4())
    if "_pages" not in st.session_state:
        st.session_state["_pages"] = {}
    LogContext.set_session_id(get_session_id())


def get_session_id() -> str:
    return st.session_state.get("_session_id", "default")


def get_page(name: str, factory: Callable[[], T]) -> tuple[T, bool]:
    """Return this session's page object, creating it on first visit."""
    pages = st.session_state.setdefault("_pages", {})
    created = name not in pages
    if created:
        pages[name] = factory()
    return pages[name], created


def drop_page(name: str) -> None:
    """Tear a page down (releases its query interest)."""
    pages = st.session_state.get("_pages", {})
    page = pages.pop(name, None)
    if page is None:
        return
    teardown = getattr(page, "unmount", None) or getattr(page, "close", None)
    if teardown is not None:
        get_runner().call(teardown)


def get_active_page() -> str | None:
    return st.session_state.get("_active_page")


def set_active_page(name: str) -> None:
    st.session_state["_active_page"] = name
