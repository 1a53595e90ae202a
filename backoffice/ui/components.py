"""
Reusable UI components (list header, paged table, edit panel, cards).

Components only draw and report clicks; the caller decides what a click
does to page state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

import streamlit as st

from backoffice.config import get_settings
from backoffice.query.page import PageView
from backoffice.query.panel import PanelState
from backoffice.query.state import QueryState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HeaderActions:
    refresh: bool = False
    create: bool = False
    search: str = ""


def render_list_header(
    heading: str,
    *,
    count: int,
    is_loading: bool,
    key: str,
    create_label: str | None = None,
    search_placeholder: str = "Search",
    search_enabled: bool = True,
) -> HeaderActions:
    """Heading with count, create button, search box and refresh button."""
    title_col, action_col = st.columns([4, 1])
    with title_col:
        st.markdown(f"## {heading} ({count})")
    create = False
    if create_label:
        with action_col:
            create = st.button(f"+ {create_label}", key=f"{key}_create", type="primary", use_container_width=True)

    search_col, refresh_col = st.columns([4, 1])
    with search_col:
        search = st.text_input(
            search_placeholder,
            key=f"{key}_search",
            placeholder=search_placeholder,
            label_visibility="collapsed",
            disabled=not search_enabled,
        )
    with refresh_col:
        refresh = st.button(
            "⟳ Loading…" if is_loading else "⟳ Refresh",
            key=f"{key}_refresh",
            disabled=is_loading,
            use_container_width=True,
        )
    return HeaderActions(refresh=refresh, create=create, search=search or "")


def render_query_error(query: QueryState) -> None:
    """Error banner shown above whatever data is still displayed."""
    if not query.is_error:
        return
    message = query.error_message or "Request failed"
    if query.stale_data is not None:
        st.warning(f"Showing previous data. Last refresh failed: {message}")
    else:
        st.error(f"Could not load data: {message}")


def _row_dict(row: Any) -> dict[str, Any]:
    if hasattr(row, "model_dump"):
        return row.model_dump()
    if isinstance(row, dict):
        return row
    return {"value": row}


def render_paged_table(view: PageView, *, key: str) -> tuple[int | None, int | None]:
    """
    Draw the current page and its navigation.

    Returns:
        (new_page_index, new_page_size); ``None`` where nothing changed.
    """
    pagination = view.pagination

    if view.query.is_idle and not view.enabled:
        st.info("Select a scope to see its items.")
    elif view.is_loading and not view.rows:
        st.caption("Loading…")
    elif not view.rows:
        st.info("No data")
    else:
        st.dataframe([_row_dict(r) for r in view.rows], use_container_width=True, hide_index=True)

    options = list(get_settings().page_size_options)
    if pagination.page_size not in options:
        options = sorted({*options, pagination.page_size})

    nav1, nav2, nav3, nav4 = st.columns([1, 2, 1, 1])
    new_index: int | None = None
    with nav1:
        if st.button("← Prev", key=f"{key}_prev", disabled=not pagination.has_previous, use_container_width=True):
            new_index = pagination.page_index - 1
    with nav2:
        st.caption(f"Page {pagination.page_index + 1} / {pagination.page_count} · {pagination.total_count} rows")
    with nav3:
        if st.button("Next →", key=f"{key}_next", disabled=not pagination.has_next, use_container_width=True):
            new_index = pagination.page_index + 1
    with nav4:
        size = st.selectbox(
            "Rows per page",
            options,
            index=options.index(pagination.page_size),
            key=f"{key}_page_size",
            label_visibility="collapsed",
        )
    new_size = size if size != pagination.page_size else None
    return new_index, new_size


def render_edit_panel(panel: PanelState, *, title: str, key: str) -> bool:
    """Overlay editor placeholder; returns True when the user closed it."""
    if not panel.visible:
        return False
    with st.sidebar:
        st.markdown(f"### {title}")
        if panel.target_id:
            st.caption(f"Editing {panel.target_id}")
        else:
            st.caption("New item")
        return st.button("Close", key=f"{key}_close_panel", use_container_width=True)


def format_day(value: date | None) -> str:
    return value.strftime("%d/%m/%Y") if value else ""


def render_mrr_logs_card(query: QueryState) -> None:
    """Most recent MRR movements, or "No data"."""
    with st.container(border=True):
        st.markdown("**MRR Movement Logs**")
        response = query.display_data
        entries = list(getattr(response, "entries", None) or [])
        if not entries:
            st.caption("No data")
            return
        for entry in entries:
            st.caption(f"{format_day(entry.applies_to)}: {entry.mrr_type} - {entry.description}")
