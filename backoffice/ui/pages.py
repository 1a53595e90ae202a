"""
Page renderers for the Streamlit UI.

Every call into a page object goes through the UI loop runner so query
state only ever changes on the loop thread.
"""

from __future__ import annotations

import concurrent.futures
import logging

import streamlit as st

from backoffice.config import get_settings
from backoffice.exceptions import UnimplementedFeatureError
from backoffice.logging_config import LogContext
from backoffice.query.observer import QueryObserver
from backoffice.query.keys import resolve_query
from backoffice.query.page import ListPage
from backoffice.rpc.procedures import LIST_PRODUCTS, LIST_SUBSCRIPTIONS, MRR_LOG
from backoffice.rpc.transport import get_rpc_client
from backoffice.ui.components import (
    render_edit_panel,
    render_list_header,
    render_mrr_logs_card,
    render_paged_table,
    render_query_error,
)
from backoffice.ui.runtime import get_runner
from backoffice.ui.session import get_page

logger = logging.getLogger(__name__)


def _toast(notice: UnimplementedFeatureError) -> None:
    st.toast(notice.message, icon="⚠️")


def _settle(page: ListPage | QueryObserver) -> None:
    """Block this rerun until the active query finishes (bounded by the RPC timeout)."""
    runner = get_runner()
    waiter = page.settle()
    try:
        with st.spinner("Loading…"):
            runner.run(waiter, timeout=get_settings().rpc_timeout_seconds + 1)
    except concurrent.futures.TimeoutError:
        logger.warning("Gave up waiting for %r", page)


def _render_list(
    page: ListPage,
    *,
    heading: str,
    key: str,
    create_label: str | None,
    panel_title: str,
    search_enabled: bool,
) -> None:
    runner = get_runner()
    LogContext.set_page(key)

    view = page.view()
    actions = render_list_header(
        heading,
        count=view.total_count,
        is_loading=view.is_loading,
        key=key,
        create_label=create_label,
        search_placeholder=f"Search {heading.lower()}",
        search_enabled=search_enabled,
    )

    if actions.refresh:
        runner.call(page.reload)
        _settle(page)
    if actions.create:
        runner.call(page.open_panel)
    last_search_key = f"{key}_last_search"
    if actions.search and actions.search != st.session_state.get(last_search_key):
        # Notices do not touch query state; safe from the script thread
        page.report_unimplemented("search")
    st.session_state[last_search_key] = actions.search

    view = page.view()
    render_query_error(view.query)
    new_index, new_size = render_paged_table(view, key=key)
    if new_index is not None or new_size is not None:
        runner.call(page.set_pagination, page_index=new_index, page_size=new_size)
        st.rerun()

    if render_edit_panel(page.panel.state, title=panel_title, key=key):
        runner.call(page.close_panel)
        st.rerun()


def render_product_items_page() -> None:
    """Product items of one family; idle until ``familyExternalId`` is in the URL."""
    family_param = get_settings().family_param
    client = get_rpc_client()

    def build() -> ListPage:
        return ListPage(
            LIST_PRODUCTS.procedure,
            client.fetcher(LIST_PRODUCTS),
            required=[family_param],
            items=LIST_PRODUCTS.items,
            notify=_toast,
            name="product_items",
        )

    page, created = get_page("product_items", build)
    params = {family_param: st.query_params.get(family_param)}
    runner = get_runner()
    state = runner.call(page.mount if created else page.update_params, params)
    if state.is_loading and page.state.display_data is None:
        _settle(page)

    _render_list(
        page,
        heading="Product Items",
        key="product_items",
        create_label="New product",
        panel_title="Product",
        search_enabled=True,
    )


def render_subscriptions_page() -> None:
    client = get_rpc_client()

    def build() -> ListPage:
        return ListPage(
            LIST_SUBSCRIPTIONS.procedure,
            client.fetcher(LIST_SUBSCRIPTIONS),
            items=LIST_SUBSCRIPTIONS.items,
            notify=_toast,
            name="subscriptions",
        )

    page, created = get_page("subscriptions", build)
    runner = get_runner()
    state = runner.call(page.mount if created else page.update_params, {})
    if state.is_loading and page.state.display_data is None:
        _settle(page)

    _render_list(
        page,
        heading="Subscriptions",
        key="subscriptions",
        create_label="New subscription",
        panel_title="Subscription",
        search_enabled=False,
    )


def render_dashboard_page() -> None:
    client = get_rpc_client()
    observer, _ = get_page("mrr_logs", lambda: QueryObserver(client.fetcher(MRR_LOG), name="mrr_logs"))
    runner = get_runner()
    LogContext.set_page("dashboard")

    state = runner.call(observer.set_request, resolve_query(MRR_LOG.procedure, {}))
    if state.is_loading and state.display_data is None:
        _settle(observer)

    st.markdown("## Dashboard")
    col, _ = st.columns([1, 1])
    with col:
        render_mrr_logs_card(observer.state)
