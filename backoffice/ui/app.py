"""
Streamlit UI entrypoint.

    streamlit run backoffice/ui/app.py
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import streamlit as st


def _ensure_repo_root_on_path() -> None:
    # streamlit run backoffice/ui/app.py sets sys.path[0] to the ui folder, which breaks `import backoffice.*`.
    repo_root = Path(__file__).resolve().parents[2]
    repo_root_s = str(repo_root)
    if repo_root_s not in sys.path:
        sys.path.insert(0, repo_root_s)


_ensure_repo_root_on_path()

from backoffice.config import get_settings  # noqa: E402
from backoffice.exceptions import BackofficeError  # noqa: E402
from backoffice.logging_config import configure_logging, log_error, log_event  # noqa: E402
from backoffice.ui.pages import (  # noqa: E402
    render_dashboard_page,
    render_product_items_page,
    render_subscriptions_page,
)
from backoffice.ui.session import drop_page, get_active_page, init_session_state, set_active_page  # noqa: E402

logger = logging.getLogger(__name__)

PAGES = {
    "Dashboard": ("mrr_logs", render_dashboard_page),
    "Subscriptions": ("subscriptions", render_subscriptions_page),
    "Product items": ("product_items", render_product_items_page),
}


def _switch_page(label: str) -> None:
    """Unmount the page being left so its queries are released."""
    previous = get_active_page()
    if previous == label:
        return
    if previous in PAGES:
        drop_page(PAGES[previous][0])
    set_active_page(label)
    log_event("page_changed", page=label, previous=previous)


def main() -> None:
    st.set_page_config(
        page_title="Back Office",
        page_icon="📊",
        layout="wide",
        initial_sidebar_state="expanded",
    )

    settings = get_settings()
    configure_logging(level="DEBUG" if settings.debug_mode else "INFO")
    init_session_state()

    with st.sidebar:
        st.markdown("### Back Office")
        label = st.radio("Navigate", list(PAGES), key="_nav", label_visibility="collapsed")
        st.caption(f"Backend: {settings.rpc_base_url}")

    _switch_page(label)
    _, render = PAGES[label]
    try:
        render()
    except BackofficeError as exc:
        exc.log()
        st.error(exc.message)
    except Exception as exc:
        log_error("page_render_failed", exc, page=label)
        raise


if __name__ == "__main__":
    main()
