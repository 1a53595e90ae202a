"""
Coordination between back-office pages and remote procedure calls.

Exports:
- resolve_query / QueryKey / DISABLED: cache identity and gating
- QueryCache / get_query_cache: process-wide keyed query state
- QueryObserver: a page's binding to its active key
- PaginationController, PanelController, RefetchCoordinator
- ListPage: all of the above composed for a list screen
"""

from backoffice.query.cache import CancellationToken, QueryCache, get_query_cache, reset_query_cache
from backoffice.query.keys import DISABLED, Disabled, Enabled, Procedure, QueryKey, query_key, resolve_query
from backoffice.query.observer import QueryObserver
from backoffice.query.page import ListPage, PageView
from backoffice.query.pagination import PaginationController, PaginationState
from backoffice.query.panel import CLOSED, PanelController, PanelState
from backoffice.query.refetch import RefetchCoordinator
from backoffice.query.state import IDLE, QueryState, QueryStatus

__all__ = [
    "CLOSED",
    "DISABLED",
    "IDLE",
    "CancellationToken",
    "Disabled",
    "Enabled",
    "ListPage",
    "PageView",
    "PaginationController",
    "PaginationState",
    "PanelController",
    "PanelState",
    "Procedure",
    "QueryCache",
    "QueryKey",
    "QueryObserver",
    "QueryState",
    "QueryStatus",
    "RefetchCoordinator",
    "get_query_cache",
    "query_key",
    "reset_query_cache",
    "resolve_query",
]
