"""
Remote procedures used by the back-office pages.

Each ``RemoteProcedure`` binds a stable ``Procedure`` identity to its
request and response contracts, plus the response field that holds the
rows a list page shows.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from backoffice.query.keys import Procedure
from backoffice.rpc.models import (
    ListProductsRequest,
    ListProductsResponse,
    ListSubscriptionsRequest,
    ListSubscriptionsResponse,
    MrrLogRequest,
    MrrLogResponse,
)

Req = TypeVar("Req", bound=BaseModel)
Resp = TypeVar("Resp", bound=BaseModel)


@dataclass(frozen=True)
class RemoteProcedure(Generic[Req, Resp]):
    procedure: Procedure
    request_model: type[Req]
    response_model: type[Resp]
    items_field: str | None = None

    @property
    def name(self) -> str:
        return self.procedure.name

    def items(self, response: Resp | None) -> Sequence[Any]:
        """Rows carried by ``response`` (empty when there is none yet)."""
        if response is None or self.items_field is None:
            return ()
        return getattr(response, self.items_field)


LIST_PRODUCTS = RemoteProcedure(
    Procedure("api.products.v1.ProductsService", "ListProducts"),
    ListProductsRequest,
    ListProductsResponse,
    items_field="products",
)

LIST_SUBSCRIPTIONS = RemoteProcedure(
    Procedure("api.subscriptions.v1.SubscriptionsService", "ListSubscriptions"),
    ListSubscriptionsRequest,
    ListSubscriptionsResponse,
    items_field="subscriptions",
)

MRR_LOG = RemoteProcedure(
    Procedure("api.stats.v1.StatsService", "MrrLog"),
    MrrLogRequest,
    MrrLogResponse,
    items_field="entries",
)

PROCEDURES: dict[str, RemoteProcedure] = {
    rp.name: rp for rp in (LIST_PRODUCTS, LIST_SUBSCRIPTIONS, MRR_LOG)
}
