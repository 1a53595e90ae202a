"""
Pydantic models for remote procedure requests and responses.

Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from pydantic.config import ConfigDict


class RpcModel(BaseModel):
    """Base for every wire contract."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


# =============================================================================
# Products
# =============================================================================


class Product(RpcModel):
    """A sellable item inside a product family."""

    id: str
    name: str
    description: str | None = None
    family_external_id: str | None = None
    created_at: datetime | None = None


class ListProductsRequest(RpcModel):
    family_external_id: str = Field(min_length=1, description="Product family the items belong to")


class ListProductsResponse(RpcModel):
    products: list[Product] = Field(default_factory=list)


# =============================================================================
# Subscriptions
# =============================================================================


class Subscription(RpcModel):
    id: str
    customer_name: str
    plan_name: str
    status: str | None = None
    currency: str = "EUR"
    mrr_cents: int = 0
    billing_start_date: date | None = None


class ListSubscriptionsRequest(RpcModel):
    customer_id: str | None = None
    plan_id: str | None = None


class ListSubscriptionsResponse(RpcModel):
    subscriptions: list[Subscription] = Field(default_factory=list)


# =============================================================================
# Stats
# =============================================================================


class MrrLogEntry(RpcModel):
    """One movement of monthly recurring revenue."""

    applies_to: date | None = None
    mrr_type: str
    description: str = ""
    created_at: datetime | None = None


class MrrLogRequest(RpcModel):
    pass


class MrrLogResponse(RpcModel):
    entries: list[MrrLogEntry] = Field(default_factory=list)
