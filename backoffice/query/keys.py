"""
Query identity and gating.

A ``QueryKey`` is the cache identity of one remote procedure invocation:
the procedure plus its parameters, in order. Pages never hand raw
parameters to the cache; they first pass them through ``resolve_query``,
which yields ``Enabled(key)`` when every required parameter is present
and ``DISABLED`` otherwise. A disabled request never reaches the network.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Union

from backoffice.exceptions import InvalidQueryKeyError


@dataclass(frozen=True)
class Procedure:
    """Stable identifier of a remote procedure, e.g. ``ProductsService/ListProducts``."""

    service: str
    method: str

    @property
    def name(self) -> str:
        return f"{self.service}/{self.method}"

    def __str__(self) -> str:
        return self.name


def _freeze(value: Any) -> Any:
    """Convert nested containers into hashable equivalents."""
    if isinstance(value, Mapping):
        return tuple((k, _freeze(v)) for k, v in value.items())
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    if isinstance(value, set):
        return frozenset(_freeze(v) for v in value)
    return value


@dataclass(frozen=True)
class QueryKey:
    """Cache identity: procedure + ordered (name, value) parameter pairs."""

    procedure: Procedure
    params: tuple[tuple[str, Any], ...] = ()

    def __post_init__(self) -> None:
        try:
            hash(self.params)
        except TypeError as exc:
            raise InvalidQueryKeyError(self.procedure.name, reason=f"unhashable parameter ({exc})") from exc

    def as_dict(self) -> dict[str, Any]:
        """Parameters as a plain mapping (nested values stay frozen)."""
        return dict(self.params)

    def __str__(self) -> str:
        args = ", ".join(f"{k}={v!r}" for k, v in self.params)
        return f"{self.procedure.name}({args})"


def query_key(procedure: Procedure, params: Mapping[str, Any] | None = None) -> QueryKey:
    """Build a key unconditionally, preserving parameter order."""
    frozen = tuple((name, _freeze(value)) for name, value in (params or {}).items())
    return QueryKey(procedure, frozen)


# =============================================================================
# Tagged request variant
# =============================================================================


@dataclass(frozen=True)
class Enabled:
    """A request that may execute."""

    key: QueryKey

    @property
    def enabled(self) -> bool:
        return True


class Disabled:
    """A request that must not execute (a required parameter is missing)."""

    _instance: Disabled | None = None

    def __new__(cls) -> Disabled:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @property
    def enabled(self) -> bool:
        return False

    @property
    def key(self) -> None:
        return None

    def __repr__(self) -> str:
        return "DISABLED"


DISABLED = Disabled()

QueryRequest = Union[Enabled, Disabled]


def is_missing(value: Any) -> bool:
    """Absent, ``None`` and blank strings all count as missing."""
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def resolve_query(
    procedure: Procedure,
    params: Mapping[str, Any] | None,
    *,
    required: Iterable[str] = (),
) -> QueryRequest:
    """
    Gate a query on its mandatory parameters.

    Args:
        procedure: Procedure to invoke.
        params: Candidate parameters (e.g. derived from the route).
        required: Names that must be present and non-empty.

    Returns:
        ``Enabled(QueryKey)`` when every required parameter is present,
        otherwise ``DISABLED``.
    """
    params = params or {}
    for name in required:
        if is_missing(params.get(name)):
            return DISABLED
    return Enabled(query_key(procedure, params))
