"""
JSON-over-HTTP transport for remote procedures.

Each call is a ``POST {base_url}/{service}/{method}`` with a JSON body;
errors come back as a non-200 status with ``{"code", "message"}``.
The blocking ``requests`` call runs in a worker thread so the UI event
loop never blocks, and every service is guarded by its own circuit
breaker.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

import pydantic
import requests

from backoffice.circuit_breaker import get_breaker
from backoffice.config import get_settings
from backoffice.exceptions import (
    ConfigurationError,
    InvalidQueryKeyError,
    RpcConnectionError,
    RpcDecodeError,
    RpcStatusError,
    RpcTimeoutError,
)
from backoffice.logging_config import PerformanceTracker
from backoffice.query.cache import CancellationToken, Fetcher
from backoffice.rpc.procedures import RemoteProcedure

logger = logging.getLogger(__name__)


class RpcClient:
    """
    Client for the billing backend.

    Example:
        client = RpcClient("http://localhost:8084")
        response = await client.call(LIST_PRODUCTS, {"family_external_id": "default"})
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        api_key: str | None = None,
        session: requests.Session | None = None,
    ) -> None:
        settings = get_settings()
        base_url = base_url if base_url is not None else settings.rpc_base_url
        if not base_url:
            raise ConfigurationError("RPC base URL is not configured", setting_name="BACKOFFICE_RPC_URL")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout if timeout is not None else settings.rpc_timeout_seconds
        self._api_key = api_key if api_key is not None else settings.rpc_api_key
        self._session = session or requests.Session()

    def url_for(self, rp: RemoteProcedure) -> str:
        return f"{self.base_url}/{rp.procedure.service}/{rp.procedure.method}"

    async def call(
        self,
        rp: RemoteProcedure,
        params: Mapping[str, Any],
        token: CancellationToken | None = None,
    ) -> Any:
        """Invoke ``rp`` and return its decoded response model."""
        body = self._encode(rp, params)
        if token is not None:
            token.raise_if_cancelled()
        breaker = get_breaker(rp.procedure.service)
        response = await breaker.call_async(asyncio.to_thread, self._post, rp, body)
        if token is not None:
            # Result arrived after the page moved on
            token.raise_if_cancelled()
        return response

    def call_sync(self, rp: RemoteProcedure, params: Mapping[str, Any]) -> Any:
        """Blocking variant for scripts."""
        return get_breaker(rp.procedure.service).call(self._post, rp, self._encode(rp, params))

    def fetcher(self, rp: RemoteProcedure) -> Fetcher:
        """Adapt ``rp`` to the ``(params, token) -> result`` shape the query cache runs."""

        async def fetch(params: Mapping[str, Any], token: CancellationToken) -> Any:
            return await self.call(rp, params, token)

        fetch.__qualname__ = f"fetch[{rp.name}]"
        return fetch

    def close(self) -> None:
        self._session.close()

    # =========================================================================
    # Wire handling
    # =========================================================================

    def _encode(self, rp: RemoteProcedure, params: Mapping[str, Any]) -> dict[str, Any]:
        try:
            request = rp.request_model.model_validate(dict(params))
        except pydantic.ValidationError as exc:
            raise InvalidQueryKeyError(rp.name, reason=f"{exc.error_count()} invalid parameter(s)") from exc
        return request.model_dump(mode="json", by_alias=True, exclude_none=True)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _post(self, rp: RemoteProcedure, body: dict[str, Any]) -> Any:
        url = self.url_for(rp)
        with PerformanceTracker("rpc_call", procedure=rp.name):
            try:
                resp = self._session.post(url, json=body, headers=self._headers(), timeout=self.timeout)
            except requests.Timeout as exc:
                raise RpcTimeoutError(rp.name, timeout_seconds=self.timeout) from exc
            except requests.ConnectionError as exc:
                raise RpcConnectionError(rp.name, reason=str(exc)) from exc
            except requests.RequestException as exc:
                raise RpcConnectionError(rp.name, reason=f"{type(exc).__name__}: {exc}") from exc

        if resp.status_code != 200:
            code, message = _error_body(resp)
            logger.warning(
                "RPC %s returned %s (%s)",
                rp.name,
                resp.status_code,
                code or "no code",
            )
            raise RpcStatusError(rp.name, status_code=resp.status_code, code=code, reason=message)

        try:
            return rp.response_model.model_validate(resp.json())
        except (ValueError, pydantic.ValidationError) as exc:
            raise RpcDecodeError(rp.name, reason=str(exc)) from exc


def _error_body(resp: requests.Response) -> tuple[str | None, str | None]:
    try:
        data = resp.json()
    except ValueError:
        return None, resp.text[:200] or None
    if not isinstance(data, dict):
        return None, None
    return data.get("code"), data.get("message")


_client: RpcClient | None = None


def get_rpc_client() -> RpcClient:
    """Get or create the shared client."""
    global _client
    if _client is None:
        _client = RpcClient()
    return _client
