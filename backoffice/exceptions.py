"""
Exception hierarchy for the back-office console.

Every error carries a machine-readable ``error_code`` and a ``request_id``
so a banner in the UI can be matched to its log line.

Remote failures are never raised into a page: the query cache captures
them into ``QueryState.error`` so the page can keep rendering the last
good payload next to an error indicator.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

logger = logging.getLogger(__name__)


# =============================================================================
# Base
# =============================================================================


class BackofficeError(RuntimeError):
    """
    Root of all console errors.

    Attributes:
        message: What went wrong, fit for showing to an operator.
        detail: Extra context appended to ``str(error)``.
        error_code: Stable identifier; defaults to ``backoffice_<classname>``.
        request_id: Correlation id; a fresh uuid4 unless given.
    """

    def __init__(
        self,
        message: str,
        *,
        detail: str | None = None,
        error_code: str | None = None,
        request_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.error_code = error_code or f"backoffice_{type(self).__name__.lower()}"
        self.request_id = request_id or str(uuid.uuid4())

    def to_dict(self) -> dict[str, Any]:
        payload = {"error": self.error_code, "message": self.message, "request_id": self.request_id}
        if self.detail:
            payload["detail"] = self.detail
        return payload

    def __str__(self) -> str:
        return f"{self.message}: {self.detail}" if self.detail else self.message

    def log(self, level: int = logging.ERROR) -> None:
        logger.log(
            level,
            self.message,
            extra={
                "error_code": self.error_code,
                "detail": self.detail,
                "request_id": self.request_id,
                "exception_type": type(self).__name__,
            },
        )


# =============================================================================
# Input Validation Errors
# =============================================================================


class ValidationError(BackofficeError):
    """Raised when input validation fails."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        detail: str | None = None,
        request_id: str | None = None,
    ) -> None:
        self.field = field
        full_message = f"{field}: {message}" if field else message
        super().__init__(
            full_message,
            detail=detail,
            error_code="validation_error",
            request_id=request_id,
        )


class InvalidPaginationError(ValidationError):
    """Raised when a page index or page size is out of its domain."""

    def __init__(
        self,
        field: str,
        value: Any,
        *,
        reason: str,
        request_id: str | None = None,
    ) -> None:
        super().__init__(
            message="Invalid pagination",
            field=field,
            detail=f"{reason}: {value!r}",
            request_id=request_id,
        )
        self.value = value


class InvalidQueryKeyError(ValidationError):
    """Raised when query parameters cannot form a cache identity."""

    def __init__(
        self,
        procedure: str,
        *,
        reason: str,
        request_id: str | None = None,
    ) -> None:
        super().__init__(
            message="Invalid query key",
            field="params",
            detail=f"{reason} (procedure {procedure})",
            request_id=request_id,
        )
        self.procedure = procedure


# =============================================================================
# Remote Procedure Errors
# =============================================================================


class RemoteProcedureError(BackofficeError):
    """
    Base class for network or server failures of a remote procedure.

    Carried inside ``QueryState.error``; its message is shown to the user.
    """

    def __init__(
        self,
        message: str,
        *,
        procedure: str | None = None,
        status_code: int | None = None,
        request_id: str | None = None,
    ) -> None:
        self.procedure = procedure
        self.status_code = status_code
        detail_parts = []
        if procedure:
            detail_parts.append(f"Procedure: {procedure}")
        if status_code:
            detail_parts.append(f"Status: {status_code}")
        detail = "; ".join(detail_parts) if detail_parts else None
        super().__init__(
            message,
            detail=detail,
            error_code="remote_procedure_error",
            request_id=request_id,
        )


class RpcStatusError(RemoteProcedureError):
    """Raised when the backend answers with an error status."""

    def __init__(
        self,
        procedure: str,
        *,
        status_code: int,
        code: str | None = None,
        reason: str | None = None,
        request_id: str | None = None,
    ) -> None:
        self.code = code
        super().__init__(
            reason or f"{procedure} failed",
            procedure=procedure,
            status_code=status_code,
            request_id=request_id,
        )
        self.error_code = code or "rpc_status_error"


class RpcTimeoutError(RemoteProcedureError):
    """Raised when a remote procedure call times out."""

    def __init__(
        self,
        procedure: str,
        *,
        timeout_seconds: float | None = None,
        request_id: str | None = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Request to {procedure} timed out",
            procedure=procedure,
            request_id=request_id,
        )
        self.error_code = "rpc_timeout"
        if timeout_seconds:
            self.detail = f"Timeout after {timeout_seconds}s"


class RpcConnectionError(RemoteProcedureError):
    """Raised when the backend cannot be reached."""

    def __init__(
        self,
        procedure: str,
        *,
        reason: str | None = None,
        request_id: str | None = None,
    ) -> None:
        self.reason = reason
        super().__init__(
            f"Connection to backend failed for {procedure}",
            procedure=procedure,
            request_id=request_id,
        )
        self.error_code = "rpc_connection_error"
        self.detail = reason if reason else "Could not establish connection"


class RpcDecodeError(RemoteProcedureError):
    """Raised when a response body does not match the procedure contract."""

    def __init__(
        self,
        procedure: str,
        *,
        reason: str | None = None,
        request_id: str | None = None,
    ) -> None:
        super().__init__(
            f"Malformed response from {procedure}",
            procedure=procedure,
            request_id=request_id,
        )
        self.error_code = "rpc_decode_error"
        if reason:
            self.detail = reason


class QueryCancelledError(BackofficeError):
    """Raised inside a fetcher whose result is no longer wanted."""

    def __init__(
        self,
        query: str,
        *,
        request_id: str | None = None,
    ) -> None:
        self.query = query
        super().__init__(
            f"Query superseded: {query}",
            error_code="query_cancelled",
            request_id=request_id,
        )


# =============================================================================
# Circuit Breaker Errors
# =============================================================================


class CircuitBreakerOpenError(RemoteProcedureError):
    """Raised when the circuit breaker for a backend service is open."""

    def __init__(
        self,
        service: str,
        *,
        retry_after_seconds: int | None = None,
        failure_count: int | None = None,
        request_id: str | None = None,
    ) -> None:
        self.service = service
        self.retry_after_seconds = retry_after_seconds
        self.failure_count = failure_count
        super().__init__(
            f"Circuit breaker open for {service}",
            request_id=request_id,
        )
        detail_parts = [f"Service: {service}"]
        if retry_after_seconds:
            detail_parts.append(f"Retry after: {retry_after_seconds}s")
        if failure_count:
            detail_parts.append(f"Failures: {failure_count}")
        self.detail = "; ".join(detail_parts)
        self.error_code = "circuit_breaker_open"


# =============================================================================
# User-facing Notices
# =============================================================================


class UnimplementedFeatureError(BackofficeError):
    """
    Raised when a user triggers a feature the page does not support yet.

    Surfaced as a transient notice; it never touches cached query state.
    """

    def __init__(
        self,
        feature: str,
        *,
        request_id: str | None = None,
    ) -> None:
        self.feature = feature
        super().__init__(
            f"{feature.capitalize()} not implemented",
            error_code="unimplemented_feature",
            request_id=request_id,
        )


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(BackofficeError):
    """Raised when configuration is invalid or missing."""

    def __init__(
        self,
        message: str,
        *,
        setting_name: str | None = None,
        request_id: str | None = None,
    ) -> None:
        self.setting_name = setting_name
        detail = f"Missing or invalid setting: {setting_name}" if setting_name else None
        super().__init__(
            message,
            detail=detail,
            error_code="configuration_error",
            request_id=request_id,
        )
