"""Tests for backoffice.exceptions"""

import logging

from backoffice.exceptions import (
    BackofficeError,
    CircuitBreakerOpenError,
    ConfigurationError,
    InvalidPaginationError,
    InvalidQueryKeyError,
    QueryCancelledError,
    RemoteProcedureError,
    RpcConnectionError,
    RpcDecodeError,
    RpcStatusError,
    RpcTimeoutError,
    UnimplementedFeatureError,
    ValidationError,
)


class TestBackofficeError:
    def test_defaults(self):
        error = BackofficeError("Something broke")
        assert error.message == "Something broke"
        assert error.error_code == "backoffice_backofficeerror"
        assert error.request_id
        assert str(error) == "Something broke"

    def test_detail_in_str_and_dict(self):
        error = BackofficeError("Something broke", detail="more", request_id="req-1")
        assert str(error) == "Something broke: more"
        assert error.to_dict() == {
            "error": "backoffice_backofficeerror",
            "message": "Something broke",
            "detail": "more",
            "request_id": "req-1",
        }

    def test_log_includes_structured_fields(self, caplog):
        error = BackofficeError("Something broke", error_code="custom")
        with caplog.at_level(logging.WARNING, logger="backoffice.exceptions"):
            error.log(logging.WARNING)
        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert record.error_code == "custom"
        assert record.exception_type == "BackofficeError"


class TestValidationErrors:
    def test_pagination(self):
        error = InvalidPaginationError("page_size", 0, reason="must be a positive integer")
        assert isinstance(error, ValidationError)
        assert error.field == "page_size"
        assert error.value == 0
        assert error.message == "page_size: Invalid pagination"
        assert error.detail == "must be a positive integer: 0"
        assert error.error_code == "validation_error"

    def test_query_key(self):
        error = InvalidQueryKeyError("svc/List", reason="unhashable parameter")
        assert error.procedure == "svc/List"
        assert "svc/List" in error.detail


class TestRemoteErrors:
    def test_hierarchy(self):
        for error in (
            RpcStatusError("svc/List", status_code=500),
            RpcTimeoutError("svc/List"),
            RpcConnectionError("svc/List"),
            RpcDecodeError("svc/List"),
            CircuitBreakerOpenError("svc"),
        ):
            assert isinstance(error, RemoteProcedureError)
            assert isinstance(error, BackofficeError)

    def test_status_error_uses_backend_code(self):
        error = RpcStatusError("svc/List", status_code=404, code="not_found", reason="Unknown family")
        assert error.message == "Unknown family"
        assert error.error_code == "not_found"
        assert error.detail == "Procedure: svc/List; Status: 404"

    def test_status_error_without_reason(self):
        error = RpcStatusError("svc/List", status_code=500)
        assert error.message == "svc/List failed"
        assert error.error_code == "rpc_status_error"

    def test_timeout_detail(self):
        error = RpcTimeoutError("svc/List", timeout_seconds=10.0)
        assert error.message == "Request to svc/List timed out"
        assert error.detail == "Timeout after 10.0s"

    def test_connection_detail(self):
        assert RpcConnectionError("svc/List").detail == "Could not establish connection"
        assert RpcConnectionError("svc/List", reason="refused").detail == "refused"

    def test_circuit_breaker_open(self):
        error = CircuitBreakerOpenError("svc", retry_after_seconds=12, failure_count=5)
        assert error.message == "Circuit breaker open for svc"
        assert error.detail == "Service: svc; Retry after: 12s; Failures: 5"
        assert error.error_code == "circuit_breaker_open"


class TestOtherErrors:
    def test_cancelled(self):
        error = QueryCancelledError("svc/List(x=1)")
        assert error.query == "svc/List(x=1)"
        assert error.error_code == "query_cancelled"

    def test_unimplemented_message(self):
        error = UnimplementedFeatureError("search")
        assert error.message == "Search not implemented"
        assert error.feature == "search"
        assert error.error_code == "unimplemented_feature"

    def test_configuration(self):
        error = ConfigurationError("RPC base URL is not configured", setting_name="BACKOFFICE_RPC_URL")
        assert error.detail == "Missing or invalid setting: BACKOFFICE_RPC_URL"
        assert error.error_code == "configuration_error"
