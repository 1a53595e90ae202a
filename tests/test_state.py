"""Tests for backoffice.query.state"""

import pytest

from backoffice.exceptions import RpcConnectionError
from backoffice.query.state import IDLE, QueryState, QueryStatus


class TestTransitions:
    def test_idle_is_default(self):
        assert QueryState.idle() is IDLE
        assert IDLE.status is QueryStatus.IDLE
        assert IDLE.is_idle
        assert IDLE.data is None and IDLE.error is None

    def test_first_load_has_nothing_to_show(self):
        state = QueryState.loading(IDLE)
        assert state.is_loading
        assert state.display_data is None

    def test_success_replaces_data(self):
        state = QueryState.succeeded(["a"], fetched_at=100.0)
        assert state.is_success
        assert state.data == ["a"]
        assert state.display_data == ["a"]
        assert state.fetched_at == 100.0

    def test_reload_keeps_previous_data_visible(self):
        ok = QueryState.succeeded(["a"], fetched_at=100.0)
        reloading = QueryState.loading(ok)
        assert reloading.data is None
        assert reloading.stale_data == ["a"]
        assert reloading.display_data == ["a"]
        assert reloading.fetched_at == 100.0

    def test_failure_keeps_previous_data(self):
        ok = QueryState.succeeded(["a"], fetched_at=100.0)
        error = RpcConnectionError("ListProducts")
        failed = QueryState.failed(error, QueryState.loading(ok))
        assert failed.is_error
        assert failed.error is error
        assert failed.data is None
        assert failed.display_data == ["a"]

    def test_success_after_failure_clears_error(self):
        failed = QueryState.failed(RuntimeError("boom"), IDLE)
        ok = QueryState.succeeded(["b"])
        assert failed.is_error
        assert ok.error is None
        assert ok.stale_data is None

    def test_states_are_immutable(self):
        state = QueryState.succeeded([1])
        with pytest.raises(AttributeError):
            state.status = QueryStatus.ERROR  # type: ignore[misc]


class TestInvariants:
    def test_data_only_on_success(self):
        with pytest.raises(ValueError):
            QueryState(status=QueryStatus.LOADING, data=[1])

    def test_error_only_on_error(self):
        with pytest.raises(ValueError):
            QueryState(status=QueryStatus.SUCCESS, data=[1], error=RuntimeError("x"))


class TestAccessors:
    def test_error_message_prefers_message_attribute(self):
        error = RpcConnectionError("ListProducts", reason="refused")
        assert QueryState.failed(error).error_message == "Connection to backend failed for ListProducts"

    def test_error_message_falls_back_to_str(self):
        assert QueryState.failed(RuntimeError("boom")).error_message == "boom"

    def test_no_error_message_without_error(self):
        assert IDLE.error_message is None

    def test_age(self):
        state = QueryState.succeeded([], fetched_at=100.0)
        assert state.age(now=130.0) == 30.0
        assert IDLE.age(now=130.0) is None

    def test_status_values(self):
        assert [s.value for s in QueryStatus] == ["idle", "loading", "success", "error"]
