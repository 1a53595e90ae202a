"""Tests for backoffice.query.observer"""

import asyncio

from conftest import FakeFetcher, drain

from backoffice.query.keys import DISABLED, resolve_query
from backoffice.query.observer import QueryObserver
from backoffice.query.state import IDLE, QueryStatus


def _request(products, family):
    return resolve_query(products, {"familyExternalId": family}, required=["familyExternalId"])


def _echo_family(params):
    return {"family": params["familyExternalId"]}


class TestActiveKey:
    def test_starts_disabled(self, cache, fetcher):
        observer = QueryObserver(fetcher, cache=cache)
        assert observer.request is DISABLED
        assert observer.key is None
        assert not observer.enabled
        assert observer.state is IDLE

    def test_disabled_request_never_fetches(self, cache, fetcher, products):
        observer = QueryObserver(fetcher, cache=cache)
        seen = []
        observer.add_listener(seen.append)

        async def scenario():
            observer.set_request(_request(products, ""))
            return await observer.settle()

        state = asyncio.run(scenario())

        assert state is IDLE
        assert fetcher.calls == []
        assert seen == []

    def test_key_change_ignores_late_response(self, cache, products):
        """The first family's response arrives after the switch and is ignored."""
        fetcher = FakeFetcher(_echo_family)
        observer = QueryObserver(fetcher, cache=cache)
        seen = []
        observer.add_listener(lambda state: seen.append(state.display_data))
        key_a = _request(products, "a").key

        async def scenario():
            gate_a = fetcher.hold(familyExternalId="a")
            observer.set_request(_request(products, "a"))
            await drain()
            assert observer.state.is_loading

            observer.set_request(_request(products, "b"))
            await observer.settle()
            after_b = observer.state

            gate_a.set()
            await drain()
            return after_b

        after_b = asyncio.run(scenario())

        assert after_b.data == {"family": "b"}
        assert observer.state is after_b
        assert {"family": "a"} not in seen
        assert fetcher.tokens[0].cancelled
        assert key_a not in cache

    def test_other_observer_keeps_old_key_alive(self, cache, products):
        fetcher = FakeFetcher(_echo_family)
        page = QueryObserver(fetcher, cache=cache, name="page")
        card = QueryObserver(fetcher, cache=cache, name="card")

        async def scenario():
            gate_a = fetcher.hold(familyExternalId="a")
            page.set_request(_request(products, "a"))
            card.set_request(_request(products, "a"))
            await drain()
            page.set_request(_request(products, "b"))
            await page.settle()
            gate_a.set()
            await card.settle()

        asyncio.run(scenario())

        assert len(fetcher.calls) == 2
        assert page.state.data == {"family": "b"}
        assert card.state.data == {"family": "a"}

    def test_switch_to_disabled_emits_idle(self, cache, fetcher, products):
        observer = QueryObserver(fetcher, cache=cache)
        seen = []
        observer.add_listener(lambda state: seen.append(state.status))

        async def scenario():
            observer.set_request(_request(products, "a"))
            await observer.settle()
            observer.set_request(_request(products, None))

        asyncio.run(scenario())

        assert seen == [QueryStatus.LOADING, QueryStatus.SUCCESS, QueryStatus.IDLE]
        assert observer.state is IDLE
        assert len(cache) == 0


class TestSharing:
    def test_two_observers_one_call(self, cache, fetcher, products):
        first = QueryObserver(fetcher, cache=cache)
        second = QueryObserver(fetcher, cache=cache)

        async def scenario():
            first.set_request(_request(products, "a"))
            second.set_request(_request(products, "a"))
            await first.settle()
            await second.settle()

        asyncio.run(scenario())

        assert len(fetcher.calls) == 1
        assert first.state is second.state

    def test_attaching_observer_is_told_current_state(self, cache, fetcher, products):
        first = QueryObserver(fetcher, cache=cache)
        second = QueryObserver(fetcher, cache=cache)
        seen = []
        second.add_listener(lambda state: seen.append(state.status))

        async def scenario():
            first.set_request(_request(products, "a"))
            await first.settle()
            second.set_request(_request(products, "a"))
            await second.settle()

        asyncio.run(scenario())

        assert seen[-1] is QueryStatus.SUCCESS

    def test_close_keeps_entry_for_remaining_observer(self, cache, fetcher, products):
        first = QueryObserver(fetcher, cache=cache)
        second = QueryObserver(fetcher, cache=cache)
        key = _request(products, "a").key

        async def scenario():
            first.set_request(_request(products, "a"))
            second.set_request(_request(products, "a"))
            await first.settle()

        asyncio.run(scenario())
        first.close()
        assert key in cache
        second.close()
        assert key not in cache


class TestRequestLifecycle:
    def test_same_request_is_noop(self, cache, fetcher, products):
        observer = QueryObserver(fetcher, cache=cache)

        async def scenario():
            observer.set_request(_request(products, "a"))
            await observer.settle()
            observer.set_request(_request(products, "a"))
            await observer.settle()

        asyncio.run(scenario())

        assert len(fetcher.calls) == 1

    def test_same_request_reattaches_after_eviction(self, cache, fetcher, products):
        observer = QueryObserver(fetcher, cache=cache)
        request = _request(products, "a")

        async def scenario():
            observer.set_request(request)
            await observer.settle()
            cache.remove(request.key)
            observer.set_request(request)
            await observer.settle()

        asyncio.run(scenario())

        assert len(fetcher.calls) == 2
        assert observer.state.is_success
        cache.clear()

    def test_refetch_and_invalidate(self, cache, products):
        fetcher = FakeFetcher(lambda params: len(fetcher.calls))
        observer = QueryObserver(fetcher, cache=cache)

        async def scenario():
            observer.set_request(_request(products, "a"))
            await observer.settle()
            await observer.refetch()
            after_refetch = observer.state.data
            await observer.invalidate()
            return after_refetch, observer.state.data

        after_refetch, after_invalidate = asyncio.run(scenario())

        assert after_refetch == 2
        assert after_invalidate == 3

    def test_refetch_when_disabled(self, cache, fetcher):
        observer = QueryObserver(fetcher, cache=cache)
        assert observer.refetch() is None
        assert observer.invalidate() is None

    def test_close_drops_listeners(self, cache, fetcher, products):
        observer = QueryObserver(fetcher, cache=cache)
        seen = []
        observer.add_listener(seen.append)

        async def scenario():
            observer.set_request(_request(products, "a"))
            observer.close()
            await drain()

        asyncio.run(scenario())

        assert observer.state is IDLE
        assert len(seen) == 1
        assert len(cache) == 0

    def test_remove_listener(self, cache, fetcher, products):
        observer = QueryObserver(fetcher, cache=cache)
        seen = []
        remove = observer.add_listener(seen.append)
        remove()
        remove()

        async def scenario():
            observer.set_request(_request(products, "a"))
            await observer.settle()

        asyncio.run(scenario())

        assert seen == []

    def test_repr(self, cache, fetcher):
        assert repr(QueryObserver(fetcher, cache=cache, name="products")) == (
            "QueryObserver('products', key=None, status=idle)"
        )
