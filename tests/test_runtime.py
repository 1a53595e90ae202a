"""Tests for backoffice.ui.runtime"""

import asyncio
import concurrent.futures
import threading

import pytest

from backoffice.ui.runtime import LoopRunner, get_runner


@pytest.fixture
def runner():
    runner = LoopRunner("test-loop")
    yield runner
    runner.stop()


class TestLoopRunner:
    def test_runs_coroutine_on_loop_thread(self, runner):
        async def where():
            await asyncio.sleep(0)
            return threading.current_thread().name

        assert runner.run(where()) == "test-loop"
        assert runner.running

    def test_call_runs_plain_function_on_loop(self, runner):
        def inside():
            asyncio.get_running_loop()
            return threading.current_thread().name

        assert runner.call(inside) == "test-loop"

    def test_call_passes_arguments(self, runner):
        assert runner.call(lambda a, b=0: a + b, 1, b=2) == 3

    def test_exceptions_propagate(self, runner):
        def broken():
            raise KeyError("x")

        with pytest.raises(KeyError):
            runner.call(broken)

    def test_timeout_cancels(self, runner):
        with pytest.raises(concurrent.futures.TimeoutError):
            runner.run(asyncio.sleep(5), timeout=0.05)

    def test_tasks_outlive_the_call_that_started_them(self, runner):
        done = threading.Event()

        async def background():
            await asyncio.sleep(0.01)
            done.set()

        runner.call(lambda: asyncio.get_running_loop().create_task(background()))

        assert done.wait(2)

    def test_same_loop_across_calls(self, runner):
        first = runner.call(asyncio.get_running_loop)
        second = runner.call(asyncio.get_running_loop)
        assert first is second

    def test_start_fails_when_loop_never_comes_up(self, runner, monkeypatch):
        monkeypatch.setattr(runner, "_serve", runner._ready.set)

        with pytest.raises(RuntimeError, match="test-loop"):
            runner.start()

    def test_stop_and_restart(self, runner):
        runner.start()
        runner.stop()
        assert not runner.running
        assert runner.call(lambda: 1) == 1


def test_shared_runner():
    assert get_runner() is get_runner()
