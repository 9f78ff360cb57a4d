"""
Unit tests for the parallel executor.

Covers:
- Dispatch and result collection keyed by request id
- Worker pool bound
- Isolated failures
- Lifecycle: shutdown, await_termination, context manager
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import CancelledError
from typing import Any
from unittest.mock import patch

import pytest

from parallelrest.config import ExecutorConfig
from parallelrest.errors import LifecycleError, TransportError
from parallelrest.http import BaseHttpClient, RequestsHttpClient
from parallelrest.parallel.executor import BatchResult, ExecutorState, ParallelExecutor
from parallelrest.registry import Registration, RequestRegistry


class FakeHttpClient(BaseHttpClient):
    """In-process client recording calls and peak concurrency."""

    def __init__(
        self,
        delay: float = 0.0,
        fail_on: tuple = (),
        response: Any = "OK",
        gate: threading.Event | None = None,
    ) -> None:
        self.delay = delay
        self.fail_on = fail_on
        self.response = response
        self.gate = gate
        self.started = threading.Event()
        self.calls: list[Any] = []
        self.active = 0
        self.max_active = 0
        self.closed = False
        self._lock = threading.Lock()

    def execute(self, request: Any) -> Any:
        with self._lock:
            self.calls.append(request)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        self.started.set()
        try:
            if self.gate is not None:
                self.gate.wait(5)
            if self.delay:
                time.sleep(self.delay)
            if request in self.fail_on:
                raise TransportError(f"connection refused: {request}", request=request)
            return self.response
        finally:
            with self._lock:
                self.active -= 1

    def close(self) -> None:
        self.closed = True


def _run_in_thread(executor: ParallelExecutor) -> tuple[threading.Thread, dict]:
    box: dict = {}

    def target() -> None:
        box["outcomes"] = executor.run_all_with_context()

    thread = threading.Thread(target=target, daemon=True)
    thread.start()
    return thread, box


class TestParallelExecutorInit:
    """Tests for construction."""

    def test_default_pool_size(self) -> None:
        with ParallelExecutor(http_client=FakeHttpClient()) as executor:
            assert executor.max_workers == 5
            assert executor.state == ExecutorState.CREATED

    def test_default_http_client(self) -> None:
        with ParallelExecutor() as executor:
            assert isinstance(executor.http_client, RequestsHttpClient)

    def test_invalid_pool_size(self) -> None:
        with pytest.raises(ValueError):
            ParallelExecutor(http_client=FakeHttpClient(), max_workers=0)

    def test_uses_given_registry(self) -> None:
        registry = RequestRegistry()
        registry.register("a")
        with ParallelExecutor(http_client=FakeHttpClient(), registry=registry) as executor:
            assert executor.registry is registry
            assert len(executor.run_all()) == 1

    def test_from_config(self) -> None:
        config = ExecutorConfig(max_workers=3, thread_name_prefix="fanout")
        with ParallelExecutor.from_config(config) as executor:
            assert executor.max_workers == 3
            assert isinstance(executor.http_client, RequestsHttpClient)


class TestRunAll:
    """Tests for dispatch and result collection."""

    def test_empty_registry_submits_nothing(self) -> None:
        with ParallelExecutor(http_client=FakeHttpClient()) as executor:
            with patch.object(executor._pool, "submit") as submit:
                assert executor.run_all() == []
                assert executor.run_all_with_context() == {}
            submit.assert_not_called()

    @pytest.mark.parametrize("count", [1, 7, 25])
    def test_one_outcome_per_request(self, count: int) -> None:
        client = FakeHttpClient()
        with ParallelExecutor(http_client=client) as executor:
            added = executor.register_many([f"req-{i}" for i in range(count)])
            outcomes = executor.run_all_with_context()

        assert set(outcomes) == set(added)
        assert all(o.success and o.response == "OK" for o in outcomes.values())
        assert all(outcomes[k].request_id == k for k in outcomes)
        assert sorted(client.calls) == sorted(added.values())

    def test_run_all_returns_outcomes(self) -> None:
        with ParallelExecutor(http_client=FakeHttpClient()) as executor:
            executor.register_many(["a", "b", "c"])
            outcomes = executor.run_all()

        assert len(outcomes) == 3
        assert {o.response for o in outcomes} == {"OK"}

    def test_equal_requests_dispatched_separately(self) -> None:
        client = FakeHttpClient()
        with ParallelExecutor(http_client=client) as executor:
            first = executor.register("same")
            second = executor.register("same")
            outcomes = executor.run_all_with_context()

        assert set(outcomes) == {first, second}
        assert client.calls == ["same", "same"]

    def test_none_registration_not_dispatched(self) -> None:
        client = FakeHttpClient()
        with ParallelExecutor(http_client=client) as executor:
            executor.register(None)
            assert executor.register_many(None) is Registration.NOT_PROVIDED
            assert executor.run_all() == []
        assert client.calls == []

    @pytest.mark.parametrize("bound", [1, 3, 5])
    def test_concurrency_bound(self, bound: int) -> None:
        client = FakeHttpClient(delay=0.02)
        with ParallelExecutor(http_client=client, max_workers=bound) as executor:
            executor.register_many(range(4 * bound))
            outcomes = executor.run_all_with_context()

        assert len(outcomes) == 4 * bound
        assert 1 <= client.max_active <= bound

    def test_requests_run_in_parallel(self) -> None:
        """5 requests of 50ms on 5 workers take about one request's latency."""
        client = FakeHttpClient(delay=0.05)
        with ParallelExecutor(http_client=client, max_workers=5) as executor:
            executor.register_many([f"GET /item/{i}" for i in range(5)])

            start = time.time()
            outcomes = executor.run_all_with_context()
            elapsed = time.time() - start

        assert elapsed < 0.2
        assert len(outcomes) == 5
        assert {o.response for o in outcomes.values()} == {"OK"}

    def test_failure_is_isolated(self) -> None:
        client = FakeHttpClient(fail_on=("second",))
        with ParallelExecutor(http_client=client) as executor:
            ids = [executor.register(r) for r in ("first", "second", "third")]
            outcomes = executor.run_all_with_context()

        assert len(outcomes) == 3
        assert outcomes[ids[0]].success
        assert outcomes[ids[2]].success
        failed = outcomes[ids[1]]
        assert not failed.success
        assert failed.response is None
        assert isinstance(failed.error, TransportError)
        assert failed.error.request == "second"

    def test_unexpected_client_error_is_recorded(self) -> None:
        class BrokenClient(BaseHttpClient):
            def execute(self, request: Any) -> Any:
                raise ValueError("bad request object")

        with ParallelExecutor(http_client=BrokenClient()) as executor:
            request_id = executor.register("x")
            outcome = executor.run_all_with_context()[request_id]

        assert isinstance(outcome.error, ValueError)

    def test_base_exception_from_client_is_recorded(self) -> None:
        class ExitingClient(FakeHttpClient):
            def execute(self, request: Any) -> Any:
                if request == "exit":
                    raise SystemExit(3)
                return super().execute(request)

        with ParallelExecutor(http_client=ExitingClient()) as executor:
            ids = [executor.register(r) for r in ("a", "exit", "b")]
            outcomes = executor.run_all_with_context()

        assert len(outcomes) == 3
        assert outcomes[ids[0]].success
        assert outcomes[ids[2]].success
        assert isinstance(outcomes[ids[1]].error, SystemExit)

    def test_registration_during_run_waits_for_next_run(self) -> None:
        late_ids: list[str] = []

        class RegisteringClient(FakeHttpClient):
            def execute(self, request: Any) -> Any:
                if request == "first" and not late_ids:
                    late_ids.append(executor.register("late"))
                return super().execute(request)

        client = RegisteringClient()
        with ParallelExecutor(http_client=client) as executor:
            first_id = executor.register("first")
            first = executor.run_all_with_context()

            assert set(first) == {first_id}
            assert late_ids[0] in executor.registry

            second = executor.run_all_with_context()

        assert set(second) == {first_id, late_ids[0]}
        assert second[late_ids[0]].success
        assert client.calls.count("late") == 1

    def test_registry_not_cleared_between_runs(self) -> None:
        client = FakeHttpClient()
        with ParallelExecutor(http_client=client) as executor:
            executor.register_many(["a", "b"])
            first = executor.run_all_with_context()
            second = executor.run_all_with_context()

        assert set(first) == set(second)
        assert len(client.calls) == 4

    def test_interrupted_wait_propagates(self) -> None:
        with ParallelExecutor(http_client=FakeHttpClient()) as executor:
            executor.register("a")
            with patch(
                "parallelrest.parallel.executor._Barrier.wait",
                side_effect=KeyboardInterrupt,
            ):
                with pytest.raises(KeyboardInterrupt):
                    executor.run_all_with_context()


class TestRunBatch:
    """Tests for run_batch statistics and progress reporting."""

    def test_batch_statistics(self) -> None:
        client = FakeHttpClient(fail_on=("bad",))
        with ParallelExecutor(http_client=client) as executor:
            executor.register_many(["good-1", "bad", "good-2"])
            result = executor.run_batch()

        assert isinstance(result, BatchResult)
        assert result.success_count == 2
        assert result.failure_count == 1
        assert len(result.failures) == 1
        assert result.total_time_ms >= 0
        assert result.throughput_rps >= 0

    def test_empty_batch(self) -> None:
        with ParallelExecutor(http_client=FakeHttpClient()) as executor:
            result = executor.run_batch()

        assert result.outcomes == {}
        assert result.success_count == 0
        assert result.avg_latency_ms == 0

    def test_progress_callback(self) -> None:
        seen: list[tuple[int, int]] = []
        lock = threading.Lock()

        def on_progress(completed: int, total: int) -> None:
            with lock:
                seen.append((completed, total))

        with ParallelExecutor(http_client=FakeHttpClient()) as executor:
            executor.register_many(range(12))
            executor.run_batch(progress_callback=on_progress)

        assert len(seen) == 12
        assert sorted(c for c, _ in seen) == list(range(1, 13))
        assert {t for _, t in seen} == {12}

    def test_failing_progress_callback_does_not_lose_outcomes(self) -> None:
        def on_progress(completed: int, total: int) -> None:
            raise RuntimeError("progress sink down")

        with ParallelExecutor(http_client=FakeHttpClient()) as executor:
            executor.register_many(range(3))
            outcomes = executor.run_all_with_context(progress_callback=on_progress)

        assert len(outcomes) == 3
        assert all(o.success for o in outcomes.values())


class TestLifecycle:
    """Tests for shutdown and termination."""

    def test_run_after_shutdown_rejected(self) -> None:
        client = FakeHttpClient()
        executor = ParallelExecutor(http_client=client)
        executor.register("a")
        executor.shutdown()

        with pytest.raises(LifecycleError):
            executor.run_all()
        with pytest.raises(LifecycleError):
            executor.run_all_with_context()
        assert client.calls == []

    def test_shutdown_closes_client_and_terminates(self) -> None:
        client = FakeHttpClient()
        executor = ParallelExecutor(http_client=client)
        executor.register("a")
        executor.run_all()

        executor.shutdown()
        assert executor.await_termination(timeout=1)
        assert executor.state == ExecutorState.TERMINATED
        assert client.closed

    def test_shutdown_is_idempotent(self) -> None:
        executor = ParallelExecutor(http_client=FakeHttpClient())
        executor.shutdown(wait=True)
        executor.shutdown()
        assert executor.state == ExecutorState.TERMINATED

    def test_await_termination_requires_shutdown(self) -> None:
        with ParallelExecutor(http_client=FakeHttpClient()) as executor:
            with pytest.raises(LifecycleError):
                executor.await_termination(timeout=0.1)

    def test_await_termination_times_out_with_work_in_flight(self) -> None:
        gate = threading.Event()
        client = FakeHttpClient(gate=gate)
        executor = ParallelExecutor(http_client=client, max_workers=2)
        executor.register_many(["a", "b"])

        thread, box = _run_in_thread(executor)
        assert client.started.wait(1)

        executor.shutdown()
        assert executor.state == ExecutorState.SHUTTING_DOWN
        assert not executor.await_termination(timeout=0.05)
        assert not client.closed

        gate.set()
        thread.join(2)
        assert executor.await_termination(timeout=2)
        assert executor.state == ExecutorState.TERMINATED
        assert client.closed
        assert len(box["outcomes"]) == 2

    def test_shutdown_cancel_pending(self) -> None:
        gate = threading.Event()
        client = FakeHttpClient(gate=gate)
        executor = ParallelExecutor(http_client=client, max_workers=1)
        executor.register_many(["a", "b", "c"])

        thread, box = _run_in_thread(executor)
        assert client.started.wait(1)

        executor.shutdown(cancel_pending=True)
        gate.set()
        thread.join(2)
        assert not thread.is_alive()

        outcomes = box["outcomes"]
        assert len(outcomes) == 3
        assert sum(1 for o in outcomes.values() if o.success) == 1
        cancelled = [o for o in outcomes.values() if not o.success]
        assert all(isinstance(o.error, CancelledError) for o in cancelled)
        assert executor.await_termination(timeout=2)

    def test_context_manager_releases_pool(self) -> None:
        client = FakeHttpClient()
        with ParallelExecutor(http_client=client) as executor:
            executor.register("a")
            executor.run_all()

        assert executor.state == ExecutorState.TERMINATED
        assert client.closed
        with pytest.raises(LifecycleError):
            executor.run_all()

    def test_context_manager_releases_pool_on_error(self) -> None:
        client = FakeHttpClient()
        with pytest.raises(RuntimeError):
            with ParallelExecutor(http_client=client) as executor:
                raise RuntimeError("caller failed")

        assert executor.state == ExecutorState.TERMINATED
        assert client.closed
