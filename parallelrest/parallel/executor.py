"""
Parallel executor for registered HTTP requests.

Dispatches every request held by a `RequestRegistry` onto a fixed-size
thread pool, waits until all of them have finished and returns one
`Outcome` per request id.

Architecture:
    - One task per registered request, at most `max_workers` in flight
    - The calling thread blocks until the whole batch has completed
    - A failing request is recorded on its own Outcome; siblings keep running
    - The pool lives until `shutdown()` and is reused across runs
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from ..config import DEFAULT_MAX_WORKERS, ExecutorConfig
from ..errors import LifecycleError
from ..http import BaseHttpClient, RequestsHttpClient
from ..registry import Registration, RequestRegistry
from ..types import Outcome

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class ExecutorState(Enum):
    """Lifecycle state of a `ParallelExecutor`."""

    CREATED = "created"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


@dataclass
class BatchResult:
    """Outcomes of one run together with batch statistics.

    Attributes:
        outcomes: Outcome per request id
        total_time_ms: Wall-clock time of the run
        success_count: Number of successful requests
        failure_count: Number of failed requests
        avg_latency_ms: Average latency of successful requests
        throughput_rps: Requests per second over the whole run
    """

    outcomes: Dict[str, Outcome]
    total_time_ms: float
    success_count: int
    failure_count: int
    avg_latency_ms: float
    throughput_rps: float

    @property
    def failures(self) -> Dict[str, Outcome]:
        return {k: o for k, o in self.outcomes.items() if not o.success}


class ParallelExecutor:
    """
    Bounded-concurrency executor for registered HTTP requests.

    Example:
        >>> with ParallelExecutor(max_workers=5) as executor:
        ...     ids = executor.register_many([HttpRequest.get(u) for u in urls])
        ...     outcomes = executor.run_all_with_context()
        >>> for request_id, outcome in outcomes.items():
        ...     print(request_id, outcome.success)

    Thread Safety:
        Registration may happen from any thread. A run dispatches the
        requests registered when it starts; requests registered later are
        picked up by the next run. The HTTP client is shared by all worker
        threads and must be safe for concurrent use.
    """

    def __init__(
        self,
        http_client: Optional[BaseHttpClient] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        registry: Optional[RequestRegistry] = None,
        thread_name_prefix: str = "parallelrest_worker",
    ) -> None:
        """
        Initialize the executor and allocate its worker pool.

        Args:
            http_client: Client used to execute requests; defaults to a
                `RequestsHttpClient` with one connection per worker
            max_workers: Maximum number of requests in flight (>= 1)
            registry: Registry to dispatch from; a new one by default
            thread_name_prefix: Name prefix for worker threads
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")

        if http_client is None:
            http_client = RequestsHttpClient(pool_maxsize=max_workers)

        self._http_client = http_client
        self._max_workers = max_workers
        self._registry = registry if registry is not None else RequestRegistry()

        self._pool = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix=thread_name_prefix,
        )

        # RLock: a done callback runs in the submitting thread when the
        # future is already finished.
        self._lock = threading.RLock()
        self._state = ExecutorState.CREATED
        self._in_flight: set[Future] = set()
        self._terminated = threading.Event()

        logger.info("ParallelExecutor initialized: max_workers=%d", max_workers)

    @classmethod
    def from_config(
        cls,
        config: ExecutorConfig,
        http_client: Optional[BaseHttpClient] = None,
    ) -> "ParallelExecutor":
        if http_client is None:
            http_client = RequestsHttpClient(
                pool_maxsize=config.max_workers,
                user_agent=config.user_agent,
                raise_for_status=config.raise_for_status,
            )
        return cls(
            http_client=http_client,
            max_workers=config.max_workers,
            thread_name_prefix=config.thread_name_prefix,
        )

    @property
    def max_workers(self) -> int:
        return self._max_workers

    @property
    def registry(self) -> RequestRegistry:
        return self._registry

    @property
    def http_client(self) -> BaseHttpClient:
        return self._http_client

    @property
    def state(self) -> ExecutorState:
        return self._state

    def register(self, request: Any) -> str:
        return self._registry.register(request)

    def register_many(
        self,
        requests: Optional[Iterable[Any]],
    ) -> Union[Dict[str, Any], Registration]:
        return self._registry.register_many(requests)

    def run_all(self) -> List[Outcome]:
        """
        Execute all registered requests and return their outcomes.

        The order of the returned list is unspecified. Use
        `run_all_with_context` to correlate outcomes with request ids.
        """
        return list(self.run_all_with_context().values())

    def run_all_with_context(
        self,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> Dict[str, Outcome]:
        """
        Execute all registered requests and wait for every one of them.

        Args:
            progress_callback: Optional callback(completed, total), called
                from worker threads as requests finish

        Returns:
            Mapping of request id to Outcome, one entry per request that was
            registered when the run started

        Raises:
            LifecycleError: If the executor has been shut down
        """
        futures, barrier = self._submit_all(progress_callback)
        if not futures:
            return {}

        logger.debug("Waiting for %d requests", len(futures))
        try:
            barrier.wait()
        except KeyboardInterrupt:
            cancelled = sum(1 for future in futures if future.cancel())
            logger.warning(
                "Interrupted while waiting for %d requests (%d cancelled before start)",
                len(futures),
                cancelled,
            )
            raise

        outcomes: Dict[str, Outcome] = {}
        for future, request_id in futures.items():
            if future.cancelled():
                # Only possible after shutdown(cancel_pending=True) from another thread
                outcomes[request_id] = Outcome(request_id=request_id, error=CancelledError())
            elif future.exception() is not None:
                # BaseException from the client, e.g. SystemExit
                outcomes[request_id] = Outcome(request_id=request_id, error=future.exception())
            else:
                outcomes[request_id] = future.result()
        return outcomes

    def run_batch(
        self,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> BatchResult:
        """
        Execute all registered requests and summarise the run.

        Returns:
            BatchResult with every Outcome and batch statistics
        """
        start_time = time.time()
        outcomes = self.run_all_with_context(progress_callback=progress_callback)
        total_time_ms = (time.time() - start_time) * 1000

        success_count = sum(1 for o in outcomes.values() if o.success)
        failure_count = len(outcomes) - success_count

        successful_latencies = [o.latency_ms for o in outcomes.values() if o.success]
        avg_latency_ms = (
            sum(successful_latencies) / len(successful_latencies)
            if successful_latencies
            else 0
        )
        throughput_rps = (
            len(outcomes) / (total_time_ms / 1000) if total_time_ms > 0 else 0
        )

        logger.info(
            "Batch complete: %d/%d success, %.2fs total, %.0f ms/request avg, %.2f RPS",
            success_count,
            len(outcomes),
            total_time_ms / 1000,
            avg_latency_ms,
            throughput_rps,
        )

        return BatchResult(
            outcomes=outcomes,
            total_time_ms=total_time_ms,
            success_count=success_count,
            failure_count=failure_count,
            avg_latency_ms=avg_latency_ms,
            throughput_rps=throughput_rps,
        )

    def _submit_all(
        self,
        progress_callback: Optional[ProgressCallback],
    ) -> Tuple[Dict[Future, str], "_Barrier"]:
        with self._lock:
            if self._state is not ExecutorState.CREATED:
                raise LifecycleError(
                    f"Cannot run requests on an executor in state {self._state.value!r}"
                )

            requests = self._registry.snapshot()
            barrier = _Barrier(len(requests))
            if not requests:
                return {}, barrier

            logger.info(
                "Dispatching %d requests, %d concurrent",
                len(requests),
                self._max_workers,
            )

            progress = _Progress(len(requests), progress_callback)
            futures: Dict[Future, str] = {}
            for request_id, request in requests.items():
                future = self._pool.submit(self._execute, request_id, request, progress)
                self._in_flight.add(future)
                future.add_done_callback(self._on_done)
                # Done callbacks also fire for futures cancelled by pool shutdown
                future.add_done_callback(barrier.arrive)
                futures[future] = request_id
            return futures, barrier

    def _execute(self, request_id: str, request: Any, progress: "_Progress") -> Outcome:
        start_time = time.time()
        try:
            response = self._http_client.execute(request)
        except Exception as e:
            latency_ms = (time.time() - start_time) * 1000
            logger.warning("Request %s failed: %s", request_id, str(e)[:200])
            return Outcome(request_id=request_id, error=e, latency_ms=latency_ms)
        else:
            latency_ms = (time.time() - start_time) * 1000
            logger.debug("Request %s completed in %.0f ms", request_id, latency_ms)
            return Outcome(request_id=request_id, response=response, latency_ms=latency_ms)
        finally:
            progress.advance()

    def _on_done(self, future: Future) -> None:
        with self._lock:
            self._in_flight.discard(future)
        self._maybe_terminate()

    def _maybe_terminate(self) -> None:
        with self._lock:
            if self._state is not ExecutorState.SHUTTING_DOWN or self._in_flight:
                return
            self._state = ExecutorState.TERMINATED

        self._http_client.close()
        self._terminated.set()
        logger.info("ParallelExecutor terminated")

    def shutdown(self, wait: bool = False, cancel_pending: bool = False) -> None:
        """
        Stop accepting runs and release the worker pool and HTTP client.

        Requests already in flight run to completion; with `cancel_pending`
        the ones still queued are cancelled. The HTTP client is closed once
        nothing is in flight. Calling shutdown more than once is a no-op.

        Args:
            wait: Block until the executor has terminated
            cancel_pending: Cancel queued requests that have not started
        """
        with self._lock:
            if self._state is not ExecutorState.CREATED:
                return
            self._state = ExecutorState.SHUTTING_DOWN

        logger.info(
            "ParallelExecutor shutting down (%d requests in flight)",
            len(self._in_flight),
        )
        self._pool.shutdown(wait=False, cancel_futures=cancel_pending)
        self._maybe_terminate()

        if wait:
            self.await_termination()

    def await_termination(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the executor to terminate after `shutdown()`.

        Args:
            timeout: Maximum time to wait in seconds, None to wait forever

        Returns:
            Whether the executor terminated within `timeout`
        """
        if self._state is ExecutorState.CREATED:
            raise LifecycleError("await_termination() called before shutdown()")

        if not self._terminated.wait(timeout):
            return False
        # Workers are idle now; join them.
        self._pool.shutdown(wait=True)
        return True

    def __enter__(self) -> "ParallelExecutor":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.shutdown()
        self.await_termination()

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(max_workers={self._max_workers}, "
            f"state={self._state.value}, pending={len(self._registry)})"
        )


class _Barrier:
    """Releases once every future of a run is done, cancelled ones included."""

    def __init__(self, total: int) -> None:
        self._remaining = total
        self._lock = threading.Lock()
        self._done = threading.Event()
        if total == 0:
            self._done.set()

    def arrive(self, future: Future) -> None:
        with self._lock:
            self._remaining -= 1
            if self._remaining == 0:
                self._done.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._done.wait(timeout)


class _Progress:
    """Completion counter shared by the tasks of one run."""

    def __init__(self, total: int, callback: Optional[ProgressCallback]) -> None:
        self.total = total
        self.completed = 0
        self._callback = callback
        self._lock = threading.Lock()

    def advance(self) -> None:
        with self._lock:
            self.completed += 1
            completed = self.completed

        if completed % 10 == 0 or completed == self.total:
            logger.info(
                "Progress: %d/%d (%.1f%%)",
                completed,
                self.total,
                100 * completed / self.total,
            )
        if self._callback:
            try:
                self._callback(completed, self.total)
            except Exception:
                logger.exception("Progress callback failed")
