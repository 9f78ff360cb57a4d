"""
Parallel execution of registered HTTP requests.

Key Components:
    - ParallelExecutor: Dispatches registered requests onto a bounded
      worker pool and collects one Outcome per request id
    - BatchResult: Outcomes of a run with throughput statistics
    - save_batch_result: JSON export of a BatchResult

Example:
    >>> from parallelrest.parallel import ParallelExecutor
    >>> with ParallelExecutor(max_workers=5) as executor:
    ...     executor.register(HttpRequest.get("https://example.com/a"))
    ...     outcomes = executor.run_all_with_context()
"""

from .executor import BatchResult, ExecutorState, ParallelExecutor
from .results import outcome_to_dict, save_batch_result

__all__ = [
    "BatchResult",
    "ExecutorState",
    "ParallelExecutor",
    "outcome_to_dict",
    "save_batch_result",
]
