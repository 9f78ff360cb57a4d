"""
parallelrest executes batches of independent HTTP requests concurrently on a
bounded worker pool and returns their outcomes keyed by request id.
"""

from .config import ExecutorConfig, config_from_env, load_config
from .errors import LifecycleError, ParallelRestError, TransportError
from .http import BaseHttpClient, RequestsHttpClient
from .parallel import BatchResult, ExecutorState, ParallelExecutor
from .registry import Registration, RequestRegistry
from .types import HttpRequest, Outcome, PendingRequest

__version__ = "0.1.0"

__all__ = [
    "BaseHttpClient",
    "BatchResult",
    "ExecutorConfig",
    "ExecutorState",
    "HttpRequest",
    "LifecycleError",
    "Outcome",
    "ParallelExecutor",
    "ParallelRestError",
    "PendingRequest",
    "Registration",
    "RequestRegistry",
    "RequestsHttpClient",
    "TransportError",
    "config_from_env",
    "load_config",
]
