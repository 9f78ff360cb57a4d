from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

DEFAULT_MAX_WORKERS = 5

_KNOWN_KEYS = {
    "max_workers",
    "thread_name_prefix",
    "user_agent",
    "raise_for_status",
    "log_level",
}


@dataclass
class ExecutorConfig:
    """Configuration for a parallel executor.

    Attributes:
        max_workers: Worker pool bound (maximum requests in flight)
        thread_name_prefix: Name prefix for worker threads
        user_agent: User-Agent header for the default HTTP client
        raise_for_status: Treat 4xx/5xx responses as transport failures
        log_level: Logging level name used by scripts
        extra: Unrecognised keys from a config file
    """

    max_workers: int = DEFAULT_MAX_WORKERS
    thread_name_prefix: str = "parallelrest_worker"
    user_agent: Optional[str] = None
    raise_for_status: bool = False
    log_level: str = "INFO"
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes")


def load_config(path: str | Path) -> ExecutorConfig:
    data = yaml.safe_load(Path(path).read_text()) or {}
    return ExecutorConfig(
        max_workers=int(data.get("max_workers", DEFAULT_MAX_WORKERS)),
        thread_name_prefix=data.get("thread_name_prefix", "parallelrest_worker"),
        user_agent=data.get("user_agent"),
        raise_for_status=_as_bool(str(data.get("raise_for_status", False))),
        log_level=data.get("log_level", "INFO"),
        extra={k: v for k, v in data.items() if k not in _KNOWN_KEYS},
    )


def config_from_env() -> ExecutorConfig:
    """Build a config from PARALLELREST_* environment variables."""
    return ExecutorConfig(
        max_workers=int(os.getenv("PARALLELREST_MAX_WORKERS", str(DEFAULT_MAX_WORKERS))),
        user_agent=os.getenv("PARALLELREST_USER_AGENT") or None,
        raise_for_status=_as_bool(os.getenv("PARALLELREST_RAISE_FOR_STATUS", "0")),
        log_level=os.getenv("PARALLELREST_LOG_LEVEL", "INFO"),
    )
