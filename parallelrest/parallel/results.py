"""JSON export of batch results."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

from ..types import Outcome
from .executor import BatchResult

logger = logging.getLogger(__name__)


def outcome_to_dict(outcome: Outcome) -> Dict[str, Any]:
    return {
        "request_id": outcome.request_id,
        "success": outcome.success,
        "latency_ms": outcome.latency_ms,
        "status_code": getattr(outcome.response, "status_code", None),
        "error": str(outcome.error) if outcome.error is not None else None,
    }


def save_batch_result(result: BatchResult, path: str | Path) -> Path:
    """
    Write a batch result to `path` as JSON.

    Args:
        result: Result of `ParallelExecutor.run_batch`
        path: Output file; parent directories are created

    Returns:
        Path of the written file
    """
    output_file = Path(path)
    output_file.parent.mkdir(parents=True, exist_ok=True)
    data = {
        "stats": {
            "total_time_ms": result.total_time_ms,
            "success_count": result.success_count,
            "failure_count": result.failure_count,
            "avg_latency_ms": result.avg_latency_ms,
            "throughput_rps": result.throughput_rps,
        },
        "results": [outcome_to_dict(o) for o in result.outcomes.values()],
    }

    with open(output_file, "w") as f:
        json.dump(data, f, indent=2)

    logger.info("Saved batch results to %s", output_file)
    return output_file
