#!/usr/bin/env python3
"""
Fetch a list of URLs concurrently and report one line per URL.
"""

import argparse

from parallelrest import HttpRequest, ParallelExecutor, config_from_env, load_config
from parallelrest.parallel import save_batch_result
from parallelrest.utils import setup_logging


def main() -> None:
    parser = argparse.ArgumentParser(description="Fetch URLs concurrently.")
    parser.add_argument("urls", nargs="+", help="URLs to GET")
    parser.add_argument("--config", help="Path to executor config YAML")
    parser.add_argument("--workers", type=int, help="Worker pool size (overrides config)")
    parser.add_argument("--output", help="Write results as JSON to this file")
    parser.add_argument("--log-level", help="Logging level (overrides config)")
    args = parser.parse_args()

    cfg = load_config(args.config) if args.config else config_from_env()
    if args.workers is not None:
        cfg.max_workers = args.workers
    setup_logging(args.log_level or cfg.log_level)

    with ParallelExecutor.from_config(cfg) as executor:
        ids = executor.register_many([HttpRequest.get(url) for url in args.urls])
        result = executor.run_batch()

    for request_id, request in ids.items():
        outcome = result.outcomes[request_id]
        if outcome.success:
            print(f"{outcome.response.status_code} {request.url} ({outcome.latency_ms:.0f} ms)")
        else:
            print(f"ERR {request.url}: {outcome.error}")

    print(f"Completed {len(result.outcomes)} requests, {result.failure_count} failed.")

    if args.output:
        save_batch_result(result, args.output)


if __name__ == "__main__":
    main()
