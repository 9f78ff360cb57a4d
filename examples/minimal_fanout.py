from parallelrest import HttpRequest, ParallelExecutor
from parallelrest.utils import setup_logging


def main() -> None:
    setup_logging()

    urls = [
        "https://httpbin.org/delay/1",
        "https://httpbin.org/get",
        "https://httpbin.org/status/500",
        "https://httpbin.invalid/",
    ]

    print("▶ Fetching URLs in parallel...")

    with ParallelExecutor(max_workers=5) as executor:
        request_ids = {executor.register(HttpRequest.get(url, timeout=10)): url for url in urls}
        outcomes = executor.run_all_with_context()

    for request_id, url in request_ids.items():
        outcome = outcomes[request_id]
        if outcome.success:
            print(f"{url}: HTTP {outcome.response.status_code} in {outcome.latency_ms:.0f} ms")
        else:
            print(f"{url}: failed ({outcome.error})")


if __name__ == "__main__":
    main()
