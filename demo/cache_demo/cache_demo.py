"""
Walks through the cache's eviction rules.

  1. max_size=1: the second put evicts the first key.
  2. 2s expiration: after waiting, the remaining key is gone too.
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Callable

# Ensure repository root is on sys.path before importing expiring_cache.*
REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from expiring_cache import ExpiringLimitedCache, LoggingTraceSink

logger = logging.getLogger("cache_demo")


def _configure_logging(verbose: bool) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(threadName)s %(name)s: %(message)s"))
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)


def run_demo(
    wait_seconds: float,
    *,
    verbose: bool = False,
    time_fn: Callable[[], float] = time.monotonic,
) -> dict[str, str | None]:
    results: dict[str, str | None] = {}
    trace_sink = LoggingTraceSink() if verbose else None
    with ExpiringLimitedCache[int, str](
        "demo",
        expiration_seconds=2,
        max_size=1,
        trace_sink=trace_sink,
        time_fn=time_fn,
    ) as cache:
        cache.put(1, "HI")
        cache.put(2, "DEMO")
        # 1 is gone because max_size is 1
        results["first"] = cache.get(1)
        results["second"] = cache.get(2)
        logger.info("1=%s", results["first"])
        logger.info("2=%s", results["second"])

        logger.info("Waiting %.1fs...", wait_seconds)
        time.sleep(wait_seconds)

        results["second_after_wait"] = cache.get(2)
        logger.info("2=%s", results["second_after_wait"])
    return results


def main() -> int:
    parser = argparse.ArgumentParser(description="Expiring limited cache demo")
    parser.add_argument("--wait", type=float, default=3.0, help="Seconds to wait before the expiry lookup")
    parser.add_argument("--verbose", action="store_true", help="Log every cache operation")
    args = parser.parse_args()

    _configure_logging(args.verbose)
    results = run_demo(args.wait, verbose=args.verbose)
    expected = {"first": None, "second": "DEMO", "second_after_wait": None}
    ok = all(results[key] == value for key, value in expected.items())
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
