"""
Basic usage: run two HTTP checks from code.

    python examples/01_basic_usage.py
"""

import asyncio
import logging

from site_audit import CheckMode, CheckSpec, run
from site_audit.fetchers import HttpxFetcher


logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')


CHECKS = [
    CheckSpec(
        name="homepage",
        target="https://example.com/",
        mode=CheckMode.HTTP,
        expected_status={200},
        expected_headers={"Content-Type": "text/html"},
        expected_body_contains=("Example Domain",),
        max_response_time_ms=5000,
    ),
    CheckSpec(
        name="missing page",
        target="https://example.com/definitely-missing",
        expected_status={404},
        max_response_time_ms=5000,
    ),
]


async def main():
    async with HttpxFetcher(timeout_seconds=10) as fetcher:
        report = await run(CHECKS, fetcher, max_parallel=2)

    for result in report.results:
        status = "✅ PASSED" if result.passed else "❌ FAILED"
        print(f"{status} {result.spec.label} (status={result.observed_status})")
        for failure in result.failures:
            print(f"    - {failure}")

    print(f"\nPassed {report.passed_count}/{report.total}")


if __name__ == "__main__":
    asyncio.run(main())
