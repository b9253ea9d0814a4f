"""
Test executor — runs exactly one check and wraps it with timing.

The executor never inspects or alters what a check decided. It only
records the wall-clock window and guarantees that it never raises:
an exception escaping a check becomes a failed TestResult so the
orchestrator can continue with the next test.
"""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime, timedelta

from k8s_diagnostic.core.engine.check import CheckContext
from k8s_diagnostic.core.engine.registry import TestEntry
from k8s_diagnostic.core.models.result import TestConfig, TestResult, TimedTestResult

logger = logging.getLogger(__name__)


def execute_check(
    entry: TestEntry,
    ctx: CheckContext,
    config: TestConfig | None = None,
) -> TimedTestResult:
    """Invoke ``entry.check`` once and return its timed result.

    The end time is derived from a monotonic clock so that
    ``end_time >= start_time`` even if the wall clock steps backwards.
    """
    start_time = datetime.now(UTC)
    started = time.monotonic()

    try:
        result = entry.check.run(ctx, config)
    except Exception as e:
        logger.error("Check %s raised: %s", entry.id, e, exc_info=True)
        result = TestResult.failed(
            f"{entry.display_name} could not complete: {e}",
            [f"✗ Unexpected error: {type(e).__name__}: {e}"],
        )

    elapsed = max(0.0, time.monotonic() - started)
    end_time = start_time + timedelta(seconds=elapsed)

    return TimedTestResult(result=result, start_time=start_time, end_time=end_time)
