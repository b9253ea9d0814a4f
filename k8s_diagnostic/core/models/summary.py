"""
Run summary — the aggregate derived from a run's ordered results.

Never stored on its own: always recomputed from the parallel
(test_names, results) sequences so counts and name order cannot drift
from what actually executed.
"""

from __future__ import annotations

from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict

from k8s_diagnostic.core.models.result import TestResult, TimedTestResult


class RunSummary(BaseModel):
    """Counts and ordered name lists for one run."""

    model_config = ConfigDict(frozen=True)

    total_tests: int = 0
    passed_tests: int = 0
    failed_tests: int = 0
    passed_names: tuple[str, ...] = ()
    failed_names: tuple[str, ...] = ()
    detail_lines: tuple[str, ...] = ()

    @classmethod
    def from_results(
        cls,
        test_names: Sequence[str],
        results: Sequence[TimedTestResult],
    ) -> RunSummary:
        """Aggregate in one pass, preserving execution order.

        Raises:
            ValueError: If the two sequences are not aligned 1:1.
        """
        if len(test_names) != len(results):
            raise ValueError(
                f"test_names ({len(test_names)}) and results ({len(results)}) "
                "must be aligned"
            )

        passed: list[str] = []
        failed: list[str] = []
        lines: list[str] = []
        for name, timed in zip(test_names, results):
            if timed.result.success:
                passed.append(name)
                lines.append(f"PASS: {name}: {timed.result.message}")
            else:
                failed.append(name)
                lines.append(f"FAIL: {name}: {timed.result.message}")

        return cls(
            total_tests=len(results),
            passed_tests=len(passed),
            failed_tests=len(failed),
            passed_names=tuple(passed),
            failed_names=tuple(failed),
            detail_lines=tuple(lines),
        )

    @property
    def all_passed(self) -> bool:
        return self.failed_tests == 0

    @property
    def overall_message(self) -> str:
        if self.all_passed:
            return f"All {self.total_tests} diagnostic tests passed"
        return f"{self.failed_tests} of {self.total_tests} diagnostic tests failed"

    def overall_result(self) -> TestResult:
        """The run as a single TestResult whose details are the PASS/FAIL lines."""
        return TestResult(
            success=self.all_passed,
            message=self.overall_message,
            details=self.detail_lines,
        )
