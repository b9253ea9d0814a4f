"""
Report model — the persisted record of one run.

Constructed once at the end of a run by ``build_report``, written once
by ``core.persistence.report_file``, never mutated. The file name is
part of the value so callers can print the exact location without
re-deriving it.

JSON document layout (``Report.to_document``):

    {
      "execution_info": {timestamp, completion_time, filename, namespace,
                         kubeconfig_source, verbose_mode, run_id,
                         log_file, cancelled},
      "tests":   [{test_number, test_id, test_name, description, status,
                   message, details, start_time, end_time,
                   execution_time_seconds}, ...],
      "summary": {total_tests, passed, failed, overall_status,
                  overall_message, passed_tests, failed_tests,
                  total_execution_time_seconds, errors_encountered}
    }
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator

from k8s_diagnostic.core.models.result import TimedTestResult
from k8s_diagnostic.core.models.summary import RunSummary

REPORT_PREFIX = "k8s-diagnostic-results"
DEFAULT_KUBECONFIG_SOURCE = "default"


def report_filename(started: datetime, run_id: str = "") -> str:
    """Deterministic, timestamp-bearing report file name.

    The run id suffix keeps runs started within the same second apart.
    """
    stamp = started.strftime("%Y%m%d-%H%M%S")
    if run_id:
        return f"{REPORT_PREFIX}-{stamp}-{run_id}.json"
    return f"{REPORT_PREFIX}-{stamp}.json"


class Report(BaseModel):
    """One run's results plus execution metadata."""

    model_config = ConfigDict(frozen=True)

    namespace: str
    kubeconfig_source: str = DEFAULT_KUBECONFIG_SOURCE
    verbose: bool = False
    results: tuple[TimedTestResult, ...] = ()
    test_names: tuple[str, ...] = ()
    test_ids: tuple[str, ...] = ()
    descriptions: tuple[str, ...] = ()
    overall_start: datetime
    overall_end: datetime
    filename: str
    run_id: str = ""
    log_file: str | None = None
    cancelled: bool = False

    @model_validator(mode="after")
    def _check_alignment(self) -> Report:
        if len(self.test_names) != len(self.results):
            raise ValueError("test_names must align 1:1 with results")
        for field in ("test_ids", "descriptions"):
            values = getattr(self, field)
            if values and len(values) != len(self.results):
                raise ValueError(f"{field} must align 1:1 with results")
        if self.overall_end < self.overall_start:
            raise ValueError("overall_end must not be earlier than overall_start")
        return self

    @property
    def summary(self) -> RunSummary:
        return RunSummary.from_results(self.test_names, self.results)

    @property
    def total_seconds(self) -> float:
        return (self.overall_end - self.overall_start).total_seconds()

    def to_document(self) -> dict[str, Any]:
        """Render the JSON document written to disk."""
        summary = self.summary
        tests: list[dict[str, Any]] = []
        errors: list[str] = []

        for i, (name, timed) in enumerate(zip(self.test_names, self.results)):
            number = i + 1
            if not timed.success:
                errors.append(f"Test {number} ({name}): {timed.message}")
            tests.append({
                "test_number": number,
                "test_id": self.test_ids[i] if self.test_ids else "",
                "test_name": name,
                "description": (
                    self.descriptions[i] if self.descriptions and self.descriptions[i]
                    else f"Diagnostic test: {name}"
                ),
                "status": "PASSED" if timed.success else "FAILED",
                "message": timed.message,
                "details": list(timed.details),
                "start_time": timed.start_time.isoformat(),
                "end_time": timed.end_time.isoformat(),
                "execution_time_seconds": timed.duration.total_seconds(),
            })

        return {
            "execution_info": {
                "timestamp": self.overall_start.isoformat(),
                "completion_time": self.overall_end.isoformat(),
                "filename": self.filename,
                "namespace": self.namespace,
                "kubeconfig_source": self.kubeconfig_source,
                "verbose_mode": self.verbose,
                "run_id": self.run_id,
                "log_file": self.log_file,
                "cancelled": self.cancelled,
            },
            "tests": tests,
            "summary": {
                "total_tests": summary.total_tests,
                "passed": summary.passed_tests,
                "failed": summary.failed_tests,
                "overall_status": "PASSED" if summary.all_passed else "FAILED",
                "overall_message": summary.overall_message,
                "passed_tests": list(summary.passed_names),
                "failed_tests": list(summary.failed_names),
                "total_execution_time_seconds": self.total_seconds,
                "errors_encountered": errors,
            },
        }


def build_report(
    namespace: str,
    kubeconfig: str,
    verbose: bool,
    results: Sequence[TimedTestResult],
    test_names: Sequence[str],
    overall_start: datetime,
    overall_end: datetime,
    *,
    test_ids: Sequence[str] = (),
    descriptions: Mapping[str, str] | None = None,
    run_id: str = "",
    log_file: str | None = None,
    cancelled: bool = False,
) -> Report:
    """Build the immutable Report for a finished run.

    Args:
        kubeconfig: Kubeconfig path used, or "" for the default context
            (recorded as ``"default"``).
        descriptions: Optional description per test id.
    """
    described = ()
    if descriptions is not None and test_ids:
        described = tuple(descriptions.get(test_id, "") for test_id in test_ids)

    return Report(
        namespace=namespace,
        kubeconfig_source=kubeconfig or DEFAULT_KUBECONFIG_SOURCE,
        verbose=verbose,
        results=tuple(results),
        test_names=tuple(test_names),
        test_ids=tuple(test_ids),
        descriptions=described,
        overall_start=overall_start,
        overall_end=overall_end,
        filename=report_filename(overall_start, run_id),
        run_id=run_id,
        log_file=log_file,
        cancelled=cancelled,
    )
