"""
Diagnose use case — one complete diagnostic run.

This is the top-level orchestrator: it resolves which tests to run,
ensures the shared namespace, drives the executor over the sequence,
aggregates, decides cleanup, and writes the report.

State machine:

    INIT → NAMESPACE_READY → RUNNING(i)… → AGGREGATED → (CLEANUP) → REPORTED → DONE

Only INIT/NAMESPACE_READY can fail the run. Once tests start, each
test's failure is recorded and the sequence continues; cancellation
stops the sequence after the in-flight test is recorded.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

from k8s_diagnostic.adapters.base import ClusterClient
from k8s_diagnostic.core.config.loader import DiagnosticConfig
from k8s_diagnostic.core.context import RunContext
from k8s_diagnostic.core.engine.check import CheckContext
from k8s_diagnostic.core.engine.executor import execute_check
from k8s_diagnostic.core.engine.registry import TestEntry, TestRegistry
from k8s_diagnostic.core.models.report import Report, build_report
from k8s_diagnostic.core.models.result import TestConfig, TimedTestResult
from k8s_diagnostic.core.models.summary import RunSummary
from k8s_diagnostic.core.persistence.report_file import save_report
from k8s_diagnostic.core.services.namespace_ops import (
    NamespaceError,
    cleanup_namespace,
    ensure_namespace,
    should_cleanup,
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CANCELLED = 130


class RunPhase(str, Enum):
    INIT = "init"
    NAMESPACE_READY = "namespace_ready"
    RUNNING = "running"
    AGGREGATED = "aggregated"
    CLEANUP = "cleanup"
    REPORTED = "reported"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RunRequest:
    """Which tests to run and what to do with the namespace afterwards."""

    test_group: str = ""
    test_list: Sequence[str] = ()
    test_all: bool = False
    keep_namespace: bool = False
    force_cleanup: bool = False


@dataclass
class RunResult:
    """Everything a caller needs to present a finished run."""

    phase: RunPhase = RunPhase.INIT
    run_id: str = ""
    test_ids: list[str] = field(default_factory=list)
    test_names: list[str] = field(default_factory=list)
    results: list[TimedTestResult] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    namespace_created: bool = False
    full_run: bool = False
    cleaned_up: bool = False
    cancelled: bool = False
    report: Report | None = None
    report_path: Path | None = None
    error: str | None = None

    @property
    def summary(self) -> RunSummary:
        return RunSummary.from_results(self.test_names, self.results)

    def exit_code(self, fail_on_test_failure: bool = False) -> int:
        """Process exit status for this run."""
        if self.error:
            return EXIT_FAILURE
        if self.cancelled:
            return EXIT_CANCELLED
        if fail_on_test_failure and not self.summary.all_passed:
            return EXIT_FAILURE
        return EXIT_OK

    def to_dict(self) -> dict:
        result: dict = {"phase": self.phase.value, "run_id": self.run_id}
        if self.error:
            result["error"] = self.error
            return result

        summary = self.summary
        result.update({
            "tests": list(self.test_ids),
            "total": summary.total_tests,
            "passed": summary.passed_tests,
            "failed": summary.failed_tests,
            "overall_message": summary.overall_message,
            "cancelled": self.cancelled,
            "cleaned_up": self.cleaned_up,
            "warnings": list(self.warnings),
            "report_path": str(self.report_path) if self.report_path else None,
        })
        return result


def generate_run_id() -> str:
    """Short random id appended to fixture names."""
    return uuid.uuid4().hex[:6]


def run_diagnostics(
    request: RunRequest,
    settings: DiagnosticConfig,
    client: ClusterClient,
    registry: TestRegistry,
    *,
    context: RunContext | None = None,
    run_id: str | None = None,
    log_file: str | None = None,
    write_report: bool = True,
    on_warning: Callable[[str], None] | None = None,
    on_test_start: Callable[[int, int, TestEntry], None] | None = None,
    on_test_done: Callable[[int, int, TestEntry, TimedTestResult], None] | None = None,
) -> RunResult:
    """Execute one diagnostic run.

    Args:
        request: Test selection and cleanup options.
        settings: Effective configuration (namespace, timeouts, images).
        client: Cluster client used by every check.
        registry: The test table to resolve against.
        context: Cancellation/deadline signal (default: a fresh one
            bounded by ``settings.run_timeout``).
        run_id: Fixture name suffix (default: random).
        log_file: Run log path, recorded in the report.
        write_report: If False, build the report but do not persist it.
        on_warning / on_test_start / on_test_done: Progress callbacks.

    Returns:
        RunResult. Setup failures are reported through ``error``.
    """
    context = context or RunContext(timeout=settings.run_timeout)
    result = RunResult(run_id=run_id or generate_run_id())

    def _warn(message: str) -> None:
        logger.warning("%s", message)
        result.warnings.append(message)
        if on_warning:
            on_warning(message)

    # ── Resolve ─────────────────────────────────────────────────
    resolution = registry.resolve(
        group=request.test_group,
        test_list=request.test_list,
        test_all=request.test_all,
    )
    result.full_run = resolution.full_run
    for warning in resolution.warnings:
        _warn(warning)
    entries = [registry.get(test_id) for test_id in resolution.test_ids]
    logger.info("Resolved %d tests (%s): %s",
                len(entries), resolution.source, ", ".join(resolution.test_ids))

    # ── Namespace ───────────────────────────────────────────────
    try:
        result.namespace_created = ensure_namespace(client, settings.namespace)
    except NamespaceError as e:
        logger.error("%s", e)
        result.error = str(e)
        result.phase = RunPhase.FAILED
        return result
    result.phase = RunPhase.NAMESPACE_READY

    # ── Execute ─────────────────────────────────────────────────
    check_ctx = CheckContext(
        client=client,
        namespace=settings.namespace,
        run=context,
        settings=settings,
        run_id=result.run_id,
    )
    config = TestConfig(placement=settings.placement)
    overall_start = datetime.now(UTC)
    total = len(entries)

    result.phase = RunPhase.RUNNING
    for index, entry in enumerate(entries, start=1):
        if context.cancelled:
            _warn(f"Run {context.reason}: skipping {total - index + 1} remaining tests")
            break

        logger.info("Running test %d/%d: %s", index, total, entry.display_name)
        if on_test_start:
            on_test_start(index, total, entry)

        timed = execute_check(entry, check_ctx, config)
        result.test_ids.append(entry.id)
        result.test_names.append(entry.display_name)
        result.results.append(timed)

        logger.info(
            "%s: %s (%.2fs): %s",
            "PASS" if timed.success else "FAIL",
            entry.display_name,
            timed.duration.total_seconds(),
            timed.message,
        )
        for line in timed.details:
            logger.debug("  %s", line)
        if on_test_done:
            on_test_done(index, total, entry, timed)

    result.cancelled = context.cancelled
    overall_end = max(datetime.now(UTC), overall_start)
    result.phase = RunPhase.AGGREGATED

    summary = result.summary
    logger.info("%s", summary.overall_message)

    # ── Cleanup ─────────────────────────────────────────────────
    if should_cleanup(result.full_run, request.keep_namespace, request.force_cleanup):
        result.phase = RunPhase.CLEANUP
        outcome = cleanup_namespace(client, settings.namespace)
        result.cleaned_up = outcome.ok
        if outcome.warning:
            result.warnings.append(outcome.warning)
            if on_warning:
                on_warning(outcome.warning)
    else:
        logger.info("Keeping namespace %s", settings.namespace)

    # ── Report ──────────────────────────────────────────────────
    report = build_report(
        namespace=settings.namespace,
        kubeconfig=settings.kubeconfig,
        verbose=settings.verbose,
        results=result.results,
        test_names=result.test_names,
        overall_start=overall_start,
        overall_end=overall_end,
        test_ids=result.test_ids,
        descriptions={e.id: e.description for e in registry.entries},
        run_id=result.run_id,
        log_file=log_file,
        cancelled=result.cancelled,
    )
    result.report = report

    if write_report:
        try:
            result.report_path = save_report(report, Path(settings.results_dir))
        except OSError as e:
            _warn(f"Failed to write report {report.filename}: {e}")
    result.phase = RunPhase.REPORTED

    result.phase = RunPhase.DONE
    return result
