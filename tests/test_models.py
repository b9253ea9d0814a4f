"""
Tests for the result, summary and report models.
"""

from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from k8s_diagnostic.core.models import (
    Report,
    RunSummary,
    TestConfig,
    TestResult,
    TimedTestResult,
    build_report,
    report_filename,
)

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)


def _timed(success: bool, message: str = "", seconds: float = 1.0, details=()) -> TimedTestResult:
    return TimedTestResult(
        result=TestResult(success=success, message=message, details=tuple(details)),
        start_time=T0,
        end_time=T0 + timedelta(seconds=seconds),
    )


class TestTestResult:
    def test_passed_factory(self):
        r = TestResult.passed("ok", ["a", "b"])
        assert r.success is True
        assert r.details == ("a", "b")

    def test_failed_factory(self):
        r = TestResult.failed("broken")
        assert r.success is False
        assert r.details == ()

    def test_frozen(self):
        r = TestResult.passed("ok")
        with pytest.raises(ValidationError):
            r.message = "changed"


class TestTestConfig:
    def test_default_placement(self):
        assert TestConfig().placement == "both"

    def test_rejects_unknown_placement(self):
        with pytest.raises(ValidationError):
            TestConfig(placement="same-rack")


class TestTimedTestResult:
    def test_duration(self):
        t = _timed(True, seconds=2.5)
        assert t.duration.total_seconds() == 2.5

    def test_zero_duration_allowed(self):
        t = _timed(True, seconds=0)
        assert t.duration == timedelta(0)

    def test_end_before_start_rejected(self):
        with pytest.raises(ValidationError):
            TimedTestResult(
                result=TestResult.passed("ok"),
                start_time=T0,
                end_time=T0 - timedelta(seconds=1),
            )

    def test_delegates_to_result(self):
        t = _timed(False, "nope", details=["x"])
        assert t.success is False
        assert t.message == "nope"
        assert t.details == ("x",)


class TestRunSummary:
    def test_counts_and_order(self):
        names = ["A", "B", "C"]
        results = [_timed(True, "fine"), _timed(False, "bad"), _timed(True, "fine")]
        s = RunSummary.from_results(names, results)
        assert s.total_tests == 3
        assert s.passed_tests + s.failed_tests == s.total_tests
        assert s.passed_names == ("A", "C")
        assert s.failed_names == ("B",)
        assert s.detail_lines == ("PASS: A: fine", "FAIL: B: bad", "PASS: C: fine")

    def test_all_passed_message(self):
        s = RunSummary.from_results(["A", "B"], [_timed(True), _timed(True)])
        assert s.all_passed
        assert s.overall_message == "All 2 diagnostic tests passed"

    def test_failed_message(self):
        s = RunSummary.from_results(["A", "B"], [_timed(True), _timed(False)])
        assert not s.all_passed
        assert s.overall_message == "1 of 2 diagnostic tests failed"

    def test_empty_run(self):
        s = RunSummary.from_results([], [])
        assert s.total_tests == 0
        assert s.all_passed

    def test_misaligned_sequences_rejected(self):
        with pytest.raises(ValueError):
            RunSummary.from_results(["A"], [])

    def test_overall_result(self):
        s = RunSummary.from_results(["A"], [_timed(False, "bad")])
        overall = s.overall_result()
        assert overall.success is False
        assert overall.details == ("FAIL: A: bad",)


class TestReport:
    def test_filename_from_start(self):
        assert report_filename(T0) == "k8s-diagnostic-results-20260301-120000.json"

    def test_filename_carries_run_id(self):
        assert report_filename(T0, "9f3e1a") == "k8s-diagnostic-results-20260301-120000-9f3e1a.json"

    def test_build_report(self):
        report = build_report(
            namespace="diagnostic-test",
            kubeconfig="",
            verbose=True,
            results=[_timed(True, "fine")],
            test_names=["DNS Resolution"],
            overall_start=T0,
            overall_end=T0 + timedelta(seconds=3),
            test_ids=["dns"],
            descriptions={"dns": "Resolve a name"},
            run_id="abc123",
        )
        assert report.kubeconfig_source == "default"
        assert report.filename == "k8s-diagnostic-results-20260301-120000-abc123.json"
        assert report.descriptions == ("Resolve a name",)
        assert report.total_seconds == 3.0

    def test_names_must_align(self):
        with pytest.raises(ValidationError):
            Report(
                namespace="ns",
                results=(_timed(True),),
                test_names=(),
                overall_start=T0,
                overall_end=T0,
                filename="x.json",
            )

    def test_window_must_be_ordered(self):
        with pytest.raises(ValidationError):
            Report(
                namespace="ns",
                overall_start=T0,
                overall_end=T0 - timedelta(seconds=1),
                filename="x.json",
            )

    def test_document_layout(self):
        report = build_report(
            namespace="diagnostic-test",
            kubeconfig="/tmp/kc",
            verbose=False,
            results=[_timed(True, "fine", details=["d1"]), _timed(False, "bad")],
            test_names=["Pod-to-Pod Connectivity", "DNS Resolution"],
            overall_start=T0,
            overall_end=T0 + timedelta(seconds=5),
            test_ids=["pod-to-pod", "dns"],
        )
        doc = report.to_document()

        info = doc["execution_info"]
        assert info["namespace"] == "diagnostic-test"
        assert info["kubeconfig_source"] == "/tmp/kc"
        assert info["verbose_mode"] is False
        assert info["cancelled"] is False

        first, second = doc["tests"]
        assert first["test_number"] == 1
        assert first["test_id"] == "pod-to-pod"
        assert first["status"] == "PASSED"
        assert first["details"] == ["d1"]
        assert first["execution_time_seconds"] == 1.0
        assert first["description"] == "Diagnostic test: Pod-to-Pod Connectivity"
        assert second["status"] == "FAILED"

        summary = doc["summary"]
        assert summary["total_tests"] == 2
        assert summary["passed"] == 1
        assert summary["failed"] == 1
        assert summary["overall_status"] == "FAILED"
        assert summary["failed_tests"] == ["DNS Resolution"]
        assert summary["errors_encountered"] == ["Test 2 (DNS Resolution): bad"]
        assert summary["total_execution_time_seconds"] == 5.0
