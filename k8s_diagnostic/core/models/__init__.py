"""
Domain models — Pydantic types for the diagnostic run.

All models are re-exported here for convenient access:

    from k8s_diagnostic.core.models import TestResult, TimedTestResult, Report
"""

from k8s_diagnostic.core.models.report import Report, build_report, report_filename
from k8s_diagnostic.core.models.result import (
    PLACEMENTS,
    Placement,
    TestConfig,
    TestResult,
    TimedTestResult,
)
from k8s_diagnostic.core.models.summary import RunSummary

__all__ = [
    "PLACEMENTS",
    "Placement",
    # report.py
    "Report",
    # summary.py
    "RunSummary",
    # result.py
    "TestConfig",
    "TestResult",
    "TimedTestResult",
    "build_report",
    "report_filename",
]
