"""
Check result models — the contract between checks and the engine.

A check returns a TestResult. The executor wraps it with wall-clock
bounds into a TimedTestResult. Neither is ever mutated after it is
returned: both models are frozen and details are stored as a tuple.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Literal

from pydantic import BaseModel, ConfigDict, model_validator

Placement = Literal["same-node", "cross-node", "both"]

PLACEMENTS: tuple[str, ...] = ("same-node", "cross-node", "both")


def _now() -> datetime:
    """Current UTC time."""
    return datetime.now(UTC)


class TestConfig(BaseModel):
    """Parameters for checks that need them (currently pod-to-pod)."""

    __test__ = False
    model_config = ConfigDict(frozen=True)

    placement: Placement = "both"


class TestResult(BaseModel):
    """Outcome of exactly one check invocation."""

    __test__ = False
    model_config = ConfigDict(frozen=True)

    success: bool
    message: str
    details: tuple[str, ...] = ()

    @classmethod
    def passed(cls, message: str, details: list[str] | tuple[str, ...] = ()) -> TestResult:
        """Create a passing result."""
        return cls(success=True, message=message, details=tuple(details))

    @classmethod
    def failed(cls, message: str, details: list[str] | tuple[str, ...] = ()) -> TestResult:
        """Create a failing result."""
        return cls(success=False, message=message, details=tuple(details))


class TimedTestResult(BaseModel):
    """A TestResult with the wall-clock window of its invocation."""

    __test__ = False
    model_config = ConfigDict(frozen=True)

    result: TestResult
    start_time: datetime
    end_time: datetime

    @model_validator(mode="after")
    def _check_window(self) -> TimedTestResult:
        if self.end_time < self.start_time:
            raise ValueError("end_time must not be earlier than start_time")
        return self

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time

    @property
    def success(self) -> bool:
        return self.result.success

    @property
    def message(self) -> str:
        return self.result.message

    @property
    def details(self) -> tuple[str, ...]:
        return self.result.details
