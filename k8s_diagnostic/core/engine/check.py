"""
Check abstraction — the single runnable unit the executor invokes.

Every connectivity check is a ``Check`` subclass with one entry point,
``run(ctx, config=None)``. Checks that take no parameters simply ignore
``config``; there is no second invocation shape.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from k8s_diagnostic.core.context import RunContext
from k8s_diagnostic.core.models.result import TestConfig, TestResult

if TYPE_CHECKING:
    from k8s_diagnostic.adapters.base import ClusterClient
    from k8s_diagnostic.core.config.loader import DiagnosticConfig


@dataclass
class CheckContext:
    """Everything a check needs from the run it belongs to."""

    client: ClusterClient
    namespace: str
    run: RunContext = field(default_factory=RunContext)
    settings: DiagnosticConfig | None = None
    run_id: str = ""

    def name(self, base: str) -> str:
        """Fixture name unique to this run: ``<base>-<run_id>``."""
        return f"{base}-{self.run_id}" if self.run_id else base


class Check(ABC):
    """Base class for connectivity checks.

    Subclasses set ``id``, ``display_name`` and ``description`` and
    implement ``run``. ``run`` returns a TestResult for assertion
    failures; it may raise for errors, which the executor records as a
    failed result.
    """

    id: str = ""
    display_name: str = ""
    description: str = ""

    @abstractmethod
    def run(self, ctx: CheckContext, config: TestConfig | None = None) -> TestResult:
        """Exercise one network path and score it."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} id={self.id!r}>"
