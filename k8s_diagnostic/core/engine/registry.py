"""
Test registry — the immutable table of checks and named groups.

Built once at process start (``core.services.catalog.default_registry``)
and passed explicitly to the orchestrator. Construction validates the
table, so a group or default set naming an unregistered identifier is
caught before any run starts.

Resolution precedence (highest first):

    --test-all  >  named group  >  explicit list (["all"] = everything)  >  defaults
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from k8s_diagnostic.core.engine.check import Check

logger = logging.getLogger(__name__)

ALL_TESTS = "all"


class RegistryError(Exception):
    """The test table itself is inconsistent (a configuration defect)."""


@dataclass(frozen=True)
class TestEntry:
    """A registered check. Identity is ``id``, not ``display_name``."""

    __test__ = False

    id: str
    display_name: str
    check: Check
    description: str = ""


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving a run request to test identifiers."""

    test_ids: tuple[str, ...]
    warnings: tuple[str, ...] = ()
    source: str = "default"

    @property
    def full_run(self) -> bool:
        """Whether every registered test was requested (--test-all or `all`)."""
        return self.source == "all"


@dataclass(frozen=True)
class TestRegistry:
    """Ordered checks, named groups and the default subset."""

    __test__ = False

    entries: tuple[TestEntry, ...]
    groups: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    default: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        ids = [e.id for e in self.entries]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise RegistryError(f"Duplicate test identifiers: {', '.join(duplicates)}")

        known = set(ids)
        for group, members in self.groups.items():
            missing = [m for m in members if m not in known]
            if missing:
                raise RegistryError(
                    f"Group '{group}' references unknown tests: {', '.join(missing)}"
                )
        missing = [m for m in self.default if m not in known]
        if missing:
            raise RegistryError(f"Default set references unknown tests: {', '.join(missing)}")

    @classmethod
    def build(
        cls,
        checks: Iterable[Check],
        groups: Mapping[str, Sequence[str]] | None = None,
        default: Sequence[str] | None = None,
    ) -> TestRegistry:
        """Create a registry from Check instances (default = all checks)."""
        entries = tuple(
            TestEntry(
                id=c.id, display_name=c.display_name, check=c, description=c.description,
            )
            for c in checks
        )
        return cls(
            entries=entries,
            groups={name: tuple(members) for name, members in (groups or {}).items()},
            default=tuple(default) if default is not None else tuple(e.id for e in entries),
        )

    # ── Lookup ──────────────────────────────────────────────────

    @property
    def ids(self) -> tuple[str, ...]:
        """All identifiers in registration order."""
        return tuple(e.id for e in self.entries)

    def get(self, test_id: str) -> TestEntry | None:
        for entry in self.entries:
            if entry.id == test_id:
                return entry
        return None

    def __contains__(self, test_id: object) -> bool:
        return any(e.id == test_id for e in self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    # ── Resolution ──────────────────────────────────────────────

    def resolve(
        self,
        group: str = "",
        test_list: Sequence[str] = (),
        test_all: bool = False,
    ) -> Resolution:
        """Turn a run request into an ordered tuple of valid identifiers.

        Unknown group names fall back to the default set with one
        warning; unknown list items are skipped with one warning each.
        """
        if test_all:
            return Resolution(test_ids=self.ids, source="all")

        warnings: list[str] = []
        if group:
            if group in self.groups:
                return Resolution(test_ids=self.groups[group], source=f"group:{group}")
            available = ", ".join(sorted(self.groups)) or "none"
            warnings.append(
                f"Unknown test group '{group}' (available: {available}); running default tests"
            )
            return Resolution(test_ids=self.default, warnings=tuple(warnings), source="default")

        items = [t.strip() for t in test_list if t.strip()]
        if items:
            if len(items) == 1 and items[0].lower() == ALL_TESTS:
                return Resolution(test_ids=self.ids, source="all")

            selected: list[str] = []
            for item in items:
                if item not in self:
                    warnings.append(f"Unknown test '{item}' skipped")
                    continue
                if item not in selected:
                    selected.append(item)
            if not selected:
                warnings.append("No valid tests selected")
            return Resolution(test_ids=tuple(selected), warnings=tuple(warnings), source="list")

        return Resolution(test_ids=self.default, source="default")
