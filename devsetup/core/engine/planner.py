"""
Execution planner — which entries run, and in what order.

The plan is the configuration's sections in their fixed order, minus
the sections filtered out by ``--sections``. Entries keep declaration
order. Nothing here touches the system except dependency lookups on
PATH, so the same plan is produced in dry-run and real runs.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field
from typing import Callable, Iterable

from devsetup.core.errors import DependencyWarning
from devsetup.core.models.config import SECTIONS, AptPackage, Configuration, CustomSoftware, Entry
from devsetup.core.services.versions import command_exists

logger = logging.getLogger(__name__)


@dataclass
class PlannedSection:
    """One included section and its entries, in declaration order."""

    name: str
    entries: list[Entry] = field(default_factory=list)


@dataclass
class ExecutionPlan:
    """Ordered sections to dispatch."""

    sections: list[PlannedSection] = field(default_factory=list)
    skipped_sections: list[str] = field(default_factory=list)
    warnings: list[DependencyWarning] = field(default_factory=list)

    @property
    def total_entries(self) -> int:
        return sum(len(s.entries) for s in self.sections)

    @property
    def section_names(self) -> list[str]:
        return [s.name for s in self.sections]

    def entry_names(self) -> list[tuple[str, str]]:
        """``(section, entry)`` pairs in dispatch order."""
        return [(s.name, e.name) for s in self.sections for e in s.entries]

    def to_dict(self) -> dict:
        return {
            "sections": {s.name: [e.name for e in s.entries] for s in self.sections},
            "skipped_sections": list(self.skipped_sections),
            "warnings": [str(w) for w in self.warnings],
            "total_entries": self.total_entries,
        }


def parse_sections(value: str | Iterable[str] | None) -> tuple[str, ...]:
    """``"a, b"`` or ``["a", "b"]`` → ``("a", "b")``; empty items dropped."""
    if not value:
        return ()
    items = value.split(",") if isinstance(value, str) else list(value)
    return tuple(s.strip() for s in items if s and s.strip())


def validate_sections(sections: Iterable[str]) -> tuple[str, ...]:
    """Reject unknown section names.

    Raises:
        ValueError: Listing the unknown names and the valid ones.
    """
    sections = tuple(sections)
    unknown = [s for s in sections if s not in SECTIONS]
    if unknown:
        raise ValueError(
            f"Invalid section(s): {', '.join(unknown)}. Valid sections: {', '.join(SECTIONS)}"
        )
    return sections


def check_dependencies(
    config: Configuration,
    entry: CustomSoftware,
    lookup: Callable[[str], bool] = command_exists,
) -> list[DependencyWarning]:
    """Warn about ``depends_on`` names nothing in the plan or PATH provides.

    Dependencies are checked for existence only; install order is not
    changed.
    """
    known: set[str] = set()
    for section in ("prerequisites", "apt_packages"):
        for pkg in config.entries(section):
            known.add(pkg.name)
            if isinstance(pkg, AptPackage) and pkg.command:
                known.add(pkg.command)
    known.update(e.name for e in config.custom_software)

    found = []
    for dep in entry.depends_on:
        if dep in known or lookup(dep):
            continue
        warning = DependencyWarning(f"Dependency {dep} not found for {entry.name}")
        logger.warning("%s", warning)
        warnings.warn(warning, stacklevel=2)
        found.append(warning)
    return found


def build_plan(
    config: Configuration,
    sections: Iterable[str] = (),
    lookup: Callable[[str], bool] = command_exists,
) -> ExecutionPlan:
    """Build the execution plan.

    Args:
        config: Validated configuration.
        sections: Section filter; empty means every section.
        lookup: Command-table check used for ``depends_on``.

    Raises:
        ValueError: If the filter names an unknown section.
    """
    selected = validate_sections(sections)
    plan = ExecutionPlan()

    for name in SECTIONS:
        if selected and name not in selected:
            plan.skipped_sections.append(name)
            logger.debug("Section %s skipped by filter", name)
            continue

        entries = config.entries(name)
        plan.sections.append(PlannedSection(name=name, entries=entries))

        if name == "custom_software":
            for entry in entries:
                if isinstance(entry, CustomSoftware) and entry.depends_on:
                    plan.warnings.extend(check_dependencies(config, entry, lookup))

    logger.debug(
        "Plan: %d entries in %d sections (%d skipped by filter)",
        plan.total_entries, len(plan.sections), len(plan.skipped_sections),
    )
    return plan
