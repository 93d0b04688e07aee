"""
Engine executor — walks the plan and aggregates outcomes.

Flow:
    plan → for each section → for each entry → registry.dispatch → report

Only dispatched entries are recorded. In dry-run mode nothing is
dispatched: every entry is logged as the action it would take and
the report stays empty.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from devsetup.adapters.registry import InstallerRegistry
from devsetup.core.engine.planner import ExecutionPlan
from devsetup.core.models.config import Entry, NixBlock, ScriptEntry
from devsetup.core.models.outcome import Outcome
from devsetup.core.models.run import RunContext

logger = logging.getLogger(__name__)

SECTION_TITLES: dict[str, str] = {
    "prerequisites": "Installing Prerequisites",
    "apt_packages": "Installing APT Packages",
    "shell_setup": "Running Shell Setup",
    "custom_software": "Installing Custom Software",
    "python_packages": "Installing Python Packages",
    "powershell_modules": "Installing PowerShell Modules",
    "nix_packages": "Installing Nix Packages",
    "configurations": "Running Configurations",
}


@dataclass
class ExecutionReport:
    """Outcomes of one run, partitioned by status."""

    run_id: str = ""
    outcomes: list[Outcome] = field(default_factory=list)
    dry_run: bool = False
    halted: bool = False
    planned: list[tuple[str, str]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def successful(self) -> list[Outcome]:
        return [o for o in self.outcomes if o.status == "success"]

    @property
    def already_installed(self) -> list[Outcome]:
        return [o for o in self.outcomes if o.status == "already_installed"]

    @property
    def skipped(self) -> list[Outcome]:
        return [o for o in self.outcomes if o.status == "skipped"]

    @property
    def failed(self) -> list[Outcome]:
        return [o for o in self.outcomes if o.failed]

    @property
    def all_ok(self) -> bool:
        return not self.failed

    @property
    def status(self) -> str:
        if self.dry_run:
            return "dry-run"
        if not self.failed:
            return "ok"
        if self.halted:
            return "halted"
        if self.successful or self.already_installed:
            return "partial"
        return "failed"

    def exit_code(self, dry_run: bool | None = None) -> int:
        """1 iff something failed and this was a real run."""
        dry = self.dry_run if dry_run is None else dry_run
        return 1 if self.failed and not dry else 0

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "status": self.status,
            "dry_run": self.dry_run,
            "halted": self.halted,
            "total": self.total,
            "successful": len(self.successful),
            "already_installed": len(self.already_installed),
            "skipped": len(self.skipped),
            "failed": len(self.failed),
            "outcomes": [o.model_dump(mode="json") for o in self.outcomes],
        }


def describe_dry_run(section: str, entry: Entry) -> list[str]:
    """The ``[DRY RUN] Would ...`` lines for one entry."""
    desc = f" - {entry.description}" if entry.description else ""
    if not entry.enabled:
        return [f"[DRY RUN] Would skip disabled entry: {entry.name}"]
    if section == "prerequisites":
        return [f"[DRY RUN] Would install prerequisite: {entry.name}"]
    if section == "apt_packages":
        return [f"[DRY RUN] Would install: {entry.label}{desc}"]
    if section == "custom_software":
        return [f"[DRY RUN] Would install: {entry.name}{desc}"]
    if section == "python_packages":
        method = getattr(entry, "install_method", "pipx")
        return [f"[DRY RUN] Would install Python package: {entry.label} via {method}{desc}"]
    if section == "powershell_modules":
        return [f"[DRY RUN] Would install PowerShell module: {entry.label}{desc}"]
    if section == "nix_packages" and isinstance(entry, NixBlock):
        if entry.kind == "flake":
            return [
                f"[DRY RUN] Would install flake: {entry.description} "
                f"({entry.flake_type}: {entry.flake_ref})"
            ]
        lines = [f"[DRY RUN] Would install {len(entry.packages)} individual Nix packages"]
        lines.extend(
            f"[DRY RUN]   - {p.name} ({p.package})" + (f" - {p.description}" if p.description else "")
            for p in entry.packages
        )
        return lines
    if isinstance(entry, ScriptEntry):
        kind = "shell setup" if section == "shell_setup" else "configuration"
        return [f"[DRY RUN] Would run {kind}: {entry.name}{desc}"]
    return [f"[DRY RUN] Would process {entry.name}{desc}"]


def execute_plan(
    plan: ExecutionPlan,
    registry: InstallerRegistry,
    ctx: RunContext,
    on_outcome: Callable[[Outcome], None] | None = None,
    before_section: Callable[[str], None] | None = None,
) -> ExecutionReport:
    """Dispatch every planned entry through the registry.

    Args:
        plan: The execution plan.
        registry: Section → installer table.
        ctx: The run context (force, dry_run, continue_on_error).
        on_outcome: Called with each Outcome as soon as it exists.
        before_section: Called with a section name before its first
            entry is dispatched (not in dry-run mode).

    Returns:
        ExecutionReport. With ``continue_on_error`` off, the first
        failure stops all remaining dispatch and sets ``halted``.
    """
    report = ExecutionReport(run_id=ctx.run_id, dry_run=ctx.dry_run, planned=plan.entry_names())

    for planned in plan.sections:
        logger.info("── %s ──", SECTION_TITLES.get(planned.name, planned.name))
        if not planned.entries:
            logger.info("No %s defined", planned.name.replace("_", " "))
            continue

        if ctx.dry_run:
            for entry in planned.entries:
                for line in describe_dry_run(planned.name, entry):
                    logger.info("%s", line)
            continue

        if before_section is not None:
            before_section(planned.name)

        total = len(planned.entries)
        for index, entry in enumerate(planned.entries, start=1):
            logger.info("Processing %d/%d: %s", index, total, entry.name)
            outcome = registry.dispatch(planned.name, entry, ctx)
            report.outcomes.append(outcome)
            if on_outcome is not None:
                on_outcome(outcome)

            if outcome.failed and not ctx.continue_on_error:
                logger.error(
                    "Stopping after failure of %s (continue_on_error is disabled)", entry.name
                )
                report.halted = True
                return report

    return report
