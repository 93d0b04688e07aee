"""
Run use case — provision the machine from a profile.

The full vertical slice from a profile reference to a finished run:

    resolve profile → build RunContext → plan → dispatch → cleanup
        → results ledger → version report → summary

Fatal problems (bad section filter, unresolvable or invalid profile)
end the run before anything is dispatched and are reported through
``RunResult.error``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from devsetup.adapters.packages.apt import cleanup_packages, update_package_lists
from devsetup.adapters.registry import InstallerRegistry, default_registry
from devsetup.adapters.shell.command import CommandResult, run_command
from devsetup.core.config.loader import DEFAULT_TRANSPORTS, ResolvedConfig, Transport, resolve
from devsetup.core.engine.executor import ExecutionReport, execute_plan
from devsetup.core.engine.planner import ExecutionPlan, build_plan, parse_sections, validate_sections
from devsetup.core.errors import BackendInstallError, ConfigResolutionError
from devsetup.core.models.run import RunContext, generate_run_id, validate_run_id
from devsetup.core.persistence.report import find_run_artifacts, write_version_report
from devsetup.core.persistence.results import ResultsWriter
from devsetup.core.services.versions import get_command_version

logger = logging.getLogger(__name__)

APT_SECTIONS = ("prerequisites", "apt_packages")


@dataclass
class RunResult:
    """Result of one provisioning run."""

    run_id: str = ""
    resolved: ResolvedConfig | None = None
    context: RunContext | None = None
    plan: ExecutionPlan | None = None
    report: ExecutionReport | None = None
    report_path: Path | None = None
    artifacts: list[Path] = field(default_factory=list)
    error: str | None = None

    @property
    def exit_code(self) -> int:
        if self.error:
            return 1
        if self.report is None:
            return 0
        return self.report.exit_code()

    def to_dict(self) -> dict:
        result: dict = {"run_id": self.run_id}
        if self.error:
            result["error"] = self.error
            return result

        if self.resolved:
            result["config"] = str(self.resolved.path)
            result["source"] = self.resolved.source
        if self.plan:
            result["plan"] = self.plan.to_dict()
        if self.report:
            result["report"] = self.report.to_dict()
        if self.report_path:
            result["report_path"] = str(self.report_path)
        result["artifacts"] = [str(p) for p in self.artifacts]
        result["exit_code"] = self.exit_code
        return result


def run_install(
    profile: str | None = None,
    project_root: Path | None = None,
    *,
    run_id: str | None = None,
    force: bool = False,
    dry_run: bool = False,
    sections: str | tuple[str, ...] | None = None,
    log_level: str | None = None,
    run_apt_upgrade: bool = False,
    unlock_apt: bool = False,
    log_dir: Path | None = None,
    registry: InstallerRegistry | None = None,
    transports: tuple[Transport, ...] = DEFAULT_TRANSPORTS,
    apt_runner: Callable[..., CommandResult] = run_command,
    version_of: Callable[[str], str | None] = get_command_version,
    configure_logging: Callable[[str], None] | None = None,
) -> RunResult:
    """Resolve a profile and bring the machine to the state it declares.

    Args:
        profile: Profile name, path or URL. None = default profile.
        project_root: Root holding config-profiles/, custom-software/, ...
        run_id: Correlation id shared by every artifact. Generated if None.
        force: Reinstall even when the requirement is already met.
        dry_run: Log what would happen; dispatch nothing.
        sections: Section filter ("a,b" or a tuple). Empty = all.
        log_level: Console level from the command line; falls back to the
            profile's settings.log_level.
        run_apt_upgrade: Also run ``apt-get upgrade`` after updating lists.
        unlock_apt: Break a stuck dpkg/apt lock instead of failing.
        log_dir: Artifact directory (default: <root>/logs).
        registry: Installer registry; the real backends when None.
        transports: Download transports for remote profiles.
        apt_runner: Command runner for apt maintenance steps.
        version_of: Version probe used by the installation report.
        configure_logging: Called once with the effective log level as soon
            as the profile is loaded.

    Returns:
        RunResult. Never raises for configuration or backend errors.
    """
    project_root = (project_root or Path.cwd()).resolve()
    result = RunResult(run_id=run_id or generate_run_id())

    # ── Section filter ───────────────────────────────────────────
    try:
        validate_run_id(result.run_id)
        selected = validate_sections(parse_sections(sections))
    except ValueError as e:
        result.error = str(e)
        return result

    # ── Resolve profile ──────────────────────────────────────────
    try:
        resolved = resolve(profile, project_root, transports)
    except ConfigResolutionError as e:
        result.error = str(e)
        return result
    result.resolved = resolved
    config = resolved.config
    settings = config.settings

    level = (log_level or settings.log_level).upper()
    if configure_logging is not None:
        configure_logging(level)

    logger.info("Configuration file: %s", resolved.path)
    logger.info("Profile: %s (v%s)", config.metadata.name, config.metadata.version)
    if config.metadata.description:
        logger.info("Description: %s", config.metadata.description)
    if config.metadata.author:
        logger.info("Author: %s", config.metadata.author)
    if config.metadata.support_url:
        logger.info("Support URL: %s", config.metadata.support_url)

    # ── Run context ──────────────────────────────────────────────
    ctx = RunContext(
        run_id=result.run_id,
        force=force,
        dry_run=dry_run,
        continue_on_error=settings.continue_on_error,
        sections=selected,
        log_level=level,
        run_apt_upgrade=run_apt_upgrade,
        unlock_apt=unlock_apt,
        update_packages=settings.update_packages,
        max_retries=settings.max_retries,
        support_url=config.metadata.support_url,
        project_root=project_root,
        log_dir=log_dir,
    )
    result.context = ctx

    if dry_run:
        logger.info("DRY RUN MODE - No actual installations will be performed")
    if force:
        logger.info("FORCE INSTALL MODE - Will reinstall software even if already present")
    if selected:
        logger.info("Running selected sections: %s", ", ".join(selected))

    # ── Plan ─────────────────────────────────────────────────────
    try:
        plan = build_plan(config, selected)
    except ValueError as e:
        result.error = str(e)
        return result
    result.plan = plan

    # ── Dispatch ─────────────────────────────────────────────────
    if registry is None:
        registry = default_registry()
    writer = ResultsWriter.for_run(ctx)
    apt_ready = False

    def before_section(section: str) -> None:
        nonlocal apt_ready
        if section not in APT_SECTIONS or apt_ready or not ctx.update_packages:
            return
        apt_ready = True
        try:
            update_package_lists(ctx, runner=apt_runner)
        except BackendInstallError as e:
            logger.error("Failed to update package lists: %s", e)

    report = execute_plan(
        plan,
        registry,
        ctx,
        on_outcome=None if dry_run else writer.write,
        before_section=before_section,
    )
    result.report = report

    if dry_run:
        logger.info("Dry run completed. No actual installations were performed.")
        logger.info("%d entries planned", len(report.planned))
        result.artifacts = find_run_artifacts(ctx.logs_path, ctx.run_id)
        return result

    # ── Cleanup ──────────────────────────────────────────────────
    used_apt = any(s.name in APT_SECTIONS and s.entries for s in plan.sections)
    if settings.cleanup_after_install and used_apt:
        cleanup_packages(ctx, runner=apt_runner)

    # ── Report ───────────────────────────────────────────────────
    log_summary(report)
    try:
        result.report_path = write_version_report(config, ctx, report, version_of)
    except OSError as e:
        logger.error("Failed to write version report: %s", e)

    result.artifacts = find_run_artifacts(ctx.logs_path, ctx.run_id)
    if result.artifacts:
        logger.info("Files for run ID %s:", ctx.run_id)
        for path in result.artifacts:
            logger.info("  %s", path)
    return result


def log_summary(report: ExecutionReport) -> None:
    """Enumerate successes and failures by name in the run log."""
    logger.info("── Installation Summary ──")
    logger.info("Total items processed: %d", report.total)
    logger.info("Successful installations: %d", len(report.successful))
    logger.info("Already installed: %d", len(report.already_installed))
    logger.info("Skipped: %d", len(report.skipped))
    logger.info("Failed installations: %d", len(report.failed))

    ok = report.successful + report.already_installed
    if ok:
        logger.info("Successful installations:")
        for outcome in ok:
            logger.info("  ✓ %s", outcome.label)
    if report.failed:
        logger.warning("Failed installations:")
        for outcome in report.failed:
            logger.warning("  ✗ %s - %s", outcome.label, outcome.reason)
    if report.halted:
        logger.warning("Run halted early because continue_on_error is disabled")
