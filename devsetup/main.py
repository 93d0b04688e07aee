"""
devsetup — CLI entrypoint.

Usage:
    devsetup --help
    devsetup --dry-run
    devsetup --config minimal-dev.yaml --sections apt_packages,custom_software
    python -m devsetup.main --force
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from devsetup import __version__
from devsetup.core.models.config import SECTIONS
from devsetup.core.models.run import LOGS_DIR, generate_run_id, validate_run_id
from devsetup.core.observability.logging_config import LOG_LEVELS, run_log_path, setup_logging


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, "--version", "-v", prog_name="devsetup")
@click.option("--force", "-f", is_flag=True, help="Reinstall software even if already present.")
@click.option("--dry-run", "-d", is_flag=True, help="Show what would be installed; change nothing.")
@click.option("--run-apt-upgrade", is_flag=True, help="Run apt-get upgrade after updating package lists.")
@click.option(
    "--log-level",
    "-l",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Console log level (default: the profile's settings.log_level).",
)
@click.option(
    "--config",
    "-c",
    "profile",
    default=None,
    help="Profile name in config-profiles/, a path, or an https:// URL.",
)
@click.option(
    "--sections",
    "-s",
    default=None,
    help=f"Comma-separated sections to run: {','.join(SECTIONS)}",
)
@click.option(
    "--root",
    "root",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="DEVSETUP_ROOT",
    default=None,
    help="Project root holding config-profiles/ and the install scripts (default: cwd).",
)
@click.option(
    "--log-dir",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="DEVSETUP_LOG_DIR",
    default=None,
    help="Directory for logs and reports (default: <root>/logs).",
)
@click.option(
    "--run-id",
    envvar="DEVSETUP_RUN_ID",
    default=None,
    help="Correlation id for every artifact of this run (default: timestamp).",
)
@click.option("--unlock-apt", is_flag=True, help="Kill stuck apt/dpkg lock holders after the wait times out.")
def cli(
    force: bool,
    dry_run: bool,
    run_apt_upgrade: bool,
    log_level: str | None,
    profile: str | None,
    sections: str | None,
    root: Path | None,
    log_dir: Path | None,
    run_id: str | None,
    unlock_apt: bool,
) -> None:
    """Provision a development machine from a YAML profile.

    Examples:

        devsetup --dry-run

        devsetup --config minimal-dev.yaml

        devsetup --config https://example.com/team.yaml --sections apt_packages

        devsetup --force --log-level DEBUG
    """
    from devsetup.core.use_cases.run import run_install

    project_root = (root or Path.cwd()).resolve()
    try:
        run_id = validate_run_id(run_id or generate_run_id())
    except ValueError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)
    logs = log_dir or project_root / LOGS_DIR
    log_file = run_log_path(logs, run_id)

    # ── Logging setup ───────────────────────────────────────────
    # Reconfigured once the profile's settings.log_level is known
    setup_logging(level=log_level or "INFO", log_file=log_file)

    def configure_logging(level: str) -> None:
        setup_logging(level=level, log_file=log_file)

    result = run_install(
        profile,
        project_root,
        run_id=run_id,
        force=force,
        dry_run=dry_run,
        sections=sections,
        log_level=log_level,
        run_apt_upgrade=run_apt_upgrade,
        unlock_apt=unlock_apt,
        log_dir=logs,
        configure_logging=configure_logging,
    )

    if result.error:
        click.secho(f"❌ {result.error}", fg="red", err=True)
        sys.exit(1)

    report = result.report
    assert report is not None  # guaranteed after error check above

    click.echo()
    if dry_run:
        click.secho(
            f"🔍 Dry run complete: {len(report.planned)} entries planned, nothing installed",
            fg="cyan",
            bold=True,
        )
        sys.exit(0)

    installed = report.successful + report.already_installed
    for outcome in installed:
        click.secho(f"   ✓ {outcome.label}", fg="green")
    for outcome in report.failed:
        click.secho(f"   ✗ {outcome.label}: {outcome.reason}", fg="red")

    status_color = {"ok": "green", "partial": "yellow", "halted": "red", "failed": "red"}.get(
        report.status, "white"
    )
    click.echo()
    click.secho(
        f"   Result: {len(installed)}/{report.total} ok, {len(report.failed)} failed",
        fg=status_color,
        bold=True,
    )
    if result.report_path:
        click.echo(f"   Report: {result.report_path}")
    click.echo(f"   Run ID: {result.run_id}")
    click.echo()
    sys.exit(result.exit_code)


if __name__ == "__main__":
    cli()
