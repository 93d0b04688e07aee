"""
Installation report — ``installation-report-<run_id>.txt``.

The apt_packages versions are probed again when the report is
written; outcomes from dispatch are not reused, so the report also
shows drift caused by scripts that ran after a package was handled.
"""

from __future__ import annotations

import logging
import platform
from datetime import datetime
from pathlib import Path
from typing import Callable

from devsetup.core.engine.executor import ExecutionReport
from devsetup.core.models.config import Configuration
from devsetup.core.models.run import RunContext
from devsetup.core.services.versions import get_command_version

logger = logging.getLogger(__name__)

REPORT_PREFIX = "installation-report"
REPORT_SUFFIX = ".txt"

VersionProbe = Callable[[str], str | None]


def os_description(os_release: Path = Path("/etc/os-release")) -> str:
    """``PRETTY_NAME`` from os-release, or ``Unknown``."""
    try:
        for line in os_release.read_text(encoding="utf-8").splitlines():
            if line.startswith("PRETTY_NAME="):
                return line.split("=", 1)[1].strip().strip('"')
    except OSError:
        pass
    return "Unknown"


def render_report(
    config: Configuration,
    ctx: RunContext,
    execution: ExecutionReport | None = None,
    version_of: VersionProbe = get_command_version,
) -> str:
    """Build the report text."""
    lines = [
        f"{config.metadata.name} Version Report",
        f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"Run ID: {ctx.run_id}",
        "==================================",
        "",
    ]

    if config.apt_packages:
        lines += ["APT Packages:", "-------------"]
        for pkg in config.apt_packages:
            current = version_of(pkg.probe_command) or "not installed"
            lines.append(f"  {pkg.name}: {current} (required: {pkg.version})")
        lines.append("")

    if execution is not None and not execution.dry_run:
        lines += [
            "Run Summary:",
            "------------",
            f"  Status: {execution.status}",
            f"  Installed: {len(execution.successful)}",
            f"  Already installed: {len(execution.already_installed)}",
            f"  Skipped: {len(execution.skipped)}",
            f"  Failed: {len(execution.failed)}",
        ]
        lines += [f"    - {o.label}: {o.reason}" for o in execution.failed]
        lines.append("")

    uname = platform.uname()
    lines += [
        "System Information:",
        "-------------------",
        f"  OS: {os_description()}",
        f"  Kernel: {uname.release}",
        f"  Architecture: {uname.machine}",
        "",
    ]
    return "\n".join(lines)


def write_version_report(
    config: Configuration,
    ctx: RunContext,
    execution: ExecutionReport | None = None,
    version_of: VersionProbe = get_command_version,
) -> Path:
    """Write the report for this run and return its path."""
    path = ctx.artifact_path(REPORT_PREFIX, REPORT_SUFFIX)
    path.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Generating version report...")
    path.write_text(render_report(config, ctx, execution, version_of), encoding="utf-8")
    logger.info("Version report generated: %s", path)
    return path


def find_run_artifacts(log_dir: Path, run_id: str) -> list[Path]:
    """Every file in ``log_dir`` whose name carries ``run_id``."""
    if not log_dir.is_dir():
        return []
    return sorted(p for p in log_dir.glob(f"*{run_id}*") if p.is_file())
