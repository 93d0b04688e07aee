"""
Script installers — custom_software, shell_setup and configurations.

Scripts are external collaborators: devsetup only locates them, runs
them non-interactively under a wall-clock timeout, and reports how
they ended. A script path is resolved against the project root, then
against the section's own directory:

    custom_software  → <root>/custom-software/
    shell_setup      → <root>/shell-setup/
    configurations   → <root>/configurations/
"""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path, PurePosixPath
from typing import Callable

from devsetup.adapters.base import Installer
from devsetup.adapters.shell.command import CommandResult, run_command
from devsetup.core.errors import BackendPreconditionError
from devsetup.core.models.config import CustomSoftware, Entry, InlineScript, ScriptEntry
from devsetup.core.models.outcome import Outcome, Probe
from devsetup.core.models.run import RunContext
from devsetup.core.services.versions import command_exists, get_command_version

logger = logging.getLogger(__name__)

Runner = Callable[..., CommandResult]

SCRIPT_TIMEOUT = 600

SECTION_DIRS: dict[str, str] = {
    "custom_software": "custom-software",
    "shell_setup": "shell-setup",
    "configurations": "configurations",
}


def script_env(entry: Entry, ctx: RunContext) -> dict[str, str]:
    """Environment handed to every script."""
    env = {
        "FORCE_INSTALL": "true" if ctx.force else "false",
        "INSTALLING_SOFTWARE": entry.name,
        "DEBIAN_FRONTEND": "noninteractive",
        "DEVSETUP_RUN_ID": ctx.run_id,
    }
    if ctx.support_url:
        env["WSL_INSTALL_SUPPORT_URL"] = ctx.support_url
    return env


def locate_script(raw: str, section: str, project_root: Path) -> Path:
    """Find a script file for ``section``.

    Raises:
        BackendPreconditionError: Path escapes via ``..``, or no such
            readable file exists.
    """
    if ".." in PurePosixPath(raw.replace("\\", "/")).parts:
        raise BackendPreconditionError(f"script path contains directory traversal: {raw}")

    path = Path(raw)
    if path.is_absolute():
        candidates = [path]
    else:
        candidates = [project_root / path]
        section_dir = SECTION_DIRS.get(section)
        if section_dir:
            candidates.append(project_root / section_dir / path)

    for candidate in candidates:
        if candidate.is_file():
            if not os.access(candidate, os.R_OK):
                raise BackendPreconditionError(f"installation script is not readable: {candidate}")
            return candidate
    raise BackendPreconditionError(f"installation script not found: {candidates[-1]}")


def prepare_script(path: Path) -> None:
    """Warn on a non-bash shebang and make the file executable."""
    with open(path, encoding="utf-8", errors="replace") as f:
        first = f.readline().strip()
    if not first.startswith("#!") or "bash" not in first:
        logger.warning("Script does not start with a bash shebang: %s", path)

    try:
        mode = path.stat().st_mode
        path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    except OSError as e:
        raise BackendPreconditionError(f"failed to make script executable: {path}: {e}") from e


def describe_exit(result: CommandResult, what: str) -> str:
    if result.timed_out:
        minutes = (result.timeout or SCRIPT_TIMEOUT) // 60
        return f"{what} timed out after {minutes} minutes"
    return f"{what} failed with exit code {result.returncode}"


class _ScriptRunner:
    """Shared execution path for file and inline scripts."""

    def __init__(self, runner: Runner = run_command, timeout: int = SCRIPT_TIMEOUT):
        self._run = runner
        self.timeout = timeout

    def run_file(self, path: Path, entry: Entry, ctx: RunContext) -> CommandResult:
        prepare_script(path)
        logger.info("Executing script: %s", path)
        logger.debug("Force install: %s", ctx.force)
        return self._run(
            ["bash", str(path)],
            timeout=self.timeout,
            env_overrides=script_env(entry, ctx),
            cwd=str(ctx.project_root),
        )

    def run_inline(self, body: str, entry: Entry, ctx: RunContext) -> CommandResult:
        logger.info("Executing inline script for %s", entry.name)
        return self._run(
            ["bash", "-c", body],
            timeout=self.timeout,
            env_overrides=script_env(entry, ctx),
            cwd=str(ctx.project_root),
        )


# ── custom_software ─────────────────────────────────────────────


class CustomScriptInstaller(Installer):
    """Runs ``custom-software/<tool>/install.sh`` style scripts.

    Probe: ``version_command`` (default: the entry name) on PATH, with
    its version read through ``version_flag``.
    """

    def __init__(self, runner: Runner = run_command, timeout: int = SCRIPT_TIMEOUT):
        self._scripts = _ScriptRunner(runner, timeout)

    @property
    def name(self) -> str:
        return "custom-script"

    @property
    def section(self) -> str:
        return "custom_software"

    def is_available(self) -> bool:
        return command_exists("bash")

    def _command(self, entry: Entry) -> tuple[str, str]:
        if isinstance(entry, CustomSoftware):
            return entry.probe_command, entry.version_flag
        return entry.name, "--version"

    def probe(self, entry: Entry, ctx: RunContext) -> Probe:
        command, flag = self._command(entry)
        if not command_exists(command):
            return Probe()
        return Probe(installed=True, version=get_command_version(command, flag))

    def install(self, entry: Entry, ctx: RunContext) -> Outcome:
        raw = entry.script if isinstance(entry, CustomSoftware) else ""
        if not raw:
            raise BackendPreconditionError("script path is required")

        path = locate_script(raw, self.section, ctx.project_root)
        result = self._scripts.run_file(path, entry, ctx)
        if not result.ok:
            return Outcome.failure(
                entry.name,
                describe_exit(result, "custom installation script"),
                section=self.section,
                error_kind="timeout" if result.timed_out else "install",
                metadata={"script": str(path), "exit_code": result.returncode},
            )

        command, flag = self._command(entry)
        return Outcome.success(
            entry.name,
            section=self.section,
            version=get_command_version(command, flag),
            metadata={"script": str(path)},
        )

    def verify(self, entry: Entry, ctx: RunContext) -> bool | None:
        command, _ = self._command(entry)
        return command_exists(command)


# ── shell_setup / configurations ────────────────────────────────


class ScriptStepInstaller(Installer):
    """Runs a shell_setup or configurations step.

    These steps guard their own idempotency, so the probe always
    reports "not installed" and the step runs on every invocation.
    """

    def __init__(
        self,
        section: str = "shell_setup",
        runner: Runner = run_command,
        timeout: int = SCRIPT_TIMEOUT,
    ):
        if section not in ("shell_setup", "configurations"):
            raise ValueError(f"ScriptStepInstaller cannot serve section '{section}'")
        self._section = section
        self._scripts = _ScriptRunner(runner, timeout)

    @property
    def name(self) -> str:
        return "script"

    @property
    def section(self) -> str:
        return self._section

    def is_available(self) -> bool:
        return command_exists("bash")

    def probe(self, entry: Entry, ctx: RunContext) -> Probe:
        return Probe()

    def install(self, entry: Entry, ctx: RunContext) -> Outcome:
        if not isinstance(entry, ScriptEntry):
            raise BackendPreconditionError(f"{entry.name} has no script")

        if isinstance(entry.script, InlineScript):
            result = self._scripts.run_inline(entry.script.body, entry, ctx)
            origin = "inline"
        else:
            path = locate_script(entry.script.path, self._section, ctx.project_root)
            result = self._scripts.run_file(path, entry, ctx)
            origin = str(path)

        if not result.ok:
            return Outcome.failure(
                entry.name,
                describe_exit(result, "script"),
                section=self._section,
                error_kind="timeout" if result.timed_out else "install",
                metadata={"script": origin, "exit_code": result.returncode},
            )
        return Outcome.success(entry.name, section=self._section, metadata={"script": origin})
