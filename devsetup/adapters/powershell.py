"""
PowerShell installer — powershell_modules from the PowerShell Gallery.

Requires ``pwsh`` on PATH; without it every module fails with a
precondition error rather than being attempted.
"""

from __future__ import annotations

import logging
from typing import Callable

from devsetup.adapters.base import Installer
from devsetup.adapters.shell.command import CommandResult, run_command
from devsetup.core.errors import BackendPreconditionError
from devsetup.core.models.config import Entry
from devsetup.core.models.outcome import Outcome, Probe
from devsetup.core.models.run import RunContext
from devsetup.core.services.versions import LATEST, command_exists, extract_version

logger = logging.getLogger(__name__)

Runner = Callable[..., CommandResult]

NOT_INSTALLED = "NOT_INSTALLED"


def _quote(value: str) -> str:
    """Single-quoted PowerShell string literal."""
    return "'" + value.replace("'", "''") + "'"


class PowerShellInstaller(Installer):
    """Installs modules with ``Install-Module``."""

    def __init__(self, runner: Runner = run_command):
        self._run = runner

    @property
    def name(self) -> str:
        return "powershell"

    @property
    def section(self) -> str:
        return "powershell_modules"

    def is_available(self) -> bool:
        return command_exists("pwsh")

    def _pwsh(self, script: str, timeout: int = 120) -> CommandResult:
        return self._run(["pwsh", "-NoProfile", "-NonInteractive", "-Command", script], timeout=timeout)

    def probe(self, entry: Entry, ctx: RunContext) -> Probe:
        if not self.is_available():
            return Probe()
        script = (
            f"try {{ (Get-Module -ListAvailable -Name {_quote(entry.name)} "
            f"| Sort-Object Version -Descending | Select-Object -First 1).Version.ToString() }} "
            f"catch {{ '{NOT_INSTALLED}' }}"
        )
        result = self._pwsh(script)
        output = result.stdout.strip()
        if not result.ok or not output or NOT_INSTALLED in output:
            return Probe()
        return Probe(installed=True, version=extract_version(entry.name, output))

    def install(self, entry: Entry, ctx: RunContext) -> Outcome:
        if not self.is_available():
            raise BackendPreconditionError("PowerShell is not installed")

        script = f"Install-Module -Name {_quote(entry.name)}"
        if entry.version != LATEST:
            script += f" -RequiredVersion {_quote(entry.version)}"
        script += " -Force -AllowClobber -Scope AllUsers"

        logger.info("Installing %s (PowerShell)", entry.label)
        self._pwsh(script, timeout=900).check(f"Install-Module {entry.name}")
        return Outcome.success(
            entry.name,
            section=self.section,
            version=None if entry.version == LATEST else entry.version,
        )

    def verify(self, entry: Entry, ctx: RunContext) -> bool | None:
        return self.probe(entry, ctx).installed
