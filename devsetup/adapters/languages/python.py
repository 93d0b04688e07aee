"""
Python installer — python_packages through pip, pipx or apt.

The strategy is chosen per entry by ``install_method``:

    pip   → sudo python3 -m pip install --break-system-packages
    pipx  → pipx install (isolated app, ~/.local/bin added to PATH)
    apt   → apt-get install python3-<name>
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Callable

from devsetup.adapters.base import Installer
from devsetup.adapters.packages.apt import (
    APT_INSTALL_OPTS,
    AptLock,
    dpkg_version,
    lock_timeout,
)
from devsetup.adapters.shell.command import (
    NONINTERACTIVE_ENV,
    CommandResult,
    run_command,
    sudo_prefix,
)
from devsetup.adapters.shell.profile import add_path_to_profiles
from devsetup.core.errors import BackendPreconditionError
from devsetup.core.models.config import Entry, PythonPackage
from devsetup.core.models.outcome import Outcome, Probe
from devsetup.core.models.run import RunContext
from devsetup.core.services.versions import LATEST, command_exists

logger = logging.getLogger(__name__)

Runner = Callable[..., CommandResult]

PIPX_PATH_MARKER = "devsetup: pipx user bin"


def _method(entry: Entry) -> str:
    return entry.install_method if isinstance(entry, PythonPackage) else "pipx"


def apt_package_name(name: str) -> str:
    """``requests`` → ``python3-requests``."""
    return name if name.startswith("python3-") else f"python3-{name}"


class PythonInstaller(Installer):
    """Installs Python packages with the entry's chosen method."""

    def __init__(
        self,
        runner: Runner = run_command,
        lock: AptLock | None = None,
        home: Path | None = None,
    ):
        self._run = runner
        self._lock = lock or AptLock(runner=runner)
        self._home = home

    @property
    def name(self) -> str:
        return "python"

    @property
    def section(self) -> str:
        return "python_packages"

    @property
    def home(self) -> Path:
        return self._home or Path.home()

    def is_available(self) -> bool:
        return command_exists("python3")

    # ── Probe ───────────────────────────────────────────────────

    def probe(self, entry: Entry, ctx: RunContext) -> Probe:
        method = _method(entry)
        if method == "pipx":
            version = self._pipx_version(entry.name)
        elif method == "pip":
            version = self._pip_version(entry.name)
        else:
            version = dpkg_version(apt_package_name(entry.name), self._run)
        if version is None:
            return Probe()
        return Probe(installed=True, version=version or None)

    def _pipx_version(self, name: str) -> str | None:
        """Version from ``pipx list --short``; "" when listed without one."""
        if not command_exists("pipx"):
            return None
        result = self._run(["pipx", "list", "--short"], timeout=60)
        if not result.ok:
            return None
        for line in result.stdout.splitlines():
            parts = line.split()
            if parts and parts[0].lower() == name.lower():
                return parts[1] if len(parts) > 1 else ""
        return None

    def _pip_version(self, name: str) -> str | None:
        result = self._run(["python3", "-m", "pip", "show", name], timeout=60)
        if not result.ok:
            return None
        match = re.search(r"^Version:\s*(\S+)", result.stdout, re.MULTILINE)
        return match.group(1) if match else ""

    # ── Install ─────────────────────────────────────────────────

    def install(self, entry: Entry, ctx: RunContext) -> Outcome:
        method = _method(entry)
        if not command_exists("python3") and method != "apt":
            raise BackendPreconditionError("Python3 is not installed")

        if method == "pipx":
            result = self._install_pipx(entry, ctx)
        elif method == "pip":
            result = self._install_pip(entry)
        else:
            result = self._install_apt(entry, ctx)

        return Outcome.success(
            entry.name,
            section=self.section,
            version=None if entry.version == LATEST else entry.version,
            metadata={"method": method, "command": result.display},
        )

    def _install_pip(self, entry: Entry) -> CommandResult:
        spec = entry.name if entry.version == LATEST else f"{entry.name}=={entry.version}"
        logger.info("Installing %s (pip system-wide)", spec)
        cmd = [*sudo_prefix(), "python3", "-m", "pip", "install", "--break-system-packages", spec]
        return self._run(cmd, timeout=900).check(f"pip install {spec}")

    def _install_pipx(self, entry: Entry, ctx: RunContext) -> CommandResult:
        if not command_exists("pipx"):
            raise BackendPreconditionError("pipx is not installed")

        spec = entry.name if entry.version == LATEST else f"{entry.name}=={entry.version}"
        cmd = ["pipx", "install"]
        if ctx.force:
            cmd.append("--force")
        cmd.append(spec)

        logger.info("Installing %s (pipx)", spec)
        result = self._run(cmd, timeout=900).check(f"pipx install {spec}")
        self.ensure_user_bin_on_path()
        return result

    def _install_apt(self, entry: Entry, ctx: RunContext) -> CommandResult:
        package = apt_package_name(entry.name)
        target = package if entry.version == LATEST else f"{package}={entry.version}"
        self._lock.wait(lock_timeout(ctx), unlock=ctx.unlock_apt)

        logger.info("Installing %s (apt)", target)
        cmd = [*sudo_prefix(), "apt-get", "install", *APT_INSTALL_OPTS, target]
        return self._run(cmd, timeout=1800, env_overrides=NONINTERACTIVE_ENV).check(
            f"apt-get install {target}"
        )

    def ensure_user_bin_on_path(self) -> list[Path]:
        """Make pipx apps reachable from new shells."""
        return add_path_to_profiles(
            self.home,
            "$HOME/.local/bin",
            f"{PIPX_PATH_MARKER} (~/.local/bin)",
            PIPX_PATH_MARKER,
        )

    def verify(self, entry: Entry, ctx: RunContext) -> bool | None:
        return self.probe(entry, ctx).installed
