"""
Apt installer — Debian packages for prerequisites and apt_packages.

Every apt/dpkg invocation runs non-interactively (see
NONINTERACTIVE_ENV) and waits for the dpkg/apt lock first. A stuck
lock is only broken when the run was started with ``--unlock-apt``.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Callable

from devsetup.adapters.base import Installer
from devsetup.adapters.shell.command import (
    NONINTERACTIVE_ENV,
    CommandResult,
    run_command,
    sudo_prefix,
)
from devsetup.core.errors import BackendInstallError
from devsetup.core.models.config import AptPackage, Entry
from devsetup.core.models.outcome import Outcome, Probe
from devsetup.core.models.run import RunContext
from devsetup.core.services.versions import LATEST, command_exists, get_command_version

logger = logging.getLogger(__name__)

Runner = Callable[..., CommandResult]

LOCK_FILES = (
    "/var/lib/dpkg/lock",
    "/var/lib/dpkg/lock-frontend",
    "/var/lib/apt/lists/lock",
    "/var/cache/apt/archives/lock",
)

LOCK_BASE_DELAY = 1.0
LOCK_MAX_DELAY = 10.0
LOCK_TIMEOUT_PER_RETRY = 20.0   # 3 retries → 60 s total

APT_INSTALL_OPTS = [
    "-y", "-qq",
    "-o", "Dpkg::Options::=--force-confdef",
    "-o", "Dpkg::Options::=--force-confold",
]


# ── Lock handling ───────────────────────────────────────────────


class AptLock:
    """Waits for the dpkg/apt locks with bounded exponential backoff."""

    def __init__(
        self,
        lock_files: tuple[str, ...] = LOCK_FILES,
        runner: Runner = run_command,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        base_delay: float = LOCK_BASE_DELAY,
        max_delay: float = LOCK_MAX_DELAY,
    ):
        self.lock_files = lock_files
        self._run = runner
        self._sleep = sleep
        self._clock = clock
        self.base_delay = base_delay
        self.max_delay = max_delay

    def holders(self, lock_file: str) -> list[int]:
        """PIDs holding ``lock_file`` (empty when free or fuser is missing)."""
        result = self._run([*sudo_prefix(), "fuser", lock_file], timeout=10)
        if not result.ok:
            return []
        return [int(tok) for tok in result.stdout.split() if tok.isdigit()]

    def held(self) -> list[str]:
        """Lock files currently held by some process."""
        return [lock for lock in self.lock_files if self.holders(lock)]

    def wait(self, timeout: float, unlock: bool = False) -> None:
        """Block until every lock is free.

        Args:
            timeout: Total seconds to wait.
            unlock: On timeout, kill the holders and remove the lock
                files instead of failing.

        Raises:
            BackendInstallError: The locks are still held after
                ``timeout`` and ``unlock`` is False.
        """
        held = self.held()
        if not held:
            return

        logger.info("Waiting for apt/dpkg lock(s) to be released (timeout: %ss)...", int(timeout))
        start = self._clock()
        attempt = 0
        while held:
            remaining = timeout - (self._clock() - start)
            if remaining <= 0:
                break
            attempt += 1
            delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
            delay = min(delay + random.uniform(0, delay * 0.1), remaining)
            logger.debug("apt lock held (%s); retry %d in %.1fs", ", ".join(held), attempt, delay)
            self._sleep(delay)
            held = self.held()

        if not held:
            logger.info("apt/dpkg locks released")
            return

        logger.error("Timeout waiting for apt/dpkg lock(s) after %ss: %s", int(timeout), ", ".join(held))
        if not unlock:
            raise BackendInstallError(
                f"package manager locked: {', '.join(held)} still held after {int(timeout)}s"
            )
        self.force_release(held)

    def force_release(self, lock_files: list[str]) -> None:
        """Kill lock holders and delete the stale lock files."""
        for lock in lock_files:
            for pid in self.holders(lock):
                logger.error("Killing process %d holding %s", pid, lock)
                self._run([*sudo_prefix(), "kill", "-9", str(pid)], timeout=10)
            logger.warning("Removing lock file: %s", lock)
            self._run([*sudo_prefix(), "rm", "-f", lock], timeout=10)


def lock_timeout(ctx: RunContext) -> float:
    """Total lock wait, scaled by the profile's ``max_retries``."""
    return LOCK_TIMEOUT_PER_RETRY * max(ctx.max_retries, 1)


# ── System-wide apt operations ──────────────────────────────────


def _apt(args: list[str], runner: Runner, timeout: int = 1800) -> CommandResult:
    return runner(
        [*sudo_prefix(), "apt-get", *args],
        timeout=timeout,
        env_overrides=NONINTERACTIVE_ENV,
    )


def update_package_lists(
    ctx: RunContext, runner: Runner = run_command, lock: AptLock | None = None
) -> None:
    """``apt-get update``, plus ``apt-get upgrade`` when requested.

    Raises:
        BackendInstallError: If either command fails.
    """
    lock = lock or AptLock(runner=runner)
    lock.wait(lock_timeout(ctx), unlock=ctx.unlock_apt)

    logger.info("Updating package lists...")
    _apt(["update", "-qq"], runner).check("apt-get update")
    logger.info("Package lists updated successfully")

    if ctx.run_apt_upgrade:
        logger.info("Running apt-get upgrade as requested...")
        _apt(["upgrade", *APT_INSTALL_OPTS], runner).check("apt-get upgrade")
        logger.info("System packages upgraded successfully")


def cleanup_packages(
    ctx: RunContext, runner: Runner = run_command, lock: AptLock | None = None
) -> None:
    """``apt-get autoremove`` and ``autoclean``. Failures only warn."""
    lock = lock or AptLock(runner=runner)
    try:
        lock.wait(lock_timeout(ctx), unlock=ctx.unlock_apt)
    except BackendInstallError as e:
        logger.warning("Skipping package cleanup: %s", e)
        return

    logger.info("Cleaning up package cache...")
    for args in (["autoremove", "-y", "-qq"], ["autoclean", "-qq"]):
        result = _apt(args, runner, timeout=600)
        if not result.ok:
            logger.warning("apt-get %s failed with exit code %d", args[0], result.returncode)


def dpkg_version(package: str, runner: Runner = run_command) -> str | None:
    """Installed version of ``package`` per dpkg, or None if not installed."""
    result = runner(
        ["dpkg-query", "-W", "-f=${Status}\t${Version}", package], timeout=10
    )
    if not result.ok:
        return None
    status, _, version = result.stdout.partition("\t")
    if "install ok installed" not in status:
        return None
    return version.strip() or None


# ── Installer ───────────────────────────────────────────────────


class AptInstaller(Installer):
    """Installs Debian packages with apt-get.

    Probe: the package's ``command`` (default: its name) on PATH, with
    the version read from the tool itself; otherwise dpkg status.
    """

    def __init__(
        self,
        section: str = "apt_packages",
        runner: Runner = run_command,
        lock: AptLock | None = None,
    ):
        self._section = section
        self._run = runner
        self._lock = lock or AptLock(runner=runner)

    @property
    def name(self) -> str:
        return "apt"

    @property
    def section(self) -> str:
        return self._section

    def is_available(self) -> bool:
        return command_exists("apt-get")

    def probe(self, entry: Entry, ctx: RunContext) -> Probe:
        command = entry.probe_command if isinstance(entry, AptPackage) else entry.name
        if command_exists(command):
            return Probe(installed=True, version=get_command_version(command))

        version = dpkg_version(entry.name, self._run)
        if version is not None:
            return Probe(installed=True, version=version)
        return Probe()

    def install(self, entry: Entry, ctx: RunContext) -> Outcome:
        target = entry.name if entry.version == LATEST else f"{entry.name}={entry.version}"
        self._lock.wait(lock_timeout(ctx), unlock=ctx.unlock_apt)

        logger.info("Installing %s (apt)", target)
        result = _apt(["install", *APT_INSTALL_OPTS, target], self._run)
        result.check(f"apt-get install {target}")

        return Outcome.success(
            entry.name,
            section=self._section,
            version=dpkg_version(entry.name, self._run),
            metadata={"command": result.display},
        )

    def verify(self, entry: Entry, ctx: RunContext) -> bool | None:
        command = entry.probe_command if isinstance(entry, AptPackage) else entry.name
        return command_exists(command) or dpkg_version(entry.name, self._run) is not None
