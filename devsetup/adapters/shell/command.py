"""
Command runner — the single place where installers call subprocess.

Every backend command goes through ``run_command``. Stdin is always
redirected from the null device so an interactive prompt can never
hang a run; output is captured and echoed to the run log.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from dataclasses import dataclass, field

from devsetup.core.errors import BackendInstallError, BackendTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 600

# Exported to every package-manager command
NONINTERACTIVE_ENV: dict[str, str] = {
    "DEBIAN_FRONTEND": "noninteractive",
    "NEEDRESTART_MODE": "a",
    "NEEDRESTART_SUSPEND": "1",
    "APT_LISTCHANGES_FRONTEND": "none",
    "DEBIAN_PRIORITY": "critical",
}


@dataclass
class CommandResult:
    """Outcome of one subprocess invocation."""

    cmd: list[str]
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""
    elapsed_ms: int = 0
    timed_out: bool = False
    timeout: int | None = None
    env_overrides: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    @property
    def display(self) -> str:
        return " ".join(self.cmd)

    def check(self, what: str = "") -> CommandResult:
        """Raise the matching backend error unless the command succeeded."""
        label = what or self.display
        if self.timed_out:
            raise BackendTimeoutError(f"{label} timed out after {self.timeout}s")
        if self.returncode != 0:
            detail = self.stderr.strip().splitlines()[-1] if self.stderr.strip() else ""
            msg = f"{label} failed with exit code {self.returncode}"
            raise BackendInstallError(f"{msg}: {detail}" if detail else msg)
        return self


def run_command(
    cmd: list[str],
    *,
    timeout: int = DEFAULT_TIMEOUT,
    env_overrides: dict[str, str] | None = None,
    cwd: str | None = None,
) -> CommandResult:
    """Run a command non-interactively and capture its output.

    Never raises for a failing command: timeouts and missing binaries
    come back as a CommandResult with a non-zero return code.

    Args:
        cmd: argv list.
        timeout: Wall-clock limit in seconds; the process is killed on expiry.
        env_overrides: Extra environment variables for the child only.
        cwd: Working directory.
    """
    env = os.environ.copy()
    if env_overrides:
        env.update(env_overrides)

    logger.debug("Executing: %s", " ".join(cmd))
    start = time.monotonic()
    try:
        proc = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
            stdin=subprocess.DEVNULL,
            env=env,
            cwd=cwd,
        )
    except subprocess.TimeoutExpired as e:
        logger.error("Command timed out after %ss: %s", timeout, " ".join(cmd))
        return CommandResult(
            cmd=cmd,
            returncode=124,
            stdout=_text(e.stdout),
            stderr=_text(e.stderr),
            elapsed_ms=int((time.monotonic() - start) * 1000),
            timed_out=True,
            timeout=timeout,
            env_overrides=dict(env_overrides or {}),
        )
    except OSError as e:
        logger.error("Cannot execute %s: %s", cmd[0], e)
        return CommandResult(cmd=cmd, returncode=127, stderr=str(e), timeout=timeout)

    result = CommandResult(
        cmd=cmd,
        returncode=proc.returncode,
        stdout=proc.stdout or "",
        stderr=proc.stderr or "",
        elapsed_ms=int((time.monotonic() - start) * 1000),
        timeout=timeout,
        env_overrides=dict(env_overrides or {}),
    )
    _log_output(result)
    return result


def sudo_prefix() -> list[str]:
    """``["sudo", "-E"]`` unless already root."""
    return [] if os.geteuid() == 0 else ["sudo", "-E"]


def _text(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def _log_output(result: CommandResult) -> None:
    for line in result.stdout.splitlines():
        logger.debug("  | %s", line)
    level = logging.DEBUG if result.ok else logging.WARNING
    for line in result.stderr.splitlines():
        logger.log(level, "  ! %s", line)
