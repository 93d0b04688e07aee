"""
Nix installer — nix_packages blocks.

Each block is one entry with its own small sub-plan:

    flake     → nix profile install <path-or-url> --priority 5
    packages  → nix profile install <package> --priority 5, one per item

When ``nix`` is missing it is bootstrapped once per run from
``<root>/custom-software/nix/install.sh``.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Callable

from devsetup.adapters.base import Installer
from devsetup.adapters.shell.command import CommandResult, run_command
from devsetup.adapters.shell.script import SCRIPT_TIMEOUT, describe_exit, script_env
from devsetup.core.errors import (
    BackendInstallError,
    BackendPreconditionError,
    BackendTimeoutError,
)
from devsetup.core.models.config import Entry, NixBlock
from devsetup.core.models.outcome import Outcome, Probe
from devsetup.core.models.run import RunContext
from devsetup.core.services.versions import command_exists

logger = logging.getLogger(__name__)

Runner = Callable[..., CommandResult]

NIX_FEATURES = ["--extra-experimental-features", "nix-command flakes"]
NIX_PRIORITY = "5"
BOOTSTRAP_SCRIPT = Path("custom-software") / "nix" / "install.sh"

# Where the installer puts nix before a new shell picks up PATH
_NIX_BIN_DIRS = (
    Path.home() / ".nix-profile" / "bin",
    Path("/nix/var/nix/profiles/default/bin"),
)


def find_nix() -> str | None:
    """Path of the nix binary, including fresh installs not yet on PATH."""
    found = shutil.which("nix")
    if found:
        return found
    for directory in _NIX_BIN_DIRS:
        candidate = directory / "nix"
        if candidate.is_file():
            return str(candidate)
    return None


class NixInstaller(Installer):
    """Installs nix flakes and nix package lists into the user profile."""

    def __init__(
        self,
        runner: Runner = run_command,
        locate: Callable[[], str | None] = find_nix,
    ):
        self._run = runner
        self._locate = locate

    @property
    def name(self) -> str:
        return "nix"

    @property
    def section(self) -> str:
        return "nix_packages"

    def is_available(self) -> bool:
        return self._locate() is not None

    def probe(self, entry: Entry, ctx: RunContext) -> Probe:
        # A flake's contents are opaque; reinstalling is idempotent in nix
        if not isinstance(entry, NixBlock) or entry.kind == "flake":
            return Probe()
        if entry.packages and all(command_exists(p.name) for p in entry.packages):
            return Probe(installed=True)
        return Probe()

    def install(self, entry: Entry, ctx: RunContext) -> Outcome:
        if not isinstance(entry, NixBlock):
            raise BackendPreconditionError(f"{entry.name} is not a nix block")

        nix = self._locate() or self.bootstrap(entry, ctx)

        if entry.kind == "flake":
            ref = self.flake_source(entry, ctx)
            logger.info("Installing flake: %s (%s: %s)", entry.description, entry.flake_type, ref)
            self._profile_install(nix, ref)
            return Outcome.success(entry.name, section=self.section, metadata={"flake": ref})

        installed: list[str] = []
        failed: list[str] = []
        for pkg in entry.packages:
            if command_exists(pkg.name) and not ctx.force:
                logger.info("%s already available, skipping", pkg.name)
                installed.append(pkg.name)
                continue
            logger.info("Installing nix package %s (%s)", pkg.name, pkg.package)
            try:
                self._profile_install(nix, pkg.package)
            except BackendInstallError as e:
                logger.error("%s", e)
                failed.append(pkg.name)
            else:
                installed.append(pkg.name)

        if failed:
            raise BackendInstallError(f"nix packages failed: {', '.join(failed)}")
        return Outcome.success(entry.name, section=self.section, metadata={"packages": installed})

    def verify(self, entry: Entry, ctx: RunContext) -> bool | None:
        if isinstance(entry, NixBlock) and entry.kind == "packages":
            return all(command_exists(p.name) for p in entry.packages)
        return None

    # ── Helpers ─────────────────────────────────────────────────

    def flake_source(self, entry: NixBlock, ctx: RunContext) -> str:
        """Remote URL as-is; local path resolved against the project root."""
        if entry.flake_type == "remote":
            return entry.flake_ref
        path = Path(entry.flake_ref)
        if not path.is_absolute():
            path = ctx.project_root / path
        if not path.exists():
            raise BackendPreconditionError(f"local flake not found: {path}")
        return str(path)

    def _profile_install(self, nix: str, ref: str) -> CommandResult:
        cmd = [nix, *NIX_FEATURES, "profile", "install", ref, "--priority", NIX_PRIORITY]
        return self._run(cmd, timeout=1800).check(f"nix profile install {ref}")

    def bootstrap(self, entry: Entry, ctx: RunContext) -> str:
        """Install nix itself with the bundled script.

        Raises:
            BackendPreconditionError: No script, or nix still missing after it ran.
            BackendInstallError: The script failed.
        """
        script = ctx.project_root / BOOTSTRAP_SCRIPT
        if not script.is_file():
            raise BackendPreconditionError(f"nix is not installed and {script} was not found")

        logger.warning("Nix is not available. Installing Nix first...")
        result = self._run(
            ["bash", str(script)],
            timeout=SCRIPT_TIMEOUT,
            env_overrides=script_env(entry, ctx),
            cwd=str(ctx.project_root),
        )
        if not result.ok:
            error = BackendTimeoutError if result.timed_out else BackendInstallError
            raise error(describe_exit(result, "nix installation script"))

        nix = self._locate()
        if nix is None:
            raise BackendPreconditionError(
                "nix installation completed but the command is still not available"
            )
        logger.info("Nix installed successfully")
        return nix
