"""
Installer registry — central dispatch for every configuration entry.

Maps each section to the installer that serves it and runs the
dispatch algorithm (probe → already-installed short-circuit → install
→ verify). The engine never calls an installer directly, and nothing
that happens inside a backend escapes as an exception: every entry
comes back as an Outcome.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from devsetup.adapters.base import Installer
from devsetup.core.errors import BackendInstallError, VerificationWarning
from devsetup.core.models.config import Entry
from devsetup.core.models.outcome import Outcome, Probe
from devsetup.core.models.run import RunContext
from devsetup.core.services.versions import version_satisfies

logger = logging.getLogger(__name__)


class InstallerRegistry:
    """Section → installer table with the dispatch algorithm."""

    def __init__(self) -> None:
        self._installers: dict[str, Installer] = {}

    def register(self, installer: Installer) -> None:
        """Register an installer for the section it declares."""
        section = installer.section
        if section in self._installers:
            logger.warning("Overwriting installer for section: %s", section)
        self._installers[section] = installer
        logger.debug("Registered installer %s for %s", installer.name, section)

    def get(self, section: str) -> Installer | None:
        return self._installers.get(section)

    def sections(self) -> list[str]:
        return list(self._installers)

    def installer_status(self) -> dict[str, dict[str, Any]]:
        """Availability of every registered installer."""
        status = {}
        for section, installer in self._installers.items():
            try:
                available = installer.is_available()
            except Exception:
                available = False
            status[section] = {
                "installer": installer.name,
                "available": available,
                "type": installer.__class__.__name__,
            }
        return status

    def dispatch(self, section: str, entry: Entry, ctx: RunContext) -> Outcome:
        """Bring one entry to its desired state.

        1. Disabled entries are skipped without touching the backend.
        2. Probe; when installed, satisfying the version requirement and
           not forced, the entry is already installed.
        3. Otherwise install. Backend errors become failure Outcomes.
        4. After a successful install, verify. A failed verification
           only adds a warning; the outcome stays successful.

        Returns:
            Outcome with timing filled in. Never raises.
        """
        start = time.monotonic()
        outcome = self._dispatch(section, entry, ctx)
        outcome.duration_ms = int((time.monotonic() - start) * 1000)
        _log_outcome(outcome)
        return outcome

    def _dispatch(self, section: str, entry: Entry, ctx: RunContext) -> Outcome:
        if not entry.enabled:
            return Outcome.skip(entry.name, reason="disabled", section=section)

        installer = self._installers.get(section)
        if installer is None:
            return Outcome.failure(
                entry.name,
                f"No installer registered for section '{section}'",
                section=section,
                error_kind="precondition",
            )

        # ── Probe ───────────────────────────────────────────────
        try:
            probe = installer.probe(entry, ctx)
        except Exception as e:
            if ctx.force:
                # Forced entries are installed whatever the probe says
                logger.warning("Probe of %s failed (%s); installing anyway", entry.name, e)
                probe = Probe()
            elif isinstance(e, BackendInstallError):
                return Outcome.failure(entry.name, str(e), section=section, error_kind=e.kind)
            else:
                logger.error("Installer %s raised while probing %s: %s", installer.name, entry.name, e)
                return Outcome.failure(entry.name, f"Probe error: {e}", section=section)

        if probe.installed and not ctx.force:
            if version_satisfies(probe.version, entry.version):
                return Outcome.already_installed(
                    entry.name, version=probe.version, section=section
                )
            logger.info(
                "%s %s installed but %s required; upgrading",
                entry.name, probe.version or "(unknown version)", entry.version,
            )
        elif probe.installed:
            logger.info("Force reinstalling %s", entry.name)

        # ── Install ─────────────────────────────────────────────
        try:
            outcome = installer.install(entry, ctx)
        except BackendInstallError as e:
            return Outcome.failure(entry.name, str(e), section=section, error_kind=e.kind)
        except Exception as e:
            logger.error("Installer %s raised while installing %s: %s", installer.name, entry.name, e)
            return Outcome.failure(entry.name, f"Unexpected error: {e}", section=section)

        if not outcome.section:
            outcome.section = section
        if not outcome.ok:
            return outcome

        # ── Verify ──────────────────────────────────────────────
        try:
            verified = installer.verify(entry, ctx)
        except Exception as e:
            logger.debug("Verification of %s raised: %s", entry.name, e)
            verified = False

        if verified is False:
            warning = VerificationWarning(
                f"{entry.name} installed but verification did not pass"
            )
            logger.warning("%s", warning)
            outcome.warnings.append(str(warning))
        return outcome


def _log_outcome(outcome: Outcome) -> None:
    if outcome.status == "success":
        logger.info("✓ %s installed", outcome.label)
    elif outcome.status == "already_installed":
        logger.info("✓ %s already installed", outcome.label)
    elif outcome.status == "skipped":
        logger.info("- %s skipped (%s)", outcome.label, outcome.reason or "no reason")
    else:
        logger.error("✗ %s failed: %s", outcome.label, outcome.reason)


def default_registry() -> InstallerRegistry:
    """Registry wired with the real backends, one per section."""
    from devsetup.adapters.languages.python import PythonInstaller
    from devsetup.adapters.nix import NixInstaller
    from devsetup.adapters.packages.apt import AptInstaller
    from devsetup.adapters.powershell import PowerShellInstaller
    from devsetup.adapters.shell.script import CustomScriptInstaller, ScriptStepInstaller

    registry = InstallerRegistry()
    registry.register(AptInstaller(section="prerequisites"))
    registry.register(AptInstaller(section="apt_packages"))
    registry.register(ScriptStepInstaller(section="shell_setup"))
    registry.register(CustomScriptInstaller())
    registry.register(PythonInstaller())
    registry.register(PowerShellInstaller())
    registry.register(NixInstaller())
    registry.register(ScriptStepInstaller(section="configurations"))
    return registry
