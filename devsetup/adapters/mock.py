"""
Mock installer — test double for any section.

Records every probe and install it receives so tests can assert on
which entries reached the backend. Probe results and failures are
configurable per entry name.
"""

from __future__ import annotations

from devsetup.adapters.base import Installer
from devsetup.core.errors import BackendInstallError, BackendTimeoutError
from devsetup.core.models.config import Entry
from devsetup.core.models.outcome import Outcome, Probe
from devsetup.core.models.run import RunContext


class MockInstaller(Installer):
    """Installer that never touches the system.

    By default nothing is installed and every install succeeds. With
    ``stateful=True`` a successful install is remembered, so the next
    probe of that entry reports it installed.
    """

    def __init__(
        self, section: str = "apt_packages", available: bool = True, stateful: bool = False
    ):
        self._section = section
        self._available = available
        self._stateful = stateful
        self._probes: dict[str, Probe] = {}
        self._probe_errors: dict[str, Exception] = {}
        self._failures: dict[str, BackendInstallError] = {}
        self._verify: dict[str, bool | None] = {}
        self.probe_log: list[str] = []
        self.install_log: list[str] = []
        self.verify_log: list[str] = []

    @property
    def name(self) -> str:
        return "mock"

    @property
    def section(self) -> str:
        return self._section

    @property
    def call_count(self) -> int:
        """Number of backend calls of any kind."""
        return len(self.probe_log) + len(self.install_log) + len(self.verify_log)

    def is_available(self) -> bool:
        return self._available

    def set_installed(self, name: str, version: str | None = None) -> None:
        """Make ``name`` probe as installed."""
        self._probes[name] = Probe(installed=True, version=version)

    def set_failure(self, name: str, error: str = "Mock failure") -> None:
        """Make installing ``name`` fail with a non-zero exit."""
        self._failures[name] = BackendInstallError(error)

    def set_timeout(self, name: str, error: str = "Mock timeout") -> None:
        self._failures[name] = BackendTimeoutError(error)

    def set_probe_error(self, name: str, error: Exception) -> None:
        """Make probing ``name`` raise ``error``."""
        self._probe_errors[name] = error

    def set_verify(self, name: str, result: bool | None) -> None:
        self._verify[name] = result

    def probe(self, entry: Entry, ctx: RunContext) -> Probe:
        self.probe_log.append(entry.name)
        if entry.name in self._probe_errors:
            raise self._probe_errors[entry.name]
        return self._probes.get(entry.name, Probe())

    def install(self, entry: Entry, ctx: RunContext) -> Outcome:
        self.install_log.append(entry.name)
        if entry.name in self._failures:
            raise self._failures[entry.name]
        version = None if entry.version == "latest" else entry.version
        if self._stateful:
            self._probes[entry.name] = Probe(installed=True, version=version)
        return Outcome.success(
            entry.name, section=self._section, version=version, metadata={"mock": True}
        )

    def verify(self, entry: Entry, ctx: RunContext) -> bool | None:
        self.verify_log.append(entry.name)
        return self._verify.get(entry.name)

    def reset(self) -> None:
        """Clear call logs and configured responses."""
        self._probes.clear()
        self._probe_errors.clear()
        self._failures.clear()
        self._verify.clear()
        self.probe_log.clear()
        self.install_log.clear()
        self.verify_log.clear()
