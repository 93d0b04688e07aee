"""
Installer base — the contract between the engine and the backends.

Every backend (apt, pip, custom scripts, nix, ...) implements this
interface. The engine never talks to a package manager directly; it
goes through the InstallerRegistry, which calls these methods in a
fixed order: probe → install → verify.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from devsetup.core.models.config import Entry
from devsetup.core.models.outcome import Outcome, Probe
from devsetup.core.models.run import RunContext


class Installer(ABC):
    """Abstract base class for all installation backends.

    Helpers inside an installer may raise BackendInstallError (or a
    subclass); the registry converts those into failure Outcomes.

    To add a backend:
        1. Subclass Installer
        2. Implement name, section, is_available, probe, install
        3. Optionally override verify
        4. Register it in ``default_registry()``
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend identifier (e.g. 'apt', 'pipx', 'script')."""

    @property
    @abstractmethod
    def section(self) -> str:
        """The configuration section this installer serves."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the underlying tool exists. Fast, never raises."""

    @abstractmethod
    def probe(self, entry: Entry, ctx: RunContext) -> Probe:
        """Observe whether ``entry`` is present and at which version."""

    @abstractmethod
    def install(self, entry: Entry, ctx: RunContext) -> Outcome:
        """Install ``entry``. Returns a success Outcome or raises."""

    def verify(self, entry: Entry, ctx: RunContext) -> bool | None:
        """Post-install smoke test. ``None`` means there is none."""
        return None

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r} section={self.section!r}>"
