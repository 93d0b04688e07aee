"""Adapters — installation backends for every configuration section.

Public re-exports for convenient access.
"""

from devsetup.adapters.base import Installer
from devsetup.adapters.mock import MockInstaller
from devsetup.adapters.registry import InstallerRegistry, default_registry

__all__ = [
    "Installer",
    "InstallerRegistry",
    "MockInstaller",
    "default_registry",
]
