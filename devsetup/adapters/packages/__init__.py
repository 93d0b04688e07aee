"""Package-manager backends."""

from devsetup.adapters.packages.apt import AptInstaller, AptLock

__all__ = ["AptInstaller", "AptLock"]
