"""
Error taxonomy for a provisioning run.

Fatal errors abort before any dispatch. Backend errors are raised by
installer helpers and converted into failure Outcomes by the registry,
so they only influence the final exit code. Warnings are logged and
never change an Outcome.
"""

from __future__ import annotations


class ConfigResolutionError(Exception):
    """Raised when a profile reference cannot become a valid configuration."""


class BackendInstallError(Exception):
    """Raised by a backend when an install command fails."""

    kind = "install"


class BackendTimeoutError(BackendInstallError):
    """Raised when a custom script exceeds its wall-clock timeout."""

    kind = "timeout"


class BackendPreconditionError(BackendInstallError):
    """Raised when an entry cannot be attempted (missing script, missing tool)."""

    kind = "precondition"


class DependencyWarning(UserWarning):
    """A ``depends_on`` reference that cannot be resolved."""


class VerificationWarning(UserWarning):
    """A post-install smoke test that did not pass."""
