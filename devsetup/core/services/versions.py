"""
Version probing and satisfaction — the idempotency rules.

Every external tool prints its version differently, so extraction is
a lookup table keyed by tool name with a generic fallback pattern.
Comparison is numeric on dotted components; ``latest`` accepts any
installed version.
"""

from __future__ import annotations

import logging
import re
import shutil
import subprocess

logger = logging.getLogger(__name__)

LATEST = "latest"

_GENERIC = r"(\d+\.\d+(?:\.\d+)*)"

# Tools whose version is not printed by ``<tool> --version``.
VERSION_COMMANDS: dict[str, list[str]] = {
    "go":        ["go", "version"],
    "terraform": ["terraform", "version"],
    "tofu":      ["tofu", "version"],
    "kubectl":   ["kubectl", "version", "--client"],
    "helm":      ["helm", "version", "--short"],
    "k9s":       ["k9s", "version"],
    "cue":       ["cue", "version"],
    "unzip":     ["unzip", "-v"],
    "zip":       ["zip", "-v"],
}

# Output shape per tool. Group 1 is the version.
VERSION_PATTERNS: dict[str, str] = {
    "node":      r"v?(\d+\.\d+\.\d+)",
    "python3":   r"Python\s+(\d+\.\d+(?:\.\d+)?)",
    "pip":       r"pip\s+(\d+\.\d+(?:\.\d+)?)",
    "pip3":      r"pip\s+(\d+\.\d+(?:\.\d+)?)",
    "go":        r"go(\d+\.\d+(?:\.\d+)?)",
    "dotnet":    r"^(\d+\.\d+\.\d+)",
    "terraform": r"Terraform\s+v(\d+\.\d+\.\d+)",
    "tofu":      r"OpenTofu\s+v(\d+\.\d+\.\d+)",
    "kubectl":   r"Client Version:\s+v(\d+\.\d+\.\d+)",
    "helm":      r"v(\d+\.\d+\.\d+)",
    "az":        r"azure-cli\s+(\d+\.\d+\.\d+)",
    "pwsh":      r"PowerShell\s+(\d+\.\d+\.\d+)",
    "zip":       r"This is Zip\s+(\d+\.\d+)",
    "k9s":       r"Version:?\s+v?(\d+\.\d+\.\d+)",
    "git":       r"git version\s+(\d+\.\d+\.\d+)",
    "docker":    r"Docker version\s+(\d+\.\d+\.\d+)",
    "brew":      r"Homebrew\s+>?=?(\d+\.\d+\.\d+)",
    "nix":       r"nix \(Nix\)\s+(\d+\.\d+(?:\.\d+)?)",
}

PROBE_TIMEOUT = 10


def extract_version(tool: str, output: str) -> str | None:
    """Pull a version out of a tool's version output.

    Uses the tool's entry in ``VERSION_PATTERNS`` first, then the
    generic dotted-number pattern.
    """
    if not output:
        return None
    pattern = VERSION_PATTERNS.get(tool)
    if pattern:
        match = re.search(pattern, output, re.MULTILINE)
        if match:
            return match.group(1)
    match = re.search(_GENERIC, output)
    return match.group(1) if match else None


def version_command(tool: str, flag: str = "--version") -> list[str]:
    """The argv that prints ``tool``'s version."""
    return list(VERSION_COMMANDS.get(tool, [tool, flag]))


def command_exists(command: str) -> bool:
    return shutil.which(command) is not None


def get_command_version(tool: str, flag: str = "--version") -> str | None:
    """Run the tool's version command and parse it.

    Returns:
        Version string, or None when the tool is missing or the output
        has no recognisable version.
    """
    cmd = version_command(tool, flag)
    if not command_exists(cmd[0]):
        return None
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=PROBE_TIMEOUT,
            stdin=subprocess.DEVNULL,
        )
    except (subprocess.TimeoutExpired, OSError) as e:
        logger.debug("Version probe for %s failed: %s", tool, e)
        return None
    # Some tools write their version to stderr
    return extract_version(tool, (result.stdout or "") + (result.stderr or ""))


def parse_version(version: str) -> tuple[int, ...] | None:
    """``"v1.2.3-beta"`` → ``(1, 2, 3)``; None if there is no number."""
    if not version:
        return None
    # Debian epoch ("1:2.34.1-1ubuntu1")
    version = version.split(":", 1)[-1] if re.match(r"^\d+:", version) else version
    match = re.match(r"^\s*v?(\d+(?:\.\d+)*)", version)
    if not match:
        return None
    return tuple(int(p) for p in match.group(1).split("."))


def version_satisfies(installed: str | None, required: str) -> bool:
    """Whether an installed version meets a requirement.

    - ``required == "latest"``: any installed version, even an unknown one.
    - Unknown or unparseable installed version: never satisfies.
    - Otherwise ``installed >= required`` component-wise (missing
      components count as zero).
    """
    if not required or required == LATEST:
        return True
    if installed is None:
        return False

    have = parse_version(installed)
    want = parse_version(required)
    if have is None or want is None:
        return False

    width = max(len(have), len(want))
    have = have + (0,) * (width - len(have))
    want = want + (0,) * (width - len(want))
    return have >= want
