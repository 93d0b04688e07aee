"""
Configuration loader — turns a profile reference into one validated document.

Resolution order (first match wins):

    https://...       → download (urllib, then curl/wget as fallback)
    /absolute/path    → used as-is
    name.yaml         → looked up in <root>/config-profiles/
    anything else     → relative to the project root

Whatever the source, it is copied to ONE canonical location
(<root>/.state/install.yaml) and every downstream component reads
that copy. Nothing is cached across runs.
"""

from __future__ import annotations

import logging
import re
import shutil
import subprocess
import tempfile
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

import yaml
from pydantic import ValidationError

from devsetup.core.errors import ConfigResolutionError
from devsetup.core.models.config import Configuration
from devsetup.core.models.run import PROFILES_DIR, STATE_DIR

logger = logging.getLogger(__name__)

DEFAULT_PROFILE = "full-install.yaml"
MATERIALIZED_FILE = "install.yaml"

_PROFILE_NAME = re.compile(r"^[A-Za-z0-9._-]+\.ya?ml$")
_REMOTE_PREFIXES = ("https://", "http://")

DOWNLOAD_TIMEOUT = 30

_NUMERIC_TAGS = ("tag:yaml.org,2002:int", "tag:yaml.org,2002:float")

# A transport fetches ``url`` into ``dest`` or raises.
Transport = Callable[[str, Path], None]


@dataclass
class ResolvedConfig:
    """A configuration ready for planning."""

    reference: str
    source: str            # where it came from (path or URL)
    path: Path             # the materialized copy
    config: Configuration


class ProfileLoader(yaml.SafeLoader):
    """SafeLoader that keeps numeric-looking scalars as written.

    ``version: 1.10`` must stay ``"1.10"``; a float would come back as
    ``1.1``. pydantic coerces the genuinely numeric settings.
    """


ProfileLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag not in _NUMERIC_TAGS]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


# ── Transports ──────────────────────────────────────────────────


def urllib_transport(url: str, dest: Path) -> None:
    """Primary transport: stdlib HTTP client."""
    req = urllib.request.Request(url, headers={"User-Agent": "devsetup/1.0"})
    with urllib.request.urlopen(req, timeout=DOWNLOAD_TIMEOUT) as resp:
        dest.write_bytes(resp.read())


def cli_transport(url: str, dest: Path) -> None:
    """Fallback transport: curl, else wget."""
    if shutil.which("curl"):
        cmd = ["curl", "-fsSL", "--max-time", str(DOWNLOAD_TIMEOUT), url, "-o", str(dest)]
    elif shutil.which("wget"):
        cmd = ["wget", "-q", f"--timeout={DOWNLOAD_TIMEOUT}", url, "-O", str(dest)]
    else:
        raise OSError("neither curl nor wget is available")

    result = subprocess.run(
        cmd,
        capture_output=True,
        text=True,
        timeout=DOWNLOAD_TIMEOUT + 10,
        stdin=subprocess.DEVNULL,
    )
    if result.returncode != 0:
        raise OSError(f"{cmd[0]} exited with code {result.returncode}: {result.stderr.strip()}")


DEFAULT_TRANSPORTS: tuple[Transport, Transport] = (urllib_transport, cli_transport)


def download_profile(
    url: str,
    dest: Path,
    transports: tuple[Transport, ...] = DEFAULT_TRANSPORTS,
) -> Path:
    """Download a remote profile, trying each transport in order.

    Raises:
        ConfigResolutionError: If every transport fails.
    """
    errors: list[str] = []
    for transport in transports:
        name = getattr(transport, "__name__", repr(transport))
        try:
            transport(url, dest)
        except Exception as e:
            logger.warning("Download of %s via %s failed: %s", url, name, e)
            errors.append(f"{name}: {e}")
            continue
        logger.info("Downloaded remote configuration from %s via %s", url, name)
        return dest

    raise ConfigResolutionError(
        f"Failed to download remote configuration {url} ({'; '.join(errors)})"
    )


# ── Resolution ──────────────────────────────────────────────────


def is_remote(reference: str) -> bool:
    return reference.startswith(_REMOTE_PREFIXES)


def resolve_profile(reference: str | None, project_root: Path) -> str:
    """Map a profile reference to a local path or a URL.

    Returns a string because remote references stay URLs until
    they are downloaded.

    Raises:
        ConfigResolutionError: For a bare profile name that does not exist.
    """
    if not reference:
        path = project_root / PROFILES_DIR / DEFAULT_PROFILE
        logger.info("Using default configuration profile: %s", path)
        return str(path)

    if is_remote(reference):
        logger.info("Using remote configuration: %s", reference)
        return reference

    if reference.startswith("/"):
        logger.info("Using absolute path configuration: %s", reference)
        return reference

    if _PROFILE_NAME.match(reference):
        path = project_root / PROFILES_DIR / reference
        if not path.is_file():
            raise ConfigResolutionError(
                f"Profile '{reference}' not found in {project_root / PROFILES_DIR}"
            )
        logger.info("Using profile from %s: %s", PROFILES_DIR, path)
        return str(path)

    path = project_root / reference
    logger.info("Using relative path configuration: %s", path)
    return str(path)


def materialized_path(project_root: Path) -> Path:
    """The single fixed location every run reads its configuration from."""
    return project_root / STATE_DIR / MATERIALIZED_FILE


def materialize(source: Path, target: Path) -> Path:
    """Copy the resolved source over the canonical configuration file.

    The target is overwritten, never appended to.
    """
    if not source.is_file():
        raise ConfigResolutionError(f"Configuration file not found: {source}")

    target.parent.mkdir(parents=True, exist_ok=True)
    if source.resolve() == target.resolve():
        return target
    try:
        shutil.copyfile(source, target)
    except OSError as e:
        raise ConfigResolutionError(f"Cannot copy {source} to {target}: {e}") from e

    logger.info("Generated %s from profile: %s", target.name, source)
    return target


def load_configuration(path: Path) -> Configuration:
    """Parse and validate a configuration file.

    Raises:
        ConfigResolutionError: If the file is unreadable, not YAML, not a
            mapping, or does not match the schema.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigResolutionError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.load(raw, Loader=ProfileLoader)
    except yaml.YAMLError as e:
        raise ConfigResolutionError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigResolutionError(
            f"Expected a YAML mapping in {path}, got {type(data).__name__}"
        )

    try:
        config = Configuration.model_validate(data)
    except ValidationError as e:
        raise ConfigResolutionError(f"Invalid configuration in {path}: {e}") from e

    logger.debug(
        "Loaded configuration '%s' with %d entries", config.metadata.name, config.total_entries
    )
    return config


def resolve(
    reference: str | None,
    project_root: Path,
    transports: tuple[Transport, ...] = DEFAULT_TRANSPORTS,
) -> ResolvedConfig:
    """Resolve, materialize and validate a profile in one step.

    Args:
        reference: Profile name, path or URL (None = default profile).
        project_root: Root holding config-profiles/ and .state/.
        transports: Download transports, primary first.

    Raises:
        ConfigResolutionError: On any failure. No partial result.
    """
    source = resolve_profile(reference, project_root)
    target = materialized_path(project_root)

    if is_remote(source):
        with tempfile.TemporaryDirectory(prefix="devsetup-") as tmp:
            downloaded = download_profile(source, Path(tmp) / "remote.yaml", transports)
            materialize(downloaded, target)
    else:
        materialize(Path(source), target)

    config = load_configuration(target)
    return ResolvedConfig(
        reference=reference or DEFAULT_PROFILE,
        source=source,
        path=target,
        config=config,
    )
