"""
RunContext — everything a component needs to know about the current run.

Built once by the run use case and passed explicitly to every
component call. Frozen: nothing mutates it after construction, and
business logic never reads the process environment for decisions.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

RUN_ID_FORMAT = "%Y%m%d_%H%M%S"

# Default layout under the project root
PROFILES_DIR = "config-profiles"
STATE_DIR = ".state"
LOGS_DIR = "logs"


def generate_run_id() -> str:
    """Timestamp-based run identifier, e.g. ``20250824_123456``."""
    return datetime.now().strftime(RUN_ID_FORMAT)


def validate_run_id(run_id: str) -> str:
    """Reject ids that are unsafe inside a filename or a glob."""
    if not run_id or not all(c.isalnum() or c in "._-" for c in run_id):
        raise ValueError(f"run id must be a non-empty [A-Za-z0-9._-] token: {run_id!r}")
    return run_id


class RunContext(BaseModel):
    """Immutable per-invocation settings."""

    model_config = ConfigDict(frozen=True)

    run_id: str = Field(default_factory=generate_run_id)
    force: bool = False
    dry_run: bool = False
    continue_on_error: bool = True
    sections: tuple[str, ...] = ()
    log_level: str = "INFO"
    run_apt_upgrade: bool = False
    unlock_apt: bool = False
    update_packages: bool = True
    max_retries: int = 3
    support_url: str = ""

    project_root: Path = Field(default_factory=Path.cwd)
    log_dir: Path | None = None

    @field_validator("run_id")
    @classmethod
    def _safe_run_id(cls, v: str) -> str:
        # Embedded in filenames and globbed later
        return validate_run_id(v)

    @property
    def logs_path(self) -> Path:
        """Directory holding every artifact of this run."""
        return self.log_dir or (self.project_root / LOGS_DIR)

    def artifact_path(self, prefix: str, suffix: str) -> Path:
        """Path of a run-scoped artifact: ``<logs>/<prefix>-<run_id><suffix>``."""
        return self.logs_path / f"{prefix}-{self.run_id}{suffix}"

    def section_selected(self, section: str) -> bool:
        return not self.sections or section in self.sections
