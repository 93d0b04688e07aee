"""
Outcome model — the dispatch contract.

Installers report what happened to an entry through an Outcome.
This is the fundamental I/O contract between the engine and the
backends: the engine dispatches entries, backends return Outcomes.
Never exceptions.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

Status = Literal["success", "failure", "skipped", "already_installed"]
ErrorKind = Literal["install", "timeout", "precondition"]


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Probe(BaseModel):
    """What a backend observed about an entry before installing it."""

    installed: bool = False
    version: str | None = None   # None = unknown


class Outcome(BaseModel):
    """Result of dispatching one entry.

    The status is one of four states; ``reason`` explains a failure or
    a skip, and ``error_kind`` tells a timeout apart from a plain
    non-zero exit.
    """

    entry: str
    section: str = ""
    status: Status = "success"

    version: str | None = None
    reason: str = ""
    error_kind: ErrorKind | None = None
    warnings: list[str] = Field(default_factory=list)

    started_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the entry ended up in the desired state."""
        return self.status in ("success", "already_installed")

    @property
    def failed(self) -> bool:
        return self.status == "failure"

    @property
    def label(self) -> str:
        """Human-readable identity used in summaries."""
        suffix = f" ({self.version})" if self.version else ""
        return f"{self.entry}{suffix} [{self.section}]" if self.section else f"{self.entry}{suffix}"

    @classmethod
    def success(cls, entry: str, section: str = "", **kwargs: Any) -> Outcome:
        """Create a success outcome."""
        return cls(entry=entry, section=section, status="success", **kwargs)

    @classmethod
    def failure(
        cls,
        entry: str,
        reason: str,
        section: str = "",
        error_kind: ErrorKind = "install",
        **kwargs: Any,
    ) -> Outcome:
        """Create a failure outcome."""
        return cls(
            entry=entry,
            section=section,
            status="failure",
            reason=reason,
            error_kind=error_kind,
            **kwargs,
        )

    @classmethod
    def skip(cls, entry: str, reason: str = "", section: str = "", **kwargs: Any) -> Outcome:
        """Create a skip outcome."""
        return cls(entry=entry, section=section, status="skipped", reason=reason, **kwargs)

    @classmethod
    def already_installed(
        cls,
        entry: str,
        version: str | None = None,
        section: str = "",
        **kwargs: Any,
    ) -> Outcome:
        """Create an outcome for an entry whose requirement is already met."""
        return cls(
            entry=entry,
            section=section,
            status="already_installed",
            version=version,
            **kwargs,
        )
