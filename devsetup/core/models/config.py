"""
Configuration model — the declarative provisioning plan.

Loaded from install.yaml, this is the canonical truth about what the
machine should have. Sections are fixed and ordered; entries keep
their declaration order inside a section.
"""

from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import BaseModel, Field, field_validator, model_validator

# Fixed execution order. Never reordered.
SECTIONS: tuple[str, ...] = (
    "prerequisites",
    "apt_packages",
    "shell_setup",
    "custom_software",
    "python_packages",
    "powershell_modules",
    "nix_packages",
    "configurations",
)


# ── Script references ───────────────────────────────────────────


class ScriptPath(BaseModel):
    """A script stored as a file, relative to its section directory."""

    kind: Literal["path"] = "path"
    path: str


class InlineScript(BaseModel):
    """A script body embedded directly in the configuration."""

    kind: Literal["inline"] = "inline"
    body: str


ScriptRef = Union[ScriptPath, InlineScript]


def parse_script_ref(value: Any) -> ScriptRef:
    """Decide once, at parse time, whether a script is a path or a body.

    Accepts an explicit mapping (``{path: ...}`` / ``{inline: ...}``) or a
    plain string. A string with a newline or a space is inline; a single
    word is a path when it contains ``/`` or ends in ``.sh``.
    """
    if isinstance(value, (ScriptPath, InlineScript)):
        return value
    if isinstance(value, dict):
        if "path" in value:
            return ScriptPath(path=str(value["path"]))
        if "inline" in value:
            return InlineScript(body=str(value["inline"]))
        if "body" in value:
            return InlineScript(body=str(value["body"]))
        raise ValueError("script mapping needs a 'path' or 'inline' key")
    if not isinstance(value, str) or not value.strip():
        raise ValueError("script must be a non-empty string")

    text = value.strip()
    if not any(c.isspace() for c in text) and ("/" in text or text.endswith(".sh")):
        return ScriptPath(path=text)
    return InlineScript(body=value)


# ── Document header ─────────────────────────────────────────────


class Metadata(BaseModel):
    """Informational header of a profile."""

    name: str = "Development Environment"
    description: str = ""
    version: str = "1.0.0"
    target_os: str = ""
    author: str = ""
    support_url: str = ""

    @field_validator("version", mode="before")
    @classmethod
    def _version_as_str(cls, v: Any) -> Any:
        return str(v) if isinstance(v, (int, float)) else v


class Settings(BaseModel):
    """Run behaviour declared by the profile."""

    continue_on_error: bool = True
    update_packages: bool = True
    cleanup_after_install: bool = True
    log_level: str = "INFO"
    max_retries: int = Field(default=3, ge=0)


# ── Entries ─────────────────────────────────────────────────────


class Entry(BaseModel):
    """One declared unit of work inside a section."""

    name: str
    description: str = ""
    version: str = "latest"
    enabled: bool = True

    @field_validator("version", mode="before")
    @classmethod
    def _version_as_str(cls, v: Any) -> Any:
        if v is None:
            return "latest"
        return str(v) if isinstance(v, (int, float)) else v

    @property
    def label(self) -> str:
        return f"{self.name} ({self.version})"


class AptPackage(Entry):
    """A Debian package; ``command`` is the binary used to probe it."""

    command: str | None = None

    @property
    def probe_command(self) -> str:
        return self.command or self.name


class ScriptEntry(Entry):
    """A shell_setup or configurations step."""

    script: ScriptRef

    @field_validator("script", mode="before")
    @classmethod
    def _parse_script(cls, v: Any) -> ScriptRef:
        return parse_script_ref(v)


class CustomSoftware(Entry):
    """Software installed by an external script under custom-software/."""

    script: str
    depends_on: list[str] = Field(default_factory=list)
    version_command: str | None = None
    version_flag: str = "--version"

    @property
    def probe_command(self) -> str:
        return self.version_command or self.name


class PythonPackage(Entry):
    """A Python package installed through pip, pipx or apt."""

    install_method: Literal["pip", "pipx", "apt"] = "pipx"


class PowerShellModule(Entry):
    """A PowerShell Gallery module."""


class NixPackage(BaseModel):
    """One package inside a nix ``packages`` block."""

    name: str
    package: str
    description: str = ""


class NixBlock(Entry):
    """A nix_packages block: either one flake or a list of packages."""

    kind: Literal["flake", "packages"]
    flake_type: Literal["local", "remote"] | None = None
    path: str | None = None
    url: str | None = None
    packages: list[NixPackage] = Field(default_factory=list)

    @property
    def flake_ref(self) -> str:
        return (self.url if self.flake_type == "remote" else self.path) or ""

    @model_validator(mode="after")
    def _check_flake_source(self) -> NixBlock:
        if self.kind == "flake" and self.enabled:
            if self.flake_type == "remote" and not self.url:
                raise ValueError(f"nix flake '{self.name}' is remote but has no url")
            if self.flake_type == "local" and not self.path:
                raise ValueError(f"nix flake '{self.name}' is local but has no path")
            if self.flake_type is None:
                raise ValueError(f"nix flake '{self.name}' needs type 'local' or 'remote'")
        return self


def _normalize_nix_block(raw: Any, index: int) -> Any:
    """Turn ``{flake: {...}}`` / ``{packages: {...}}`` into NixBlock fields."""
    if not isinstance(raw, dict):
        return raw
    if "kind" in raw:
        return raw

    if "flake" in raw:
        body = dict(raw["flake"] or {})
        return {
            "name": body.get("name") or f"flake-{index}",
            "kind": "flake",
            "description": body.get("description") or "Nix flake",
            "enabled": body.get("enabled", False),
            "flake_type": body.get("type"),
            "path": body.get("path"),
            "url": body.get("url"),
        }
    if "packages" in raw:
        body = dict(raw["packages"] or {})
        return {
            "name": body.get("name") or f"packages-{index}",
            "kind": "packages",
            "description": body.get("description", ""),
            "enabled": body.get("enabled", False),
            "packages": body.get("list") or [],
        }
    raise ValueError(f"nix_packages[{index - 1}] must contain a 'flake' or 'packages' block")


# ── Root document ───────────────────────────────────────────────


class Configuration(BaseModel):
    """Root provisioning document — loaded from install.yaml."""

    metadata: Metadata = Field(default_factory=Metadata)
    settings: Settings = Field(default_factory=Settings)

    prerequisites: list[AptPackage] = Field(default_factory=list)
    apt_packages: list[AptPackage] = Field(default_factory=list)
    shell_setup: list[ScriptEntry] = Field(default_factory=list)
    custom_software: list[CustomSoftware] = Field(default_factory=list)
    python_packages: list[PythonPackage] = Field(default_factory=list)
    powershell_modules: list[PowerShellModule] = Field(default_factory=list)
    nix_packages: list[NixBlock] = Field(default_factory=list)
    configurations: list[ScriptEntry] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)

        # An empty section in YAML comes through as None
        for key in (*SECTIONS, "metadata", "settings"):
            if key in data and data[key] is None:
                data.pop(key)

        prereqs = data.get("prerequisites")
        if isinstance(prereqs, list):
            data["prerequisites"] = [
                {"name": p} if isinstance(p, str) else p for p in prereqs
            ]

        nix = data.get("nix_packages")
        if isinstance(nix, list):
            data["nix_packages"] = [
                _normalize_nix_block(block, i) for i, block in enumerate(nix, start=1)
            ]
        return data

    @model_validator(mode="after")
    def _unique_names(self) -> Configuration:
        for section in SECTIONS:
            names = [e.name for e in self.entries(section)]
            dupes = sorted({n for n in names if names.count(n) > 1})
            if dupes:
                raise ValueError(
                    f"Duplicate entry names in {section}: {', '.join(dupes)}"
                )
        return self

    def entries(self, section: str) -> list[Entry]:
        """Entries of one section, in declaration order."""
        if section not in SECTIONS:
            raise KeyError(section)
        return list(getattr(self, section))

    def count(self, section: str) -> int:
        return len(self.entries(section))

    @property
    def total_entries(self) -> int:
        return sum(self.count(s) for s in SECTIONS)
