"""
Domain models — Pydantic types for the provisioning engine.

All models are re-exported here for convenient access:

    from devsetup.core.models import Configuration, Outcome, RunContext
"""

from devsetup.core.models.config import (
    SECTIONS,
    AptPackage,
    Configuration,
    CustomSoftware,
    Entry,
    InlineScript,
    Metadata,
    NixBlock,
    NixPackage,
    PowerShellModule,
    PythonPackage,
    ScriptEntry,
    ScriptPath,
    ScriptRef,
    Settings,
    parse_script_ref,
)
from devsetup.core.models.outcome import Outcome, Probe
from devsetup.core.models.run import RunContext, generate_run_id

__all__ = [
    # config.py
    "SECTIONS",
    "AptPackage",
    "Configuration",
    "CustomSoftware",
    "Entry",
    "InlineScript",
    "Metadata",
    "NixBlock",
    "NixPackage",
    "PowerShellModule",
    "PythonPackage",
    "ScriptEntry",
    "ScriptPath",
    "ScriptRef",
    "Settings",
    "parse_script_ref",
    # outcome.py
    "Outcome",
    "Probe",
    # run.py
    "RunContext",
    "generate_run_id",
]
