"""
Shared test fixtures and configuration.
"""

import textwrap
from pathlib import Path

import pytest

from devsetup.adapters.mock import MockInstaller
from devsetup.adapters.registry import InstallerRegistry
from devsetup.core.models.config import SECTIONS
from devsetup.core.models.run import RunContext
from tests.helpers import RUN_ID, FakeRunner


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def root(tmp_path: Path) -> Path:
    """A project root with an empty config-profiles/ directory."""
    (tmp_path / "config-profiles").mkdir()
    return tmp_path


@pytest.fixture
def write_profile(root: Path):
    """Write a profile into config-profiles/ and return its path."""

    def _write(name: str, content: str) -> Path:
        path = root / "config-profiles" / name
        path.write_text(textwrap.dedent(content))
        return path

    return _write


@pytest.fixture
def ctx(root: Path) -> RunContext:
    return RunContext(run_id=RUN_ID, project_root=root, log_dir=root / "logs")


@pytest.fixture
def mocks() -> dict[str, MockInstaller]:
    """One MockInstaller per section."""
    return {section: MockInstaller(section=section) for section in SECTIONS}


@pytest.fixture
def mock_registry(mocks: dict[str, MockInstaller]) -> InstallerRegistry:
    registry = InstallerRegistry()
    for installer in mocks.values():
        registry.register(installer)
    return registry
