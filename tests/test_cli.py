"""
Tests for the CLI — options, exit codes, and run output.
"""

import logging
from pathlib import Path

import pytest
from click.testing import CliRunner

from devsetup.main import cli
from tests.helpers import RUN_ID

PROFILE = """\
metadata:
  name: CLI Test
settings:
  update_packages: false
  cleanup_after_install: false
custom_software:
  - name: docker
    script: custom-software/docker/install.sh
configurations:
  - name: git-config
    script: configurations/configure-git.sh
"""


@pytest.fixture(autouse=True)
def restore_logging():
    """The CLI reconfigures the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def project(root: Path, write_profile) -> Path:
    write_profile("cli.yaml", PROFILE)
    return root


@pytest.fixture
def mocked(monkeypatch, mock_registry):
    monkeypatch.setattr("devsetup.core.use_cases.run.default_registry", lambda: mock_registry)
    return mock_registry


def _invoke(project: Path, *args: str):
    return CliRunner().invoke(
        cli, ["--root", str(project), "--config", "cli.yaml", "--run-id", RUN_ID, *args]
    )


class TestCLIGlobal:
    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Provision a development machine" in result.output
        assert "--dry-run" in result.output
        assert "--unlock-apt" in result.output

    def test_short_help(self):
        assert CliRunner().invoke(cli, ["-h"]).exit_code == 0

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "1.0.0" in result.output

    def test_invalid_log_level(self, project):
        result = _invoke(project, "--log-level", "LOUD")
        assert result.exit_code != 0

    def test_log_level_case_insensitive(self, project):
        assert _invoke(project, "--dry-run", "-l", "debug").exit_code == 0


class TestDryRun:
    def test_plans_without_installing(self, project, mocked, mocks):
        result = _invoke(project, "--dry-run")
        assert result.exit_code == 0
        assert "Dry run complete: 2 entries planned" in result.output
        assert all(m.call_count == 0 for m in mocks.values())

    def test_run_log_written(self, project):
        _invoke(project, "-d")
        log = project / "logs" / f"devsetup-{RUN_ID}.log"
        assert log.is_file()
        assert "[DRY RUN] Would install: docker" in log.read_text()

    def test_custom_log_dir(self, project, tmp_path_factory):
        logs = tmp_path_factory.mktemp("elsewhere")
        _invoke(project, "-d", "--log-dir", str(logs))
        assert (logs / f"devsetup-{RUN_ID}.log").is_file()


class TestRun:
    def test_success(self, project, mocked):
        result = _invoke(project)
        assert result.exit_code == 0
        assert "✓ docker" in result.output
        assert "Result: 2/2 ok, 0 failed" in result.output
        assert f"Run ID: {RUN_ID}" in result.output
        assert (project / "logs" / f"installation-report-{RUN_ID}.txt").is_file()

    def test_any_failure_exits_one(self, project, mocked, mocks):
        mocks["custom_software"].set_failure("docker", "custom installation script failed with exit code 1")
        result = _invoke(project)
        assert result.exit_code == 1
        assert "✗ docker" in result.output
        assert "Result: 1/2 ok, 1 failed" in result.output

    def test_force_flag(self, project, mocked, mocks):
        mocks["custom_software"].set_installed("docker", "27.1.1")
        _invoke(project, "--force")
        assert mocks["custom_software"].install_log == ["docker"]

    def test_sections_filter(self, project, mocked, mocks):
        result = _invoke(project, "--sections", "configurations")
        assert result.exit_code == 0
        assert mocks["custom_software"].call_count == 0
        assert mocks["configurations"].install_log == ["git-config"]


class TestFatalErrors:
    def test_invalid_section(self, project, mocked, mocks):
        result = _invoke(project, "--sections", "apt_packages,brew")
        assert result.exit_code == 1
        assert "Invalid section(s): brew" in result.output
        assert all(m.call_count == 0 for m in mocks.values())

    def test_missing_profile(self, root):
        result = CliRunner().invoke(cli, ["--root", str(root), "--config", "missing.yaml"])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_invalid_run_id(self, project):
        result = _invoke(project, "--run-id", "a/b")
        assert result.exit_code == 1
        assert "run id" in result.output

    def test_run_id_from_environment(self, project):
        result = CliRunner().invoke(
            cli,
            ["--root", str(project), "--config", "cli.yaml", "-d"],
            env={"DEVSETUP_RUN_ID": "ci-42"},
        )
        assert result.exit_code == 0
        assert (project / "logs" / "devsetup-ci-42.log").is_file()
