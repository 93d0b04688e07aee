"""
Tests for the run use case — profile to artifacts, end to end.
"""

import json
import logging

import pytest

from devsetup.adapters.mock import MockInstaller
from devsetup.adapters.registry import InstallerRegistry
from devsetup.core.use_cases.run import run_install
from tests.helpers import RUN_ID, fail

PROFILE = """\
metadata:
  name: Team Dev
  author: Platform Team
  support_url: https://wiki.example.com/devsetup
settings:
  continue_on_error: true
  update_packages: true
  cleanup_after_install: true
  log_level: DEBUG
prerequisites:
  - curl
apt_packages:
  - name: git
    version: "2.40"
custom_software:
  - name: docker
    script: custom-software/docker/install.sh
configurations:
  - name: git-config
    script: configurations/configure-git.sh
"""


@pytest.fixture
def profile(write_profile):
    return write_profile("team.yaml", PROFILE)


@pytest.fixture
def run(root, mock_registry, runner):
    """run_install wired to mocks; extra keyword arguments pass through."""

    def _run(**kw):
        kw.setdefault("run_id", RUN_ID)
        return run_install(
            kw.pop("profile", "team.yaml"),
            root,
            registry=mock_registry,
            apt_runner=runner,
            version_of={"git": "2.43.0"}.get,
            **kw,
        )

    return _run


class TestRunInstall:
    def test_successful_run(self, profile, run, root):
        result = run()
        assert result.error is None
        assert result.exit_code == 0
        assert result.report.total == 4
        assert result.resolved.path == root.resolve() / ".state" / "install.yaml"

    def test_artifacts_share_run_id(self, profile, run, root):
        result = run()
        names = sorted(p.name for p in result.artifacts)
        assert names == [f"installation-report-{RUN_ID}.txt", f"results-{RUN_ID}.ndjson"]
        assert all(p.parent == root.resolve() / "logs" for p in result.artifacts)

    def test_results_ledger_has_every_outcome(self, profile, run):
        result = run()
        ledger = [p for p in result.artifacts if p.suffix == ".ndjson"][0]
        rows = [json.loads(line) for line in ledger.read_text().splitlines()]
        assert [r["entry"] for r in rows] == ["curl", "git", "docker", "git-config"]
        assert {r["run_id"] for r in rows} == {RUN_ID}

    def test_report_reprobes_apt(self, profile, run):
        result = run()
        text = result.report_path.read_text()
        assert "  git: 2.43.0 (required: 2.40)" in text

    def test_apt_update_once_and_cleanup(self, profile, run, runner):
        run()
        assert len(runner.commands("update")) == 1
        assert runner.commands("upgrade") == []
        assert runner.commands("autoremove")

    def test_upgrade_requested(self, profile, run, runner):
        run(run_apt_upgrade=True)
        assert len(runner.commands("upgrade")) == 1

    def test_update_failure_does_not_abort(self, profile, run, runner):
        runner.respond(["apt-get", "update"], fail(100))
        result = run()
        assert result.report.total == 4

    def test_failure_sets_exit_code(self, profile, run, mocks):
        mocks["custom_software"].set_failure("docker")
        result = run()
        assert result.exit_code == 1
        assert [o.entry for o in result.report.failed] == ["docker"]
        assert result.report.total == 4

    def test_stop_on_error_from_profile(self, write_profile, run, mocks):
        write_profile("strict.yaml", PROFILE.replace("continue_on_error: true", "continue_on_error: false"))
        mocks["apt_packages"].set_failure("git")
        result = run(profile="strict.yaml")
        assert result.report.halted
        assert mocks["custom_software"].call_count == 0
        assert mocks["configurations"].call_count == 0

    def test_section_filter(self, profile, run, mocks, runner):
        result = run(sections="custom_software")
        assert result.report.total == 1
        assert mocks["apt_packages"].call_count == 0
        assert runner.commands("update") == []
        assert runner.commands("autoremove") == []

    def test_force_passed_through(self, profile, run, mocks):
        mocks["apt_packages"].set_installed("git", "2.43.0")
        assert run().report.already_installed[0].entry == "git"
        assert run(force=True).report.successful[1].entry == "git"

    def test_log_level_precedence(self, profile, run):
        levels = []
        run(configure_logging=levels.append)
        run(log_level="warn", configure_logging=levels.append)
        assert levels == ["DEBUG", "WARN"]

    def test_metadata_logged_and_support_url_passed_on(self, profile, run, caplog):
        with caplog.at_level(logging.INFO, logger="devsetup.core.use_cases.run"):
            result = run()
        assert "Author: Platform Team" in caplog.text
        assert "Support URL: https://wiki.example.com/devsetup" in caplog.text
        assert result.context.support_url == "https://wiki.example.com/devsetup"


REPEAT_PROFILE = """\
settings:
  update_packages: false
  cleanup_after_install: false
apt_packages:
  - name: git
custom_software:
  - name: toolX
    script: custom-software/toolX/install.sh
    depends_on: [git]
"""


class TestRepeatedRuns:
    """A second run against the state left by the first changes nothing."""

    @pytest.fixture
    def stateful(self):
        return {
            "apt_packages": MockInstaller(section="apt_packages", stateful=True),
            "custom_software": MockInstaller(section="custom_software", stateful=True),
        }

    @pytest.fixture
    def provision(self, root, write_profile, stateful, runner):
        write_profile("repeat.yaml", REPEAT_PROFILE)
        registry = InstallerRegistry()
        for installer in stateful.values():
            registry.register(installer)

        def _run(run_id):
            return run_install("repeat.yaml", root, run_id=run_id, registry=registry,
                               apt_runner=runner, version_of=lambda c: None)

        return _run

    @staticmethod
    def _statuses(result):
        return [(o.status, o.entry) for o in result.report.outcomes]

    def test_first_run_installs_in_order(self, provision, stateful):
        result = provision("20250101_000001")
        assert self._statuses(result) == [("success", "git"), ("success", "toolX")]
        assert result.exit_code == 0
        assert stateful["apt_packages"].install_log == ["git"]
        assert stateful["custom_software"].install_log == ["toolX"]

    def test_second_run_installs_nothing(self, provision, stateful):
        provision("20250101_000001")
        for installer in stateful.values():
            installer.install_log.clear()

        result = provision("20250101_000002")
        assert self._statuses(result) == [
            ("already_installed", "git"),
            ("already_installed", "toolX"),
        ]
        assert result.exit_code == 0
        assert all(i.install_log == [] for i in stateful.values())


class TestDryRun:
    def test_no_dispatch_no_side_effects(self, profile, run, mocks, runner, root):
        result = run(dry_run=True)
        assert result.exit_code == 0
        assert all(m.call_count == 0 for m in mocks.values())
        assert runner.calls == []
        assert result.report_path is None
        assert not (root / "logs" / f"results-{RUN_ID}.ndjson").exists()

    def test_plan_is_stable(self, profile, run):
        first = run(dry_run=True).report.planned
        second = run(dry_run=True).report.planned
        assert first == second
        assert len(first) == 4

    def test_failures_never_matter(self, profile, run, mocks):
        mocks["custom_software"].set_failure("docker")
        assert run(dry_run=True).exit_code == 0


class TestFatalErrors:
    def test_unknown_section(self, profile, run, mocks):
        result = run(sections="apt_packages,brew")
        assert "Invalid section(s): brew" in result.error
        assert result.exit_code == 1
        assert all(m.call_count == 0 for m in mocks.values())

    def test_missing_profile(self, run):
        result = run(profile="nope.yaml")
        assert "not found" in result.error
        assert result.exit_code == 1

    def test_invalid_profile(self, write_profile, run, mocks):
        write_profile("bad.yaml", "apt_packages:\n  - version: 1\n")
        result = run(profile="bad.yaml")
        assert result.error
        assert all(m.call_count == 0 for m in mocks.values())

    def test_unsafe_run_id(self, profile, run):
        result = run(run_id="../x")
        assert result.exit_code == 1
        assert "run id" in result.error

    def test_to_dict(self, profile, run):
        data = run().to_dict()
        assert data["run_id"] == RUN_ID
        assert data["exit_code"] == 0
        assert data["plan"]["total_entries"] == 4
