"""
Tests for the execution planner — section filter, order, dependency warnings.
"""

import pytest

from devsetup.core.engine.planner import (
    build_plan,
    check_dependencies,
    parse_sections,
    validate_sections,
)
from devsetup.core.errors import DependencyWarning
from devsetup.core.models.config import SECTIONS, Configuration


def _config() -> Configuration:
    return Configuration.model_validate({
        "prerequisites": ["curl", "git"],
        "apt_packages": [{"name": "zsh"}, {"name": "ripgrep", "command": "rg"}],
        "shell_setup": [{"name": "default-shell", "script": "chsh -s /bin/zsh"}],
        "custom_software": [
            {"name": "docker", "script": "custom-software/docker/install.sh"},
            {
                "name": "compose",
                "script": "custom-software/docker-compose/install.sh",
                "depends_on": ["docker", "curl", "rg"],
            },
        ],
        "python_packages": [{"name": "black"}],
        "configurations": [{"name": "git", "script": "configurations/configure-git.sh"}],
    })


def _never(command: str) -> bool:
    return False


class TestSectionFilter:
    def test_parse_comma_list(self):
        assert parse_sections("prerequisites, apt_packages,") == ("prerequisites", "apt_packages")
        assert parse_sections(None) == ()
        assert parse_sections(["nix_packages"]) == ("nix_packages",)

    def test_unknown_section(self):
        with pytest.raises(ValueError, match="Invalid section\\(s\\): brew"):
            validate_sections(["apt_packages", "brew"])

    def test_build_plan_rejects_unknown_section(self):
        with pytest.raises(ValueError):
            build_plan(_config(), ["not_a_section"], lookup=_never)


class TestBuildPlan:
    def test_all_sections_in_fixed_order(self):
        plan = build_plan(_config(), lookup=_never)
        assert plan.section_names == list(SECTIONS)
        assert plan.skipped_sections == []

    def test_filter_keeps_fixed_order(self):
        plan = build_plan(_config(), ["apt_packages", "prerequisites"], lookup=_never)
        assert plan.section_names == ["prerequisites", "apt_packages"]
        assert len(plan.skipped_sections) == 6
        assert "custom_software" in plan.skipped_sections

    def test_declaration_order_within_section(self):
        plan = build_plan(_config(), lookup=_never)
        assert [e for s, e in plan.entry_names() if s == "custom_software"] == ["docker", "compose"]

    def test_entry_names_are_deterministic(self):
        first = build_plan(_config(), lookup=_never).entry_names()
        second = build_plan(_config(), lookup=_never).entry_names()
        assert first == second
        assert first[0] == ("prerequisites", "curl")
        assert first[-1] == ("configurations", "git")

    def test_total_entries(self):
        plan = build_plan(_config(), ["prerequisites", "apt_packages"], lookup=_never)
        assert plan.total_entries == 4

    def test_to_dict(self):
        data = build_plan(_config(), ["python_packages"], lookup=_never).to_dict()
        assert data["sections"] == {"python_packages": ["black"]}
        assert data["total_entries"] == 1


class TestDependencies:
    def test_known_dependencies_do_not_warn(self):
        plan = build_plan(_config(), lookup=_never)
        assert plan.warnings == []

    def test_unknown_dependency_warns(self):
        config = Configuration.model_validate({
            "custom_software": [
                {"name": "helm", "script": "x/install.sh", "depends_on": ["kubectl"]},
            ]
        })
        with pytest.warns(DependencyWarning, match="Dependency kubectl not found for helm"):
            plan = build_plan(config, lookup=_never)
        assert len(plan.warnings) == 1

    def test_dependency_on_path_is_resolved(self):
        config = Configuration.model_validate({
            "custom_software": [
                {"name": "helm", "script": "x/install.sh", "depends_on": ["kubectl"]},
            ]
        })
        entry = config.custom_software[0]
        assert check_dependencies(config, entry, lookup=lambda c: c == "kubectl") == []

    def test_dependency_checked_even_when_apt_sections_filtered(self):
        plan = build_plan(_config(), ["custom_software"], lookup=_never)
        assert plan.warnings == []

    def test_no_reordering(self):
        config = Configuration.model_validate({
            "custom_software": [
                {"name": "compose", "script": "a/install.sh", "depends_on": ["docker"]},
                {"name": "docker", "script": "b/install.sh"},
            ]
        })
        plan = build_plan(config, lookup=_never)
        assert [e for _, e in plan.entry_names()] == ["compose", "docker"]
