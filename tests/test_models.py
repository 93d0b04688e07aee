"""
Tests for domain models — configuration schema, outcomes, run context.
"""

import pytest
from pydantic import ValidationError

from devsetup.core.models import (
    SECTIONS,
    AptPackage,
    Configuration,
    CustomSoftware,
    InlineScript,
    Outcome,
    RunContext,
    ScriptEntry,
    ScriptPath,
    generate_run_id,
    parse_script_ref,
)


# ── Configuration ────────────────────────────────────────────────────


class TestConfiguration:
    def test_empty_document_uses_defaults(self):
        config = Configuration.model_validate({})
        assert config.metadata.name == "Development Environment"
        assert config.settings.continue_on_error is True
        assert config.settings.update_packages is True
        assert config.settings.max_retries == 3
        assert config.total_entries == 0

    def test_sections_are_fixed_and_ordered(self):
        assert SECTIONS == (
            "prerequisites",
            "apt_packages",
            "shell_setup",
            "custom_software",
            "python_packages",
            "powershell_modules",
            "nix_packages",
            "configurations",
        )

    def test_null_sections_are_empty(self):
        config = Configuration.model_validate({"apt_packages": None, "settings": None})
        assert config.apt_packages == []
        assert config.settings.cleanup_after_install is True

    def test_prerequisites_accept_bare_strings(self):
        config = Configuration.model_validate({"prerequisites": ["curl", {"name": "git"}]})
        assert [p.name for p in config.prerequisites] == ["curl", "git"]
        assert all(isinstance(p, AptPackage) for p in config.prerequisites)
        assert config.prerequisites[0].version == "latest"

    def test_entries_keep_declaration_order(self):
        config = Configuration.model_validate(
            {"apt_packages": [{"name": "zsh"}, {"name": "curl"}, {"name": "bat"}]}
        )
        assert [e.name for e in config.entries("apt_packages")] == ["zsh", "curl", "bat"]

    def test_numeric_version_coerced_to_string(self):
        config = Configuration.model_validate(
            {"apt_packages": [{"name": "git", "version": 2.34}], "metadata": {"version": 2}}
        )
        assert config.apt_packages[0].version == "2.34"
        assert config.metadata.version == "2"

    def test_duplicate_names_in_section_rejected(self):
        with pytest.raises(ValidationError, match="Duplicate entry names in apt_packages: git"):
            Configuration.model_validate(
                {"apt_packages": [{"name": "git"}, {"name": "git"}]}
            )

    def test_same_name_in_different_sections_allowed(self):
        config = Configuration.model_validate(
            {"prerequisites": ["git"], "apt_packages": [{"name": "git"}]}
        )
        assert config.count("prerequisites") == 1
        assert config.count("apt_packages") == 1

    def test_unknown_section_lookup(self):
        with pytest.raises(KeyError):
            Configuration().entries("brew_packages")

    def test_custom_software_fields(self):
        config = Configuration.model_validate({
            "custom_software": [{
                "name": "terraform",
                "script": "custom-software/terraform/install.sh",
                "depends_on": ["curl", "unzip"],
                "version_command": "terraform",
            }]
        })
        entry = config.custom_software[0]
        assert isinstance(entry, CustomSoftware)
        assert entry.depends_on == ["curl", "unzip"]
        assert entry.version_flag == "--version"
        assert entry.probe_command == "terraform"

    def test_python_install_method_default_and_validation(self):
        config = Configuration.model_validate({"python_packages": [{"name": "black"}]})
        assert config.python_packages[0].install_method == "pipx"
        with pytest.raises(ValidationError):
            Configuration.model_validate(
                {"python_packages": [{"name": "black", "install_method": "conda"}]}
            )

    def test_apt_probe_command_defaults_to_name(self):
        pkg = AptPackage(name="ripgrep", command="rg")
        assert pkg.probe_command == "rg"
        assert AptPackage(name="curl").probe_command == "curl"


# ── Nix blocks ───────────────────────────────────────────────────────


class TestNixBlocks:
    def test_flake_and_packages_blocks_become_entries(self):
        config = Configuration.model_validate({
            "nix_packages": [
                {"flake": {"enabled": True, "type": "local", "path": "examples/basic-flake"}},
                {"packages": {"enabled": True, "list": [
                    {"name": "rg", "package": "nixpkgs#ripgrep"},
                ]}},
            ]
        })
        flake, packages = config.nix_packages
        assert flake.name == "flake-1"
        assert flake.kind == "flake"
        assert flake.flake_ref == "examples/basic-flake"
        assert packages.name == "packages-2"
        assert packages.packages[0].package == "nixpkgs#ripgrep"

    def test_blocks_disabled_by_default(self):
        config = Configuration.model_validate(
            {"nix_packages": [{"packages": {"list": []}}]}
        )
        assert config.nix_packages[0].enabled is False

    def test_enabled_remote_flake_needs_url(self):
        with pytest.raises(ValidationError, match="no url"):
            Configuration.model_validate(
                {"nix_packages": [{"flake": {"enabled": True, "type": "remote"}}]}
            )

    def test_disabled_flake_is_not_validated(self):
        config = Configuration.model_validate(
            {"nix_packages": [{"flake": {"enabled": False, "type": "remote"}}]}
        )
        assert config.nix_packages[0].enabled is False

    def test_block_without_flake_or_packages_rejected(self):
        with pytest.raises(ValidationError):
            Configuration.model_validate({"nix_packages": [{"something": {}}]})


# ── Script references ────────────────────────────────────────────────


class TestScriptRef:
    def test_single_line_with_slash_is_path(self):
        ref = parse_script_ref("shell-setup/set-zsh-default.sh")
        assert isinstance(ref, ScriptPath)
        assert ref.path == "shell-setup/set-zsh-default.sh"

    def test_sh_suffix_is_path(self):
        assert isinstance(parse_script_ref("setup.sh"), ScriptPath)

    def test_multiline_is_inline(self):
        ref = parse_script_ref("echo one\necho two/three\n")
        assert isinstance(ref, InlineScript)
        assert "echo two/three" in ref.body

    def test_single_command_is_inline(self):
        assert isinstance(parse_script_ref("chsh -s zsh"), InlineScript)
        assert isinstance(parse_script_ref("chsh -s /bin/zsh"), InlineScript)

    def test_explicit_mapping(self):
        assert isinstance(parse_script_ref({"path": "x"}), ScriptPath)
        assert isinstance(parse_script_ref({"inline": "echo hi"}), InlineScript)

    def test_empty_script_rejected(self):
        with pytest.raises(ValueError):
            parse_script_ref("   ")

    def test_script_entry_parses_at_load_time(self):
        entry = ScriptEntry.model_validate(
            {"name": "zsh", "script": "shell-setup/set-zsh-default.sh"}
        )
        assert entry.script.kind == "path"


# ── Outcomes ─────────────────────────────────────────────────────────


class TestOutcome:
    def test_success(self):
        o = Outcome.success("git", section="apt_packages", version="2.43.0")
        assert o.ok
        assert not o.failed
        assert o.label == "git (2.43.0) [apt_packages]"

    def test_failure_defaults_to_install_kind(self):
        o = Outcome.failure("docker", "exit code 1", section="custom_software")
        assert o.failed
        assert o.error_kind == "install"
        assert o.reason == "exit code 1"

    def test_already_installed_counts_as_ok(self):
        o = Outcome.already_installed("curl", version="8.5.0")
        assert o.ok
        assert o.status == "already_installed"

    def test_skip_is_neither_ok_nor_failed(self):
        o = Outcome.skip("zsh", reason="disabled")
        assert not o.ok
        assert not o.failed

    def test_serializes_to_json(self):
        data = Outcome.failure("x", "boom", error_kind="timeout").model_dump(mode="json")
        assert data["status"] == "failure"
        assert data["error_kind"] == "timeout"
        assert "started_at" in data


# ── Run context ──────────────────────────────────────────────────────


class TestRunContext:
    def test_generated_run_id_format(self):
        run_id = generate_run_id()
        assert len(run_id) == 15
        assert run_id[8] == "_"
        assert run_id.replace("_", "").isdigit()

    def test_frozen(self, ctx):
        with pytest.raises(ValidationError):
            ctx.force = True

    def test_rejects_unsafe_run_id(self, root):
        with pytest.raises(ValidationError):
            RunContext(run_id="../etc", project_root=root)

    def test_artifact_path(self, root):
        ctx = RunContext(run_id="abc", project_root=root)
        assert ctx.logs_path == root / "logs"
        assert ctx.artifact_path("results", ".ndjson") == root / "logs" / "results-abc.ndjson"

    def test_section_selected(self, root):
        everything = RunContext(project_root=root)
        some = RunContext(project_root=root, sections=("apt_packages",))
        assert everything.section_selected("nix_packages")
        assert some.section_selected("apt_packages")
        assert not some.section_selected("nix_packages")
