"""Tests for ConfigManager: source order, env overrides, and invalid input handling."""
from __future__ import annotations

from pathlib import Path

import pytest

from helpers.io_utils import write_json, write_text, write_yaml
from strata.core.config import ConfigManager, load_config
from strata.core.config.model import AuthType, SourceType


def _layer_names(result) -> list[str]:
    return [l.name for l in result.config.layers]


class TestDefaults:
    def test_bundled_defaults_load_cleanly(self, workspace: Path) -> None:
        result = load_config(workspace)

        assert result.is_valid, result.validation_errors
        assert _layer_names(result) == ["embedded", "project"]
        embedded = result.config.layer("embedded")
        assert embedded is not None and embedded.source.type is SourceType.EMBEDDED
        project = result.config.layer("project")
        assert project is not None and project.source.optional is True
        assert result.config.search.default_limit == 10
        assert result.config.timeouts.git_operations_seconds == 120.0

    def test_missing_optional_project_dir_is_not_a_warning(self, workspace: Path) -> None:
        result = load_config(workspace)
        assert not [w for w in result.warnings if w.field.startswith("layers[1]")]

    def test_git_dir_defaults_under_strata_home(self, workspace: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        home = workspace.parent / "alt-home"
        monkeypatch.setenv("STRATA_HOME", str(home))

        result = load_config(workspace)

        assert result.config.cache.git_dir == (home / "cache" / "git").resolve()


class TestSourceOrder:
    def test_project_file_merges_layers_by_name(self, workspace: Path) -> None:
        write_yaml(
            workspace / "strata.yaml",
            {
                "layers": [
                    {"name": "project", "enabled": False},
                    {"name": "team", "priority": 50, "source": {"type": "local", "path": "team-kb"}},
                ]
            },
        )
        (workspace / "team-kb").mkdir()

        result = load_config(workspace)

        assert result.is_valid, result.validation_errors
        assert _layer_names(result) == ["embedded", "project", "team"]
        assert result.config.layer("project").enabled is False
        assert result.config.layer("project").priority == 100
        assert result.config.layer("team").order == 2
        assert str(workspace / "strata.yaml") in result.sources

    def test_user_file_is_overridden_by_project_file(self, workspace: Path) -> None:
        from strata.core.utils.paths import get_user_config_dir

        write_yaml(get_user_config_dir() / "config.yaml", {"search": {"default_limit": 3}})
        write_json(workspace / ".strata" / "config.json", {"search": {"default_limit": 7}})

        result = load_config(workspace)

        assert result.config.search.default_limit == 7
        assert result.sources[1].endswith("config.yaml")
        assert result.sources[2].endswith("config.json")

    def test_explicit_config_path(self, workspace: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        write_yaml(workspace / "ci.yaml", {"diagnostics": {"max_errors": 2}})
        monkeypatch.setenv("STRATA_CONFIG_PATH", "ci.yaml")

        result = load_config(workspace)

        assert result.config.diagnostics.max_errors == 2

    def test_missing_explicit_config_path_is_reported(self, workspace: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STRATA_CONFIG_PATH", str(workspace / "nope.yaml"))

        result = load_config(workspace)

        assert [e.field for e in result.validation_errors] == ["STRATA_CONFIG_PATH"]
        assert _layer_names(result) == ["embedded", "project"]


class TestEnvironment:
    def test_section_override_is_type_coerced(self, workspace: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STRATA_SEARCH__DEFAULT_LIMIT", "4")
        monkeypatch.setenv("STRATA_CACHE__GIT_TTL_SECONDS", "2.5")

        result = load_config(workspace)

        assert result.config.search.default_limit == 4
        assert result.config.cache.git_ttl_seconds == 2.5
        assert "env:STRATA_*" in result.sources

    def test_layer_addressed_by_name(self, workspace: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STRATA_LAYERS__PROJECT__ENABLED", "false")

        result = load_config(workspace)

        assert result.config.layer("project").enabled is False
        assert _layer_names(result) == ["embedded", "project"]

    def test_layer_addressed_by_index(self, workspace: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STRATA_LAYERS__0__PRIORITY", "5")

        result = load_config(workspace)

        assert result.config.layer("embedded").priority == 5

    def test_flat_variables_are_not_overrides(self, workspace: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STRATA_SOMETHING", "1")
        result = load_config(workspace)
        assert result.is_valid
        assert "env:STRATA_*" not in result.sources

    def test_company_layer_from_env(self, workspace: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STRATA_COMPANY_KNOWLEDGE_URL", "https://github.com/acme/knowledge.git")
        monkeypatch.setenv("STRATA_COMPANY_KNOWLEDGE_BRANCH", "stable")
        monkeypatch.setenv("STRATA_COMPANY_KNOWLEDGE_TOKEN_ENV", "ACME_TOKEN")

        result = load_config(workspace)

        company = result.config.layer("company")
        assert company is not None
        assert company.priority == 50
        assert company.source.type is SourceType.GIT
        assert company.source.branch == "stable"
        assert company.auth.type is AuthType.TOKEN
        assert company.auth.token_env_var == "ACME_TOKEN"

    @pytest.mark.parametrize(
        "raw,expected",
        [("true", True), ("FALSE", False), ("12", 12), ("-3", -3), ("1.5", 1.5), ('["a"]', ["a"]), ("null", None), (" text ", "text")],
    )
    def test_coerce_type(self, workspace: Path, raw: str, expected: object) -> None:
        assert ConfigManager(workspace)._coerce_type(raw) == expected


class TestInvalidInput:
    def test_invalid_layer_is_excluded_others_survive(self, workspace: Path) -> None:
        write_yaml(
            workspace / "strata.yaml",
            {"layers": [{"name": "huge", "priority": 5000, "source": {"type": "local", "path": "x", "optional": True}}]},
        )

        result = load_config(workspace)

        assert not result.is_valid
        assert any(e.field == "layers[2].priority" for e in result.validation_errors)
        assert _layer_names(result) == ["embedded", "project"]

    def test_inline_token_is_rejected(self, workspace: Path) -> None:
        write_yaml(
            workspace / "strata.yaml",
            {
                "layers": [
                    {
                        "name": "company",
                        "priority": 50,
                        "source": {"type": "git", "url": "https://github.com/acme/kb.git"},
                        "auth": {"type": "token", "token": "ghp_secret"},
                    }
                ]
            },
        )

        result = load_config(workspace)

        fields = {e.field for e in result.validation_errors}
        assert "layers[2].auth.token" in fields
        assert "layers[2].auth.token_env_var" in fields
        assert result.config.layer("company") is None
        assert all("ghp_secret" not in str(e) for e in result.validation_errors)

    def test_invalid_section_reverts_to_default(self, workspace: Path) -> None:
        write_yaml(workspace / "strata.yaml", {"search": {"default_limit": "lots"}, "diagnostics": {"max_errors": 3}})

        result = load_config(workspace)

        assert any(e.field == "search.default_limit" for e in result.validation_errors)
        assert result.config.search.default_limit == 10
        assert result.config.diagnostics.max_errors == 3

    def test_malformed_file_is_skipped(self, workspace: Path) -> None:
        write_text(workspace / "strata.yaml", "layers: [unclosed\n")

        result = load_config(workspace)

        assert len(result.validation_errors) == 1
        assert "Malformed config file" in result.validation_errors[0].message
        assert _layer_names(result) == ["embedded", "project"]
        assert str(workspace / "strata.yaml") not in result.sources

    def test_unknown_top_level_key_is_an_error(self, workspace: Path) -> None:
        write_yaml(workspace / "strata.yaml", {"layerz": []})
        result = load_config(workspace)
        assert not result.is_valid


def test_get_uses_dot_notation(workspace: Path) -> None:
    manager = ConfigManager(workspace)
    assert manager.get("timeouts.lock_seconds") == 30
    assert manager.get("timeouts.missing", "fallback") == "fallback"
