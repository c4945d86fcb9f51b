"""Tests for credential injection into git subprocess environments."""
from __future__ import annotations

import base64
from pathlib import Path

import pytest

from strata.core.config.model import AuthSpec, AuthType
from strata.core.exceptions import AuthenticationError
from strata.core.git.auth import build_git_env, remediation_for, token_authorization_header


def _decode_basic(header: str) -> str:
    assert header.startswith("Basic ")
    return base64.b64decode(header[len("Basic "):]).decode("utf-8")


class TestTokenHeader:
    def test_github_uses_x_access_token(self) -> None:
        header = token_authorization_header("https://github.com/acme/kb.git", "tok")
        assert _decode_basic(header) == "x-access-token:tok"

    def test_gitlab_uses_oauth2(self) -> None:
        assert _decode_basic(token_authorization_header("https://gitlab.com/a/b", "tok")) == "oauth2:tok"

    def test_azure_uses_empty_username(self) -> None:
        assert _decode_basic(token_authorization_header("https://dev.azure.com/o/p/_git/r", "tok")) == ":tok"

    def test_other_hosts_use_bearer(self) -> None:
        assert token_authorization_header("https://git.internal/a/b", "tok") == "Bearer tok"


class TestBuildGitEnv:
    def test_no_auth(self) -> None:
        assert build_git_env(None, "https://github.com/a/b") == {}
        assert build_git_env(AuthSpec(), "https://github.com/a/b") == {}

    def test_token_goes_into_extra_header(self) -> None:
        auth = AuthSpec(type=AuthType.TOKEN, token_env_var="KB_TOKEN")

        env = build_git_env(auth, "https://github.com/a/b", environ={"KB_TOKEN": " tok \n"})

        assert env["GIT_CONFIG_COUNT"] == "1"
        assert env["GIT_CONFIG_KEY_0"] == "http.extraHeader"
        assert env["GIT_CONFIG_VALUE_0"].startswith("Authorization: Basic ")
        assert "tok" not in env["GIT_CONFIG_VALUE_0"]

    def test_missing_token_names_the_variable(self) -> None:
        auth = AuthSpec(type=AuthType.TOKEN, token_env_var="KB_TOKEN")

        with pytest.raises(AuthenticationError) as excinfo:
            build_git_env(auth, "https://github.com/a/b", environ={})

        assert "KB_TOKEN" in str(excinfo.value)
        assert excinfo.value.context["env_var"] == "KB_TOKEN"

    def test_basic_auth(self) -> None:
        auth = AuthSpec(type=AuthType.BASIC, username="bob", password_env_var="KB_PW")

        env = build_git_env(auth, "https://git.internal/a/b", environ={"KB_PW": "pw"})

        header = env["GIT_CONFIG_VALUE_0"][len("Authorization: "):]
        assert _decode_basic(header) == "bob:pw"

    def test_ssh_key(self, tmp_path: Path) -> None:
        key = tmp_path / "id_kb"
        key.write_text("key", encoding="utf-8")

        env = build_git_env(AuthSpec(type=AuthType.SSH, key_path=str(key)), "git@github.com:a/b.git", environ={})

        assert str(key) in env["GIT_SSH_COMMAND"]
        assert "BatchMode=yes" in env["GIT_SSH_COMMAND"]

    def test_missing_ssh_key(self, tmp_path: Path) -> None:
        with pytest.raises(AuthenticationError, match="SSH key file not found"):
            build_git_env(AuthSpec(type=AuthType.SSH, key_path=str(tmp_path / "nope")), "git@github.com:a/b", environ={})


def test_remediation_mentions_token_variable() -> None:
    hint = remediation_for(AuthSpec(type=AuthType.TOKEN, token_env_var="KB_TOKEN"))
    assert "$KB_TOKEN" in hint
    assert "PAT" in hint
