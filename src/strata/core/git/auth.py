"""Credential injection for git subprocesses.

Secrets are read from environment variables named in the layer's auth
settings and handed to git through its per-process configuration
variables (``GIT_CONFIG_COUNT``/``GIT_CONFIG_KEY_n``/``GIT_CONFIG_VALUE_n``)
or ``GIT_SSH_COMMAND``. They never appear in the remote URL, in
``.git/config`` or in logs.
"""
from __future__ import annotations

import base64
import os
import shlex
from pathlib import Path
from typing import Dict, Mapping, Optional, TYPE_CHECKING

from strata.core.exceptions import AuthenticationError

from .urls import host_kind, parse_git_url

if TYPE_CHECKING:
    from strata.core.config.model import AuthSpec

# Basic-auth usernames each host expects in front of a personal access token.
_TOKEN_USERNAMES = {
    "azure": "",
    "github": "x-access-token",
    "gitlab": "oauth2",
}


def _basic(user: str, secret: str) -> str:
    raw = f"{user}:{secret}".encode("utf-8")
    return "Basic " + base64.b64encode(raw).decode("ascii")


def token_authorization_header(url: str, token: str) -> str:
    """Return the ``Authorization`` header value for ``token`` on ``url``'s host."""
    parsed = parse_git_url(url)
    kind = host_kind(parsed.host if parsed else "")
    if kind in _TOKEN_USERNAMES:
        return _basic(_TOKEN_USERNAMES[kind], token)
    return f"Bearer {token}"


def _config_env(pairs: Mapping[str, str]) -> Dict[str, str]:
    env = {"GIT_CONFIG_COUNT": str(len(pairs))}
    for idx, (key, value) in enumerate(pairs.items()):
        env[f"GIT_CONFIG_KEY_{idx}"] = key
        env[f"GIT_CONFIG_VALUE_{idx}"] = value
    return env


def _require_env(var: Optional[str], *, kind: str, environ: Mapping[str, str]) -> str:
    if not var:
        raise AuthenticationError(
            f"{kind} auth is configured without an environment variable name",
            remediation=f"set auth.{'token_env_var' if kind == 'token' else 'password_env_var'} in the layer config",
        )
    value = environ.get(var, "")
    if not value.strip():
        raise AuthenticationError(
            f"Environment variable {var} is not set or empty",
            remediation=f"export {var} with a credential that can read the repository",
            context={"env_var": var},
        )
    return value.strip()


def build_git_env(
    auth: Optional["AuthSpec"],
    url: str,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """Resolve ``auth`` into environment variables for a git subprocess.

    Raises:
        AuthenticationError: when a referenced env var is missing or empty, or
            the SSH key file does not exist. No git process is started.
    """
    from strata.core.config.model import AuthType

    environ = os.environ if environ is None else environ
    if auth is None or auth.type is AuthType.NONE:
        return {}

    if auth.type is AuthType.TOKEN:
        token = _require_env(auth.token_env_var, kind="token", environ=environ)
        return _config_env({"http.extraHeader": f"Authorization: {token_authorization_header(url, token)}"})

    if auth.type is AuthType.BASIC:
        if not auth.username:
            raise AuthenticationError(
                "basic auth is configured without a username",
                remediation="set auth.username in the layer config",
            )
        password = _require_env(auth.password_env_var, kind="basic", environ=environ)
        return _config_env({"http.extraHeader": f"Authorization: {_basic(auth.username, password)}"})

    if auth.type is AuthType.SSH:
        if not auth.key_path:
            raise AuthenticationError("ssh auth is configured without key_path", remediation="set auth.key_path")
        key = Path(os.path.expandvars(auth.key_path)).expanduser()
        if not key.is_file():
            raise AuthenticationError(
                f"SSH key file not found: {key}",
                remediation="point auth.key_path at a readable private key",
                context={"key_path": str(key)},
            )
        command = " ".join(
            [
                "ssh",
                "-i",
                shlex.quote(str(key)),
                "-o",
                "IdentitiesOnly=yes",
                "-o",
                "BatchMode=yes",
                "-o",
                "StrictHostKeyChecking=accept-new",
            ]
        )
        return {"GIT_SSH_COMMAND": command}

    raise AuthenticationError(f"Unsupported auth type: {auth.type}")


def remediation_for(auth: Optional["AuthSpec"]) -> str:
    """Hint shown when the remote rejects the credentials git presented."""
    from strata.core.config.model import AuthType

    if auth is None or auth.type is AuthType.NONE:
        return "the repository requires credentials; configure token, basic or ssh auth for this layer"
    if auth.type is AuthType.TOKEN:
        return f"check that ${auth.token_env_var} holds a valid token with read access (PAT scope) to the repository"
    if auth.type is AuthType.BASIC:
        return f"check the username '{auth.username}' and the password in ${auth.password_env_var}"
    return f"check that the SSH key {auth.key_path} is authorized for the repository"


__all__ = ["build_git_env", "token_authorization_header", "remediation_for"]
