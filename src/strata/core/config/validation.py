"""Configuration validation.

Two passes run over the merged configuration:

1. JSON Schema (``strata/data/schemas/config.schema.yaml``, Draft 2020-12).
   Every error is collected rather than stopping at the first one.
2. Semantic checks the schema cannot express: layer name rules, duplicate
   names, priority range, git URL and auth requirements. These also produce
   warnings for configurations that load but are probably not intended.

Both passes report ``ConfigValidationError`` records whose ``field`` uses the
``layers[1].source.url`` notation.
"""
from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from jsonschema import Draft202012Validator

from strata.core.git.urls import host_kind, normalize_git_url, parse_git_url
from strata.core.utils.paths import resolve_path
from strata.data import read_yaml

from .model import LAYER_NAME_PATTERN, MAX_PRIORITY, MIN_PRIORITY, ConfigValidationError

SCHEMA_FILE = "config.schema.yaml"

# git check-ref-format rules, reduced to the characters that matter in practice.
_BAD_BRANCH = re.compile(r"(\.\.|[\s~^:?*\[\\]|@\{|^-|^/|/$|\.lock$|^\.|//)")


@lru_cache(maxsize=1)
def _validator() -> Draft202012Validator:
    schema = read_yaml("schemas", SCHEMA_FILE)
    Draft202012Validator.check_schema(schema)
    return Draft202012Validator(schema)


def format_field_path(path: Iterable[Any]) -> str:
    """Render a jsonschema error path as ``layers[1].source.url``."""
    out = ""
    for part in path:
        if isinstance(part, int):
            out += f"[{part}]"
        else:
            out += f".{part}" if out else str(part)
    return out


def validate_schema(config: Mapping[str, Any], *, source: Optional[str] = None) -> List[ConfigValidationError]:
    """Validate ``config`` against the bundled schema, collecting all errors."""
    errors: List[ConfigValidationError] = []
    for err in sorted(_validator().iter_errors(config), key=lambda e: [str(p) for p in e.absolute_path]):
        errors.append(
            ConfigValidationError(
                field=format_field_path(err.absolute_path),
                message=err.message,
                value=err.instance if not isinstance(err.instance, (dict, list)) else None,
                source=source,
            )
        )
    return errors


class _Findings:
    def __init__(self, source: Optional[str]) -> None:
        self.source = source
        self.errors: List[ConfigValidationError] = []
        self.warnings: List[ConfigValidationError] = []

    def error(self, field: str, message: str, value: Any = None) -> None:
        self.errors.append(ConfigValidationError(field, message, value, self.source))

    def warn(self, field: str, message: str, value: Any = None) -> None:
        self.warnings.append(ConfigValidationError(field, message, value, self.source))


def _check_git_source(f: _Findings, prefix: str, source: Mapping[str, Any], auth: Mapping[str, Any]) -> None:
    url = source.get("url")
    if not isinstance(url, str) or not url.strip():
        return
    parsed = parse_git_url(url)
    if parsed is None:
        f.error(f"{prefix}.source.url", "Unsupported git URL (expected https://, ssh://, user@host:path or file://)", url)
        return
    if parsed.has_password:
        f.error(
            f"{prefix}.source.url",
            "Credentials must not be embedded in the URL; use auth.token_env_var",
            None,
        )
    if parsed.scheme == "http":
        f.warn(f"{prefix}.source.url", "Git URL uses plain HTTP; credentials and content travel unencrypted", url)
    if parsed.scheme != "file" and host_kind(parsed.host) == "other":
        f.warn(f"{prefix}.source.url", f"Unrecognized git host '{parsed.host}'", parsed.host)

    branch = source.get("branch")
    if isinstance(branch, str) and _BAD_BRANCH.search(branch):
        f.warn(f"{prefix}.source.branch", "Branch name contains characters git does not allow in refs", branch)

    subpath = source.get("subpath")
    if isinstance(subpath, str) and subpath:
        parts = Path(subpath).parts
        if Path(subpath).is_absolute() or ".." in parts:
            f.warn(f"{prefix}.source.subpath", "Subpath must stay inside the repository", subpath)

    auth_type = str(auth.get("type", "none")).lower()
    if auth_type == "token" and parsed.scheme not in ("https", "http"):
        f.warn(f"{prefix}.auth.type", "Token auth only applies to HTTPS URLs", parsed.scheme)
    if auth_type == "ssh" and parsed.scheme != "ssh":
        f.warn(f"{prefix}.auth.type", "SSH auth only applies to ssh:// or user@host:path URLs", parsed.scheme)


def _check_auth(f: _Findings, prefix: str, auth: Mapping[str, Any]) -> None:
    if "token" in auth:
        f.error(f"{prefix}.auth.token", "Inline tokens are not allowed; set auth.token_env_var to an environment variable name")
    if "password" in auth:
        f.error(
            f"{prefix}.auth.password",
            "Inline passwords are not allowed; set auth.password_env_var to an environment variable name",
        )

    auth_type = str(auth.get("type", "none")).lower()
    required: Tuple[str, ...] = ()
    if auth_type == "token":
        required = ("token_env_var",)
    elif auth_type == "basic":
        required = ("username", "password_env_var")
    elif auth_type == "ssh":
        required = ("key_path",)
    for key in required:
        value = auth.get(key)
        if not isinstance(value, str) or not value.strip():
            f.error(f"{prefix}.auth.{key}", f"'{key}' is required for {auth_type} auth")


def validate_layers(
    layers: Sequence[Any],
    *,
    workspace_root: Path,
    source: Optional[str] = None,
) -> Tuple[List[ConfigValidationError], List[ConfigValidationError]]:
    """Run semantic checks over the raw ``layers`` list.

    Returns:
        ``(errors, warnings)``
    """
    f = _Findings(source)
    seen_names: Dict[str, int] = {}
    seen_sources: Dict[Tuple[str, ...], str] = {}
    priorities: Dict[int, List[str]] = {}
    has_embedded = False

    for idx, layer in enumerate(layers):
        prefix = f"layers[{idx}]"
        if not isinstance(layer, Mapping):
            continue
        name = layer.get("name")
        if isinstance(name, str):
            if not LAYER_NAME_PATTERN.match(name):
                f.error(
                    f"{prefix}.name",
                    "Layer name must start with a letter and contain only letters, digits, '-' or '_'",
                    name,
                )
            if name in seen_names:
                f.error(f"{prefix}.name", f"Duplicate layer name '{name}' (first declared at layers[{seen_names[name]}])", name)
            else:
                seen_names[name] = idx

        priority = layer.get("priority")
        if isinstance(priority, int) and not isinstance(priority, bool):
            if not MIN_PRIORITY <= priority <= MAX_PRIORITY:
                f.error(f"{prefix}.priority", f"Priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}", priority)
            elif layer.get("enabled", True) is not False:
                priorities.setdefault(priority, []).append(str(name))

        src = layer.get("source") if isinstance(layer.get("source"), Mapping) else {}
        auth = layer.get("auth") if isinstance(layer.get("auth"), Mapping) else {}
        src_type = str(src.get("type", "")).lower()

        _check_auth(f, prefix, auth)

        key: Optional[Tuple[str, ...]] = None
        if src_type == "embedded":
            has_embedded = True
        elif src_type == "git":
            _check_git_source(f, prefix, src, auth)
            if isinstance(src.get("url"), str):
                key = ("git", normalize_git_url(src["url"]), str(src.get("branch") or "main"), str(src.get("subpath") or ""))
        elif src_type == "local" and isinstance(src.get("path"), str):
            local = resolve_path(src["path"], base=workspace_root)
            key = ("local", str(local))
            if not local.exists() and not src.get("optional", False):
                f.warn(f"{prefix}.source.path", f"Local path does not exist: {local}", src["path"])

        if key is not None:
            if key in seen_sources:
                f.warn(f"{prefix}.source", f"Same source as layer '{seen_sources[key]}'", None)
            else:
                seen_sources[key] = str(name)

    for priority, names in sorted(priorities.items()):
        if len(names) > 1:
            f.warn(
                "layers",
                f"Layers {', '.join(names)} share priority {priority}; the later-declared layer wins ties",
                priority,
            )

    if layers and not has_embedded:
        f.warn("layers", "No embedded layer configured; the bundled knowledge baseline will not be available")

    return f.errors, f.warnings


def validate_config(
    config: Mapping[str, Any],
    *,
    workspace_root: Path,
    source: Optional[str] = None,
) -> Tuple[List[ConfigValidationError], List[ConfigValidationError]]:
    """Run schema and semantic validation. Returns ``(errors, warnings)``."""
    errors = validate_schema(config, source=source)
    layers = config.get("layers")
    if not isinstance(layers, list):
        return errors, []
    sem_errors, warnings = validate_layers(layers, workspace_root=workspace_root, source=source)
    return errors + sem_errors, warnings


_LAYER_FIELD = re.compile(r"^layers\[(\d+)\]")


def invalid_layer_indexes(errors: Iterable[ConfigValidationError]) -> set[int]:
    """Indexes of ``layers`` entries that have at least one error."""
    out: set[int] = set()
    for err in errors:
        m = _LAYER_FIELD.match(err.field)
        if m:
            out.add(int(m.group(1)))
    return out


__all__ = [
    "format_field_path",
    "validate_schema",
    "validate_layers",
    "validate_config",
    "invalid_layer_indexes",
]
