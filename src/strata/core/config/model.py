"""Typed configuration records for layers and load results."""
from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

LAYER_NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_-]*$")
MIN_PRIORITY = 0
MAX_PRIORITY = 1000


class SourceType(str, Enum):
    EMBEDDED = "embedded"
    LOCAL = "local"
    GIT = "git"


class AuthType(str, Enum):
    NONE = "none"
    TOKEN = "token"
    BASIC = "basic"
    SSH = "ssh"


@dataclass(frozen=True)
class SourceSpec:
    """Where a layer's content comes from.

    ``path`` applies to local sources (and optionally overrides the embedded
    bundle location); ``url``/``branch``/``subpath`` apply to git sources.
    An ``optional`` local source whose directory is missing loads empty
    instead of failing.
    """

    type: SourceType
    path: Optional[str] = None
    url: Optional[str] = None
    branch: str = "main"
    subpath: Optional[str] = None
    optional: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SourceSpec":
        return cls(
            type=SourceType(str(data.get("type", "")).lower()),
            path=data.get("path"),
            url=data.get("url"),
            branch=str(data.get("branch") or "main"),
            subpath=data.get("subpath"),
            optional=bool(data.get("optional", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": self.type.value}
        if self.type is SourceType.GIT:
            out.update(url=self.url, branch=self.branch)
            if self.subpath:
                out["subpath"] = self.subpath
        elif self.path:
            out["path"] = self.path
        if self.optional:
            out["optional"] = True
        return out


@dataclass(frozen=True)
class AuthSpec:
    """Credential references. Secrets themselves are never stored here."""

    type: AuthType = AuthType.NONE
    token_env_var: Optional[str] = None
    username: Optional[str] = None
    password_env_var: Optional[str] = None
    key_path: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "AuthSpec":
        if not data:
            return cls()
        return cls(
            type=AuthType(str(data.get("type", "none")).lower()),
            token_env_var=data.get("token_env_var"),
            username=data.get("username"),
            password_env_var=data.get("password_env_var"),
            key_path=data.get("key_path"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {k: (v.value if isinstance(v, Enum) else v) for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True)
class LayerSpec:
    """One configured content layer.

    Higher ``priority`` wins. Equal priorities resolve to the layer declared
    later, which is why ``order`` (declaration index) is part of the rank.
    """

    name: str
    priority: int
    source: SourceSpec
    auth: AuthSpec = field(default_factory=AuthSpec)
    enabled: bool = True
    order: int = 0

    @property
    def rank(self) -> Tuple[int, int]:
        return (self.priority, self.order)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, order: int) -> "LayerSpec":
        return cls(
            name=str(data["name"]),
            priority=int(data.get("priority", 0)),
            source=SourceSpec.from_dict(data.get("source") or {}),
            auth=AuthSpec.from_dict(data.get("auth")),
            enabled=bool(data.get("enabled", True)),
            order=order,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "priority": self.priority,
            "source": self.source.to_dict(),
            "auth": self.auth.to_dict(),
            "enabled": self.enabled,
            "order": self.order,
        }


@dataclass(frozen=True)
class ConfigValidationError:
    """A single validation finding (errors and warnings share this record)."""

    field: str
    message: str
    value: Any = None
    source: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.field}: {self.message}" if self.field else self.message

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "message": self.message, "value": self.value, "source": self.source}


@dataclass(frozen=True)
class StrataConfig:
    """Effective configuration: usable layers plus the merged settings dict."""

    layers: Tuple[LayerSpec, ...]
    settings: Mapping[str, Any]
    workspace_root: Path

    def layer(self, name: str) -> Optional[LayerSpec]:
        for spec in self.layers:
            if spec.name == name:
                return spec
        return None

    @property
    def cache(self):
        from .domains import CacheConfig

        return CacheConfig(self.settings)

    @property
    def timeouts(self):
        from .domains import TimeoutsConfig

        return TimeoutsConfig(self.settings)

    @property
    def search(self):
        from .domains import SearchConfig

        return SearchConfig(self.settings)

    @property
    def diagnostics(self):
        from .domains import DiagnosticsConfig

        return DiagnosticsConfig(self.settings)

    @property
    def logging(self):
        from .domains import LoggingConfig

        return LoggingConfig(self.settings)


@dataclass
class ConfigLoadResult:
    config: StrataConfig
    raw: Dict[str, Any]
    sources: List[str] = field(default_factory=list)
    warnings: List[ConfigValidationError] = field(default_factory=list)
    validation_errors: List[ConfigValidationError] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.validation_errors


__all__ = [
    "LAYER_NAME_PATTERN",
    "MIN_PRIORITY",
    "MAX_PRIORITY",
    "SourceType",
    "AuthType",
    "SourceSpec",
    "AuthSpec",
    "LayerSpec",
    "ConfigValidationError",
    "StrataConfig",
    "ConfigLoadResult",
]
