"""Builders for layer specs and engine configuration."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence

from strata.core.config.model import AuthSpec, AuthType, LayerSpec, SourceSpec, SourceType, StrataConfig


def local_layer(name: str, priority: int, path: Path, *, order: int = 0, enabled: bool = True) -> LayerSpec:
    return LayerSpec(
        name=name,
        priority=priority,
        source=SourceSpec(type=SourceType.LOCAL, path=str(path)),
        enabled=enabled,
        order=order,
    )


def git_layer(
    name: str,
    priority: int,
    url: str,
    *,
    order: int = 0,
    branch: str = "main",
    subpath: Optional[str] = None,
    token_env_var: Optional[str] = None,
) -> LayerSpec:
    auth = AuthSpec(type=AuthType.TOKEN, token_env_var=token_env_var) if token_env_var else AuthSpec()
    return LayerSpec(
        name=name,
        priority=priority,
        source=SourceSpec(type=SourceType.GIT, url=url, branch=branch, subpath=subpath),
        auth=auth,
        order=order,
    )


def make_config(
    layers: Sequence[LayerSpec],
    *,
    workspace_root: Path,
    git_dir: Optional[Path] = None,
    settings: Optional[Mapping[str, Any]] = None,
) -> StrataConfig:
    """StrataConfig with layer ``order`` taken from list position."""
    merged: Dict[str, Any] = {
        "cache": {"git_dir": str(git_dir or workspace_root / ".git-cache")},
        "timeouts": {"git_operations_seconds": 30, "lock_seconds": 10},
        "search": {"default_limit": 10},
        "diagnostics": {"max_errors": 10},
    }
    merged.update(settings or {})
    ordered = tuple(
        LayerSpec(
            name=l.name,
            priority=l.priority,
            source=l.source,
            auth=l.auth,
            enabled=l.enabled,
            order=idx,
        )
        for idx, l in enumerate(layers)
    )
    return StrataConfig(layers=ordered, settings=merged, workspace_root=workspace_root)
