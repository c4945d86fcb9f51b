"""Result and state records produced by layer sources and the engine."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from strata.core.content.models import LayerCatalog, Topic


class LayerStatus(str, Enum):
    LOADED = "loaded"
    STALE = "stale"
    DISABLED = "disabled"
    DISABLED_BY_ERROR = "disabled-by-error"
    DEGRADED = "degraded"


@dataclass(frozen=True)
class SourceInfo:
    """Describes where a layer reads from. Never carries secrets."""

    type: str
    location: str
    branch: Optional[str] = None
    subpath: Optional[str] = None
    has_auth: bool = False
    local_path: Optional[str] = None
    stale: bool = False
    last_synced_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class SourceLoadResult:
    success: bool
    catalog: LayerCatalog = field(default_factory=LayerCatalog)
    items_loaded: int = 0
    indexes_loaded: int = 0
    load_time_ms: float = 0.0
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    root: Optional[Path] = None
    stale: bool = False
    error_code: Optional[str] = None


@dataclass
class LayerInitResult:
    layer_name: str
    success: bool
    source_info: Optional[SourceInfo] = None
    topics_loaded: int = 0
    specialists_loaded: int = 0
    indexes_loaded: int = 0
    load_time_ms: float = 0.0
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    stale: bool = False
    error_code: Optional[str] = None
    status: str = LayerStatus.LOADED.value

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["source_info"] = self.source_info.to_dict() if self.source_info else None
        out["load_time_ms"] = round(self.load_time_ms, 2)
        return out


@dataclass(frozen=True)
class LayerRuntimeState:
    """Per-layer state owned by the engine; replaced on every (re)load."""

    status: LayerStatus
    catalog: Optional[LayerCatalog] = None
    root: Optional[Path] = None
    loaded_at: Optional[str] = None
    load_time_ms: float = 0.0
    errors: Tuple[str, ...] = ()
    source_info: Optional[SourceInfo] = None

    @property
    def topic_count(self) -> int:
        return len(self.catalog.topics) if self.catalog else 0

    @property
    def specialist_count(self) -> int:
        return len(self.catalog.specialists) if self.catalog else 0

    @property
    def workflow_count(self) -> int:
        return len(self.catalog.workflows) if self.catalog else 0

    @property
    def index_count(self) -> int:
        return len(self.catalog.indexes) if self.catalog else 0


@dataclass(frozen=True)
class LayerStatistics:
    name: str
    priority: int
    enabled: bool
    status: str
    topic_count: int
    specialist_count: int
    workflow_count: int
    index_count: int
    load_time_ms: float
    loaded_at: Optional[str]
    memory_usage: Dict[str, int]
    errors: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["errors"] = list(self.errors)
        out["load_time_ms"] = round(self.load_time_ms, 2)
        return out


@dataclass(frozen=True)
class ResolvedTopic:
    topic: Topic
    source_layer: str
    is_override: bool
    shadowed_layers: Tuple[str, ...] = ()

    def to_dict(self, *, include_content: bool = True) -> Dict[str, Any]:
        return {
            "topic": self.topic.to_dict(include_content=include_content),
            "source_layer": self.source_layer,
            "is_override": self.is_override,
            "shadowed_layers": list(self.shadowed_layers),
        }


@dataclass(frozen=True)
class MergeConflictDiagnostic:
    """Informational: an id defined by more than one enabled layer."""

    kind: str
    id: str
    winner: str
    shadowed: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "id": self.id, "winner": self.winner, "shadowed": list(self.shadowed)}


__all__ = [
    "LayerStatus",
    "SourceInfo",
    "SourceLoadResult",
    "LayerInitResult",
    "LayerRuntimeState",
    "LayerStatistics",
    "ResolvedTopic",
    "MergeConflictDiagnostic",
]
