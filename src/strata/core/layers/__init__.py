"""Layer sources, merging, search and the resolution engine."""
from __future__ import annotations

from .engine import LayerEngine
from .merge import MergedEntry, MergedView, build_merged_view
from .result_cache import SearchResultCache
from .results import (
    LayerInitResult,
    LayerStatistics,
    LayerStatus,
    MergeConflictDiagnostic,
    ResolvedTopic,
    SourceInfo,
)
from .search import TopicQuery
from .sources import EmbeddedSource, GitSource, LayerSource, LocalSource, create_source

__all__ = [
    "LayerEngine",
    "MergedEntry",
    "MergedView",
    "build_merged_view",
    "LayerInitResult",
    "LayerStatistics",
    "LayerStatus",
    "MergeConflictDiagnostic",
    "ResolvedTopic",
    "SearchResultCache",
    "SourceInfo",
    "TopicQuery",
    "EmbeddedSource",
    "GitSource",
    "LayerSource",
    "LocalSource",
    "create_source",
]
