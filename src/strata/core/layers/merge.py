"""Merged view over every enabled layer's catalog.

Layers are visited once in descending rank (priority, then declaration
order). The first layer to define an id owns it; every later definer is
recorded as shadowed. Overrides replace whole entities, fields are never
combined across layers.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Generic, Iterable, List, Mapping, Tuple, TypeVar

from strata.core.config.model import LayerSpec
from strata.core.content.models import CONTENT_KINDS, LayerCatalog

from .results import MergeConflictDiagnostic

T = TypeVar("T")


@dataclass(frozen=True)
class MergedEntry(Generic[T]):
    item: T
    source_layer: str
    shadowed_layers: Tuple[str, ...] = ()

    @property
    def is_override(self) -> bool:
        return bool(self.shadowed_layers)


def _frozen(d: Dict[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(d)


@dataclass(frozen=True)
class MergedView:
    """Immutable result of a merge. Replaced wholesale, never mutated."""

    topics: Mapping[str, MergedEntry] = field(default_factory=lambda: _frozen({}))
    specialists: Mapping[str, MergedEntry] = field(default_factory=lambda: _frozen({}))
    workflows: Mapping[str, MergedEntry] = field(default_factory=lambda: _frozen({}))
    indexes: Mapping[str, MergedEntry] = field(default_factory=lambda: _frozen({}))
    layer_ranks: Mapping[str, Tuple[int, int]] = field(default_factory=lambda: _frozen({}))

    def entries(self, kind: str) -> Mapping[str, MergedEntry]:
        if kind not in CONTENT_KINDS:
            raise ValueError(f"Unknown content kind: {kind}")
        return getattr(self, kind)

    def rank_of(self, layer_name: str) -> Tuple[int, int]:
        return self.layer_ranks.get(layer_name, (-1, -1))

    def overrides(self) -> List[MergeConflictDiagnostic]:
        out: List[MergeConflictDiagnostic] = []
        for kind in CONTENT_KINDS:
            for item_id in sorted(self.entries(kind)):
                entry = self.entries(kind)[item_id]
                if entry.is_override:
                    out.append(MergeConflictDiagnostic(kind, item_id, entry.source_layer, entry.shadowed_layers))
        return out


EMPTY_VIEW = MergedView()


def build_merged_view(layers: Iterable[Tuple[LayerSpec, LayerCatalog]]) -> MergedView:
    """Merge ``(spec, catalog)`` pairs into a new ``MergedView``.

    Callers pass only enabled layers that have a catalog; ordering of the
    input does not matter.
    """
    ordered = sorted(layers, key=lambda pair: pair[0].rank, reverse=True)
    merged: Dict[str, Dict[str, MergedEntry]] = {kind: {} for kind in CONTENT_KINDS}

    for spec, catalog in ordered:
        for kind in CONTENT_KINDS:
            bucket = merged[kind]
            for item_id, item in catalog.items(kind).items():
                existing = bucket.get(item_id)
                if existing is None:
                    bucket[item_id] = MergedEntry(item=item, source_layer=spec.name)
                else:
                    bucket[item_id] = MergedEntry(
                        item=existing.item,
                        source_layer=existing.source_layer,
                        shadowed_layers=existing.shadowed_layers + (spec.name,),
                    )

    return MergedView(
        topics=_frozen(merged["topics"]),
        specialists=_frozen(merged["specialists"]),
        workflows=_frozen(merged["workflows"]),
        indexes=_frozen(merged["indexes"]),
        layer_ranks=_frozen({spec.name: spec.rank for spec, _ in ordered}),
    )


__all__ = ["MergedEntry", "MergedView", "EMPTY_VIEW", "build_merged_view"]
