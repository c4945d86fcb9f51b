"""Knowledge content records loaded from a layer directory.

All records are frozen. Two records of the same kind with the same ``id``
describe the same logical entity; the merge keeps exactly one of them.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

CONTENT_KINDS = ("topics", "specialists", "workflows", "indexes")


@dataclass(frozen=True)
class TopicSample:
    path: str
    content: str


@dataclass(frozen=True)
class Topic:
    id: str
    title: str
    domains: Tuple[str, ...]
    tags: Tuple[str, ...]
    content: str
    path: str
    difficulty: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    word_count: int = 0
    samples: Optional[TopicSample] = None

    @property
    def domain(self) -> str:
        """Primary domain (first of ``domains``)."""
        return self.domains[0] if self.domains else ""

    @property
    def size_bytes(self) -> int:
        size = len(self.content.encode("utf-8"))
        if self.samples is not None:
            size += len(self.samples.content.encode("utf-8"))
        return size

    def to_dict(self, *, include_content: bool = True) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "domain": self.domain,
            "domains": list(self.domains),
            "tags": list(self.tags),
            "difficulty": self.difficulty,
            "word_count": self.word_count,
            "path": self.path,
        }
        if include_content:
            out["content"] = self.content
            if self.samples is not None:
                out["samples"] = {"path": self.samples.path, "content": self.samples.content}
        return out


@dataclass(frozen=True)
class Specialist:
    id: str
    title: str
    content: str
    path: str
    emoji: str = "🤖"
    role: str = "Specialist"
    team: str = "General"
    persona: Mapping[str, Any] = field(default_factory=dict)
    primary_expertise: Tuple[str, ...] = ()
    secondary_expertise: Tuple[str, ...] = ()
    domains: Tuple[str, ...] = ()
    when_to_use: Tuple[str, ...] = ()
    collaboration: Mapping[str, Any] = field(default_factory=dict)
    related_specialists: Tuple[str, ...] = ()

    @property
    def specialist_id(self) -> str:
        return self.id

    def to_dict(self, *, include_content: bool = True) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "specialist_id": self.id,
            "title": self.title,
            "emoji": self.emoji,
            "role": self.role,
            "team": self.team,
            "persona": dict(self.persona),
            "expertise": {
                "primary": list(self.primary_expertise),
                "secondary": list(self.secondary_expertise),
            },
            "domains": list(self.domains),
            "when_to_use": list(self.when_to_use),
            "collaboration": dict(self.collaboration),
            "related_specialists": list(self.related_specialists),
        }
        if include_content:
            out["content"] = self.content
        return out


@dataclass(frozen=True)
class WorkflowIndexEntry:
    id: str
    title: str
    description: str
    path: str
    phases: Tuple[str, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "phases": list(self.phases),
            "path": self.path,
        }


@dataclass(frozen=True)
class IndexEntry:
    """A manifest (``indexes/<id>.json``) or tag index (``indexes/tags/<tag>.json``)."""

    id: str
    kind: str
    data: Any
    path: str

    @property
    def topic_ids(self) -> List[str]:
        if self.kind == "tag" and isinstance(self.data, Mapping):
            return list(self.data.get("topics", []))
        return []

    @property
    def size_bytes(self) -> int:
        return len(repr(self.data).encode("utf-8"))

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "kind": self.kind, "data": self.data, "path": self.path}


@dataclass
class LayerCatalog:
    """Everything one layer contributes, keyed by id per content kind."""

    topics: Dict[str, Topic] = field(default_factory=dict)
    specialists: Dict[str, Specialist] = field(default_factory=dict)
    workflows: Dict[str, WorkflowIndexEntry] = field(default_factory=dict)
    indexes: Dict[str, IndexEntry] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    def items(self, kind: str) -> Mapping[str, Any]:
        if kind not in CONTENT_KINDS:
            raise ValueError(f"Unknown content kind: {kind}")
        return getattr(self, kind)

    @property
    def item_count(self) -> int:
        return len(self.topics) + len(self.specialists) + len(self.workflows) + len(self.indexes)

    def memory_usage(self) -> Dict[str, int]:
        """Rough content size in bytes (not interpreter overhead)."""
        topics = sum(t.size_bytes for t in self.topics.values())
        topics += sum(len(s.content.encode("utf-8")) for s in self.specialists.values())
        indexes = sum(i.size_bytes for i in self.indexes.values())
        return {"topics": topics, "indexes": indexes, "total": topics + indexes}


__all__ = [
    "CONTENT_KINDS",
    "TopicSample",
    "Topic",
    "Specialist",
    "WorkflowIndexEntry",
    "IndexEntry",
    "LayerCatalog",
]
