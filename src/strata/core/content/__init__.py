"""Knowledge content records and the per-layer content loader."""
from __future__ import annotations

from .loader import ContentIndexLoader, normalize_topic_id
from .models import IndexEntry, LayerCatalog, Specialist, Topic, TopicSample, WorkflowIndexEntry

__all__ = [
    "ContentIndexLoader",
    "normalize_topic_id",
    "IndexEntry",
    "LayerCatalog",
    "Specialist",
    "Topic",
    "TopicSample",
    "WorkflowIndexEntry",
]
