"""Narrow read-only interfaces handed to request handlers.

Handlers for topic lookup, search and specialist discovery depend on these
protocols rather than on ``LayerEngine`` itself.
"""
from __future__ import annotations

from typing import Any, List, Mapping, Optional, Protocol, Union, runtime_checkable

from strata.core.content.models import Specialist, Topic
from strata.core.layers.results import ResolvedTopic
from strata.core.layers.search import TopicQuery


@runtime_checkable
class TopicResolver(Protocol):
    def resolve_topic(self, topic_id: str) -> Optional[ResolvedTopic]: ...

    def search_topics(self, query: Union[TopicQuery, Mapping[str, Any]]) -> List[Topic]: ...

    def get_all_topics(self) -> List[Topic]: ...


@runtime_checkable
class SpecialistDirectory(Protocol):
    def resolve_specialist(self, specialist_id: str) -> Optional[Specialist]: ...

    def search_specialists(self, query: str, limit: int = 10) -> List[Specialist]: ...

    def get_all_specialists(self) -> List[Specialist]: ...


__all__ = ["TopicResolver", "SpecialistDirectory"]
