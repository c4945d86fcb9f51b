"""Substring/keyword search over a merged view.

Each query term scores 3 for a title hit, 3 for a tag hit, 2 for a domain hit
and 1 for a body hit. Results are ordered by score, then by the rank of the
layer that owns the topic, then by id, so identical inputs always give
identical output.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple, Union

from strata.core.content.models import Specialist, Topic

from .merge import MergedView

TITLE_WEIGHT = 3
TAG_WEIGHT = 3
DOMAIN_WEIGHT = 2
BODY_WEIGHT = 1

SPECIALIST_TITLE_WEIGHT = 10
SPECIALIST_PRIMARY_WEIGHT = 8
SPECIALIST_WHEN_TO_USE_WEIGHT = 7
SPECIALIST_DOMAIN_WEIGHT = 6
SPECIALIST_SECONDARY_WEIGHT = 5

_TERM_SPLIT = re.compile(r"[\s,]+")


def _split_terms(raw: Any) -> Tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, (list, tuple)):
        raw = " ".join(str(r) for r in raw)
    return tuple(t for t in _TERM_SPLIT.split(str(raw).lower()) if t)


@dataclass(frozen=True)
class TopicQuery:
    domain: Optional[str] = None
    tags: Tuple[str, ...] = ()
    keywords: Tuple[str, ...] = ()
    difficulty: Optional[str] = None
    limit: Optional[int] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TopicQuery":
        """Build a query from loose request arguments.

        ``keywords`` and ``query`` are both accepted and combined; ``tags``
        may be a list or a comma-separated string.
        """
        tags = data.get("tags") or ()
        if isinstance(tags, str):
            tags = tags.split(",")
        limit = data.get("limit")
        return cls(
            domain=(str(data["domain"]).strip() or None) if data.get("domain") else None,
            tags=tuple(str(t).strip().lower() for t in tags if str(t).strip()),
            keywords=_split_terms(data.get("keywords")) + _split_terms(data.get("query")),
            difficulty=str(data["difficulty"]).strip().lower() if data.get("difficulty") else None,
            limit=int(limit) if limit is not None else None,
        )


def _contains(needle: str, haystacks) -> bool:
    return any(needle in h.lower() for h in haystacks)


def score_topic(topic: Topic, terms: Tuple[str, ...]) -> int:
    """Relevance of ``topic`` for ``terms`` (0 when no term matches)."""
    title = topic.title.lower()
    body = topic.content.lower()
    score = 0
    for term in terms:
        if term in title:
            score += TITLE_WEIGHT
        if _contains(term, topic.tags):
            score += TAG_WEIGHT
        if _contains(term, topic.domains):
            score += DOMAIN_WEIGHT
        if term in body:
            score += BODY_WEIGHT
    return score


def _matches_filters(topic: Topic, query: TopicQuery) -> bool:
    if query.domain and not _contains(query.domain.lower(), topic.domains):
        return False
    for tag in query.tags:
        if not _contains(tag, topic.tags):
            return False
    if query.difficulty and (topic.difficulty or "") != query.difficulty:
        return False
    return True


def search_topics(
    view: MergedView,
    query: Union[TopicQuery, Mapping[str, Any]],
    *,
    default_limit: int = 10,
) -> List[Topic]:
    """Filter, score and order topics from ``view``."""
    if not isinstance(query, TopicQuery):
        query = TopicQuery.from_mapping(query)
    limit = query.limit if query.limit is not None else default_limit
    if limit <= 0:
        return []

    scored: List[Tuple[Tuple[Any, ...], Topic]] = []
    for topic_id, entry in view.topics.items():
        topic: Topic = entry.item
        if not _matches_filters(topic, query):
            continue
        score = score_topic(topic, query.keywords) if query.keywords else 0
        if query.keywords and score == 0:
            continue
        priority, order = view.rank_of(entry.source_layer)
        scored.append(((-score, -priority, -order, topic_id), topic))

    scored.sort(key=lambda pair: pair[0])
    return [topic for _, topic in scored[:limit]]


def score_specialist(specialist: Specialist, query: str) -> int:
    q = query.lower()
    score = 0
    if q in specialist.title.lower():
        score += SPECIALIST_TITLE_WEIGHT
    score += SPECIALIST_PRIMARY_WEIGHT * sum(1 for e in specialist.primary_expertise if q in e.lower())
    score += SPECIALIST_SECONDARY_WEIGHT * sum(1 for e in specialist.secondary_expertise if q in e.lower())
    score += SPECIALIST_DOMAIN_WEIGHT * sum(1 for d in specialist.domains if q in d.lower())
    score += SPECIALIST_WHEN_TO_USE_WEIGHT * sum(1 for w in specialist.when_to_use if q in w.lower())
    return score


def search_specialists(view: MergedView, query: str, *, limit: int = 10) -> List[Specialist]:
    """Specialists whose title, expertise, domains or use cases mention ``query``."""
    query = (query or "").strip()
    if not query or limit <= 0:
        return []
    scored: List[Tuple[Tuple[Any, ...], Specialist]] = []
    for specialist_id, entry in view.specialists.items():
        score = score_specialist(entry.item, query)
        if score <= 0:
            continue
        priority, order = view.rank_of(entry.source_layer)
        scored.append(((-score, -priority, -order, specialist_id), entry.item))
    scored.sort(key=lambda pair: pair[0])
    return [s for _, s in scored[:limit]]


__all__ = [
    "TopicQuery",
    "search_topics",
    "search_specialists",
    "score_topic",
    "score_specialist",
]
