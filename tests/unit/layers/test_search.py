"""Tests for topic and specialist search over a merged view."""
from __future__ import annotations

from typing import Sequence

import pytest

from helpers.config import local_layer
from strata.core.content.models import LayerCatalog, Specialist, Topic
from strata.core.layers.merge import build_merged_view
from strata.core.layers.search import TopicQuery, score_topic, search_specialists, search_topics


def _topic(topic_id: str, title: str, *, tags: Sequence[str] = (), body: str = "", difficulty=None) -> Topic:
    domain = topic_id.split("/")[0]
    return Topic(
        id=topic_id,
        title=title,
        domains=(domain,),
        tags=tuple(tags),
        content=body or title,
        path=f"domains/{topic_id}.md",
        difficulty=difficulty,
    )


@pytest.fixture
def view(tmp_path):
    base = LayerCatalog()
    for t in (
        _topic("performance/caching", "Caching strategies", tags=["caching", "latency"], difficulty="intermediate"),
        _topic("performance/cdn", "CDN edge caching", tags=["caching"]),
        _topic("performance/profiling", "Profiling first", tags=["profiling"], body="Measure before caching."),
        _topic("performance/n-plus-one", "N+1 queries", tags=["database"], difficulty="beginner"),
        _topic("performance/pools", "Connection pools", tags=["database", "latency"]),
        _topic("security/secrets", "Secret management", tags=["secrets"]),
    ):
        base.topics[t.id] = t
    override = LayerCatalog()
    override.topics["performance/pools"] = _topic("performance/pools", "Pooling (house rules)", tags=["database"])
    base.specialists["perf"] = Specialist(
        id="perf",
        title="Performance Engineer",
        content="",
        path="specialists/perf.md",
        primary_expertise=("profiling", "caching"),
        domains=("performance",),
        when_to_use=("Latency regressions",),
    )
    base.specialists["sec"] = Specialist(
        id="sec",
        title="Security Reviewer",
        content="",
        path="specialists/sec.md",
        secondary_expertise=("caching headers",),
        domains=("security",),
    )
    return build_merged_view(
        [(local_layer("embedded", 0, tmp_path), base), (local_layer("project", 100, tmp_path, order=1), override)]
    )


def _ids(topics) -> list[str]:
    return [t.id for t in topics]


def test_domain_filter_with_limit_is_deterministic(view) -> None:
    first = search_topics(view, {"domain": "performance", "limit": 3})
    second = search_topics(view, TopicQuery(domain="performance", limit=3))

    # No keywords: every match scores 0, so owner layer rank then id decides.
    assert _ids(first) == ["performance/pools", "performance/caching", "performance/cdn"]
    assert _ids(first) == _ids(second)


def test_keywords_rank_by_score(view) -> None:
    results = search_topics(view, {"keywords": "caching"})

    # caching: title 3 + tag 3 + domain 0 + body 1; cdn: same; profiling: body only
    assert _ids(results) == ["performance/caching", "performance/cdn", "performance/profiling"]


def test_keywords_and_query_are_combined(view) -> None:
    query = TopicQuery.from_mapping({"keywords": ["latency"], "query": "database"})
    assert query.keywords == ("latency", "database")
    # Three topics score 3; the project-owned one ranks first, then ids.
    assert _ids(search_topics(view, query)) == ["performance/pools", "performance/caching", "performance/n-plus-one"]


def test_tags_and_difficulty_filters(view) -> None:
    assert _ids(search_topics(view, {"tags": "caching,latency"})) == ["performance/caching"]
    assert _ids(search_topics(view, {"difficulty": "Beginner"})) == ["performance/n-plus-one"]


def test_results_come_from_the_winning_layer(view) -> None:
    results = search_topics(view, {"keywords": "house"})
    assert len(results) == 1
    assert results[0].title == "Pooling (house rules)"


def test_default_and_zero_limits(view) -> None:
    assert len(search_topics(view, {}, default_limit=2)) == 2
    assert search_topics(view, {"limit": 0}) == []


def test_score_topic_weights() -> None:
    topic = _topic("performance/x", "Cache", tags=["cache"], body="cache")
    assert score_topic(topic, ("cache",)) == 3 + 3 + 1
    assert score_topic(topic, ("performance",)) == 2
    assert score_topic(topic, ("nothing",)) == 0


def test_search_specialists(view) -> None:
    results = search_specialists(view, "caching")
    assert [s.id for s in results] == ["perf", "sec"]
    assert search_specialists(view, "latency")[0].id == "perf"
    assert search_specialists(view, "   ") == []
    assert search_specialists(view, "caching", limit=1)[0].id == "perf"
