"""Layer resolution engine.

Owns one source and one runtime state per configured layer and publishes a
``MergedView`` that every query reads. Reloads build a new view privately
and swap it in with a single attribute assignment, so readers never see a
partially merged state and never take a lock.
"""
from __future__ import annotations

import logging
import threading
from collections import Counter
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Union

from strata.core.config.model import LayerSpec, StrataConfig
from strata.core.content.loader import ContentIndexLoader, normalize_topic_id
from strata.core.content.models import IndexEntry, LayerCatalog, Specialist, Topic, WorkflowIndexEntry
from strata.core.exceptions import (
    LayerSourceError,
    NoUsableLayersError,
    ReloadInProgressError,
    StrataError,
    UnknownLayerError,
)
from strata.core.git.cache import GitSyncCache

from .merge import EMPTY_VIEW, MergedView, build_merged_view
from .result_cache import SearchResultCache
from .results import (
    LayerInitResult,
    LayerRuntimeState,
    LayerStatistics,
    LayerStatus,
    MergeConflictDiagnostic,
    ResolvedTopic,
    SourceLoadResult,
)
from .search import TopicQuery, search_specialists, search_topics
from .sources import LayerSource, create_source

logger = logging.getLogger(__name__)

SourceFactory = Callable[..., LayerSource]


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class LayerEngine:
    """Resolve topics, specialists, workflows and indexes across layers.

    Args:
        git_cache: Shared mirror cache. Built from the configuration's
            ``cache`` and ``timeouts`` sections when omitted.
        source_factory: Builds a ``LayerSource`` for a ``LayerSpec``
            (defaults to ``create_source``).
    """

    def __init__(
        self,
        *,
        git_cache: Optional[GitSyncCache] = None,
        source_factory: Optional[SourceFactory] = None,
        loader: Optional[ContentIndexLoader] = None,
    ) -> None:
        self._git_cache = git_cache
        self._source_factory = source_factory or create_source
        self._loader = loader or ContentIndexLoader()
        self._reload_lock = threading.Lock()

        self._config: Optional[StrataConfig] = None
        self._specs: Dict[str, LayerSpec] = {}
        self._enabled: Dict[str, bool] = {}
        self._sources: Dict[str, LayerSource] = {}
        self._states: Dict[str, LayerRuntimeState] = {}
        self._view: MergedView = EMPTY_VIEW
        self._default_limit = 10
        self._max_errors = 10
        self._search_cache = SearchResultCache()

    @classmethod
    def from_workspace(cls, workspace_root: Optional[Path] = None, *, setup_logging: bool = False) -> "LayerEngine":
        """Load configuration for ``workspace_root`` and initialize every layer."""
        from strata.core.config.cache import get_cached_config

        result = get_cached_config(workspace_root)
        if setup_logging:
            from strata.core.logging import configure_logging

            configure_logging(result.config.logging.level, result.config.logging.path)
        for err in result.validation_errors:
            logger.warning("Configuration problem: %s", err)
        engine = cls()
        engine.initialize_from_configuration(result.config)
        return engine

    # ---------- reload machinery ----------

    @contextmanager
    def _reload_guard(self) -> Iterator[None]:
        if not self._reload_lock.acquire(blocking=False):
            raise ReloadInProgressError("A layer reload is already in progress")
        try:
            yield
        finally:
            self._reload_lock.release()

    def _ensure_git_cache(self, config: StrataConfig) -> GitSyncCache:
        if self._git_cache is None:
            self._git_cache = GitSyncCache(
                config.cache.git_dir,
                timeout=config.timeouts.git_operations_seconds,
                lock_timeout=config.timeouts.lock_seconds,
            )
        return self._git_cache

    def _source_for(self, spec: LayerSpec) -> LayerSource:
        source = self._sources.get(spec.name)
        if source is None:
            if self._config is None:
                raise StrataError("Layer engine is not initialized; call initialize_from_configuration first")
            source = self._source_factory(
                spec,
                workspace_root=self._config.workspace_root,
                git_cache=self._ensure_git_cache(self._config),
                git_ttl_seconds=self._config.cache.git_ttl_seconds,
                loader=self._loader,
            )
            self._sources[spec.name] = source
        return source

    def _cap(self, errors: List[str]) -> List[str]:
        if self._max_errors and len(errors) > self._max_errors:
            extra = len(errors) - self._max_errors
            return errors[: self._max_errors] + [f"... and {extra} more"]
        return list(errors)

    def _load_layer(self, spec: LayerSpec) -> LayerInitResult:
        """Load one layer and replace its runtime state. Never raises for source failures."""
        source = self._source_for(spec)
        try:
            res = source.initialize()
        except LayerSourceError as exc:
            logger.warning("Layer %s failed to load: %s", spec.name, exc)
            res = SourceLoadResult(success=False, errors=[str(exc)], error_code=type(exc).__name__)
        except OSError as exc:
            logger.warning("Layer %s failed to load: %s", spec.name, exc)
            res = SourceLoadResult(success=False, errors=[f"I/O error: {exc}"], error_code="OSError")

        source_info = source.get_source_info()
        previous = self._states.get(spec.name)
        if res.success:
            status = LayerStatus.STALE if res.stale else LayerStatus.LOADED
            state = LayerRuntimeState(
                status=status,
                catalog=res.catalog,
                root=res.root,
                loaded_at=_utc_now(),
                load_time_ms=res.load_time_ms,
                errors=tuple(res.errors),
                source_info=source_info,
            )
        elif previous is not None and previous.catalog is not None:
            logger.warning("Layer %s keeps its last good content", spec.name)
            state = replace(previous, status=LayerStatus.DEGRADED, errors=tuple(res.errors), source_info=source_info)
        else:
            state = LayerRuntimeState(
                status=LayerStatus.DISABLED_BY_ERROR,
                load_time_ms=res.load_time_ms,
                errors=tuple(res.errors),
                source_info=source_info,
            )
        self._states[spec.name] = state

        catalog = res.catalog if res.success else LayerCatalog()
        if res.success:
            logger.info(
                "Layer %s loaded: %d topics, %d specialists, %d indexes (%.1fms)",
                spec.name,
                len(catalog.topics),
                len(catalog.specialists),
                len(catalog.indexes),
                res.load_time_ms,
            )
        return LayerInitResult(
            layer_name=spec.name,
            success=res.success,
            source_info=source_info,
            topics_loaded=len(catalog.topics),
            specialists_loaded=len(catalog.specialists),
            indexes_loaded=len(catalog.indexes),
            load_time_ms=res.load_time_ms,
            errors=self._cap(res.errors),
            warnings=list(res.warnings),
            stale=res.stale,
            error_code=res.error_code,
            status=state.status.value,
        )

    def _disabled_result(self, spec: LayerSpec) -> LayerInitResult:
        return LayerInitResult(layer_name=spec.name, success=True, status=LayerStatus.DISABLED.value)

    def _publish(self) -> None:
        pairs = []
        for name, spec in self._specs.items():
            state = self._states.get(name)
            if self._enabled.get(name) and state is not None and state.catalog is not None:
                pairs.append((spec, state.catalog))
        self._view = build_merged_view(pairs)
        self._search_cache.clear()

    # ---------- lifecycle ----------

    def initialize_from_configuration(self, config: StrataConfig) -> List[LayerInitResult]:
        """Load every configured layer in declaration order and publish the view.

        Individual layer failures are recorded in the returned results.

        Raises:
            NoUsableLayersError: when not a single layer produced content.
            ReloadInProgressError: when another reload is running.
        """
        with self._reload_guard():
            self._config = config
            self._default_limit = config.search.default_limit
            self._max_errors = config.diagnostics.max_errors
            self._search_cache = SearchResultCache(
                max_entries=config.search.cache_size,
                ttl_seconds=config.search.cache_ttl_seconds,
            )
            self._specs = {spec.name: spec for spec in sorted(config.layers, key=lambda s: s.order)}
            self._enabled = {name: spec.enabled for name, spec in self._specs.items()}
            self._sources = {}
            self._states = {}

            results: List[LayerInitResult] = []
            for spec in self._specs.values():
                if not spec.enabled:
                    logger.debug("Layer %s is disabled", spec.name)
                    results.append(self._disabled_result(spec))
                    continue
                results.append(self._load_layer(spec))

            self._publish()

            if not any(state.catalog is not None for state in self._states.values()):
                failures = "; ".join(f"{r.layer_name}: {', '.join(r.errors) or r.status}" for r in results)
                raise NoUsableLayersError(
                    f"No knowledge layer could be loaded ({failures or 'no layers configured'})",
                    context={"layers": [r.to_dict() for r in results]},
                )
            return results

    def refresh_cache(self, force: bool = True) -> List[LayerInitResult]:
        """Reload enabled layers and republish the view.

        With ``force=False`` only layers that are not cleanly loaded (stale,
        degraded, disabled by error) are retried.
        """
        with self._reload_guard():
            results: List[LayerInitResult] = []
            for name, spec in self._specs.items():
                if not self._enabled.get(name):
                    continue
                state = self._states.get(name)
                if not force and state is not None and state.status is LayerStatus.LOADED:
                    continue
                results.append(self._load_layer(spec))
            self._publish()
            return results

    def reload_layer(self, name: str) -> LayerInitResult:
        """Reload a single layer; other layers keep their current content."""
        spec = self._require(name)
        with self._reload_guard():
            if not self._enabled.get(name):
                return self._disabled_result(spec)
            result = self._load_layer(spec)
            self._publish()
            return result

    def set_layer_enabled(self, name: str, enabled: bool) -> Optional[LayerInitResult]:
        """Include or exclude a layer from the merged view.

        Cached catalogs are reused, so toggling never re-fetches git remotes.
        A layer enabled for the first time (or one that never loaded
        successfully) is loaded now; its result is returned.
        """
        spec = self._require(name)
        with self._reload_guard():
            self._enabled[name] = bool(enabled)
            result = None
            state = self._states.get(name)
            if enabled and (state is None or state.catalog is None):
                result = self._load_layer(spec)
            self._publish()
            logger.info("Layer %s %s", name, "enabled" if enabled else "disabled")
            return result

    def _require(self, name: str) -> LayerSpec:
        spec = self._specs.get(name)
        if spec is None:
            raise UnknownLayerError(name)
        return spec

    # ---------- lookups ----------

    @property
    def view(self) -> MergedView:
        return self._view

    def resolve_topic(self, topic_id: str) -> Optional[ResolvedTopic]:
        view = self._view
        entry = view.topics.get(topic_id) or view.topics.get(normalize_topic_id(topic_id))
        if entry is None:
            return None
        return ResolvedTopic(
            topic=entry.item,
            source_layer=entry.source_layer,
            is_override=entry.is_override,
            shadowed_layers=entry.shadowed_layers,
        )

    def resolve_specialist(self, specialist_id: str) -> Optional[Specialist]:
        entry = self._view.specialists.get(specialist_id)
        return entry.item if entry else None

    def get_workflow(self, workflow_id: str) -> Optional[WorkflowIndexEntry]:
        entry = self._view.workflows.get(workflow_id)
        return entry.item if entry else None

    def get_index(self, index_id: str) -> Optional[IndexEntry]:
        entry = self._view.indexes.get(index_id)
        return entry.item if entry else None

    def search_topics(self, query: Union[TopicQuery, Mapping[str, Any]]) -> List[Topic]:
        if not isinstance(query, TopicQuery):
            query = TopicQuery.from_mapping(query)
        if query.limit is None:
            query = replace(query, limit=self._default_limit)
        view = self._view
        key = ("topics", query)
        cached = self._search_cache.get(view, key)
        if cached is not None:
            return cached
        results = search_topics(view, query, default_limit=self._default_limit)
        self._search_cache.put(view, key, results)
        return results

    def search_specialists(self, query: str, limit: int = 10) -> List[Specialist]:
        view = self._view
        key = ("specialists", (query or "").strip().lower(), limit)
        cached = self._search_cache.get(view, key)
        if cached is not None:
            return cached
        results = search_specialists(view, query, limit=limit)
        self._search_cache.put(view, key, results)
        return results

    def get_all_topics(self) -> List[Topic]:
        view = self._view
        return [view.topics[k].item for k in sorted(view.topics)]

    def get_all_specialists(self) -> List[Specialist]:
        view = self._view
        return [view.specialists[k].item for k in sorted(view.specialists)]

    def get_all_workflows(self) -> List[WorkflowIndexEntry]:
        view = self._view
        return [view.workflows[k].item for k in sorted(view.workflows)]

    def get_overrides(self) -> List[MergeConflictDiagnostic]:
        return self._view.overrides()

    # ---------- introspection ----------

    def get_layers(self) -> List[LayerSpec]:
        """Configured layers, highest rank first, with their runtime ``enabled`` flag."""
        specs = [replace(spec, enabled=self._enabled.get(name, spec.enabled)) for name, spec in self._specs.items()]
        return sorted(specs, key=lambda s: s.rank, reverse=True)

    def get_layer_statistics(self, name: str) -> LayerStatistics:
        spec = self._require(name)
        state = self._states.get(name)
        enabled = self._enabled.get(name, False)
        if state is None:
            status = LayerStatus.DISABLED.value
        elif not enabled:
            status = LayerStatus.DISABLED.value
        else:
            status = state.status.value
        catalog = state.catalog if state else None
        return LayerStatistics(
            name=name,
            priority=spec.priority,
            enabled=enabled,
            status=status,
            topic_count=state.topic_count if state else 0,
            specialist_count=state.specialist_count if state else 0,
            workflow_count=state.workflow_count if state else 0,
            index_count=state.index_count if state else 0,
            load_time_ms=state.load_time_ms if state else 0.0,
            loaded_at=state.loaded_at if state else None,
            memory_usage=catalog.memory_usage() if catalog else {"topics": 0, "indexes": 0, "total": 0},
            errors=tuple(self._cap(list(state.errors))) if state else (),
        )

    def get_statistics(self) -> Dict[str, Any]:
        view = self._view
        layers = [self.get_layer_statistics(spec.name) for spec in self.get_layers()]
        specialists = [e.item for e in view.specialists.values()]
        by_domain: Counter = Counter()
        for s in specialists:
            by_domain.update(s.domains)
        return {
            "layers": [s.to_dict() for s in layers],
            "totals": {
                "topics": len(view.topics),
                "specialists": len(view.specialists),
                "workflows": len(view.workflows),
                "indexes": len(view.indexes),
                "overrides": len(view.overrides()),
            },
            "specialists_by_team": dict(sorted(Counter(s.team for s in specialists).items())),
            "specialists_by_domain": dict(sorted(by_domain.items())),
            "memory_usage": {
                key: sum(s.memory_usage[key] for s in layers if s.enabled) for key in ("topics", "indexes", "total")
            },
            "search_cache": self._search_cache.stats(),
        }


__all__ = ["LayerEngine"]
