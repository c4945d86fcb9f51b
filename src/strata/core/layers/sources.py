"""Layer sources: materialize a directory of knowledge content.

Each configured layer gets one source. ``initialize()`` returns a
``SourceLoadResult``; recoverable failures (a missing local directory, a git
authentication or network failure without a mirror) come back with
``success=False`` and no items. Only a missing bundled baseline raises
``EmbeddedKnowledgeError``, since the installation itself is broken.
"""
from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from strata.core.config.model import AuthType, LayerSpec, SourceType
from strata.core.content.loader import ContentIndexLoader
from strata.core.exceptions import EmbeddedKnowledgeError, LayerSourceError
from strata.core.git.cache import GitSyncCache
from strata.core.git.urls import redact_url
from strata.core.utils.paths import resolve_path
from strata.data import embedded_knowledge_root

from .results import SourceInfo, SourceLoadResult

logger = logging.getLogger(__name__)


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0


class LayerSource(ABC):
    """Base class for one layer's content origin."""

    def __init__(self, spec: LayerSpec, *, loader: Optional[ContentIndexLoader] = None) -> None:
        self.spec = spec
        self.loader = loader or ContentIndexLoader()
        self.root: Optional[Path] = None

    @property
    def name(self) -> str:
        return self.spec.name

    @abstractmethod
    def initialize(self) -> SourceLoadResult:
        """Materialize the layer directory and load its catalog."""

    @abstractmethod
    def get_source_info(self) -> SourceInfo:
        """Describe the source with secrets redacted."""

    def _load_directory(self, root: Path, start: float, *, warnings: Optional[List[str]] = None) -> SourceLoadResult:
        catalog = self.loader.load(root)
        self.root = root
        return SourceLoadResult(
            success=True,
            catalog=catalog,
            items_loaded=len(catalog.topics) + len(catalog.specialists) + len(catalog.workflows),
            indexes_loaded=len(catalog.indexes),
            load_time_ms=_elapsed_ms(start),
            errors=list(catalog.errors),
            warnings=list(warnings or []),
            root=root,
        )

    @staticmethod
    def _failure(message: str, start: float, *, error_code: str) -> SourceLoadResult:
        return SourceLoadResult(
            success=False,
            load_time_ms=_elapsed_ms(start),
            errors=[message],
            error_code=error_code,
        )


class EmbeddedSource(LayerSource):
    """The knowledge baseline shipped inside the package."""

    def __init__(
        self,
        spec: LayerSpec,
        *,
        workspace_root: Path,
        loader: Optional[ContentIndexLoader] = None,
    ) -> None:
        super().__init__(spec, loader=loader)
        if spec.source.path:
            self.path = resolve_path(spec.source.path, base=workspace_root)
        else:
            self.path = embedded_knowledge_root()

    def initialize(self) -> SourceLoadResult:
        start = time.perf_counter()
        if not self.path.is_dir():
            raise EmbeddedKnowledgeError(
                f"Embedded knowledge not found at {self.path}; the installation may be incomplete",
                layer_name=self.name,
                context={"path": str(self.path)},
            )
        return self._load_directory(self.path, start)

    def get_source_info(self) -> SourceInfo:
        return SourceInfo(type=SourceType.EMBEDDED.value, location=str(self.path), local_path=str(self.path))


class LocalSource(LayerSource):
    """A directory on the local filesystem."""

    def __init__(
        self,
        spec: LayerSpec,
        *,
        workspace_root: Path,
        loader: Optional[ContentIndexLoader] = None,
    ) -> None:
        super().__init__(spec, loader=loader)
        self.path = resolve_path(spec.source.path or ".", base=workspace_root)

    def initialize(self) -> SourceLoadResult:
        start = time.perf_counter()
        if not self.path.exists():
            if self.spec.source.optional:
                logger.debug("Optional layer %s: %s does not exist, skipping", self.name, self.path)
                return SourceLoadResult(
                    success=True,
                    load_time_ms=_elapsed_ms(start),
                    warnings=[f"Directory {self.path} does not exist; layer is empty"],
                )
            return self._failure(f"Layer directory does not exist: {self.path}", start, error_code="PathNotFound")
        if not self.path.is_dir():
            return self._failure(f"Layer path is not a directory: {self.path}", start, error_code="NotADirectory")
        return self._load_directory(self.path, start)

    def get_source_info(self) -> SourceInfo:
        return SourceInfo(type=SourceType.LOCAL.value, location=str(self.path), local_path=str(self.path))


class GitSource(LayerSource):
    """A remote repository mirrored through ``GitSyncCache``."""

    def __init__(
        self,
        spec: LayerSpec,
        *,
        git_cache: GitSyncCache,
        max_age_seconds: Optional[float] = None,
        loader: Optional[ContentIndexLoader] = None,
    ) -> None:
        super().__init__(spec, loader=loader)
        self.git_cache = git_cache
        self.max_age_seconds = max_age_seconds
        self.stale = False
        self.last_synced_at: Optional[str] = None

    @property
    def url(self) -> str:
        return self.spec.source.url or ""

    @property
    def branch(self) -> str:
        return self.spec.source.branch

    def initialize(self) -> SourceLoadResult:
        start = time.perf_counter()
        try:
            result = self.git_cache.sync(
                self.url,
                self.branch,
                self.spec.auth,
                max_age_seconds=self.max_age_seconds,
            )
        except LayerSourceError as exc:
            logger.warning("Git layer %s could not sync: %s", self.name, exc)
            self.stale = False
            return self._failure(str(exc), start, error_code=type(exc).__name__)
        self.stale = result.stale
        self.last_synced_at = datetime.now(timezone.utc).isoformat()

        warnings: List[str] = []
        if result.stale:
            warnings.append(f"Using cached copy; sync failed: {result.error}")

        mirror = result.local_path
        subpath = self.spec.source.subpath
        root = mirror
        if subpath:
            root = (mirror / subpath).resolve()
            try:
                root.relative_to(mirror.resolve())
            except ValueError:
                return self._failure(f"Subpath escapes the repository: {subpath}", start, error_code="InvalidSubpath")
            if not root.is_dir():
                return self._failure(
                    f"Subpath '{subpath}' not found in {redact_url(self.url)}",
                    start,
                    error_code="PathNotFound",
                )

        loaded = self._load_directory(root, start, warnings=warnings)
        loaded.stale = result.stale
        return loaded

    def get_source_info(self) -> SourceInfo:
        return SourceInfo(
            type=SourceType.GIT.value,
            location=redact_url(self.url),
            branch=self.branch,
            subpath=self.spec.source.subpath,
            has_auth=self.spec.auth.type is not AuthType.NONE,
            local_path=str(self.root) if self.root else None,
            stale=self.stale,
            last_synced_at=self.last_synced_at,
        )


def create_source(
    spec: LayerSpec,
    *,
    workspace_root: Path,
    git_cache: GitSyncCache,
    git_ttl_seconds: Optional[float] = None,
    loader: Optional[ContentIndexLoader] = None,
) -> LayerSource:
    """Instantiate the source matching ``spec.source.type``."""
    if spec.source.type is SourceType.EMBEDDED:
        return EmbeddedSource(spec, workspace_root=workspace_root, loader=loader)
    if spec.source.type is SourceType.LOCAL:
        return LocalSource(spec, workspace_root=workspace_root, loader=loader)
    if spec.source.type is SourceType.GIT:
        return GitSource(spec, git_cache=git_cache, max_age_seconds=git_ttl_seconds, loader=loader)
    raise ValueError(f"Unsupported source type: {spec.source.type}")


__all__ = ["LayerSource", "EmbeddedSource", "LocalSource", "GitSource", "create_source"]
