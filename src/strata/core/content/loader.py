"""Content index loader.

Walks a layer directory and builds a ``LayerCatalog``. Layout::

    <root>/
      domains/<domain>/<topic>.md     topics (also topics/ and overrides/)
      domains/<domain>/samples/...    companion samples, never topics
      specialists/<id>.md             specialist personas
      workflows/<id>.yaml             workflow index entries (legacy: methodologies/)
      indexes/<id>.json|yaml          index manifests
      indexes/tags/<tag>.json         tag indexes (list of topic ids)

A malformed file never aborts the load: it is recorded on
``LayerCatalog.errors`` as ``"<relative path>: <message>"`` and skipped.
"""
from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import yaml

from strata.core.exceptions import ContentParseError
from strata.core.utils.io import read_text
from strata.core.utils.text import has_frontmatter, parse_frontmatter

from .models import IndexEntry, LayerCatalog, Specialist, Topic, TopicSample, WorkflowIndexEntry

logger = logging.getLogger(__name__)

TOPIC_DIRS = ("domains", "topics", "overrides")
WORKFLOW_DIRS = ("workflows", "methodologies")
SAMPLES_DIR = "samples"
SKIPPED_TOPIC_FILES = {"readme.md"}
_WHITESPACE = re.compile(r"\s+")


def normalize_topic_id(raw: str) -> str:
    """Lowercase, forward slashes, whitespace runs collapsed to ``-``."""
    value = str(raw).strip().replace("\\", "/")
    if value.lower().endswith(".md"):
        value = value[:-3]
    return _WHITESPACE.sub("-", value.strip("/")).lower()


def _title_from_stem(stem: str) -> str:
    text = _WHITESPACE.sub(" ", stem.replace("-", " ").replace("_", " ")).strip()
    return text[:1].upper() + text[1:]


def _as_tuple(value: Any, *, split: bool = True) -> Tuple[str, ...]:
    """Accept a list or (with ``split``) a comma-separated string; drop empties."""
    if value is None:
        return ()
    if isinstance(value, str) and not split:
        items: Iterable[Any] = [value]
    elif isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        items = [value]
    return tuple(str(v).strip() for v in items if str(v).strip())


def _sorted_files(directory: Path, patterns: Iterable[str], *, recursive: bool = False) -> List[Path]:
    if not directory.is_dir():
        return []
    found = set()
    for pattern in patterns:
        found.update(directory.rglob(pattern) if recursive else directory.glob(pattern))
    return sorted((p for p in found if p.is_file()), key=lambda p: p.relative_to(directory).as_posix())


class ContentIndexLoader:
    """Build a ``LayerCatalog`` from one layer root directory."""

    def load(self, root: Path) -> LayerCatalog:
        root = Path(root)
        catalog = LayerCatalog()
        self._load_topics(root, catalog)
        self._load_specialists(root, catalog)
        self._load_workflows(root, catalog)
        self._load_indexes(root, catalog)
        logger.debug(
            "Loaded %s: %d topics, %d specialists, %d workflows, %d indexes, %d errors",
            root,
            len(catalog.topics),
            len(catalog.specialists),
            len(catalog.workflows),
            len(catalog.indexes),
            len(catalog.errors),
        )
        return catalog

    # ---------- helpers ----------

    @staticmethod
    def _rel(root: Path, path: Path) -> str:
        try:
            return path.relative_to(root).as_posix()
        except ValueError:
            return path.as_posix()

    def _record(self, catalog: LayerCatalog, exc: ContentParseError) -> None:
        logger.debug("Skipping content file: %s", exc)
        catalog.errors.append(str(exc))

    def _add(self, catalog: LayerCatalog, kind: str, item: Any, rel: str, owners: Dict[str, str]) -> None:
        bucket = getattr(catalog, kind)
        if item.id in bucket:
            self._record(
                catalog,
                ContentParseError(f"duplicate id '{item.id}' (already defined by {owners[item.id]})", path=rel),
            )
            return
        bucket[item.id] = item
        owners[item.id] = rel

    def _read_document(self, root: Path, path: Path) -> Tuple[Dict[str, Any], str]:
        rel = self._rel(root, path)
        try:
            text = read_text(path)
        except (OSError, UnicodeDecodeError) as exc:
            raise ContentParseError(f"cannot read file: {exc}", path=rel) from exc
        if not has_frontmatter(text):
            raise ContentParseError("missing front-matter block", path=rel)
        try:
            doc = parse_frontmatter(text)
        except ValueError as exc:
            raise ContentParseError(str(exc), path=rel) from exc
        return doc.frontmatter, doc.content.strip()

    # ---------- topics ----------

    def _load_topics(self, root: Path, catalog: LayerCatalog) -> None:
        owners: Dict[str, str] = {}
        for dirname in TOPIC_DIRS:
            topic_dir = root / dirname
            for path in _sorted_files(topic_dir, ["*.md"], recursive=True):
                rel_to_dir = path.relative_to(topic_dir)
                if SAMPLES_DIR in rel_to_dir.parts[:-1] or path.name.lower() in SKIPPED_TOPIC_FILES:
                    continue
                try:
                    topic = self._parse_topic(root, topic_dir, path)
                except ContentParseError as exc:
                    self._record(catalog, exc)
                    continue
                self._add(catalog, "topics", topic, self._rel(root, path), owners)

    def _parse_topic(self, root: Path, topic_dir: Path, path: Path) -> Topic:
        rel = self._rel(root, path)
        fm, body = self._read_document(root, path)
        if not body:
            raise ContentParseError("topic body is empty", path=rel)

        rel_to_dir = path.relative_to(topic_dir)
        raw_id = fm.get("id")
        topic_id = normalize_topic_id(raw_id if raw_id else rel_to_dir.with_suffix("").as_posix())
        if not topic_id:
            raise ContentParseError("topic id is empty", path=rel)

        domains = _as_tuple(fm.get("domain") or fm.get("domains"))
        if not domains and len(rel_to_dir.parts) > 1:
            domains = (rel_to_dir.parts[0],)

        difficulty = fm.get("difficulty")
        return Topic(
            id=topic_id,
            title=str(fm.get("title") or _title_from_stem(path.stem)),
            domains=domains,
            tags=_as_tuple(fm.get("tags")),
            difficulty=str(difficulty).strip().lower() if difficulty else None,
            content=body,
            metadata=fm,
            path=rel,
            word_count=len(body.split()),
            samples=self._load_samples(root, path, fm.get("samples")),
        )

    def _load_samples(self, root: Path, topic_path: Path, declared: Any) -> Optional[TopicSample]:
        if declared:
            candidates = [topic_path.parent / str(declared)]
        else:
            candidates = sorted((topic_path.parent / SAMPLES_DIR).glob(f"{topic_path.stem}.*"))
        root_resolved = root.resolve()
        for candidate in candidates:
            try:
                resolved = candidate.resolve()
                resolved.relative_to(root_resolved)
            except (OSError, ValueError):
                continue
            if resolved.is_file():
                try:
                    return TopicSample(path=self._rel(root_resolved, resolved), content=read_text(resolved))
                except (OSError, UnicodeDecodeError):
                    # Samples are optional; an unreadable one is simply absent.
                    logger.debug("Unreadable sample file %s", resolved)
        return None

    # ---------- specialists ----------

    def _load_specialists(self, root: Path, catalog: LayerCatalog) -> None:
        owners: Dict[str, str] = {}
        for path in _sorted_files(root / "specialists", ["*.md"]):
            if path.name.lower() in SKIPPED_TOPIC_FILES:
                continue
            try:
                specialist = self._parse_specialist(root, path)
            except ContentParseError as exc:
                self._record(catalog, exc)
                continue
            self._add(catalog, "specialists", specialist, self._rel(root, path), owners)

    def _parse_specialist(self, root: Path, path: Path) -> Specialist:
        rel = self._rel(root, path)
        fm, body = self._read_document(root, path)
        missing = [k for k in ("specialist_id", "title") if not fm.get(k)]
        if missing:
            raise ContentParseError(f"missing required field(s): {', '.join(missing)}", path=rel)

        expertise = fm.get("expertise") if isinstance(fm.get("expertise"), Mapping) else {}
        persona = fm.get("persona") if isinstance(fm.get("persona"), Mapping) else {}
        collaboration = fm.get("collaboration") if isinstance(fm.get("collaboration"), Mapping) else {}
        emoji = str(fm.get("emoji") or "🤖")
        return Specialist(
            id=str(fm["specialist_id"]).strip(),
            title=str(fm["title"]),
            content=body,
            path=rel,
            emoji=emoji,
            role=str(fm.get("role") or "Specialist"),
            team=str(fm.get("team") or "General"),
            persona={
                "personality": list(_as_tuple(persona.get("personality"), split=False)),
                "communication_style": str(persona.get("communication_style") or ""),
                "greeting": str(persona.get("greeting") or f"{emoji} Hello!"),
            },
            primary_expertise=_as_tuple(expertise.get("primary")),
            secondary_expertise=_as_tuple(expertise.get("secondary")),
            domains=_as_tuple(fm.get("domains")),
            when_to_use=_as_tuple(fm.get("when_to_use"), split=False),
            collaboration={
                "natural_handoffs": list(_as_tuple(collaboration.get("natural_handoffs"))),
                "team_consultations": list(_as_tuple(collaboration.get("team_consultations"))),
            },
            related_specialists=_as_tuple(fm.get("related_specialists")),
        )

    # ---------- workflows ----------

    def _load_workflows(self, root: Path, catalog: LayerCatalog) -> None:
        owners: Dict[str, str] = {}
        for dirname in WORKFLOW_DIRS:
            for path in _sorted_files(root / dirname, ["*.yaml", "*.yml"]):
                try:
                    entry = self._parse_workflow(root, path)
                except ContentParseError as exc:
                    self._record(catalog, exc)
                    continue
                self._add(catalog, "workflows", entry, self._rel(root, path), owners)

    def _parse_workflow(self, root: Path, path: Path) -> WorkflowIndexEntry:
        rel = self._rel(root, path)
        data = self._read_structured(path, rel)
        if not isinstance(data, Mapping):
            raise ContentParseError("workflow file must contain a mapping", path=rel)
        workflow_id = str(data.get("id") or data.get("workflow_id") or path.stem).strip()
        phases: List[str] = []
        for phase in data.get("phases") or []:
            if isinstance(phase, Mapping):
                name = phase.get("id") or phase.get("name") or phase.get("title")
                if name:
                    phases.append(str(name))
            elif phase:
                phases.append(str(phase))
        return WorkflowIndexEntry(
            id=workflow_id,
            title=str(data.get("title") or data.get("name") or _title_from_stem(path.stem)),
            description=str(data.get("description") or "").strip(),
            path=rel,
            phases=tuple(phases),
            metadata=dict(data),
        )

    # ---------- indexes ----------

    @staticmethod
    def _read_structured(path: Path, rel: str) -> Any:
        try:
            text = read_text(path)
        except (OSError, UnicodeDecodeError) as exc:
            raise ContentParseError(f"cannot read file: {exc}", path=rel) from exc
        try:
            if path.suffix.lower() == ".json":
                return json.loads(text)
            return yaml.safe_load(text)
        except json.JSONDecodeError as exc:
            raise ContentParseError(f"invalid JSON: {exc}", path=rel) from exc
        except yaml.YAMLError as exc:
            raise ContentParseError(f"invalid YAML: {exc}", path=rel) from exc

    def _load_indexes(self, root: Path, catalog: LayerCatalog) -> None:
        owners: Dict[str, str] = {}
        index_dir = root / "indexes"
        for path in _sorted_files(index_dir, ["*.json", "*.yaml", "*.yml"]):
            rel = self._rel(root, path)
            try:
                data = self._read_structured(path, rel)
            except ContentParseError as exc:
                self._record(catalog, exc)
                continue
            self._add(catalog, "indexes", IndexEntry(id=path.stem, kind="manifest", data=data, path=rel), rel, owners)

        for path in _sorted_files(index_dir / "tags", ["*.json"]):
            rel = self._rel(root, path)
            try:
                data = self._read_structured(path, rel)
                if not isinstance(data, list) or not all(isinstance(t, str) for t in data):
                    raise ContentParseError("tag index must be a JSON list of topic ids", path=rel)
            except ContentParseError as exc:
                self._record(catalog, exc)
                continue
            tag = path.stem
            entry = IndexEntry(
                id=f"tag:{tag}",
                kind="tag",
                data={"tag": tag, "topics": [normalize_topic_id(t) for t in data], "count": len(data)},
                path=rel,
            )
            self._add(catalog, "indexes", entry, rel, owners)


__all__ = ["ContentIndexLoader", "normalize_topic_id", "TOPIC_DIRS"]
