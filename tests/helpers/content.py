"""Writers for knowledge content used by loader and engine tests."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from strata.core.utils.text import format_frontmatter

from .io_utils import write_json, write_text, write_yaml


def write_topic(
    root: Path,
    rel: str,
    *,
    title: Optional[str] = None,
    body: str = "Body text.",
    tags: Iterable[str] = (),
    difficulty: Optional[str] = None,
    topic_dir: str = "domains",
    **extra: Any,
) -> Path:
    """Write ``<root>/<topic_dir>/<rel>.md`` with front-matter."""
    fm: Dict[str, Any] = {"title": title or Path(rel).stem, "tags": list(tags)}
    if difficulty:
        fm["difficulty"] = difficulty
    fm.update(extra)
    return write_text(root / topic_dir / f"{rel}.md", format_frontmatter(fm) + "\n" + body + "\n")


def write_specialist(root: Path, specialist_id: str, *, title: Optional[str] = None, **fields: Any) -> Path:
    fm: Dict[str, Any] = {"specialist_id": specialist_id, "title": title or specialist_id.title()}
    fm.update(fields)
    return write_text(root / "specialists" / f"{specialist_id}.md", format_frontmatter(fm) + "\n# Persona\n")


def write_workflow(root: Path, name: str, data: Dict[str, Any]) -> Path:
    return write_yaml(root / "workflows" / f"{name}.yaml", data)


def write_tag_index(root: Path, tag: str, topic_ids: Iterable[str]) -> Path:
    return write_json(root / "indexes" / "tags" / f"{tag}.json", list(topic_ids))


def write_manifest(root: Path, name: str, data: Any) -> Path:
    return write_json(root / "indexes" / f"{name}.json", data)
