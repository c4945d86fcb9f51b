"""YAML frontmatter parsing utilities.

Knowledge files (topics, specialists) carry a YAML header delimited by
'---' markers at the start of the file.

Example:
    ```yaml
    ---
    title: "Caching strategies"
    domain: performance
    tags: [caching, latency]
    ---

    # Caching strategies
    ```
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict

import yaml


# Opening "---" line through the next line that is exactly "---".
FRONTMATTER_PATTERN = re.compile(
    r"\A---[ \t]*\n(.*?)^---[ \t]*$\n?",
    re.DOTALL | re.MULTILINE,
)


@dataclass
class ParsedDocument:
    """Result of parsing a document with YAML frontmatter.

    Attributes:
        frontmatter: Parsed YAML frontmatter as a dictionary
        content: The markdown content after the frontmatter
        raw_frontmatter: The raw YAML string (for debugging)
    """
    frontmatter: Dict[str, Any]
    content: str
    raw_frontmatter: str


def parse_frontmatter(content: str) -> ParsedDocument:
    """Parse YAML frontmatter from markdown content.

    Args:
        content: Full markdown content including frontmatter

    Returns:
        ParsedDocument with frontmatter dict, content, and raw YAML.
        A document without a header yields an empty frontmatter dict.

    Raises:
        ValueError: If the header is not valid YAML or not a mapping

    Example:
        >>> doc = parse_frontmatter('''---
        ... title: Caching
        ... ---
        ...
        ... # Caching
        ... ''')
        >>> doc.frontmatter['title']
        'Caching'
    """
    match = FRONTMATTER_PATTERN.match(content)

    if not match:
        return ParsedDocument(frontmatter={}, content=content, raw_frontmatter="")

    raw_yaml = match.group(1)
    remaining_content = content[match.end():]

    try:
        parsed = yaml.safe_load(raw_yaml)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in frontmatter: {e}") from e
    if parsed is None:
        parsed = {}
    if not isinstance(parsed, dict):
        raise ValueError(f"Frontmatter must be a YAML mapping, got {type(parsed).__name__}")

    return ParsedDocument(
        frontmatter=parsed,
        content=remaining_content,
        raw_frontmatter=raw_yaml,
    )


def format_frontmatter(data: Dict[str, Any], *, exclude_none: bool = True) -> str:
    """Format a dictionary as YAML frontmatter wrapped in '---' delimiters."""
    if exclude_none:
        data = {k: v for k, v in data.items() if v is not None}

    yaml_content = yaml.safe_dump(
        data,
        default_flow_style=False,
        allow_unicode=True,
        sort_keys=False,  # Preserve insertion order
    )

    return f"---\n{yaml_content}---\n"


def has_frontmatter(content: str) -> bool:
    """Check if content starts with a '---' frontmatter block."""
    return bool(FRONTMATTER_PATTERN.match(content))


__all__ = [
    "ParsedDocument",
    "parse_frontmatter",
    "format_frontmatter",
    "has_frontmatter",
    "FRONTMATTER_PATTERN",
]
