"""Text helpers."""
from __future__ import annotations

from .frontmatter import ParsedDocument, format_frontmatter, has_frontmatter, parse_frontmatter

__all__ = ["ParsedDocument", "parse_frontmatter", "format_frontmatter", "has_frontmatter"]
