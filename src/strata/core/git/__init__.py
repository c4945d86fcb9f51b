"""Git mirror cache and credential handling for remote layers."""
from __future__ import annotations

from .cache import GitCacheEntry, GitSyncCache, GitSyncResult, classify_git_failure
from .urls import normalize_git_url, redact_url

__all__ = [
    "GitCacheEntry",
    "GitSyncCache",
    "GitSyncResult",
    "classify_git_failure",
    "normalize_git_url",
    "redact_url",
]
