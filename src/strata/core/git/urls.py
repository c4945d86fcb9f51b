"""Git remote URL parsing, normalization and redaction."""
from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

SUPPORTED_SCHEMES = ("https", "http", "ssh", "git", "file")

# user@host:path (scp-like ssh syntax)
_SCP_LIKE = re.compile(r"^(?:(?P<user>[^@/\s]+)@)?(?P<host>[^:/\s]+):(?P<path>[^/\\].*)$")

KNOWN_HOSTS = {
    "github.com": "github",
    "gitlab.com": "gitlab",
    "dev.azure.com": "azure",
    "ssh.dev.azure.com": "azure",
    "bitbucket.org": "bitbucket",
}


@dataclass(frozen=True)
class GitUrl:
    raw: str
    scheme: str
    host: str
    path: str
    port: Optional[int] = None
    username: Optional[str] = None
    has_password: bool = False
    scp_like: bool = False


def parse_git_url(url: str) -> Optional[GitUrl]:
    """Parse ``url`` into its parts, or ``None`` when it is not a git remote.

    Accepts ``scheme://`` URLs with a supported scheme, scp-like
    ``user@host:path`` and absolute local paths (treated as ``file``).
    """
    url = (url or "").strip()
    if not url:
        return None
    if "://" in url:
        parts = urlsplit(url)
        scheme = parts.scheme.lower()
        if scheme not in SUPPORTED_SCHEMES:
            return None
        if scheme != "file" and not parts.hostname:
            return None
        try:
            port = parts.port
        except ValueError:
            return None
        return GitUrl(
            raw=url,
            scheme=scheme,
            host=(parts.hostname or "").lower(),
            path=parts.path,
            port=port,
            username=parts.username,
            has_password=parts.password is not None,
        )
    if os.path.isabs(url):
        return GitUrl(raw=url, scheme="file", host="", path=url)
    m = _SCP_LIKE.match(url)
    if m:
        return GitUrl(
            raw=url,
            scheme="ssh",
            host=m.group("host").lower(),
            path=m.group("path"),
            username=m.group("user"),
            scp_like=True,
        )
    return None


def _strip_suffixes(path: str) -> str:
    path = path.rstrip("/")
    if path.endswith(".git"):
        path = path[: -len(".git")]
    return path.rstrip("/")


def normalize_git_url(url: str) -> str:
    """Canonical form used for cache keys and duplicate detection.

    Credentials are dropped, the host is lowercased and trailing ``/`` and
    ``.git`` are removed.
    """
    parsed = parse_git_url(url)
    if parsed is None:
        return _strip_suffixes(url.strip())
    if parsed.scp_like:
        return f"{parsed.host}:{_strip_suffixes(parsed.path)}"
    if parsed.scheme == "file":
        return f"file://{_strip_suffixes(parsed.path)}"
    netloc = parsed.host if parsed.port is None else f"{parsed.host}:{parsed.port}"
    return urlunsplit((parsed.scheme, netloc, _strip_suffixes(parsed.path), "", ""))


def strip_credentials(url: str) -> str:
    """Return ``url`` without any userinfo (user, password or token)."""
    if "://" not in (url or ""):
        return url
    parts = urlsplit(url)
    if parts.username is None and parts.password is None:
        return url
    host = parts.hostname or ""
    if parts.port is not None:
        host = f"{host}:{parts.port}"
    return urlunsplit((parts.scheme, host, parts.path, parts.query, parts.fragment))


def redact_url(url: str) -> str:
    """Replace any password/token embedded in ``url`` with ``***``."""
    if "://" not in (url or ""):
        return url
    parts = urlsplit(url)
    if parts.username is None and parts.password is None:
        return url
    host = parts.hostname or ""
    if parts.port is not None:
        host = f"{host}:{parts.port}"
    userinfo = "***" if parts.password is None else f"{parts.username}:***"
    return urlunsplit((parts.scheme, f"{userinfo}@{host}", parts.path, parts.query, parts.fragment))


def repo_slug(url: str) -> str:
    """Filesystem-safe name of the repository (last path segment)."""
    parsed = parse_git_url(url)
    path = _strip_suffixes(parsed.path if parsed else url)
    tail = re.split(r"[/\\:]", path)[-1] if path else ""
    slug = re.sub(r"[^A-Za-z0-9._-]+", "-", tail).strip("-.").lower()
    return slug or "repo"


def host_kind(host: str) -> str:
    """Classify a host as ``github``, ``gitlab``, ``azure``, ``bitbucket`` or ``other``."""
    host = (host or "").lower()
    if host in KNOWN_HOSTS:
        return KNOWN_HOSTS[host]
    if host.endswith(".visualstudio.com"):
        return "azure"
    if host.startswith("gitlab.") or ".gitlab." in host:
        return "gitlab"
    if host.startswith("github.") or host.endswith(".ghe.com"):
        return "github"
    return "other"


__all__ = [
    "GitUrl",
    "SUPPORTED_SCHEMES",
    "parse_git_url",
    "normalize_git_url",
    "redact_url",
    "strip_credentials",
    "repo_slug",
    "host_kind",
]
