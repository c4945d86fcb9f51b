"""Local mirrors of remote git repositories.

Each (url, branch) pair gets one shallow working copy under the cache root::

    <cache_root>/<cache_key>/        the mirror (read-only working tree)
    <cache_root>/<cache_key>.json    GitCacheEntry metadata (no secrets)
    <cache_root>/<cache_key>.lock    advisory lock serializing syncs

The first sync clones into a temporary directory and renames it into place,
so a failed clone never leaves a half-written mirror. Later syncs fetch the
branch and hard-reset the working tree onto it.
"""
from __future__ import annotations

import hashlib
import logging
import os
import shutil
import subprocess
import tempfile
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from strata.core.exceptions import AuthenticationError, GitSyncError, LayerSourceError, NetworkError
from strata.core.utils.io import LockTimeoutError, acquire_file_lock, ensure_directory, read_json, write_json_atomic
from strata.core.utils.subprocess import run_git_command

from .auth import build_git_env, remediation_for
from .urls import normalize_git_url, redact_url, repo_slug, strip_credentials

if TYPE_CHECKING:
    from strata.core.config.model import AuthSpec

logger = logging.getLogger(__name__)

DEFAULT_GIT_TIMEOUT_SECONDS = 120.0

AUTH_FAILURE_PATTERNS = (
    "authentication failed",
    "could not read username",
    "could not read password",
    "terminal prompts disabled",
    "invalid username or password",
    "http basic: access denied",
    "permission denied (publickey",
    "host key verification failed",
    "the requested url returned error: 401",
    "the requested url returned error: 403",
    "returned error: 401",
    "returned error: 403",
)

NETWORK_FAILURE_PATTERNS = (
    "could not resolve host",
    "unable to access",
    "failed to connect",
    "connection refused",
    "connection timed out",
    "operation timed out",
    "network is unreachable",
    "does not appear to be a git repository",
    "could not read from remote repository",
    "early eof",
    "the remote end hung up unexpectedly",
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class GitCacheEntry:
    url: str
    branch: str
    cache_key: str
    local_path: str
    last_sync_at: Optional[str] = None
    last_success_at: Optional[str] = None
    last_sync_ok: bool = False
    last_sync_message: str = ""
    commit: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GitCacheEntry":
        fields = cls.__dataclass_fields__
        return cls(**{k: v for k, v in data.items() if k in fields})

    def success_age_seconds(self) -> Optional[float]:
        if not self.last_success_at:
            return None
        try:
            then = datetime.fromisoformat(self.last_success_at)
        except ValueError:
            return None
        return (_now() - then).total_seconds()


@dataclass
class GitSyncResult:
    local_path: Path
    success: bool
    action: str
    cache_key: str
    stale: bool = False
    commit: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["local_path"] = str(self.local_path)
        return out


def classify_git_failure(stderr: str, *, operation: str, url: str, auth: Optional["AuthSpec"] = None) -> LayerSourceError:
    """Map git's stderr to the matching ``LayerSourceError`` subclass.

    Authentication patterns are checked first: over ssh a rejected key also
    prints the generic "Could not read from remote repository" line.
    """
    text = (stderr or "").strip()
    low = text.lower()
    safe_url = redact_url(url)
    detail = text.splitlines()[-1] if text else "no error output"
    context = {"url": safe_url, "operation": operation}
    if any(p in low for p in AUTH_FAILURE_PATTERNS):
        return AuthenticationError(
            f"git {operation} of {safe_url} was rejected: {detail}",
            remediation=remediation_for(auth),
            context=context,
        )
    if any(p in low for p in NETWORK_FAILURE_PATTERNS):
        return NetworkError(f"git {operation} could not reach {safe_url}: {detail}", context=context)
    return GitSyncError(f"git {operation} of {safe_url} failed: {detail}", context=context)


class GitSyncCache:
    """Clone-or-pull cache of remote repositories.

    Args:
        cache_root: Directory holding mirrors and their metadata.
        timeout: Seconds allowed per git subprocess.
        lock_timeout: Seconds to wait for another sync of the same key.
    """

    def __init__(
        self,
        cache_root: Path,
        *,
        timeout: float = DEFAULT_GIT_TIMEOUT_SECONDS,
        lock_timeout: Optional[float] = None,
    ) -> None:
        self.cache_root = Path(cache_root)
        self.timeout = float(timeout)
        self.lock_timeout = lock_timeout

    # ---------- keys & metadata ----------

    @staticmethod
    def cache_key_for(url: str, branch: str = "main") -> str:
        """``<repo-slug>-<sha256(normalized url + "#" + branch)[:16]>``."""
        digest = hashlib.sha256(f"{normalize_git_url(url)}#{branch}".encode("utf-8")).hexdigest()[:16]
        return f"{repo_slug(url)}-{digest}"

    def _metadata_path(self, cache_key: str) -> Path:
        return self.cache_root / f"{cache_key}.json"

    def entry(self, cache_key: str) -> Optional[GitCacheEntry]:
        """Return the persisted metadata for ``cache_key``, if any."""
        try:
            data = read_json(self._metadata_path(cache_key), default=None)
        except ValueError:
            logger.warning("Ignoring corrupt git cache metadata for %s", cache_key)
            return None
        if not isinstance(data, dict):
            return None
        return GitCacheEntry.from_dict(data)

    def is_stale(self, cache_key: str, max_age_seconds: float) -> bool:
        """True when the last successful sync is missing or older than ``max_age_seconds``."""
        entry = self.entry(cache_key)
        age = entry.success_age_seconds() if entry else None
        return age is None or age > max_age_seconds

    def _record(
        self,
        cache_key: str,
        url: str,
        branch: str,
        *,
        ok: bool,
        message: str,
        commit: Optional[str] = None,
    ) -> None:
        previous = self.entry(cache_key)
        now = _now().isoformat()
        entry = GitCacheEntry(
            url=strip_credentials(url),
            branch=branch,
            cache_key=cache_key,
            local_path=str(self.cache_root / cache_key),
            last_sync_at=now,
            last_success_at=now if ok else (previous.last_success_at if previous else None),
            last_sync_ok=ok,
            last_sync_message=message,
            commit=commit if commit else (previous.commit if previous else None),
        )
        write_json_atomic(self._metadata_path(cache_key), entry.to_dict())

    # ---------- sync ----------

    def sync(
        self,
        url: str,
        branch: str = "main",
        auth: Optional["AuthSpec"] = None,
        cache_key: Optional[str] = None,
        *,
        max_age_seconds: Optional[float] = None,
    ) -> GitSyncResult:
        """Make ``<cache_root>/<cache_key>`` match ``branch`` of ``url``.

        Returns:
            GitSyncResult. A failed pull with an existing mirror returns
            ``success=True, stale=True`` and the error message.

        Raises:
            AuthenticationError: missing credentials or rejected by the remote.
            NetworkError: remote unreachable (or timed out) and no mirror exists.
            GitSyncError: any other git failure with no mirror to fall back to.
        """
        key = cache_key or self.cache_key_for(url, branch)
        local = self.cache_root / key
        ensure_directory(self.cache_root)

        try:
            with acquire_file_lock(local, timeout=self.lock_timeout):
                try:
                    env = build_git_env(auth, url)
                    result = self._sync_locked(url, branch, auth, key, local, env, max_age_seconds)
                except LayerSourceError as exc:
                    self._record(key, url, branch, ok=False, message=str(exc))
                    raise
                if result.action != "cached":
                    self._record(
                        key,
                        url,
                        branch,
                        ok=not result.stale,
                        message=result.error or f"{result.action} ok",
                        commit=result.commit,
                    )
                return result
        except LockTimeoutError as exc:
            raise GitSyncError(str(exc), context={"url": redact_url(url), "cache_key": key}) from exc

    def _sync_locked(
        self,
        url: str,
        branch: str,
        auth: Optional["AuthSpec"],
        key: str,
        local: Path,
        env: Dict[str, str],
        max_age_seconds: Optional[float],
    ) -> GitSyncResult:
        if (local / ".git").exists():
            if max_age_seconds is not None and not self.is_stale(key, max_age_seconds):
                logger.debug("git cache %s is fresh; skipping network", key)
                return GitSyncResult(local, True, "cached", key, commit=self._head(local))
            try:
                self._pull(url, branch, auth, local, env)
            except AuthenticationError:
                raise
            except (NetworkError, GitSyncError) as exc:
                logger.warning("Using stale mirror for %s: %s", redact_url(url), exc)
                return GitSyncResult(local, True, "pull", key, stale=True, commit=self._head(local), error=str(exc))
            return GitSyncResult(local, True, "pull", key, commit=self._head(local))

        if local.exists():
            # Leftover without a .git directory; not a usable mirror.
            shutil.rmtree(local)
        self._clone(url, branch, auth, local, env)
        return GitSyncResult(local, True, "clone", key, commit=self._head(local))

    def _run(
        self,
        args: List[str],
        *,
        operation: str,
        url: str,
        auth: Optional["AuthSpec"],
        env: Dict[str, str],
        cwd: Optional[Path] = None,
    ) -> subprocess.CompletedProcess:
        try:
            proc = run_git_command(["git", *args], cwd=cwd, env=env, timeout=self.timeout)
        except subprocess.TimeoutExpired as exc:
            raise NetworkError(
                f"git {operation} of {redact_url(url)} timed out after {self.timeout:.0f}s",
                context={"url": redact_url(url), "operation": operation},
            ) from exc
        except FileNotFoundError as exc:
            raise GitSyncError("git executable not found on PATH") from exc
        if proc.returncode != 0:
            raise classify_git_failure(proc.stderr, operation=operation, url=url, auth=auth)
        return proc

    def _clone(self, url: str, branch: str, auth: Optional["AuthSpec"], local: Path, env: Dict[str, str]) -> None:
        tmp = Path(tempfile.mkdtemp(prefix=f".{local.name}-", dir=str(self.cache_root)))
        logger.info("Cloning %s (%s)", redact_url(url), branch)
        try:
            self._run(
                ["clone", "--depth", "1", "--single-branch", "--branch", branch, "--", url, str(tmp)],
                operation="clone",
                url=url,
                auth=auth,
                env=env,
            )
            os.replace(tmp, local)
        except BaseException:
            shutil.rmtree(tmp, ignore_errors=True)
            raise

    def _pull(self, url: str, branch: str, auth: Optional["AuthSpec"], local: Path, env: Dict[str, str]) -> None:
        logger.debug("Updating %s (%s)", redact_url(url), branch)
        self._run(
            ["fetch", "--depth", "1", "origin", branch],
            operation="fetch",
            url=url,
            auth=auth,
            env=env,
            cwd=local,
        )
        self._run(["reset", "--hard", "FETCH_HEAD"], operation="reset", url=url, auth=auth, env=env, cwd=local)

    def _head(self, local: Path) -> Optional[str]:
        try:
            proc = run_git_command(["git", "rev-parse", "HEAD"], cwd=local, timeout=self.timeout)
        except (subprocess.TimeoutExpired, OSError):
            return None
        if proc.returncode != 0:
            return None
        return proc.stdout.strip() or None

    # ---------- maintenance ----------

    def clear(self, cache_key: Optional[str] = None) -> List[str]:
        """Delete one mirror (or all of them) with its metadata. Returns cleared keys."""
        if not self.cache_root.is_dir():
            return []
        if cache_key is not None:
            keys = [cache_key]
        else:
            keys = sorted(p.stem for p in self.cache_root.glob("*.json"))
            keys += sorted(
                p.name
                for p in self.cache_root.iterdir()
                if p.is_dir() and not p.name.startswith(".") and p.name not in keys
            )
        cleared: List[str] = []
        for key in keys:
            local = self.cache_root / key
            with acquire_file_lock(local, timeout=self.lock_timeout):
                existed = local.exists() or self._metadata_path(key).exists()
                shutil.rmtree(local, ignore_errors=True)
                self._metadata_path(key).unlink(missing_ok=True)
            if existed:
                cleared.append(key)
        return cleared


__all__ = [
    "GitSyncCache",
    "GitSyncResult",
    "GitCacheEntry",
    "classify_git_failure",
    "DEFAULT_GIT_TIMEOUT_SECONDS",
]
