"""Git repository helpers for sync tests."""
from __future__ import annotations

from pathlib import Path

from strata.core.utils.subprocess import run_with_timeout

_IDENTITY = ["-c", "user.email=test@example.com", "-c", "user.name=Test User", "-c", "commit.gpgsign=false"]


def git(repo_path: Path, *args: str) -> str:
    result = run_with_timeout(["git", *_IDENTITY, *args], cwd=repo_path, check=True, capture_output=True, text=True)
    return result.stdout.strip()


def git_init(repo_path: Path, branch: str = "main") -> Path:
    """Initialize a git repository.

    Args:
        repo_path: Path to repository
        branch: Initial branch name
    """
    repo_path.mkdir(parents=True, exist_ok=True)
    git(repo_path, "init", "-b", branch)
    return repo_path


def git_commit(repo_path: Path, message: str) -> str:
    """Stage everything and commit. Returns the new HEAD sha."""
    git(repo_path, "add", "-A")
    git(repo_path, "commit", "-m", message)
    return git(repo_path, "rev-parse", "HEAD")
