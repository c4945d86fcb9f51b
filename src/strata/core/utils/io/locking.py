"""File locking utilities for serializing access to shared on-disk state."""
from __future__ import annotations

import fcntl
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .core import ensure_directory

_THREAD_MUTEXES: dict[str, threading.Lock] = {}
_THREAD_MUTEXES_GUARD = threading.Lock()

DEFAULT_LOCK_TIMEOUT_SECONDS = 30.0
DEFAULT_POLL_INTERVAL_SECONDS = 0.05


class LockTimeoutError(TimeoutError):
    """Raised when an OS file lock cannot be acquired within timeout."""


def _thread_mutex(path: Path) -> threading.Lock:
    key = str(path.resolve())
    with _THREAD_MUTEXES_GUARD:
        lock = _THREAD_MUTEXES.get(key)
        if lock is None:
            lock = _THREAD_MUTEXES.setdefault(key, threading.Lock())
    return lock


def _validate_positive(name: str, value: float) -> None:
    if value <= 0:
        raise ValueError(f"{name} must be positive (got {value})")


@contextmanager
def acquire_file_lock(
    file_path: Path | str,
    timeout: Optional[float] = None,
    *,
    poll_interval: Optional[float] = None,
) -> Iterator[object]:
    """Acquire an exclusive lock on ``<file_path>.lock`` with a timeout.

    Two levels of exclusion are held for the duration of the context:
    a per-path ``threading.Lock`` (threads of this process) and
    ``fcntl.flock`` on a sidecar ``.lock`` file (other processes).

    Args:
        file_path: Target path; the sidecar ``<file_path>.lock`` is locked.
        timeout: Maximum seconds to wait before raising ``LockTimeoutError``.
        poll_interval: Sleep duration between non-blocking attempts.

    Yields:
        The opened sidecar file object, kept locked for the duration of the context.
    """
    effective_timeout = timeout if timeout is not None else DEFAULT_LOCK_TIMEOUT_SECONDS
    effective_poll_interval = (
        poll_interval if poll_interval is not None else DEFAULT_POLL_INTERVAL_SECONDS
    )
    _validate_positive("timeout", effective_timeout)
    _validate_positive("poll_interval", effective_poll_interval)

    start = time.monotonic()
    target = Path(file_path)
    lock_target = target.with_name(target.name + ".lock")
    ensure_directory(lock_target.parent)

    mutex = _thread_mutex(lock_target)
    if not mutex.acquire(timeout=effective_timeout):
        raise LockTimeoutError(f"Could not acquire lock on {target} within {effective_timeout}s")

    try:
        fh = open(lock_target, "a+")
        try:
            while True:
                try:
                    fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except OSError:
                    if (time.monotonic() - start) >= effective_timeout:
                        raise LockTimeoutError(
                            f"Could not acquire lock on {target} within {effective_timeout}s"
                        )
                    time.sleep(effective_poll_interval)
            try:
                yield fh
            finally:
                fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
        finally:
            fh.close()
    finally:
        mutex.release()


__all__ = ["acquire_file_lock", "LockTimeoutError", "DEFAULT_LOCK_TIMEOUT_SECONDS"]
