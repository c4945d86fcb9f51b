from __future__ import annotations

"""Subprocess helpers with bounded timeouts.

This module provides safe subprocess execution with:
- Mandatory timeouts, enforced by killing the whole process group
- A git wrapper that never prompts for credentials
- No shell=True (security)
"""

import logging
import os
import shlex
import signal
import subprocess
from pathlib import Path
from time import perf_counter
from typing import Any, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60.0


def _flatten_cmd(cmd: Any) -> Sequence[str]:
    if isinstance(cmd, (list, tuple)):
        return [str(p) for p in cmd]
    return shlex.split(str(cmd))


def _popen_process_group_kwargs() -> dict[str, Any]:
    if os.name == "posix":
        return {"start_new_session": True}
    if os.name == "nt":
        creationflags = getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", None)
        if isinstance(creationflags, int):
            return {"creationflags": creationflags}
    return {}


def _terminate_process_group(proc: subprocess.Popen[Any]) -> None:
    if proc.poll() is not None:
        return
    if os.name == "posix":
        try:
            os.killpg(proc.pid, signal.SIGTERM)
        except OSError:
            proc.terminate()
        try:
            proc.wait(timeout=0.2)
        except subprocess.TimeoutExpired:
            pass
        if proc.poll() is None:
            try:
                os.killpg(proc.pid, signal.SIGKILL)
            except OSError:
                proc.kill()
        try:
            proc.wait(timeout=0.2)
        except subprocess.TimeoutExpired:
            pass
        return

    proc.kill()
    try:
        proc.wait(timeout=0.2)
    except subprocess.TimeoutExpired:
        pass


def _run_capture_output_nohang(cmd: Any, *, timeout: float, **kwargs: Any) -> subprocess.CompletedProcess:
    argv = list(_flatten_cmd(cmd))
    input_value = kwargs.pop("input", None)
    cwd = kwargs.pop("cwd", None)
    env = kwargs.pop("env", None)
    text = bool(kwargs.pop("text", True))
    check = bool(kwargs.pop("check", False))
    kwargs.pop("capture_output", None)

    proc = subprocess.Popen(
        argv,
        cwd=cwd,
        env=env,
        stdin=subprocess.PIPE if input_value is not None else subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=text,
        **_popen_process_group_kwargs(),
    )
    try:
        stdout, stderr = proc.communicate(input=input_value, timeout=timeout)
    except subprocess.TimeoutExpired as exc:
        # Kill the whole group: git spawns helpers (remote-https, ssh) that
        # would otherwise keep the pipes open.
        _terminate_process_group(proc)
        try:
            stdout, stderr = proc.communicate(timeout=0.2)
        except (subprocess.TimeoutExpired, ValueError):
            stdout = getattr(exc, "output", None)
            stderr = getattr(exc, "stderr", None)
        raise subprocess.TimeoutExpired(argv, timeout, output=stdout, stderr=stderr) from None

    completed = subprocess.CompletedProcess(
        argv,
        proc.returncode if proc.returncode is not None else 0,
        stdout=stdout,
        stderr=stderr,
    )
    if check and completed.returncode != 0:
        raise subprocess.CalledProcessError(
            completed.returncode,
            argv,
            output=stdout,
            stderr=stderr,
        )
    return completed


def run_with_timeout(cmd, timeout: Optional[float] = None, **kwargs):
    """Run a subprocess with a bounded timeout.

    Args:
        cmd: Command list/str passed through to ``subprocess``.
        timeout: Seconds before the process group is killed
            (defaults to ``DEFAULT_TIMEOUT_SECONDS``).
        **kwargs: Additional arguments forwarded to ``subprocess.run``.

    Returns:
        CompletedProcess.

    Raises:
        subprocess.TimeoutExpired: When the command exceeds its timeout.
    """
    effective_timeout = float(timeout) if timeout is not None else DEFAULT_TIMEOUT_SECONDS
    start = perf_counter()

    capture_output = bool(kwargs.get("capture_output", False))
    try:
        if capture_output and "stdout" not in kwargs and "stderr" not in kwargs:
            result = _run_capture_output_nohang(cmd, timeout=effective_timeout, **kwargs)
        else:
            result = subprocess.run(cmd, timeout=effective_timeout, **kwargs)
    except subprocess.TimeoutExpired:
        logger.debug(
            "subprocess timed out after %.1fs: %s", effective_timeout, " ".join(_flatten_cmd(cmd))
        )
        raise

    logger.debug(
        "subprocess finished rc=%s in %.1fms: %s",
        getattr(result, "returncode", None),
        (perf_counter() - start) * 1000.0,
        " ".join(_flatten_cmd(cmd)),
    )
    return result


def run_git_command(
    cmd: Sequence[str],
    *,
    cwd: Optional[Path | str] = None,
    env: Optional[Mapping[str, str]] = None,
    timeout: Optional[float] = None,
    capture_output: bool = True,
    text: bool = True,
    check: bool = False,
) -> subprocess.CompletedProcess:
    """
    Run a git command that can never block on an interactive prompt.

    ``GIT_TERMINAL_PROMPT=0`` is always set so a missing credential fails
    fast instead of waiting for input until the timeout fires.

    Args:
        cmd: Git command sequence to execute (starting with ``git``)
        cwd: Working directory (Path or str)
        env: Extra environment variables layered over ``os.environ``
        timeout: Timeout in seconds
        capture_output: Capture stdout/stderr
        text: Return output as text instead of bytes
        check: Raise CalledProcessError on non-zero exit

    Returns:
        CompletedProcess
    """
    full_env = dict(os.environ)
    if env:
        full_env.update(env)
    full_env["GIT_TERMINAL_PROMPT"] = "0"
    full_env.setdefault("GIT_ASKPASS", "")
    full_env.setdefault("SSH_ASKPASS", "")

    return run_with_timeout(
        list(cmd),
        timeout=timeout,
        cwd=str(cwd) if cwd is not None else None,
        env=full_env,
        capture_output=capture_output,
        text=text,
        check=check,
    )


__all__ = ["run_with_timeout", "run_git_command", "DEFAULT_TIMEOUT_SECONDS"]
