"""Shared utility helpers for subprocess execution, paths, and command formatting."""

from __future__ import annotations

import os
import shlex
import signal
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence

from loguru import logger

log = logger

# How often a running command checks whether it has been cancelled.
CANCEL_POLL_S = 0.2


@dataclass(frozen=True)
class CmdResult:
    code: int
    stdout: str
    stderr: str


class CmdError(RuntimeError):
    def __init__(self, cmd: Sequence[str] | str, result: CmdResult):
        self.cmd = cmd
        self.result = result
        super().__init__(
            f'Command failed (code={result.code}): {cmd}\n{result.stderr}'.strip()
        )


class CmdTimeout(CmdError):
    """Raised when a command outlives the timeout it was given."""


class CmdCancelled(CmdError):
    """Raised when a command is stopped because its caller was cancelled."""


def shell_join(cmd: Sequence[str]) -> str:
    return ' '.join(shlex.quote(c) for c in cmd)


def run_cmd(
    cmd: Sequence[str],
    *,
    check: bool = True,
    capture: bool = True,
    text: bool = True,
    timeout: Optional[float] = None,
    env: Optional[dict[str, str]] = None,
    cancelled: Optional[Callable[[], bool]] = None,
) -> CmdResult:
    """Run ``cmd`` to completion and return its exit code and output.

    When ``cancelled`` is given it is polled while the command runs; once it
    returns True the command's process group is stopped and
    :class:`CmdCancelled` is raised.
    """
    log.opt(depth=1).debug('RUN: {}', shell_join(cmd))
    try:
        if cancelled is None:
            p = subprocess.run(
                list(cmd),
                capture_output=capture,
                text=text,
                timeout=timeout,
                env=env,
            )
            code, out, err = p.returncode, p.stdout, p.stderr
        else:
            code, out, err = _run_cancellable(
                cmd, capture=capture, text=text, timeout=timeout, env=env,
                cancelled=cancelled,
            )
    except subprocess.TimeoutExpired as ex:
        # 124 mirrors coreutils timeout(1).
        res = CmdResult(124, '', f'timed out after {ex.timeout}s')
        log.opt(depth=1).error(
            'Command timed out after {}s cmd={}', ex.timeout, shell_join(cmd)
        )
        raise CmdTimeout(shell_join(cmd), res) from ex
    res = CmdResult(code, out or '', err or '')
    if check and code != 0:
        log.opt(depth=1).error(
            'Command failed code={} cmd={} stderr={} stdout={}',
            code,
            shell_join(cmd),
            res.stderr.strip(),
            res.stdout.strip(),
        )
        raise CmdError(shell_join(cmd), res)
    if code == 0:
        log.opt(depth=1).debug('Command ok code=0 cmd={}', shell_join(cmd))
    return res


def _run_cancellable(
    cmd: Sequence[str],
    *,
    capture: bool,
    text: bool,
    timeout: Optional[float],
    env: Optional[dict[str, str]],
    cancelled: Callable[[], bool],
) -> tuple[int, str, str]:
    pipe = subprocess.PIPE if capture else None
    # A new session lets us stop the command together with its children.
    proc = subprocess.Popen(
        list(cmd),
        stdout=pipe,
        stderr=pipe,
        text=text,
        env=env,
        start_new_session=True,
    )
    end = None if timeout is None else time.monotonic() + float(timeout)
    while True:
        step = CANCEL_POLL_S
        if end is not None:
            step = max(0.0, min(step, end - time.monotonic()))
        try:
            out, err = proc.communicate(timeout=step)
            return proc.returncode, out, err
        except subprocess.TimeoutExpired:
            pass
        if cancelled():
            out, err = _stop(proc)
            res = CmdResult(-signal.SIGTERM, out or '', err or 'cancelled')
            log.warning('Command cancelled cmd={}', shell_join(cmd))
            raise CmdCancelled(shell_join(cmd), res)
        if end is not None and time.monotonic() >= end:
            _stop(proc)
            raise subprocess.TimeoutExpired(list(cmd), timeout)


def _stop(proc: subprocess.Popen, grace_s: float = 5.0):
    """Terminate the process group of ``proc``, escalating to SIGKILL."""
    try:
        os.killpg(proc.pid, signal.SIGTERM)
    except ProcessLookupError:
        pass
    try:
        return proc.communicate(timeout=grace_s)
    except subprocess.TimeoutExpired:
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        return proc.communicate()


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def expand(path: str) -> str:
    return os.path.expandvars(os.path.expanduser(path))


def is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


def is_writable_dir(path: Path) -> bool:
    return path.is_dir() and os.access(path, os.W_OK | os.X_OK)
