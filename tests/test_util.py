from __future__ import annotations

import subprocess
import threading
import time
from pathlib import Path

import pytest

from fusionci.util import (
    CmdCancelled,
    CmdError,
    CmdTimeout,
    is_executable,
    is_writable_dir,
    shell_join,
)
from fusionci.util import run_cmd as _run_cmd


def test_shell_join_quotes() -> None:
    cmd = ['vmrun', '-T', 'fusion', 'start', '/vms/a b.vmx']
    s = shell_join(cmd)
    assert "'/vms/a b.vmx'" in s
    assert s.startswith('vmrun')


def test_run_cmd_success_and_failure() -> None:
    ok = _run_cmd(['bash', '-lc', 'printf ok'], check=True, capture=True)
    assert ok.code == 0
    assert ok.stdout == 'ok'
    bad = _run_cmd(['bash', '-lc', 'exit 7'], check=False, capture=True)
    assert bad.code == 7
    with pytest.raises(CmdError):
        _run_cmd(['bash', '-lc', 'exit 9'], check=True, capture=True)


def test_run_cmd_timeout_raises_cmd_timeout(monkeypatch) -> None:
    def fake_run(cmd, **kwargs):
        raise subprocess.TimeoutExpired(cmd, kwargs['timeout'])

    monkeypatch.setattr('fusionci.util.subprocess.run', fake_run)
    with pytest.raises(CmdTimeout) as info:
        _run_cmd(['sleep', '10'], timeout=0.5)
    assert isinstance(info.value, CmdError)
    assert info.value.result.code == 124


def test_run_cmd_passes_timeout(monkeypatch) -> None:
    seen = {}

    class P:
        returncode = 0
        stdout = ''
        stderr = ''

    def fake_run(cmd, **kwargs):
        seen.update(kwargs)
        return P()

    monkeypatch.setattr('fusionci.util.subprocess.run', fake_run)
    _run_cmd(['true'], timeout=3.0)
    assert seen['timeout'] == 3.0


def test_run_cmd_cancellable_completes_normally() -> None:
    res = _run_cmd(['sh', '-c', 'printf ok'], cancelled=lambda: False)
    assert res.code == 0
    assert res.stdout == 'ok'
    with pytest.raises(CmdError):
        _run_cmd(['sh', '-c', 'exit 3'], cancelled=lambda: False)


def test_run_cmd_cancel_kills_child_and_its_children() -> None:
    stop = threading.Event()
    timer = threading.Timer(0.3, stop.set)
    timer.start()
    start = time.monotonic()
    try:
        with pytest.raises(CmdCancelled) as info:
            _run_cmd(['sh', '-c', 'sleep 8; echo late'], cancelled=stop.is_set)
    finally:
        timer.cancel()
    assert time.monotonic() - start < 5
    assert 'late' not in info.value.result.stdout


def test_run_cmd_cancellable_honors_timeout() -> None:
    start = time.monotonic()
    with pytest.raises(CmdTimeout):
        _run_cmd(['sleep', '8'], timeout=0.3, cancelled=lambda: False)
    assert time.monotonic() - start < 5


def test_path_predicates(tmp_path: Path) -> None:
    exe = tmp_path / 'tool'
    exe.write_text('#!/bin/sh\n', encoding='utf-8')
    exe.chmod(0o644)
    assert is_executable(exe) is False
    exe.chmod(0o755)
    assert is_executable(exe) is True
    assert is_executable(tmp_path) is False
    assert is_writable_dir(tmp_path) is True
    assert is_writable_dir(exe) is False
    assert is_writable_dir(tmp_path / 'missing') is False
