"""Shared fixtures: a stateful fake of the vmrun control tool."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
from loguru import logger

from fusionci.util import CmdError, CmdResult


class FakeVMRun:
    """Models snapshots per ``.vmx`` and clone images on disk."""

    def __init__(self) -> None:
        self.snapshots: dict[str, list[str]] = {}
        self.calls: list[list[str]] = []
        self.ip = '192.168.56.10'
        self.fail: dict[str, CmdResult] = {}

    def verbs(self) -> list[str]:
        return [c[3] for c in self.calls]

    def mutating_verbs(self) -> list[str]:
        return [v for v in self.verbs() if v != 'listSnapshots']

    def __call__(self, cmd, **kwargs) -> CmdResult:
        cmd = list(cmd)
        self.calls.append(cmd)
        assert cmd[1:3] == ['-T', 'fusion']
        verb, image = cmd[3], cmd[4]
        if verb in self.fail:
            res = self.fail[verb]
            if kwargs.get('check', True) and res.code != 0:
                raise CmdError(cmd, res)
            return res
        snaps = self.snapshots.setdefault(image, [])
        if verb == 'listSnapshots':
            out = f'Total snapshots: {len(snaps)}\n' + ''.join(
                f'{s}\n' for s in snaps
            )
            return CmdResult(0, out, '')
        if verb == 'snapshot':
            snaps.append(cmd[5])
            return CmdResult(0, '', '')
        if verb == 'clone':
            dest = Path(cmd[5])
            assert cmd[6] == 'linked'
            dest.parent.mkdir(parents=True, exist_ok=True)
            dest.write_text('.encoding = "UTF-8"\n', encoding='utf-8')
            self.snapshots[str(dest)] = []
            return CmdResult(0, '', '')
        if verb in ('revertToSnapshot', 'start'):
            return CmdResult(0, '', '')
        if verb == 'getGuestIPAddress':
            return CmdResult(0, f'{self.ip}\n' if self.ip else '', '')
        raise AssertionError(f'unexpected vmrun verb: {verb}')


@pytest.fixture
def fake_vmrun(monkeypatch) -> FakeVMRun:
    fake = FakeVMRun()
    monkeypatch.setattr('fusionci.vmrun.run_cmd', fake)
    return fake


@pytest.fixture
def vmrun_bin(tmp_path: Path) -> Path:
    exe = tmp_path / 'bin' / 'vmrun'
    exe.parent.mkdir()
    exe.write_text('#!/bin/sh\nexit 0\n', encoding='utf-8')
    exe.chmod(0o755)
    return exe


@pytest.fixture
def base_image(tmp_path: Path) -> Path:
    vmx = tmp_path / 'base' / 'macos-builder.vmwarevm' / 'macos-builder.vmx'
    vmx.parent.mkdir(parents=True)
    vmx.write_text('.encoding = "UTF-8"\n', encoding='utf-8')
    return vmx


@pytest.fixture
def images_dir(tmp_path: Path) -> Path:
    d = tmp_path / 'images'
    d.mkdir()
    return d


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    # cli.main swaps the loguru sinks; put the default one back.
    logger.remove()
    logger.add(sys.stderr)
