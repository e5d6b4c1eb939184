"""Command adapters for VMware Fusion's ``vmrun`` control tool."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

from .util import CmdCancelled, CmdError, CmdTimeout, run_cmd

HOST_TYPE = 'fusion'

Cancelled = Optional[Callable[[], bool]]


def vmrun_cmd(vmrun: Path | str, *args: str) -> list[str]:
    return [str(vmrun), '-T', HOST_TYPE, *args]


def parse_snapshot_list(stdout: str) -> list[str]:
    """Parse ``vmrun listSnapshots`` output.

    Example:
        >>> parse_snapshot_list('Total snapshots: 2\\nbase\\nclean\\n')
        ['base', 'clean']
        >>> parse_snapshot_list('Total snapshots: 0\\n')
        []
    """
    names = []
    for line in stdout.splitlines():
        line = line.strip()
        if not line or line.lower().startswith('total snapshots'):
            continue
        names.append(line)
    return names


def list_snapshots(
    vmrun: Path | str,
    image: Path,
    *,
    timeout: Optional[float] = None,
    cancelled: Cancelled = None,
) -> list[str]:
    res = run_cmd(
        vmrun_cmd(vmrun, 'listSnapshots', str(image)),
        check=True,
        timeout=timeout,
        cancelled=cancelled,
    )
    return parse_snapshot_list(res.stdout)


def create_snapshot(
    vmrun: Path | str,
    image: Path,
    name: str,
    *,
    timeout: Optional[float] = None,
    cancelled: Cancelled = None,
) -> None:
    run_cmd(
        vmrun_cmd(vmrun, 'snapshot', str(image), name),
        check=True,
        timeout=timeout,
        cancelled=cancelled,
    )


def clone_linked(
    vmrun: Path | str,
    image: Path,
    dest: Path,
    name: str,
    snapshot: str,
    *,
    timeout: Optional[float] = None,
    cancelled: Cancelled = None,
) -> None:
    run_cmd(
        vmrun_cmd(
            vmrun,
            'clone',
            str(image),
            str(dest),
            'linked',
            f'-snapshot={snapshot}',
            f'-cloneName={name}',
        ),
        check=True,
        timeout=timeout,
        cancelled=cancelled,
    )


def revert_to_snapshot(
    vmrun: Path | str,
    image: Path,
    name: str,
    *,
    timeout: Optional[float] = None,
    cancelled: Cancelled = None,
) -> None:
    run_cmd(
        vmrun_cmd(vmrun, 'revertToSnapshot', str(image), name),
        check=True,
        timeout=timeout,
        cancelled=cancelled,
    )


def start(
    vmrun: Path | str,
    image: Path,
    *,
    gui: bool = False,
    timeout: Optional[float] = None,
    cancelled: Cancelled = None,
) -> None:
    run_cmd(
        vmrun_cmd(vmrun, 'start', str(image), 'gui' if gui else 'nogui'),
        check=True,
        timeout=timeout,
        cancelled=cancelled,
    )


def guest_ip(
    vmrun: Path | str,
    image: Path,
    *,
    timeout: Optional[float] = None,
    cancelled: Cancelled = None,
) -> Optional[str]:
    """Block until VMware Tools reports an address; None if it never does."""
    try:
        res = run_cmd(
            vmrun_cmd(vmrun, 'getGuestIPAddress', str(image), '-wait'),
            check=True,
            timeout=timeout,
            cancelled=cancelled,
        )
    except (CmdTimeout, CmdCancelled):
        raise
    except CmdError:
        return None
    ip = res.stdout.strip()
    if not ip or ip.lower().startswith('error'):
        return None
    return ip.splitlines()[0].strip()
