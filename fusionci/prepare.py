"""Prepare stage: turn a base guest into a running, SSH-ready, freshly reverted clone.

Pipeline::

    ensure base snapshot -> ensure linked clone -> revert (or bootstrap)
    clone baseline -> start -> wait for IP -> wait for SSH

Every stage before boot is idempotent, so a crashed run can simply be
invoked again. Nothing is rolled back on failure.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from loguru import logger

from .cancel import CancelToken
from .ci_env import CIJobEnv
from .config import Credentials, ReadinessConfig
from .errors import PreconditionFailure, ProvisioningFailure, ReadinessTimeout
from .guest import GuestHandle
from .naming import CloneIdentity
from .results import PrepareResult
from .ssh import probe_ssh
from .util import is_executable, is_writable_dir

log = logger

Probe = Callable[[str, Credentials], int]


class RestoreBranch(str, enum.Enum):
    REVERT = 'revert'
    CREATE = 'create'


def should_create_snapshot(exists: bool) -> bool:
    return not exists


def should_clone(path_exists: bool) -> bool:
    return not path_exists


def choose_restore_branch(exists: bool) -> RestoreBranch:
    return RestoreBranch.REVERT if exists else RestoreBranch.CREATE


def _say(message: str) -> None:
    # Narration goes to stdout so it lands in the CI job log.
    print(message, flush=True)


def validate_preconditions(
    vmrun_path: Path, images_dir: Path, base_image: Optional[Path] = None
) -> None:
    if not is_executable(Path(vmrun_path)):
        log.error('{} is not executable.', vmrun_path)
        raise PreconditionFailure(f'{vmrun_path} is not executable.')
    if not is_writable_dir(Path(images_dir)):
        log.error('{} does not exist or is not writable.', images_dir)
        raise PreconditionFailure(
            f'{images_dir} does not exist or is not a writable directory.'
        )
    if base_image is not None and not Path(base_image).exists():
        log.error('{} does not exist.', base_image)
        raise PreconditionFailure(f'Base guest {base_image} does not exist.')


def ensure_snapshot(
    guest: GuestHandle, name: str, *, token: Optional[CancelToken] = None
) -> bool:
    """Create snapshot ``name`` unless it exists. Returns True if created."""
    if not should_create_snapshot(guest.has_snapshot(name, token)):
        log.info('Snapshot {} already present on {}', name, guest.name)
        return False
    _say(f'Creating snapshot "{name}" in guest "{guest.name}"...')
    guest.snapshot(name, token)
    return True


def ensure_clone(
    base: GuestHandle,
    target: Path,
    name: str,
    parent_snapshot: str,
    *,
    token: Optional[CancelToken] = None,
) -> tuple[GuestHandle, bool]:
    """Linked-clone ``base`` into ``target`` unless an image is already there.

    Returns the clone handle and whether a clone was performed.
    """
    target = Path(target)
    if not should_clone(target.exists()):
        log.info('Reusing existing clone image {}', target)
        return GuestHandle(target, base.executable), False
    _say(
        f'Cloning from snapshot "{parent_snapshot}" in base guest '
        f'"{base.name}" to "{name}"...'
    )
    return base.clone(target, name, parent_snapshot, token), True


def restore_or_bootstrap(
    clone: GuestHandle, baseline: str, *, token: Optional[CancelToken] = None
) -> RestoreBranch:
    branch = choose_restore_branch(clone.has_snapshot(baseline, token))
    if branch is RestoreBranch.REVERT:
        _say(f'Restoring guest "{clone.name}" from snapshot "{baseline}"...')
        clone.revert(baseline, token)
    else:
        _say(f'Creating snapshot "{baseline}" in guest "{clone.name}"...')
        clone.snapshot(baseline, token)
    return branch


def boot_and_wait_for_ip(
    clone: GuestHandle, *, gui: bool = False, token: Optional[CancelToken] = None
) -> str:
    _say(f'Starting guest "{clone.name}"...')
    clone.start(gui, token)
    _say(f'Waiting for guest "{clone.name}" to become responsive...')
    ip = clone.ip(token)
    if not ip:
        raise ProvisioningFailure(
            f'Guest {clone.name!r} did not report an IP address via VMware Tools.'
        )
    log.info('Guest {} has IP {}', clone.name, ip)
    return ip


def wait_for_ssh(
    ip: str,
    creds: Credentials,
    policy: ReadinessConfig,
    *,
    token: Optional[CancelToken] = None,
    probe: Probe = probe_ssh,
) -> int:
    """Poll until an authenticated no-op command exits 0.

    Iteration ``max_attempts`` is a guard that fails without connecting,
    so at most ``max_attempts - 1`` probes run. Returns the number of the
    successful attempt.
    """
    token = token or CancelToken()
    max_attempts = int(policy.max_attempts)
    for attempt in range(1, max_attempts + 1):
        token.check()
        if attempt == max_attempts:
            raise ReadinessTimeout(
                f'SSH on {ip} did not accept {creds.username!r} after '
                f'{max_attempts - 1} attempts.'
            )
        try:
            code = probe(ip, creds)
        except Exception as ex:
            # Any failure to connect, authenticate or run only means "not yet".
            log.opt(exception=ex).debug(
                'SSH attempt {} on {} failed: {!r}', attempt, ip, ex
            )
            code = None
        if code == 0:
            log.info('SSH is ready on {} (attempt {})', ip, attempt)
            return attempt
        log.debug(
            'SSH not ready on {} (attempt {}/{}, exit={}); retrying in {}s',
            ip,
            attempt,
            max_attempts,
            code,
            policy.interval_s,
        )
        token.sleep(policy.interval_s)
    raise ReadinessTimeout(f'SSH readiness budget for {ip} is empty.')


@dataclass
class PrepareJob:
    base_image: Path
    vmrun_path: Path
    images_dir: Path
    job: CIJobEnv
    credentials: Credentials
    readiness: ReadinessConfig = field(default_factory=ReadinessConfig)
    gui: bool = False
    ssh_port: int = 22
    ssh_timeout_s: float = 10


def prepare(
    req: PrepareJob,
    *,
    token: Optional[CancelToken] = None,
    probe: Optional[Probe] = None,
) -> PrepareResult:
    token = token or CancelToken()
    if probe is None:

        def probe(host: str, creds: Credentials) -> int:
            return probe_ssh(
                host, creds, port=req.ssh_port, timeout=req.ssh_timeout_s
            )

    validate_preconditions(req.vmrun_path, req.images_dir, req.base_image)
    log.info('Prepare stage is starting.')
    log.debug('The base guest is {}', req.base_image)

    base = GuestHandle(Path(req.base_image), Path(req.vmrun_path))
    ident = CloneIdentity.for_base(base, req.job)
    target = ident.image_path(Path(req.images_dir))
    result = PrepareResult(clone_name=ident.clone_name, clone_image=str(target))

    token.check()
    result.created_base_snapshot = ensure_snapshot(
        base, ident.base_snapshot_name, token=token
    )
    token.check()
    clone, result.cloned = ensure_clone(
        base, target, ident.clone_name, ident.base_snapshot_name, token=token
    )
    token.check()
    result.restore_branch = restore_or_bootstrap(
        clone, ident.clone_snapshot_name, token=token
    ).value
    token.check()
    result.ip = boot_and_wait_for_ip(clone, gui=req.gui, token=token)
    result.attempts = wait_for_ssh(
        result.ip, req.credentials, req.readiness, token=token, probe=probe
    )
    return result
