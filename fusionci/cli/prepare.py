"""CLI command for the custom executor's prepare stage."""

from __future__ import annotations

from pathlib import Path

import scriptconfig as scfg

from ..cancel import CancelToken
from ..ci_env import CIJobEnv
from ..config import Credentials
from ..errors import PreconditionFailure
from ..prepare import PrepareJob, prepare
from ._common import _BaseCommand, _cancel_on_signals, _load_cfg, log


class PrepareCLI(_BaseCommand):
    """
    Create the clean and isolated guest a job will run in.

    Snapshots the base guest (if necessary), makes a linked clone of that
    snapshot (if necessary), reverts the clone to its clean snapshot (or
    takes it on first use), starts the clone, waits for VMware Tools to
    report its IP and for SSH to accept the configured credentials.

    Meant to be called from the runner's ``prepare_exec``, see
    https://docs.gitlab.com/runner/executors/custom.html#prepare
    """

    base_vm_path = scfg.Value(
        None,
        position=1,
        help='Path to the base VMware Fusion guest (.vmx).',
    )
    gui = scfg.Value(
        False,
        isflag=True,
        help='Start the guest with a graphical console.',
    )
    ssh_username = scfg.Value(
        '',
        help='User to authenticate as over SSH (overrides ssh.username).',
    )
    ssh_password = scfg.Value(
        '',
        help='Password to authenticate with over SSH (overrides ssh.password).',
    )
    runner_id = scfg.Value(
        '',
        help='Runner id (default: $CUSTOM_ENV_CI_RUNNER_ID).',
    )
    concurrent_id = scfg.Value(
        '',
        help='Concurrency slot (default: $CUSTOM_ENV_CI_CONCURRENT_PROJECT_ID).',
    )
    deadline_s = scfg.Value(
        None,
        type=float,
        help='Abort provisioning after this many seconds (overrides prepare.deadline_s; 0 disables).',
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args)
        if args.ssh_username:
            cfg.ssh.username = str(args.ssh_username)
        if args.ssh_password:
            cfg.ssh.password = str(args.ssh_password)
        if args.gui:
            cfg.prepare.gui = True
        if args.deadline_s is not None:
            cfg.prepare.deadline_s = float(args.deadline_s)
        cfg.validate()

        if not args.base_vm_path:
            raise PreconditionFailure('A base guest path is required.')
        job = CIJobEnv.from_environ(
            runner_id=str(args.runner_id or ''),
            concurrent_id=str(args.concurrent_id or ''),
        )
        req = PrepareJob(
            base_image=Path(str(args.base_vm_path)).expanduser(),
            vmrun_path=Path(cfg.paths.vmrun_path),
            images_dir=Path(cfg.paths.images_dir),
            job=job,
            credentials=Credentials(cfg.ssh.username, cfg.ssh.password),
            readiness=cfg.readiness,
            gui=bool(cfg.prepare.gui),
            ssh_port=int(cfg.ssh.port),
            ssh_timeout_s=float(cfg.ssh.connect_timeout_s),
        )
        token = CancelToken(deadline_s=float(cfg.prepare.deadline_s) or None)
        with _cancel_on_signals(token):
            result = prepare(req, token=token)
        log.debug('Prepare result: {}', result.as_dict())
        return 0
