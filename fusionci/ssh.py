"""Password-authenticated SSH round trip used as the readiness probe."""

from __future__ import annotations

import paramiko
from loguru import logger

from .config import Credentials

log = logger

NOOP_COMMAND = 'echo -n 2>&1'


def probe_ssh(
    host: str,
    creds: Credentials,
    *,
    port: int = 22,
    timeout: float = 10,
    command: str = NOOP_COMMAND,
) -> int:
    """Open a fresh session, authenticate, run ``command``, return its exit status.

    Connection and authentication problems propagate as
    ``paramiko.SSHException`` / ``OSError``; callers decide whether those
    are fatal.
    """
    cli = paramiko.SSHClient()
    cli.set_missing_host_key_policy(paramiko.AutoAddPolicy())
    try:
        cli.connect(
            host,
            port=port,
            username=creds.username,
            password=creds.password,
            timeout=timeout,
            banner_timeout=timeout,
            auth_timeout=timeout,
            look_for_keys=False,
            allow_agent=False,
        )
        _, stdout, _ = cli.exec_command(command, timeout=timeout)
        code = stdout.channel.recv_exit_status()
        log.debug('SSH probe {}@{}:{} exit={}', creds.username, host, port, code)
        return code
    finally:
        cli.close()
