"""Top-level modal CLI wiring, exit-code mapping, and logging setup."""

from __future__ import annotations

import os
import sys

import scriptconfig as scfg
from loguru import logger

from ..ci_env import system_failure_exit_code
from ..config import load
from ..errors import FusionCIError
from ._common import _cfg_path, log
from .config import ConfigModalCLI
from .prepare import PrepareCLI


class FusionCIModalCLI(scfg.ModalCLI):
    """GitLab custom executor stages backed by VMware Fusion guests."""

    config = ConfigModalCLI
    prepare = PrepareCLI


def main(argv: list[str] | None = None) -> None:
    verbosity = 1
    config_value = None
    if argv is None:
        argv = sys.argv[1:]
    if '--config' in argv:
        try:
            config_value = argv[argv.index('--config') + 1]
        except IndexError:
            pass
    try:
        verbosity = int(load(_cfg_path(config_value)).verbosity)
    except (FusionCIError, OSError, ValueError):
        verbosity = 1

    _setup_logging(_count_verbose(argv), verbosity)

    try:
        rc = FusionCIModalCLI.main(argv=argv, _noexit=True)
    except FusionCIError as ex:
        print(f'ERROR: {ex}', file=sys.stderr)
        log.error('{}: {}', type(ex).__name__, ex)
        sys.exit(system_failure_exit_code())
    except Exception as ex:
        print(f'ERROR: {ex}', file=sys.stderr)
        log.exception('Unhandled fusionci error: {}', ex)
        sys.exit(system_failure_exit_code())

    if any(flag in argv for flag in ('-h', '--help')):
        sys.exit(0)
    if isinstance(rc, int):
        sys.exit(rc)
    sys.exit(0)


def _setup_logging(args_verbose: int, cfg_verbosity: int) -> None:
    logger.remove()
    effective_verbosity = args_verbose if args_verbose > 0 else cfg_verbosity
    level = 'WARNING'
    if effective_verbosity == 1:
        level = 'INFO'
    elif effective_verbosity >= 2:
        level = 'DEBUG'
    colorize = sys.stderr.isatty() and os.getenv('NO_COLOR') is None
    logger.add(
        sys.stderr,
        level=level,
        colorize=colorize,
        format='<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>',
    )
    log.debug(
        'Logging configured at {} (effective_verbosity={}, colorize={})',
        level,
        effective_verbosity,
        colorize,
    )


def _count_verbose(argv: list[str]) -> int:
    count = 0
    for item in argv:
        if item == '--verbose':
            count += 1
        elif item.startswith('-') and not item.startswith('--'):
            short = item[1:]
            if short and set(short) <= {'v'}:
                count += len(short)
    return count
