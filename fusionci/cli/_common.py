from __future__ import annotations

import signal
from contextlib import contextmanager
from pathlib import Path

import scriptconfig as scfg
from loguru import logger

from ..cancel import CancelToken
from ..config import FusionCIConfig, config_path, load

log = logger


class _BaseCommand(scfg.DataConfig):
    """Base options shared by all stage commands."""

    config = scfg.Value(
        None,
        help='Path to config TOML (default: $FUSIONCI_CONFIG or the user config dir).',
    )
    verbose = scfg.Value(
        0,
        short_alias=['v'],
        isflag='counter',
        help='Increase verbosity (-v, -vv).',
    )
    vmrun_path = scfg.Value(
        '',
        help='Path to the vmrun executable (overrides paths.vmrun_path).',
    )
    images_dir = scfg.Value(
        '',
        help='Writable directory for linked clones (overrides paths.images_dir).',
    )


def _cfg_path(p: str | None) -> Path:
    return config_path(p)


def _load_cfg(args) -> FusionCIConfig:
    """Load the config file and apply the shared command-line overrides."""
    cfg = load(_cfg_path(args.config))
    if args.vmrun_path:
        cfg.paths.vmrun_path = str(args.vmrun_path)
    if args.images_dir:
        cfg.paths.images_dir = str(args.images_dir)
    return cfg.expanded_paths()


@contextmanager
def _cancel_on_signals(token: CancelToken):
    """Cancel ``token`` on SIGTERM/SIGINT while the block runs."""

    def _request_cancel(signum, frame):
        sig_name = signal.Signals(signum).name
        log.warning('{} received, cancelling', sig_name)
        token.cancel(sig_name)

    prev_sigterm = signal.signal(signal.SIGTERM, _request_cancel)
    prev_sigint = signal.signal(signal.SIGINT, _request_cancel)
    try:
        yield token
    finally:
        signal.signal(signal.SIGTERM, prev_sigterm)
        signal.signal(signal.SIGINT, prev_sigint)


__all__ = [name for name in globals() if not name.startswith('__')]
