from __future__ import annotations

import sys

import scriptconfig as scfg

from ..config import FusionCIConfig, dump_toml, save
from ._common import _BaseCommand, _cfg_path, _load_cfg


class InitCLI(_BaseCommand):
    """Write a config file with default settings."""

    force = scfg.Value(
        False,
        isflag=True,
        help='Overwrite an existing config file.',
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        path = _cfg_path(args.config)
        if path.exists() and not args.force:
            print(f'Config already exists: {path}', file=sys.stderr)
            print('Use --force to overwrite it.', file=sys.stderr)
            return 2
        cfg = FusionCIConfig()
        if args.vmrun_path:
            cfg.paths.vmrun_path = str(args.vmrun_path)
        if args.images_dir:
            cfg.paths.images_dir = str(args.images_dir)
        save(path, cfg)
        print(f'Wrote config: {path}')
        return 0


class ConfigShowCLI(_BaseCommand):
    """Show the resolved config (file plus command-line overrides)."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        print(dump_toml(_load_cfg(args)), end='')
        return 0


class ConfigPathCLI(_BaseCommand):
    """Print the config file location."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        print(_cfg_path(args.config))
        return 0


class ConfigModalCLI(scfg.ModalCLI):
    """Config file management commands."""

    init = InitCLI
    path = ConfigPathCLI
    show = ConfigShowCLI
