"""Config dataclasses plus TOML load/save for the fusionci stages."""

from __future__ import annotations

import os
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path

import ubelt as ub

from .errors import PreconditionFailure
from .util import expand

DEFAULT_VMRUN_PATH = '/Applications/VMware Fusion.app/Contents/Library/vmrun'
CONFIG_ENV_VAR = 'FUSIONCI_CONFIG'


def _default_images_dir() -> str:
    return str(ub.Path.appdir('fusionci', type='data') / 'images')


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str

    def __repr__(self) -> str:
        return f'Credentials(username={self.username!r}, password=***)'


@dataclass
class PathsConfig:
    vmrun_path: str = DEFAULT_VMRUN_PATH
    images_dir: str = field(default_factory=_default_images_dir)


@dataclass
class SSHConfig:
    username: str = 'buildbot'
    password: str = 'Time2Build'
    port: int = 22
    connect_timeout_s: int = 10

    def credentials(self) -> Credentials:
        return Credentials(self.username, self.password)


@dataclass
class ReadinessConfig:
    """How long to keep probing SSH before giving up.

    The last of ``max_attempts`` iterations never connects; it only fails.
    """

    max_attempts: int = 60
    interval_s: float = 60


@dataclass
class PrepareConfig:
    gui: bool = False
    # 0 disables the overall deadline.
    deadline_s: float = 0


@dataclass
class FusionCIConfig:
    paths: PathsConfig = field(default_factory=PathsConfig)
    ssh: SSHConfig = field(default_factory=SSHConfig)
    readiness: ReadinessConfig = field(default_factory=ReadinessConfig)
    prepare: PrepareConfig = field(default_factory=PrepareConfig)
    verbosity: int = 1

    def expanded_paths(self) -> 'FusionCIConfig':
        self.paths.vmrun_path = expand(self.paths.vmrun_path)
        self.paths.images_dir = expand(self.paths.images_dir)
        return self

    def validate(self) -> 'FusionCIConfig':
        if int(self.readiness.max_attempts) < 1:
            raise PreconditionFailure(
                f'readiness.max_attempts must be >= 1 (got {self.readiness.max_attempts})'
            )
        if float(self.readiness.interval_s) < 0:
            raise PreconditionFailure(
                f'readiness.interval_s must be >= 0 (got {self.readiness.interval_s})'
            )
        if float(self.prepare.deadline_s) < 0:
            raise PreconditionFailure(
                f'prepare.deadline_s must be >= 0 (got {self.prepare.deadline_s})'
            )
        if not str(self.ssh.username).strip():
            raise PreconditionFailure('ssh.username must not be empty')
        return self


_SECTIONS = ('paths', 'ssh', 'readiness', 'prepare')


def config_path(p: str | None = None) -> Path:
    if p:
        return Path(expand(p)).resolve()
    env = os.environ.get(CONFIG_ENV_VAR, '').strip()
    if env:
        return Path(expand(env)).resolve()
    return Path(ub.Path.appdir('fusionci', type='config') / 'config.toml')


def _toml_escape(s: str) -> str:
    return s.replace('\\', '\\\\').replace('"', '\\"')


def dump_toml(cfg: FusionCIConfig) -> str:
    d = asdict(cfg)
    lines: list[str] = []
    # Top-level keys must precede the first table header.
    if d.get('verbosity', 1) != 1:
        lines.append(f'verbosity = {d["verbosity"]}')
        lines.append('')
    for section, body in d.items():
        if isinstance(body, dict):
            lines.append(f'[{section}]')
            for k, v in body.items():
                if isinstance(v, bool):
                    lines.append(f"{k} = {'true' if v else 'false'}")
                elif isinstance(v, (int, float)):
                    lines.append(f'{k} = {v}')
                else:
                    lines.append(f'{k} = "{_toml_escape(str(v))}"')
            lines.append('')
    return '\n'.join(lines).rstrip() + '\n'


def loads(text: str) -> FusionCIConfig:
    try:
        raw = tomllib.loads(text)
    except tomllib.TOMLDecodeError as ex:
        raise PreconditionFailure(f'Invalid config TOML: {ex}') from ex
    cfg = FusionCIConfig()
    for section in _SECTIONS:
        if section in raw and isinstance(raw[section], dict):
            obj = getattr(cfg, section)
            for k, v in raw[section].items():
                if hasattr(obj, k):
                    setattr(obj, k, v)
    if 'verbosity' in raw:
        cfg.verbosity = raw['verbosity']
    return cfg


def load(path: Path) -> FusionCIConfig:
    """Load config from ``path``; a missing file yields the defaults."""
    if not path.exists():
        return FusionCIConfig()
    return loads(path.read_text(encoding='utf-8'))


def save(path: Path, cfg: FusionCIConfig) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dump_toml(cfg), encoding='utf-8')
