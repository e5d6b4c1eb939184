"""Deterministic names for per-runner linked clones and their snapshots."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .ci_env import CIJobEnv
from .guest import GuestHandle


@dataclass(frozen=True)
class CloneIdentity:
    """Names derived from (base image, runner, concurrency slot).

    Example:
        >>> ident = CloneIdentity('macos-builder', '7', '3')
        >>> ident.clone_name
        'macos-builder-runner-7-concurrent-3'
        >>> ident.base_snapshot_name
        'base-snapshot-macos-builder-runner-7-concurrent-3'
    """

    base_name: str
    runner_id: str
    concurrent_id: str

    @classmethod
    def for_base(cls, base: GuestHandle, job: CIJobEnv) -> 'CloneIdentity':
        return cls(base.name, job.runner_id, job.concurrent_id)

    @property
    def clone_name(self) -> str:
        return (
            f'{self.base_name}-runner-{self.runner_id}'
            f'-concurrent-{self.concurrent_id}'
        )

    @property
    def base_snapshot_name(self) -> str:
        return f'base-snapshot-{self.clone_name}'

    @property
    def clone_snapshot_name(self) -> str:
        return self.clone_name

    def image_path(self, images_dir: Path) -> Path:
        name = self.clone_name
        return Path(images_dir) / f'{name}.vmwarevm' / f'{name}.vmx'
