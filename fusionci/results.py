"""Result dataclasses reported by the prepare stage."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class PrepareResult:
    clone_name: str
    clone_image: str
    ip: str = ''
    created_base_snapshot: bool = False
    cloned: bool = False
    restore_branch: str = ''
    attempts: int = 0

    def as_dict(self) -> dict[str, object]:
        return {
            'clone_name': self.clone_name,
            'clone_image': self.clone_image,
            'ip': self.ip,
            'created_base_snapshot': self.created_base_snapshot,
            'cloned': self.cloned,
            'restore_branch': self.restore_branch,
            'attempts': self.attempts,
        }
