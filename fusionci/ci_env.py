"""Identifiers the GitLab custom executor exports to each stage."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import PreconditionFailure

RUNNER_ID_VAR = 'CUSTOM_ENV_CI_RUNNER_ID'
CONCURRENT_ID_VAR = 'CUSTOM_ENV_CI_CONCURRENT_PROJECT_ID'
SYSTEM_FAILURE_VAR = 'SYSTEM_FAILURE_EXIT_CODE'
DEFAULT_SYSTEM_FAILURE_EXIT_CODE = 2


@dataclass(frozen=True)
class CIJobEnv:
    runner_id: str
    concurrent_id: str

    @classmethod
    def from_environ(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        *,
        runner_id: str = '',
        concurrent_id: str = '',
    ) -> 'CIJobEnv':
        """Read job identifiers, preferring explicit overrides."""
        env = os.environ if environ is None else environ
        runner = str(runner_id or env.get(RUNNER_ID_VAR, '')).strip()
        slot = str(concurrent_id or env.get(CONCURRENT_ID_VAR, '')).strip()
        if not runner:
            raise PreconditionFailure(
                f'{RUNNER_ID_VAR} is not set; is this running under the GitLab custom executor?'
            )
        if not slot:
            raise PreconditionFailure(
                f'{CONCURRENT_ID_VAR} is not set; is this running under the GitLab custom executor?'
            )
        return cls(runner_id=runner, concurrent_id=slot)


def system_failure_exit_code(environ: Optional[Mapping[str, str]] = None) -> int:
    env = os.environ if environ is None else environ
    raw = str(env.get(SYSTEM_FAILURE_VAR, '')).strip()
    try:
        code = int(raw)
    except ValueError:
        return DEFAULT_SYSTEM_FAILURE_EXIT_CODE
    # A failure must never exit as success.
    return code if code > 0 else DEFAULT_SYSTEM_FAILURE_EXIT_CODE
