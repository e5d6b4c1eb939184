from __future__ import annotations

import socket

import paramiko
import pytest

from fusionci.cancel import CancelToken
from fusionci.config import Credentials, ReadinessConfig
from fusionci.errors import DeadlineExceeded, ProvisioningCancelled, ReadinessTimeout
from fusionci.prepare import wait_for_ssh

CREDS = Credentials('buildbot', 'Time2Build')


class ScriptedProbe:
    """Returns (or raises) the scripted outcomes in order."""

    def __init__(self, outcomes) -> None:
        self.outcomes = list(outcomes)
        self.calls = []

    def __call__(self, host, creds):
        self.calls.append((host, creds))
        out = self.outcomes[len(self.calls) - 1]
        if isinstance(out, BaseException):
            raise out
        return out


def _token_with_recorded_sleeps():
    token = CancelToken()
    sleeps = []
    token.sleep = sleeps.append
    return token, sleeps


@pytest.mark.parametrize('k', [1, 2, 30, 59])
def test_early_exit_after_exactly_k_attempts(k) -> None:
    probe = ScriptedProbe([1] * (k - 1) + [0] + [0] * 100)
    token, sleeps = _token_with_recorded_sleeps()
    attempt = wait_for_ssh(
        '10.0.0.5', CREDS, ReadinessConfig(), token=token, probe=probe
    )
    assert attempt == k
    assert len(probe.calls) == k
    assert sleeps == [60] * (k - 1)
    assert probe.calls[0] == ('10.0.0.5', CREDS)


def test_exhaustion_never_makes_final_attempt() -> None:
    probe = ScriptedProbe([255] * 100)
    token, sleeps = _token_with_recorded_sleeps()
    with pytest.raises(ReadinessTimeout):
        wait_for_ssh('10.0.0.5', CREDS, ReadinessConfig(), token=token, probe=probe)
    assert len(probe.calls) == 59
    assert len(sleeps) == 59


def test_connection_errors_count_as_not_ready() -> None:
    probe = ScriptedProbe(
        [
            paramiko.ssh_exception.NoValidConnectionsError(
                {('10.0.0.5', 22): ConnectionRefusedError()}
            ),
            paramiko.AuthenticationException('auth failed'),
            socket.timeout('timed out'),
            EOFError(),
            0,
        ]
    )
    token, sleeps = _token_with_recorded_sleeps()
    attempt = wait_for_ssh(
        '10.0.0.5', CREDS, ReadinessConfig(), token=token, probe=probe
    )
    assert attempt == 5
    assert len(sleeps) == 4


def test_arbitrary_errors_count_as_not_ready() -> None:
    probe = ScriptedProbe([ValueError('bad banner'), 0])
    token, sleeps = _token_with_recorded_sleeps()
    attempt = wait_for_ssh(
        '10.0.0.5', CREDS, ReadinessConfig(), token=token, probe=probe
    )
    assert attempt == 2
    assert len(probe.calls) == 2
    assert sleeps == [60]


def test_policy_is_configurable() -> None:
    probe = ScriptedProbe([1] * 10)
    token, sleeps = _token_with_recorded_sleeps()
    policy = ReadinessConfig(max_attempts=3, interval_s=5)
    with pytest.raises(ReadinessTimeout):
        wait_for_ssh('10.0.0.5', CREDS, policy, token=token, probe=probe)
    assert len(probe.calls) == 2
    assert sleeps == [5, 5]


def test_single_attempt_budget_is_only_the_guard() -> None:
    probe = ScriptedProbe([0])
    with pytest.raises(ReadinessTimeout):
        wait_for_ssh(
            '10.0.0.5',
            CREDS,
            ReadinessConfig(max_attempts=1, interval_s=0),
            probe=probe,
        )
    assert probe.calls == []


def test_cancel_between_attempts() -> None:
    token = CancelToken()
    probe = ScriptedProbe([1] * 10)

    def sleep_then_cancel(seconds):
        token.cancel('SIGTERM')

    token.sleep = sleep_then_cancel
    with pytest.raises(ProvisioningCancelled):
        wait_for_ssh('10.0.0.5', CREDS, ReadinessConfig(), token=token, probe=probe)
    assert len(probe.calls) == 1


def test_deadline_bounds_the_wait() -> None:
    token = CancelToken(deadline_s=0.05)
    probe = ScriptedProbe([1] * 10)
    with pytest.raises(DeadlineExceeded):
        wait_for_ssh(
            '10.0.0.5',
            CREDS,
            ReadinessConfig(max_attempts=60, interval_s=30),
            token=token,
            probe=probe,
        )
    assert len(probe.calls) == 1
