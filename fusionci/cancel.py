"""Cancellation and deadline handling threaded through every blocking wait."""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from loguru import logger

from .errors import DeadlineExceeded, ProvisioningCancelled

log = logger


class CancelToken:
    """Cooperative cancel signal with an optional overall deadline.

    ``cancel`` only sets an event, so it is safe to call from a signal
    handler. Blocking code polls ``check`` between steps and sleeps via
    ``sleep`` so that a cancel wakes it immediately.

    Example:
        >>> token = CancelToken()
        >>> token.cancelled
        False
        >>> token.cancel('SIGTERM')
        >>> token.cancelled
        True
    """

    def __init__(
        self,
        deadline_s: Optional[float] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._event = threading.Event()
        self._clock = clock
        self.reason = ''
        self.deadline = (
            clock() + float(deadline_s) if deadline_s else None
        )

    def cancel(self, reason: str = 'cancelled') -> None:
        if not self._event.is_set():
            self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and self._clock() >= self.deadline

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - self._clock())

    def check(self) -> None:
        if self.cancelled:
            raise ProvisioningCancelled(f'Provisioning cancelled ({self.reason})')
        if self.expired:
            raise DeadlineExceeded('Provisioning deadline exceeded')

    def sleep(self, seconds: float) -> None:
        self.check()
        wait_s = max(0.0, float(seconds))
        remaining = self.remaining()
        if remaining is not None:
            wait_s = min(wait_s, remaining)
        if wait_s > 0:
            log.debug('Sleeping {:.1f}s (cancellable)', wait_s)
            end = self._clock() + wait_s
            while not self._event.is_set():
                left = end - self._clock()
                if left <= 0:
                    break
                self._event.wait(left)
        self.check()
