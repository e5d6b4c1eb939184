"""Handle for one hypervisor-managed guest and its effectful operations."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from loguru import logger

from . import vmrun
from .cancel import CancelToken
from .errors import DeadlineExceeded, ProvisioningCancelled, ProvisioningFailure
from .util import CmdCancelled, CmdError, CmdTimeout, ensure_dir

log = logger


@dataclass(frozen=True)
class GuestHandle:
    """A guest known by its ``.vmx`` descriptor and the vmrun binary.

    Constructing a handle never touches the hypervisor, so it can stand
    for a clone target that does not exist yet.

    Example:
        >>> from pathlib import Path
        >>> g = GuestHandle(Path('/vms/macos.vmwarevm/macos.vmx'), Path('/bin/vmrun'))
        >>> g.name
        'macos'
    """

    image: Path
    executable: Path

    @property
    def name(self) -> str:
        return self.image.stem

    @property
    def exists(self) -> bool:
        return self.image.exists()

    @property
    def snapshots(self) -> frozenset[str]:
        # Re-queried on every access; never cache across mutations.
        return self.list_snapshots()

    def list_snapshots(self, token: Optional[CancelToken] = None) -> frozenset[str]:
        if not self.exists:
            return frozenset()
        return frozenset(
            self._call(
                'list snapshots of',
                vmrun.list_snapshots,
                self.executable,
                self.image,
                token=token,
            )
        )

    def has_snapshot(self, name: str, token: Optional[CancelToken] = None) -> bool:
        return name in self.list_snapshots(token)

    def snapshot(self, name: str, token: Optional[CancelToken] = None) -> None:
        log.info('Creating snapshot {} on {}', name, self.name)
        self._call(
            f'create snapshot {name!r} on',
            vmrun.create_snapshot,
            self.executable,
            self.image,
            name,
            token=token,
        )

    def clone(
        self,
        dest: Path,
        name: str,
        linked_to: str,
        token: Optional[CancelToken] = None,
    ) -> 'GuestHandle':
        log.info(
            'Linked clone of {} from snapshot {} into {}', self.name, linked_to, dest
        )
        ensure_dir(dest.parent)
        self._call(
            f'clone {name!r} from',
            vmrun.clone_linked,
            self.executable,
            self.image,
            dest,
            name,
            linked_to,
            token=token,
        )
        return GuestHandle(dest, self.executable)

    def revert(self, name: str, token: Optional[CancelToken] = None) -> None:
        log.info('Reverting {} to snapshot {}', self.name, name)
        self._call(
            f'revert to snapshot {name!r} on',
            vmrun.revert_to_snapshot,
            self.executable,
            self.image,
            name,
            token=token,
        )

    def start(self, gui: bool = False, token: Optional[CancelToken] = None) -> None:
        log.info('Starting {} (gui={})', self.name, gui)
        self._call(
            'start',
            vmrun.start,
            self.executable,
            self.image,
            gui=gui,
            token=token,
        )

    def ip(self, token: Optional[CancelToken] = None) -> Optional[str]:
        log.debug('Querying VMware Tools for the IP of {}', self.name)
        return self._call(
            'query the IP address of',
            vmrun.guest_ip,
            self.executable,
            self.image,
            token=token,
        )

    def _call(self, what, func, *args, token: Optional[CancelToken] = None, **kwargs):
        timeout = None
        if token is not None:
            token.check()
            timeout = token.remaining()
        try:
            out = func(
                *args,
                timeout=timeout,
                cancelled=(lambda: token.cancelled) if token is not None else None,
                **kwargs,
            )
        except CmdCancelled as ex:
            raise ProvisioningCancelled(
                f'Provisioning cancelled ({token.reason}) while trying to '
                f'{what} guest {self.name!r}'
            ) from ex
        except CmdTimeout as ex:
            raise DeadlineExceeded(
                f'Deadline reached while trying to {what} guest {self.name!r}'
            ) from ex
        except CmdError as ex:
            detail = (ex.result.stderr or ex.result.stdout or '').strip()
            raise ProvisioningFailure(
                f'Failed to {what} guest {self.name!r} (code={ex.result.code}): '
                f'{detail or "(no output)"}'
            ) from ex
        if token is not None:
            token.check()
        return out
