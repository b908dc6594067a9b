"""File locks: an exclusive per-invocation stack lock and scoped registry locks.

Uses fcntl.flock() on Unix and msvcrt.locking() on Windows.
"""

import logging
import os
import platform
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from synaptic.core.ports import pid_alive
from synaptic.exceptions import LockHeld

logger = logging.getLogger(__name__)


def _lock_fd(fd: int, blocking: bool) -> None:
    """Lock an open descriptor. Raises OSError when non-blocking and held."""
    if platform.system() == 'Windows':
        import msvcrt
        mode = msvcrt.LK_LOCK if blocking else msvcrt.LK_NBLCK  # type: ignore[attr-defined]
        msvcrt.locking(fd, mode, 1)  # type: ignore[attr-defined]
    else:
        import fcntl
        flags = fcntl.LOCK_EX if blocking else fcntl.LOCK_EX | fcntl.LOCK_NB
        fcntl.flock(fd, flags)


def _unlock_fd(fd: int) -> None:
    try:
        if platform.system() == 'Windows':
            import msvcrt
            msvcrt.locking(fd, msvcrt.LK_UNLCK, 1)  # type: ignore[attr-defined]
        else:
            import fcntl
            fcntl.flock(fd, fcntl.LOCK_UN)
    except OSError:
        logger.debug("Unlock of fd %d failed", fd, exc_info=True)


@contextmanager
def scoped_lock(lock_path: Path) -> Iterator[None]:
    """Block until an exclusive lock on lock_path is held for the with-block."""
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(str(lock_path), os.O_CREAT | os.O_RDWR)
    try:
        _lock_fd(fd, blocking=True)
        try:
            yield
        finally:
            _unlock_fd(fd)
    finally:
        os.close(fd)


class StackLock:
    """Non-blocking lock held for the duration of one mutating command.

    The lock file stores the owning PID. A lock whose owner is dead is treated
    as stale and recovered once.
    """

    def __init__(self, lock_path: Path):
        self.lock_path = lock_path
        self._fd: Optional[int] = None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        """Take the lock or raise LockHeld."""
        self._try_acquire(allow_stale_recovery=True)

    def _try_acquire(self, allow_stale_recovery: bool) -> None:
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(str(self.lock_path), os.O_CREAT | os.O_RDWR)
        try:
            _lock_fd(fd, blocking=False)
        except OSError:
            owner = self._read_owner_pid(fd)
            os.close(fd)
            if allow_stale_recovery and owner is not None and not pid_alive(owner):
                logger.warning("Removing stale lock file %s (PID %d is gone)", self.lock_path, owner)
                self.lock_path.unlink(missing_ok=True)
                return self._try_acquire(allow_stale_recovery=False)
            raise LockHeld(self.lock_path, owner)

        os.ftruncate(fd, 0)
        os.lseek(fd, 0, os.SEEK_SET)
        os.write(fd, str(os.getpid()).encode())
        self._fd = fd

    @staticmethod
    def _read_owner_pid(fd: int) -> Optional[int]:
        try:
            os.lseek(fd, 0, os.SEEK_SET)
            data = os.read(fd, 32).decode().strip()
            return int(data) if data else None
        except (OSError, ValueError):
            return None

    def release(self) -> None:
        """Release the lock and remove the lock file."""
        if self._fd is None:
            return
        _unlock_fd(self._fd)
        os.close(self._fd)
        self._fd = None
        self.lock_path.unlink(missing_ok=True)

    def __enter__(self) -> "StackLock":
        self.acquire()
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()
