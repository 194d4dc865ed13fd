from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Set

from .env import PATHS

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".save"

_active: Set[str] = set()


class LockGuardError(RuntimeError):
    pass


def backup_path(lock_path: str | Path) -> Path:
    return Path(lock_path).with_suffix(BACKUP_SUFFIX)


def package_lock_path(target_root: str = PATHS.target_root) -> Path:
    return Path(target_root) / PATHS.package_lock


@contextmanager
def without_lock(lock_path: str | Path) -> Iterator[None]:
    """Move a lock file aside for the duration of the block.

    The lock is renamed to its backup path before the block runs and renamed
    back on every exit path. A restore failure propagates; if the block also
    raised, that exception stays attached as __context__.
    Nesting guards on the same path raises LockGuardError.
    """

    lock = Path(lock_path)
    backup = backup_path(lock)
    key = os.path.abspath(lock)

    if key in _active:
        raise LockGuardError(f"Lock {lock} is already suspended")

    _active.add(key)
    try:
        if lock.exists():
            logger.info("Suspending lock %s", str(lock))
            os.rename(lock, backup)
        try:
            yield
        finally:
            if backup.exists():
                logger.info("Restoring lock %s", str(lock))
                os.rename(backup, lock)
    finally:
        _active.discard(key)
