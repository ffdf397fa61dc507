"""
Per-tournament mutual exclusion.

Every mutating operation runs inside tournament_lock(tournament_id). The lock
is a file lock, so it also serializes requests served by different worker
processes. Locks are re-entrant within one thread.
"""
import logging
import os
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from filelock import FileLock, Timeout

from torneos import config
from torneos.errors import TournamentBusyError

logger = logging.getLogger(__name__)

_locks: Dict[str, FileLock] = {}
_locks_guard = threading.Lock()


def _lock_path(tournament_id: int) -> str:
    return os.path.join(config.TOURNAMENT_LOCK_DIR, f"tournament-{tournament_id}.lock")


def _get_lock(tournament_id: int) -> FileLock:
    path = _lock_path(tournament_id)
    with _locks_guard:
        lock = _locks.get(path)
        if lock is None:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            lock = FileLock(path)
            _locks[path] = lock
        return lock


@contextmanager
def tournament_lock(tournament_id: int, timeout: Optional[float] = None) -> Iterator[None]:
    """Hold the tournament's lock for the duration of the block.

    Raises TournamentBusyError if it cannot be acquired within the timeout.
    """
    lock = _get_lock(tournament_id)
    wait = config.TOURNAMENT_LOCK_TIMEOUT if timeout is None else timeout
    try:
        lock.acquire(timeout=wait)
    except Timeout as exc:
        logger.warning("Tournament %s is busy (lock wait %.1fs)", tournament_id, wait)
        raise TournamentBusyError(
            f"Tournament {tournament_id} is being modified by another operation; try again shortly"
        ) from exc
    try:
        yield
    finally:
        lock.release()
