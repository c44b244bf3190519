"""
Per-item advisory locking.

Uses flock on ``.worky/locks/<slug>.lock`` so that two processes updating
the same item serialize their read-modify-write cycles.
"""

import fcntl
import os
import time
from contextlib import contextmanager
from pathlib import Path

from worky.errors import LockTimeout

POLL_INTERVAL_S = 0.05


@contextmanager
def _acquire_lock(lock_file: Path, timeout: float, lock_name: str):
    """
    Internal helper to acquire a file lock.

    Args:
        lock_file: Path to the lock file
        timeout: Seconds to wait for lock
        lock_name: Human-readable name for error messages
    """
    lock_file.parent.mkdir(parents=True, exist_ok=True)

    # Lock files are never deleted: unlinking would let two processes hold
    # "exclusive" locks on different inodes behind the same path.
    fd = open(lock_file, 'a')
    start = time.monotonic()

    while True:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            break
        except BlockingIOError:
            if time.monotonic() - start > timeout:
                fd.close()
                raise LockTimeout(f"Could not acquire {lock_name} within {timeout}s")
            time.sleep(POLL_INTERVAL_S)

    try:
        fd.truncate(0)
        fd.write(f"{os.getpid()}\n")
        fd.flush()
        yield
    finally:
        fcntl.flock(fd, fcntl.LOCK_UN)
        fd.close()


@contextmanager
def item_lock(locks_dir: Path, slug: str, timeout: float = 10):
    """Acquire the lock for one item, yield, release on exit."""
    lock_file = locks_dir / f"{slug}.lock"
    with _acquire_lock(lock_file, timeout, f"lock for {slug}"):
        yield
