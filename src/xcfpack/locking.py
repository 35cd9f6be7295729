"""One pipeline run per working directory."""

from collections.abc import Iterator
import contextlib
from pathlib import Path

from filelock import FileLock, Timeout
from pyvider.telemetry import logger

from .exceptions import LockError


@contextlib.contextmanager
def run_lock(lock_path: Path, timeout: float = 0) -> Iterator[Path]:
    """
    Holds an exclusive lock for the duration of a run.

    The lock file sits beside the working directory so wiping the directory
    does not release it. A timeout of 0 fails immediately when another run
    holds the lock.
    """
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock = FileLock(str(lock_path))
    try:
        lock.acquire(timeout=timeout)
    except Timeout as e:
        raise LockError(
            f"Another run holds {lock_path}. Wait for it to finish or use a different work dir."
        ) from e
    logger.debug("Acquired run lock", path=str(lock_path))
    try:
        yield lock_path
    finally:
        lock.release()
        logger.debug("Released run lock", path=str(lock_path))
