"""
Concurrent access control for the engine cache.

Two builds sharing a cache root must not populate the same engine cache entry
at the same time. A lock file next to the entry (never inside it, since the
entry is deleted and recreated during population) serializes populates across
processes.

Usage:
    from hoverkit.core.locking import engine_cache_lock

    with engine_cache_lock(cache_path, timeout=600):
        # Safely repopulate cache_path
        pass
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Union

from filelock import FileLock, Timeout as LockTimeout

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT = 600


def lock_path_for(cache_path: Union[str, Path]) -> Path:
    """
    Get the lock file guarding a cache entry.

    Example:
        >>> lock_path_for(Path("/cache/hover/engine/linux-x64"))
        PosixPath('/cache/hover/engine/linux-x64.lock')
    """
    cache_path = Path(cache_path)
    return cache_path.with_name(f"{cache_path.name}.lock")


@contextmanager
def engine_cache_lock(
    cache_path: Union[str, Path], timeout: float = DEFAULT_LOCK_TIMEOUT
):
    """
    Acquire the populate lock of an engine cache entry.

    Args:
        cache_path: Engine cache entry directory
        timeout: Maximum wait time in seconds (default: 600 for long downloads)

    Yields:
        None

    Raises:
        LockTimeout: If lock can't be acquired within timeout
    """
    lock_path = lock_path_for(cache_path)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock = FileLock(str(lock_path), timeout=timeout)

    try:
        with lock:
            logger.debug(f"Acquired engine cache lock: {lock_path}")
            yield
            logger.debug(f"Released engine cache lock: {lock_path}")
    except LockTimeout as e:
        logger.error(
            f"Could not acquire engine cache lock after {timeout}s. "
            "Another hover process may be downloading this engine."
        )
        raise LockTimeout(str(lock_path)) from e


__all__ = [
    "DEFAULT_LOCK_TIMEOUT",
    "LockTimeout",
    "lock_path_for",
    "engine_cache_lock",
]
