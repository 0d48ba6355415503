"""Lock-file based mutual exclusion for the persisted store document."""

import asyncio
import os
import time
from pathlib import Path


class FileLockError(Exception):
    """File locking error."""

    pass


class FileLocker:
    """Context manager guarding writes to a single file.

    The lock is a sibling ``<name>.lock`` file created with O_EXCL, so two
    writers never both believe they hold it. Locks older than twice the
    timeout are treated as abandoned and removed.
    """

    def __init__(self, file_path: Path, timeout: float = 5.0, poll_interval: float = 0.05):
        """Initialize file locker.

        Args:
            file_path: Path to the file to lock
            timeout: Maximum time to wait for lock acquisition (seconds)
            poll_interval: Delay between acquisition attempts (seconds)
        """
        self.file_path = Path(file_path)
        self.lock_path = self.file_path.with_name(self.file_path.name + ".lock")
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.acquired = False

    def __enter__(self) -> "FileLocker":
        deadline = time.monotonic() + self.timeout
        while not self._try_acquire():
            if time.monotonic() > deadline:
                raise FileLockError(
                    f"Could not acquire lock on {self.file_path} after {self.timeout}s"
                )
            time.sleep(self.poll_interval)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._release()
        return False

    async def __aenter__(self) -> "FileLocker":
        deadline = time.monotonic() + self.timeout
        while not await asyncio.to_thread(self._try_acquire):
            if time.monotonic() > deadline:
                raise FileLockError(
                    f"Could not acquire lock on {self.file_path} after {self.timeout}s"
                )
            await asyncio.sleep(self.poll_interval)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await asyncio.to_thread(self._release)
        return False

    def _try_acquire(self) -> bool:
        """Attempt a single exclusive creation of the lock file."""
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        self._remove_if_stale()

        try:
            fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            return False
        except OSError as e:
            raise FileLockError(f"Could not create lock file {self.lock_path}: {e}") from e

        with os.fdopen(fd, "w") as handle:
            handle.write(str(os.getpid()))

        self.acquired = True
        return True

    def _remove_if_stale(self) -> None:
        try:
            age = time.time() - self.lock_path.stat().st_mtime
        except FileNotFoundError:
            return

        if age > self.timeout * 2:
            self.lock_path.unlink(missing_ok=True)

    def _release(self) -> None:
        if self.acquired:
            self.lock_path.unlink(missing_ok=True)
            self.acquired = False
