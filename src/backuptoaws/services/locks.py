"""Single-instance run lock for backuptoaws."""

import fcntl
import os
from pathlib import Path
from typing import IO, Optional

from backuptoaws.errors import BackupError, LockBusyError
from backuptoaws.errors_catalog import actionable_error


class RunLock:
    """Non-blocking exclusive flock on a well-known file.

    The kernel drops the lock when the process dies, and the context manager
    releases it on every other exit path.
    """

    def __init__(self, lock_path: str, logger):
        self.lock_path = lock_path
        self.logger = logger
        self._handle: Optional[IO[str]] = None

    @property
    def held(self) -> bool:
        return self._handle is not None

    def acquire(self) -> "RunLock":
        path = Path(self.lock_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            handle = open(path, "a+", encoding="utf-8")
        except OSError as exc:
            raise BackupError(f"Could not open lock file {self.lock_path}: {exc}") from exc

        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as exc:
            handle.close()
            raise LockBusyError(actionable_error("lock_busy", path=self.lock_path)) from exc
        except OSError as exc:
            handle.close()
            raise BackupError(f"Could not lock {self.lock_path}: {exc}") from exc

        handle.seek(0)
        handle.truncate()
        handle.write(f"{os.getpid()}\n")
        handle.flush()
        self._handle = handle
        self.logger.debug("Acquired run lock: %s", self.lock_path)
        return self

    def release(self):
        if self._handle is None:
            return

        handle, self._handle = self._handle, None
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        except OSError as exc:
            self.logger.warning("Could not unlock %s: %s", self.lock_path, exc)
        finally:
            handle.close()
        self.logger.debug("Released run lock: %s", self.lock_path)

    def __enter__(self) -> "RunLock":
        return self.acquire()

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False
