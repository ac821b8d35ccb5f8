"""Filesystem helpers for backuptoaws."""

import logging
import os
from contextlib import contextmanager
from typing import IO, Iterator

from rich.filesize import decimal


class FileSystemService:
    """Encapsulates staging directory and staged file side effects."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def ensure_dir(self, path: str):
        os.makedirs(path, exist_ok=True)

    def remove_file(self, path: str):
        if os.path.exists(path):
            try:
                os.remove(path)
                self.logger.debug("Removed file: %s", path)
            except OSError as exc:
                self.logger.warning("Could not remove %s: %s", path, exc)

    @contextmanager
    def staged_file(self, path: str) -> Iterator[IO[bytes]]:
        """Open ``path`` for writing and delete it if the block does not complete."""
        file_obj = open(path, "wb")
        try:
            yield file_obj
        except BaseException:
            file_obj.close()
            self.remove_file(path)
            raise
        file_obj.close()

    @staticmethod
    def file_size(path: str) -> int:
        return os.path.getsize(path)

    @staticmethod
    def human_size(num_bytes: int) -> str:
        return decimal(num_bytes)
