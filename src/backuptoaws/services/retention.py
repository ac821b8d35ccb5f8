"""Local staged backup retention for backuptoaws."""

import time
from pathlib import Path
from typing import Optional

from backuptoaws.constants import STAGED_FILE_GLOB

SECONDS_PER_DAY = 86400


class RetentionService:
    """Deletes staged backups older than the retention period, best effort."""

    def __init__(self, logger):
        self.logger = logger

    def cleanup(self, directory: str, retention_days: int, now: Optional[float] = None) -> int:
        self.logger.info("Removing local backups older than %s day(s)", retention_days)

        reference = time.time() if now is None else now
        max_age = retention_days * SECONDS_PER_DAY
        removed = 0

        try:
            candidates = sorted(Path(directory).glob(STAGED_FILE_GLOB))
        except OSError as exc:
            self.logger.warning("Could not scan %s for old backups: %s", directory, exc)
            return 0

        for candidate in candidates:
            try:
                if not candidate.is_file():
                    continue
                if reference - candidate.stat().st_mtime <= max_age:
                    continue
                candidate.unlink()
            except OSError as exc:
                self.logger.warning("Could not remove old backup %s: %s", candidate, exc)
                continue
            removed += 1
            self.logger.debug("Removed old backup: %s", candidate)

        return removed
