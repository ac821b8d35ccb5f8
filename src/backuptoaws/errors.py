"""Domain errors for backuptoaws."""


class BackupError(RuntimeError):
    """Raised when the backup run cannot continue safely."""


class LockBusyError(BackupError):
    """Raised when another run already holds the run lock."""


class NoTargetsError(BackupError):
    """Raised when no database is left to back up."""


class StageError(BackupError):
    """Raised when one stage of a unit pipeline fails."""

    def __init__(self, stage: str, message: str):
        super().__init__(message)
        self.stage = stage
