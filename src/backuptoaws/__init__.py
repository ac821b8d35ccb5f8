"""
backuptoaws - scheduled MySQL backups streamed or staged to Amazon S3
"""

__version__ = "1.0.0"

from .core import BackupRunner
from .errors import BackupError

__all__ = ["BackupRunner", "BackupError"]
