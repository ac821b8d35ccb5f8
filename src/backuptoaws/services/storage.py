"""S3 destination naming and transfer commands for backuptoaws."""

from typing import Callable, List

from backuptoaws.constants import BACKUP_SUFFIX, STAGE_TRANSFER
from backuptoaws.errors import BackupError, StageError
from backuptoaws.models import RunConfig


class StorageService:
    """Drives `aws s3 cp` for streamed and staged uploads."""

    def __init__(self, config: RunConfig, logger):
        self.config = config
        self.logger = logger

    @staticmethod
    def backup_filename(database: str, timestamp: str) -> str:
        return f"{database}_{timestamp}{BACKUP_SUFFIX}"

    def destination_key(self, database: str, timestamp: str) -> str:
        bucket = self.config.s3_bucket.strip("/")
        prefix = self.config.s3_prefix.strip("/")
        parts = [part for part in (bucket, prefix, database) if part]
        return "s3://" + "/".join(parts + [self.backup_filename(database, timestamp)])

    def build_upload_command(self, source: str, destination: str) -> List[str]:
        return ["aws", "s3", "cp", source, destination, "--region", self.config.aws_region]

    def build_stream_command(self, destination: str) -> List[str]:
        return self.build_upload_command("-", destination)

    def upload_file(self, path: str, destination: str, run_cmd: Callable):
        self.logger.debug("Uploading %s to %s", path, destination)
        try:
            result = run_cmd(
                self.build_upload_command(path, destination),
                check=False,
                capture_output=True,
                timeout=self.config.stage_timeout_seconds,
            )
        except BackupError as exc:
            raise StageError(STAGE_TRANSFER, str(exc)) from exc

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            message = f"aws s3 cp failed (exit {result.returncode})"
            if stderr:
                message = f"{message}: {stderr}"
            raise StageError(STAGE_TRANSFER, message)
