"""Per-database dump, compress and transfer pipeline."""

import os
import time

from backuptoaws.constants import (
    STAGE_COMPRESS,
    STAGE_DUMP,
    STAGE_TRANSFER,
    UPLOAD_MODE_LOCAL,
    UPLOAD_MODE_STREAM,
)
from backuptoaws.errors import BackupError, StageError
from backuptoaws.models import PipelineResult, RunConfig, UnitOutcome


class UnitPipelineService:
    """Backs up one database in either stream or local mode."""

    def __init__(
        self,
        config: RunConfig,
        logger,
        command_runner,
        database_service,
        storage_service,
        filesystem_service,
    ):
        self.config = config
        self.logger = logger
        self.command_runner = command_runner
        self.database_service = database_service
        self.storage_service = storage_service
        self.filesystem_service = filesystem_service

    def staged_path(self, unit: str, timestamp: str) -> str:
        return os.path.join(self.config.temp_dir, self.storage_service.backup_filename(unit, timestamp))

    def _dump_stages(self, unit: str):
        return [
            (STAGE_DUMP, self.database_service.build_dump_command(unit)),
            (STAGE_COMPRESS, ["gzip", f"-{self.config.gzip_level}"]),
        ]

    @staticmethod
    def _raise_for_result(result: PipelineResult):
        failed = result.failed_stage
        if failed is not None:
            raise StageError(failed.name, result.describe())

    def run_stream(self, unit: str, timestamp: str):
        destination = self.storage_service.destination_key(unit, timestamp)
        self.logger.info("[%s] Starting backup (stream) -> %s", unit, destination)

        stages = self._dump_stages(unit)
        stages.append((STAGE_TRANSFER, self.storage_service.build_stream_command(destination)))
        result = self.command_runner.run_pipeline(stages, timeout=self.config.stage_timeout_seconds)
        self._raise_for_result(result)

    def run_local(self, unit: str, timestamp: str) -> int:
        staged_path = self.staged_path(unit, timestamp)
        destination = self.storage_service.destination_key(unit, timestamp)
        self.logger.info("[%s] Starting backup (local) -> %s", unit, staged_path)

        try:
            with self.filesystem_service.staged_file(staged_path) as file_obj:
                result = self.command_runner.run_pipeline(
                    self._dump_stages(unit),
                    stdout=file_obj,
                    timeout=self.config.stage_timeout_seconds,
                )
                self._raise_for_result(result)
        except OSError as exc:
            raise StageError(STAGE_COMPRESS, f"Could not write {staged_path}: {exc}") from exc

        size = self.filesystem_service.file_size(staged_path)
        human_size = self.filesystem_service.human_size(size)
        self.logger.info("[%s] Local dump: %s (%s)", unit, staged_path, human_size)

        self.logger.info("[%s] Uploading to S3 -> %s", unit, destination)
        try:
            self.storage_service.upload_file(staged_path, destination, self.command_runner.run)
        except StageError:
            self.logger.warning("[%s] Staged file kept for manual upload: %s", unit, staged_path)
            raise
        return size

    def run(self, unit: str, mode: str, timestamp: str) -> UnitOutcome:
        started = time.monotonic()
        artifact_size = None

        try:
            if mode == UPLOAD_MODE_STREAM:
                self.run_stream(unit, timestamp)
            elif mode == UPLOAD_MODE_LOCAL:
                artifact_size = self.run_local(unit, timestamp)
            else:
                raise BackupError(f"Unsupported upload mode: {mode}")
        except StageError as exc:
            duration = time.monotonic() - started
            self.logger.error("[%s] %s", unit, exc)
            return UnitOutcome(
                unit=unit,
                success=False,
                failed_stage=exc.stage,
                duration_seconds=duration,
                error=str(exc),
            )

        duration = time.monotonic() - started
        if artifact_size is None:
            self.logger.info("[%s] Backup completed in %.0fs", unit, duration)
        else:
            self.logger.info(
                "[%s] Backup completed in %.0fs (%s)",
                unit,
                duration,
                self.filesystem_service.human_size(artifact_size),
            )
        return UnitOutcome(
            unit=unit,
            success=True,
            duration_seconds=duration,
            artifact_size=artifact_size,
        )
