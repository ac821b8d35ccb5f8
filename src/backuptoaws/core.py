import logging
import time
from datetime import datetime
from typing import Callable, List, Optional

from rich.console import Console

from .constants import TIMESTAMP_FORMAT, UPLOAD_MODE_LOCAL
from .errors import BackupError
from .models import RunConfig, RunResult
from .services.command_runner import CommandRunner
from .services.database import DatabaseService
from .services.filesystem import FileSystemService
from .services.locks import RunLock
from .services.notifier import build_notifier
from .services.retention import RetentionService
from .services.storage import StorageService
from .services.unit_pipeline import UnitPipelineService

console = Console(stderr=True)
logger = logging.getLogger("backuptoaws")


class BackupRunner:
    """Drives one backup run: lock, resolve, back up each database, finalize."""

    def __init__(
        self,
        config: RunConfig,
        dry_run: bool = False,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = config
        self.dry_run = dry_run
        self.clock = clock

        self.run_lock = RunLock(config.lock_file, logger=logger)
        self.command_runner = CommandRunner(logger=logger, default_timeout=config.stage_timeout_seconds)
        self.database_service = DatabaseService(config, logger=logger)
        self.storage_service = StorageService(config, logger=logger)
        self.filesystem_service = FileSystemService(logger=logger)
        self.retention_service = RetentionService(logger=logger)
        self.unit_pipeline = UnitPipelineService(
            config,
            logger=logger,
            command_runner=self.command_runner,
            database_service=self.database_service,
            storage_service=self.storage_service,
            filesystem_service=self.filesystem_service,
        )
        self.notifier = build_notifier(config.notification_email, self.command_runner, logger)
        self.result: Optional[RunResult] = None

    def _run_cmd(self, cmd: List[str], check: bool = True, capture_output: bool = False, **kwargs):
        return self.command_runner.run(cmd, check=check, capture_output=capture_output, **kwargs)

    def prepare_staging(self):
        if self.config.upload_mode != UPLOAD_MODE_LOCAL:
            return
        try:
            self.filesystem_service.ensure_dir(self.config.temp_dir)
        except OSError as exc:
            raise BackupError(f"Could not create staging directory {self.config.temp_dir}: {exc}") from exc

    def resolve_targets(self) -> List[str]:
        units = self.database_service.resolve_targets(self.config.databases, self._run_cmd)
        logger.info("Databases to back up (%s): %s", len(units), " ".join(units))
        return units

    def cleanup_local(self):
        if self.config.upload_mode != UPLOAD_MODE_LOCAL:
            return
        try:
            self.retention_service.cleanup(self.config.temp_dir, self.config.local_retention_days)
        except Exception as exc:
            logger.warning("Local retention cleanup failed: %s", exc)

    def plan(self, units: List[str], timestamp: str):
        for unit in units:
            logger.info(
                "[%s] Would back up (%s) -> %s",
                unit,
                self.config.upload_mode,
                self.storage_service.destination_key(unit, timestamp),
            )

    def execute(self) -> int:
        self.prepare_staging()

        started_at = self.clock()
        timestamp = started_at.strftime(TIMESTAMP_FORMAT)
        started = time.monotonic()
        result = RunResult(timestamp=timestamp, started_at=started_at)
        self.result = result

        logger.info("========== Backup started - %s ==========", started_at.isoformat(sep=" ", timespec="seconds"))
        logger.info(
            "Host: %s:%s | Mode: %s | Compression: gzip -%s",
            self.config.mysql_host,
            self.config.mysql_port,
            self.config.upload_mode,
            self.config.gzip_level,
        )

        units = self.resolve_targets()

        if self.dry_run:
            self.plan(units, timestamp)
            logger.info("Dry run: no database was dumped.")
            return 0

        for unit in units:
            result = result.record(self.unit_pipeline.run(unit, self.config.upload_mode, timestamp))
            self.result = result

        self.cleanup_local()

        ended_at = self.clock()
        result = result.finish(ended_at)
        self.result = result

        logger.info("========== Backup finished - %s ==========", ended_at.isoformat(sep=" ", timespec="seconds"))
        logger.info(
            "Total duration: %.0fs | Succeeded: %s | Failed: %s",
            time.monotonic() - started,
            result.success_count,
            result.failure_count,
        )

        if result.failure_count:
            logger.error("Databases with failures:")
            for entry in result.failed_units:
                logger.error("  - %s", entry)
            self.notifier.notify(result, self.config.log_file)

        return result.exit_code

    def run(self) -> int:
        try:
            with self.run_lock:
                return self.execute()
        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled.[/bold red]")
            logger.error("Operation cancelled; run aborted")
            return 1
        except BackupError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            return 1
