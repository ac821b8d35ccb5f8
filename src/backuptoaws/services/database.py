"""MySQL target resolution and dump commands for backuptoaws."""

from typing import Callable, List

from backuptoaws.constants import ALL_DATABASES, SYSTEM_DATABASES
from backuptoaws.errors import BackupError, NoTargetsError
from backuptoaws.errors_catalog import actionable_error
from backuptoaws.models import RunConfig


class DatabaseService:
    """Builds mysql/mysqldump invocations and resolves the databases to back up."""

    DUMP_FLAGS = (
        "--single-transaction",
        "--quick",
        "--skip-lock-tables",
        "--routines",
        "--triggers",
        "--events",
    )

    def __init__(self, config: RunConfig, logger):
        self.config = config
        self.logger = logger

    def _connection_args(self) -> List[str]:
        # --defaults-extra-file is only honoured as the first option.
        return [
            f"--defaults-extra-file={self.config.defaults_file}",
            "-h",
            self.config.mysql_host,
            "-P",
            str(self.config.mysql_port),
        ]

    def build_list_command(self) -> List[str]:
        return ["mysql", *self._connection_args(), "-N", "-e", "SHOW DATABASES"]

    def build_dump_command(self, database: str) -> List[str]:
        return ["mysqldump", *self._connection_args(), *self.DUMP_FLAGS, database]

    def list_databases(self, run_cmd: Callable) -> List[str]:
        try:
            result = run_cmd(self.build_list_command(), check=True, capture_output=True)
        except BackupError as exc:
            raise BackupError(f"Could not list databases on {self.config.mysql_host}: {exc}") from exc

        return [line.strip() for line in (result.stdout or "").splitlines() if line.strip()]

    def resolve_targets(self, specifier: str, run_cmd: Callable) -> List[str]:
        if specifier.strip() == ALL_DATABASES:
            names = [name for name in self.list_databases(run_cmd) if name not in SYSTEM_DATABASES]
        else:
            names = specifier.split()

        if not names:
            raise NoTargetsError(actionable_error("no_targets"))

        self.logger.debug("Resolved %s database(s) from '%s'", len(names), specifier)
        return names
