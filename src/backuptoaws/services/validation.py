"""Settings validation for backuptoaws."""

import os
import re
from typing import Any, Dict, Optional

from backuptoaws.constants import (
    DEFAULT_DEFAULTS_FILE,
    DEFAULT_GZIP_LEVEL,
    DEFAULT_LOCK_FILE,
    DEFAULT_LOG_FILE,
    DEFAULT_RETENTION_DAYS,
    DEFAULT_TEMP_DIR,
    DEFAULT_UPLOAD_MODE,
    UPLOAD_MODES,
)
from backuptoaws.errors import BackupError
from backuptoaws.errors_catalog import actionable_error
from backuptoaws.models import RunConfig


class ValidationService:
    """Turns raw configuration values into a validated RunConfig."""

    REQUIRED_KEYS = ("MYSQL_HOST", "MYSQL_PORT", "DATABASES", "S3_BUCKET", "S3_PREFIX", "AWS_REGION")
    GZIP_LEVEL_PATTERN = re.compile(r"^[1-9]$")

    # Keys that may be written as a YAML sequence instead of a spaced string.
    LIST_KEYS = ("DATABASES",)

    def _text(self, values: Dict[str, Any], key: str, default: Optional[str] = None) -> Optional[str]:
        value = values.get(key)
        if value is None:
            return default
        if isinstance(value, (list, tuple)) and key in self.LIST_KEYS:
            value = " ".join(str(item) for item in value if item is not None)
        elif isinstance(value, (list, tuple, dict)):
            raise BackupError(f"{key} must be a single value, got {type(value).__name__}.")
        text = str(value).strip()
        return text or default

    def ensure_required(self, values: Dict[str, Any]):
        for key in self.REQUIRED_KEYS:
            if not self._text(values, key):
                raise BackupError(actionable_error("missing_required", key=key))

    def parse_upload_mode(self, value: str) -> str:
        if value not in UPLOAD_MODES:
            raise BackupError(actionable_error("invalid_upload_mode", value=value))
        return value

    def parse_gzip_level(self, value: str) -> int:
        if not self.GZIP_LEVEL_PATTERN.match(value):
            raise BackupError(actionable_error("invalid_gzip_level", value=value))
        return int(value)

    def parse_port(self, value: str) -> str:
        if not value.isdigit() or not 0 < int(value) < 65536:
            raise BackupError(f"MYSQL_PORT must be a TCP port number, got '{value}'.")
        return value

    def parse_retention_days(self, value: str) -> int:
        if not value.isdigit():
            raise BackupError(
                f"LOCAL_RETENTION_DAYS must be a non-negative integer, got '{value}'."
            )
        return int(value)

    def parse_timeout(self, value: Optional[str]) -> Optional[float]:
        if value is None:
            return None
        try:
            timeout = float(value)
        except ValueError as exc:
            raise BackupError(
                f"STAGE_TIMEOUT_SECONDS must be a number of seconds, got '{value}'."
            ) from exc
        if timeout <= 0:
            raise BackupError("STAGE_TIMEOUT_SECONDS must be greater than zero.")
        return timeout

    def ensure_credentials_file(self, path: str):
        if not os.path.isfile(path):
            raise BackupError(actionable_error("credentials_not_found", path=path))

    def build_run_config(self, values: Dict[str, Any]) -> RunConfig:
        self.ensure_required(values)

        upload_mode = self.parse_upload_mode(self._text(values, "UPLOAD_MODE", DEFAULT_UPLOAD_MODE))
        gzip_level = self.parse_gzip_level(self._text(values, "GZIP_LEVEL", str(DEFAULT_GZIP_LEVEL)))
        retention_days = self.parse_retention_days(
            self._text(values, "LOCAL_RETENTION_DAYS", str(DEFAULT_RETENTION_DAYS))
        )
        defaults_file = self._text(values, "MYSQL_DEFAULTS_FILE", DEFAULT_DEFAULTS_FILE)
        self.ensure_credentials_file(defaults_file)

        return RunConfig(
            mysql_host=self._text(values, "MYSQL_HOST"),
            mysql_port=self.parse_port(self._text(values, "MYSQL_PORT")),
            databases=self._text(values, "DATABASES"),
            s3_bucket=self._text(values, "S3_BUCKET"),
            s3_prefix=self._text(values, "S3_PREFIX"),
            aws_region=self._text(values, "AWS_REGION"),
            upload_mode=upload_mode,
            gzip_level=gzip_level,
            local_retention_days=retention_days,
            temp_dir=self._text(values, "TEMP_DIR", DEFAULT_TEMP_DIR),
            log_file=self._text(values, "LOG_FILE", DEFAULT_LOG_FILE),
            defaults_file=defaults_file,
            lock_file=self._text(values, "LOCK_FILE", DEFAULT_LOCK_FILE),
            notification_email=self._text(values, "NOTIFICATION_EMAIL"),
            stage_timeout_seconds=self.parse_timeout(self._text(values, "STAGE_TIMEOUT_SECONDS")),
        )
