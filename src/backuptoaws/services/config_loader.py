"""Configuration loader for backuptoaws."""

from pathlib import Path
from typing import Any, Dict

import yaml

from backuptoaws.errors import BackupError
from backuptoaws.errors_catalog import actionable_error


class ConfigLoader:
    """Loads the YAML configuration file holding the run settings."""

    SUPPORTED_KEYS = {
        "MYSQL_HOST",
        "MYSQL_PORT",
        "DATABASES",
        "S3_BUCKET",
        "S3_PREFIX",
        "AWS_REGION",
        "UPLOAD_MODE",
        "GZIP_LEVEL",
        "LOCAL_RETENTION_DAYS",
        "TEMP_DIR",
        "NOTIFICATION_EMAIL",
        "LOG_FILE",
        "MYSQL_DEFAULTS_FILE",
        "LOCK_FILE",
        "STAGE_TIMEOUT_SECONDS",
    }

    def load(self, config_path: str) -> Dict[str, Any]:
        path = Path(config_path)
        if not path.is_file():
            raise BackupError(actionable_error("config_not_found", path=config_path))

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise BackupError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise BackupError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(str(key) for key in set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise BackupError(f"Unknown configuration keys: {unknown_list}")

        return parsed
