"""Actionable error catalog for backuptoaws."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "config_not_found": {
        "what": "Configuration file not found: {path}",
        "next": "Copy backup.conf.example to {path} and adjust the values.",
    },
    "missing_required": {
        "what": "Required setting is not defined: {key}",
        "next": "Set `{key}` in the configuration file.",
    },
    "invalid_upload_mode": {
        "what": "Invalid UPLOAD_MODE: '{value}'.",
        "next": "Use `stream` or `local`.",
    },
    "invalid_gzip_level": {
        "what": "GZIP_LEVEL must be a number between 1 and 9, got '{value}'.",
        "next": "Pick a compression level from 1 (fastest) to 9 (smallest).",
    },
    "credentials_not_found": {
        "what": "MySQL credentials file not found: {path}",
        "next": "Create it with a [client] section and restrict it to mode 600.",
    },
    "lock_busy": {
        "what": "Another instance is already running (lock: {path}).",
        "next": "Wait for the running backup to finish or inspect the PID stored in the lock file.",
    },
    "no_targets": {
        "what": "No databases found to back up.",
        "next": "Check DATABASES or the server's database list.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
