"""Failure notifications for backuptoaws."""

import shutil
import socket
from typing import Optional

from backuptoaws.constants import APP_NAME
from backuptoaws.errors import BackupError
from backuptoaws.models import RunResult


def build_subject(result: RunResult, hostname: str) -> str:
    return f"[{APP_NAME}] FAILURE on {hostname} - {result.failure_count} database(s)"


def build_body(result: RunResult, hostname: str, log_file: str) -> str:
    failed = "\n".join(f"  - {entry}" for entry in result.failed_units)
    return (
        f"MySQL backup finished with failures on {hostname}.\n"
        "\n"
        f"Timestamp: {result.timestamp}\n"
        f"Successes: {result.success_count}\n"
        f"Failures:  {result.failure_count}\n"
        "\n"
        "Failed databases:\n"
        f"{failed}\n"
        "\n"
        f"Check the log: {log_file}\n"
    )


class NullNotifier:
    """Used when no notification address is configured."""

    def __init__(self, logger):
        self.logger = logger

    def notify(self, result: RunResult, log_file: str):
        self.logger.debug("No notification address configured; skipping notification.")


class MailNotifier:
    """Sends the failure summary through the local `mail` command."""

    MAIL_COMMAND = "mail"

    def __init__(self, address: str, command_runner, logger, hostname: Optional[str] = None, which=shutil.which):
        self.address = address
        self.command_runner = command_runner
        self.logger = logger
        self.hostname = hostname or socket.gethostname()
        self.which = which

    def notify(self, result: RunResult, log_file: str):
        if self.which(self.MAIL_COMMAND) is None:
            self.logger.warning("'mail' command not found; email notification not sent")
            return

        subject = build_subject(result, self.hostname)
        body = build_body(result, self.hostname, log_file)
        try:
            self.command_runner.run(
                [self.MAIL_COMMAND, "-s", subject, self.address],
                check=True,
                capture_output=True,
                input_text=body,
            )
        except (BackupError, OSError) as exc:
            self.logger.warning("Could not send notification email: %s", exc)
            return

        self.logger.info("Failure notification sent to %s", self.address)


def build_notifier(address: Optional[str], command_runner, logger):
    if not address:
        return NullNotifier(logger)
    return MailNotifier(address, command_runner, logger)
