import logging
import os
import signal

import click
from rich.logging import RichHandler

from .constants import DEFAULT_CONFIG_FILE, DEFAULT_LOG_FILE, LOG_DATE_FORMAT, LOG_FORMAT, UPLOAD_MODES
from .core import BackupRunner
from .errors import BackupError
from .services.config_loader import ConfigLoader
from .services.validation import ValidationService


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


def _handle_sigterm(signum, frame):
    raise KeyboardInterrupt(f"Received signal {signal.Signals(signum).name}")


def _configure_file_logging(logger: logging.Logger, log_file: str, verbose: bool):
    log_dir = os.path.dirname(log_file)
    try:
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
    except OSError as exc:
        logger.warning("Could not open log file %s: %s", log_file, exc)
        return

    file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    logger.addHandler(file_handler)


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
)


@click.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=DEFAULT_CONFIG_FILE,
    show_default=True,
    envvar="MYSQL_BACKUP_CONF",
    help="Path to the YAML configuration file.",
)
@click.option(
    "--databases",
    required=False,
    help="'ALL' or a space-separated list of databases (overrides DATABASES).",
)
@click.option(
    "--upload-mode",
    required=False,
    type=click.Choice(UPLOAD_MODES),
    help="Stream straight to S3 or stage a local file first (overrides UPLOAD_MODE).",
)
@click.option(
    "--gzip-level",
    required=False,
    type=click.IntRange(1, 9),
    help="gzip compression level (overrides GZIP_LEVEL).",
)
@click.option("--log-file", type=click.Path(dir_okay=False), help="Path to log file (overrides LOG_FILE).")
@click.option("--verbose", is_flag=True, default=False, help="Enable verbose logging")
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Resolve databases and print destination keys without dumping anything.",
)
def main(config_path, databases, upload_mode, gzip_level, log_file, verbose, dry_run):
    """Back up MySQL databases to Amazon S3, one compressed dump per database."""
    logger = logging.getLogger("backuptoaws")

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    try:
        config_values = ConfigLoader().load(config_path)
    except BackupError as exc:
        raise click.ClickException(str(exc)) from exc

    config_values = dict(config_values)
    config_values["DATABASES"] = _resolve_option(databases, config_values, "DATABASES")
    config_values["UPLOAD_MODE"] = _resolve_option(upload_mode, config_values, "UPLOAD_MODE")
    config_values["GZIP_LEVEL"] = _resolve_option(gzip_level, config_values, "GZIP_LEVEL")
    config_values["LOG_FILE"] = _resolve_option(log_file, config_values, "LOG_FILE", default=DEFAULT_LOG_FILE)

    # Attached before validation so configuration errors reach the log file too.
    _configure_file_logging(logger, str(config_values["LOG_FILE"]), verbose)

    try:
        run_config = ValidationService().build_run_config(config_values)
    except BackupError as exc:
        logger.error(str(exc))
        raise click.ClickException(str(exc)) from exc

    signal.signal(signal.SIGTERM, _handle_sigterm)

    runner = BackupRunner(config=run_config, dry_run=dry_run)
    raise SystemExit(runner.run())


if __name__ == "__main__":
    main()
