"""Shared constants for backuptoaws."""

APP_NAME = "backuptoaws"

DEFAULT_CONFIG_FILE = "/etc/backup-to-aws/backup.conf"
DEFAULT_DEFAULTS_FILE = "/etc/backup-to-aws/.my.cnf"
DEFAULT_LOCK_FILE = "/var/tmp/backup-to-aws/backuptoaws.lock"
DEFAULT_LOG_FILE = "/var/log/backup-to-aws.log"
DEFAULT_TEMP_DIR = "/var/tmp/backup-to-aws"
DEFAULT_UPLOAD_MODE = "stream"
DEFAULT_GZIP_LEVEL = 6
DEFAULT_RETENTION_DAYS = 3

ALL_DATABASES = "ALL"
SYSTEM_DATABASES = frozenset({"information_schema", "performance_schema", "mysql", "sys"})

UPLOAD_MODE_STREAM = "stream"
UPLOAD_MODE_LOCAL = "local"
UPLOAD_MODES = (UPLOAD_MODE_STREAM, UPLOAD_MODE_LOCAL)

STAGE_DUMP = "dump"
STAGE_COMPRESS = "compress"
STAGE_TRANSFER = "transfer"

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
BACKUP_SUFFIX = ".sql.gz"
STAGED_FILE_GLOB = "*_[0-9]*_[0-9]*.sql.gz"

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
