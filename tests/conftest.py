from dataclasses import replace

import pytest

from backuptoaws.models import RunConfig


@pytest.fixture
def make_config(tmp_path):
    def _make(**overrides) -> RunConfig:
        config = RunConfig(
            mysql_host="db.internal",
            mysql_port="3306",
            databases="app logs",
            s3_bucket="backups",
            s3_prefix="mysql",
            aws_region="sa-east-1",
            upload_mode="stream",
            gzip_level=6,
            local_retention_days=3,
            temp_dir=str(tmp_path / "staging"),
            log_file=str(tmp_path / "backup.log"),
            defaults_file=str(tmp_path / ".my.cnf"),
            lock_file=str(tmp_path / "backuptoaws.lock"),
        )
        return replace(config, **overrides)

    return _make
