import subprocess

import pytest

from backuptoaws.errors import BackupError, StageError
from backuptoaws.services.storage import StorageService


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None


def test_destination_key_uses_unit_twice_and_shared_timestamp(make_config):
    service = StorageService(make_config(), logger=DummyLogger())

    key = service.destination_key("app", "20260118_020000")

    assert key == "s3://backups/mysql/app/app_20260118_020000.sql.gz"


def test_destination_key_ignores_stray_slashes(make_config):
    service = StorageService(make_config(s3_bucket="backups/", s3_prefix="/prod/mysql/"), logger=DummyLogger())

    key = service.destination_key("logs", "20260118_020000")

    assert key == "s3://backups/prod/mysql/logs/logs_20260118_020000.sql.gz"


def test_stream_command_reads_stdin(make_config):
    service = StorageService(make_config(), logger=DummyLogger())

    cmd = service.build_stream_command("s3://backups/mysql/app/app_x.sql.gz")

    assert cmd == [
        "aws",
        "s3",
        "cp",
        "-",
        "s3://backups/mysql/app/app_x.sql.gz",
        "--region",
        "sa-east-1",
    ]


def test_upload_file_raises_transfer_stage_error_on_failure(make_config):
    service = StorageService(make_config(), logger=DummyLogger())

    def fake_run_cmd(cmd, **_kwargs):
        return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="upload failed: AccessDenied")

    with pytest.raises(StageError) as error:
        service.upload_file("/tmp/app.sql.gz", "s3://backups/mysql/app/app.sql.gz", fake_run_cmd)

    assert error.value.stage == "transfer"
    assert "AccessDenied" in str(error.value)


def test_upload_file_maps_missing_cli_to_transfer_stage(make_config):
    service = StorageService(make_config(), logger=DummyLogger())

    def fake_run_cmd(cmd, **_kwargs):
        raise BackupError("Required command not found: aws. Please install it and try again.")

    with pytest.raises(StageError) as error:
        service.upload_file("/tmp/app.sql.gz", "s3://backups/mysql/app/app.sql.gz", fake_run_cmd)

    assert error.value.stage == "transfer"


def test_upload_file_passes_region_and_timeout(make_config):
    service = StorageService(make_config(stage_timeout_seconds=30.0), logger=DummyLogger())
    calls = []

    def fake_run_cmd(cmd, **kwargs):
        calls.append((cmd, kwargs))
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    service.upload_file("/tmp/app.sql.gz", "s3://backups/mysql/app/app.sql.gz", fake_run_cmd)

    cmd, kwargs = calls[0]
    assert cmd[-2:] == ["--region", "sa-east-1"]
    assert kwargs["timeout"] == 30.0
