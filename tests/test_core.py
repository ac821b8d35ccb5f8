import logging
import subprocess
from datetime import datetime
from pathlib import Path

import pytest

from backuptoaws.core import BackupRunner
from backuptoaws.models import PipelineResult, StageResult, UnitOutcome
from backuptoaws.services.locks import RunLock

FIXED_NOW = datetime(2026, 1, 18, 2, 0, 0)


class FakeUnitPipeline:
    def __init__(self, failures=None):
        self.failures = failures or {}
        self.calls = []

    def run(self, unit, mode, timestamp):
        self.calls.append((unit, mode, timestamp))
        if unit in self.failures:
            return UnitOutcome(unit=unit, success=False, failed_stage=self.failures[unit])
        return UnitOutcome(unit=unit, success=True)


class RecordingNotifier:
    def __init__(self):
        self.results = []

    def notify(self, result, log_file):
        self.results.append((result, log_file))


def build_runner(config, unit_pipeline=None, notifier=None, **kwargs):
    runner = BackupRunner(config, clock=lambda: FIXED_NOW, **kwargs)
    runner.unit_pipeline = unit_pipeline or FakeUnitPipeline()
    runner.notifier = notifier or RecordingNotifier()
    return runner


def test_all_units_succeed_in_stream_mode(make_config):
    pipeline = FakeUnitPipeline()
    notifier = RecordingNotifier()
    runner = build_runner(make_config(databases="app logs"), pipeline, notifier)

    assert runner.run() == 0
    assert runner.result.success_count == 2
    assert runner.result.failure_count == 0
    assert notifier.results == []
    assert pipeline.calls == [
        ("app", "stream", "20260118_020000"),
        ("logs", "stream", "20260118_020000"),
    ]


def test_transfer_failure_is_reported_and_notified(make_config):
    pipeline = FakeUnitPipeline(failures={"logs": "transfer"})
    notifier = RecordingNotifier()
    config = make_config(databases="app logs", notification_email="ops@example.com")
    runner = build_runner(config, pipeline, notifier)

    assert runner.run() == 1
    assert runner.result.success_count == 1
    assert runner.result.failed_units == ["logs (transfer)"]
    assert len(notifier.results) == 1
    notified_result, log_file = notifier.results[0]
    assert notified_result.failed_units == ["logs (transfer)"]
    assert log_file == config.log_file


def test_unit_failure_does_not_stop_remaining_units(make_config):
    pipeline = FakeUnitPipeline(failures={"app": "dump"})
    runner = build_runner(make_config(databases="app logs billing"), pipeline)

    assert runner.run() == 1
    assert [call[0] for call in pipeline.calls] == ["app", "logs", "billing"]
    assert runner.result.success_count == 2
    assert runner.result.failure_count == 1


def test_run_exits_immediately_when_lock_is_held(make_config, caplog):
    config = make_config()
    pipeline = FakeUnitPipeline()
    notifier = RecordingNotifier()
    runner = build_runner(config, pipeline, notifier)
    holder = RunLock(config.lock_file, logger=logging.getLogger("test")).acquire()

    try:
        with caplog.at_level(logging.INFO, logger="backuptoaws"):
            assert runner.run() == 1
    finally:
        holder.release()

    assert pipeline.calls == []
    assert notifier.results == []
    assert runner.result is None
    lock_messages = [r for r in caplog.records if "Another instance is already running" in r.getMessage()]
    assert len(lock_messages) == 1


def test_no_targets_is_fatal(make_config, monkeypatch):
    pipeline = FakeUnitPipeline()
    notifier = RecordingNotifier()
    runner = build_runner(make_config(databases="ALL"), pipeline, notifier)
    monkeypatch.setattr(
        runner,
        "_run_cmd",
        lambda cmd, **_kwargs: subprocess.CompletedProcess(cmd, 0, stdout="mysql\nsys\n", stderr=""),
    )

    assert runner.run() == 1
    assert pipeline.calls == []
    assert notifier.results == []


def test_lock_is_released_after_run(make_config):
    config = make_config()
    runner = build_runner(config, FakeUnitPipeline(failures={"app": "dump"}))

    runner.run()

    RunLock(config.lock_file, logger=logging.getLogger("test")).acquire().release()


def test_interrupt_returns_failure_and_releases_lock(make_config):
    class InterruptingPipeline(FakeUnitPipeline):
        def run(self, unit, mode, timestamp):
            raise KeyboardInterrupt

    config = make_config()
    runner = build_runner(config, InterruptingPipeline())

    assert runner.run() == 1
    RunLock(config.lock_file, logger=logging.getLogger("test")).acquire().release()


def test_local_mode_cleanup_runs_regardless_of_outcome(make_config, monkeypatch):
    config = make_config(upload_mode="local", local_retention_days=5)
    runner = build_runner(config, FakeUnitPipeline(failures={"app": "dump", "logs": "compress"}))
    cleanups = []
    monkeypatch.setattr(
        runner.retention_service,
        "cleanup",
        lambda directory, days: cleanups.append((directory, days)) or 0,
    )

    assert runner.run() == 1
    assert cleanups == [(config.temp_dir, 5)]
    assert Path(config.temp_dir).is_dir()


def test_stream_mode_skips_local_cleanup(make_config, monkeypatch):
    runner = build_runner(make_config())
    monkeypatch.setattr(
        runner.retention_service,
        "cleanup",
        lambda *_args: pytest.fail("cleanup must not run in stream mode"),
    )

    assert runner.run() == 0


def test_cleanup_failure_is_only_a_warning(make_config, monkeypatch):
    runner = build_runner(make_config(upload_mode="local"))

    def broken_cleanup(*_args):
        raise RuntimeError("disk gone")

    monkeypatch.setattr(runner.retention_service, "cleanup", broken_cleanup)

    assert runner.run() == 0


def test_dry_run_plans_without_dumping(make_config, caplog):
    pipeline = FakeUnitPipeline()
    runner = build_runner(make_config(databases="app"), pipeline, dry_run=True)

    with caplog.at_level(logging.INFO, logger="backuptoaws"):
        assert runner.run() == 0

    assert pipeline.calls == []
    assert "s3://backups/mysql/app/app_20260118_020000.sql.gz" in caplog.text


def test_local_mode_dump_failure_leaves_no_staged_file(make_config, monkeypatch):
    """Runs the real unit pipeline with a simulated dump failure for one database."""
    config = make_config(databases="app logs", upload_mode="local")
    runner = BackupRunner(config, clock=lambda: FIXED_NOW)
    runner.notifier = RecordingNotifier()

    def fake_run_pipeline(stages, stdout=None, timeout=None):
        dump_cmd = dict(stages)["dump"]
        stdout.write(b"partial")
        dump_code = 2 if dump_cmd[-1] == "app" else 0
        return PipelineResult(
            stages=(StageResult("dump", dump_code), StageResult("compress", 0)),
        )

    def fake_run(cmd, **_kwargs):
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    monkeypatch.setattr(runner.command_runner, "run_pipeline", fake_run_pipeline)
    monkeypatch.setattr(runner.command_runner, "run", fake_run)

    assert runner.run() == 1

    staging = Path(config.temp_dir)
    assert not (staging / "app_20260118_020000.sql.gz").exists()
    assert (staging / "logs_20260118_020000.sql.gz").exists()
    assert runner.result.failed_units == ["app (dump)"]
