"""Shared domain models for backuptoaws."""

import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import List, Optional, Tuple

# Return codes a stage reports when its reader went away first.
BROKEN_PIPE_RETURNCODES = (-13, 141)
BROKEN_PIPE_PATTERN = re.compile(r"errno[:\s]*32|broken pipe|EPIPE", re.IGNORECASE)


@dataclass(frozen=True)
class RunConfig:
    """Validated settings, immutable for the whole run."""

    mysql_host: str
    mysql_port: str
    databases: str
    s3_bucket: str
    s3_prefix: str
    aws_region: str
    upload_mode: str
    gzip_level: int
    local_retention_days: int
    temp_dir: str
    log_file: str
    defaults_file: str
    lock_file: str
    notification_email: Optional[str] = None
    stage_timeout_seconds: Optional[float] = None


@dataclass(frozen=True)
class StageResult:
    name: str
    returncode: int
    stderr: str = ""
    timed_out: bool = False
    # time.monotonic() when the process was reaped, None when unknown
    finished_at: Optional[float] = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    def describe(self) -> str:
        if self.timed_out:
            message = f"{self.name} timed out"
        else:
            message = f"{self.name} failed (exit {self.returncode})"
        if self.stderr:
            message = f"{message}: {self.stderr}"
        return message

    def lost_reader_to(self, downstream: "StageResult") -> bool:
        """Whether this stage's failure follows from ``downstream`` failing first."""
        if self.timed_out or downstream.ok:
            return False
        if self.returncode in BROKEN_PIPE_RETURNCODES:
            return True
        if BROKEN_PIPE_PATTERN.search(self.stderr):
            return True
        if self.finished_at is None or downstream.finished_at is None:
            return False
        return downstream.finished_at < self.finished_at


@dataclass(frozen=True)
class PipelineResult:
    """Exit information for every stage of a pipe chain, in chain order."""

    stages: Tuple[StageResult, ...]

    @property
    def ok(self) -> bool:
        return all(stage.ok for stage in self.stages)

    @property
    def failed_stages(self) -> List[StageResult]:
        return [stage for stage in self.stages if not stage.ok]

    @property
    def failed_stage(self) -> Optional[StageResult]:
        """First failing stage that did not just lose its downstream reader."""
        for index, stage in enumerate(self.stages):
            if stage.ok:
                continue
            if any(stage.lost_reader_to(later) for later in self.stages[index + 1 :]):
                continue
            return stage
        return None

    def describe(self) -> str:
        failed = self.failed_stage
        if failed is None:
            return "all stages succeeded"
        others = [stage.describe() for stage in self.failed_stages if stage is not failed]
        return "; ".join([failed.describe()] + others)

    def stage(self, name: str) -> Optional[StageResult]:
        for stage in self.stages:
            if stage.name == name:
                return stage
        return None


@dataclass(frozen=True)
class UnitOutcome:
    unit: str
    success: bool
    failed_stage: Optional[str] = None
    duration_seconds: float = 0.0
    artifact_size: Optional[int] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class RunResult:
    """Aggregate of one run, folded one unit outcome at a time."""

    timestamp: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    outcomes: Tuple[UnitOutcome, ...] = field(default_factory=tuple)

    def record(self, outcome: UnitOutcome) -> "RunResult":
        return replace(self, outcomes=self.outcomes + (outcome,))

    def finish(self, ended_at: datetime) -> "RunResult":
        return replace(self, ended_at=ended_at)

    @property
    def success_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.success)

    @property
    def failed_units(self) -> List[str]:
        return [
            f"{outcome.unit} ({outcome.failed_stage or 'unknown'})"
            for outcome in self.outcomes
            if not outcome.success
        ]

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.ended_at is None:
            return None
        return (self.ended_at - self.started_at).total_seconds()

    @property
    def exit_code(self) -> int:
        return 1 if self.failure_count else 0
