"""Subprocess execution service for backuptoaws."""

import subprocess
import tempfile
import threading
import time
from typing import IO, Dict, List, Optional, Sequence, Tuple

from backuptoaws.errors import BackupError, StageError
from backuptoaws.models import PipelineResult, StageResult


class CommandRunner:
    """Runs external commands and pipe chains with consistent error handling."""

    def __init__(self, logger, default_timeout: Optional[float] = None):
        self.logger = logger
        self.default_timeout = default_timeout

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        timeout: Optional[float] = None,
        input_text: Optional[str] = None,
    ) -> subprocess.CompletedProcess:
        cmd_str = " ".join(cmd)
        self.logger.debug("Executing: %s", cmd_str)

        effective_timeout = timeout if timeout is not None else self.default_timeout

        try:
            result = subprocess.run(
                cmd,
                text=True,
                capture_output=capture_output,
                timeout=effective_timeout,
                input=input_text,
            )
        except FileNotFoundError as exc:
            raise BackupError(
                f"Required command not found: {cmd[0]}. Please install it and try again."
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise BackupError(f"Command timed out after {effective_timeout}s: {cmd_str}") from exc
        except OSError as exc:
            raise BackupError(f"Failed to execute command: {cmd_str}. {exc}") from exc

        if capture_output and result.stdout:
            self.logger.debug("Command output: %s", result.stdout.strip())

        if result.returncode == 0:
            return result

        stderr = (result.stderr or "").strip() if capture_output else ""
        message = f"Command failed ({result.returncode}): {cmd_str}"
        if stderr:
            message = f"{message}\n{stderr}"

        if check:
            raise BackupError(message)

        self.logger.debug(message)
        return result

    def run_pipeline(
        self,
        stages: Sequence[Tuple[str, List[str]]],
        stdout: Optional[IO] = None,
        timeout: Optional[float] = None,
    ) -> PipelineResult:
        """Run ``stages`` as a connected pipe chain and report each exit status.

        ``stdout`` receives the output of the last stage (discarded when None).
        A stage whose command cannot be started raises StageError naming it.
        """
        effective_timeout = timeout if timeout is not None else self.default_timeout
        self.logger.debug(
            "Executing pipeline: %s", " | ".join(" ".join(cmd) for _, cmd in stages)
        )

        started: List[Tuple[str, subprocess.Popen, IO[bytes]]] = []
        previous_stdout = None
        try:
            for index, (name, cmd) in enumerate(stages):
                is_last = index == len(stages) - 1
                stderr_file = tempfile.TemporaryFile()
                try:
                    process = subprocess.Popen(
                        cmd,
                        stdin=previous_stdout,
                        stdout=(stdout or subprocess.DEVNULL) if is_last else subprocess.PIPE,
                        stderr=stderr_file,
                    )
                except OSError as exc:
                    stderr_file.close()
                    self._kill(started)
                    if isinstance(exc, FileNotFoundError):
                        message = f"Required command not found: {cmd[0]}. Please install it and try again."
                    else:
                        message = f"Failed to start {name} command: {exc}"
                    raise StageError(name, message) from exc
                finally:
                    # Only the child may hold the read end, so upstream sees EPIPE.
                    if previous_stdout is not None:
                        previous_stdout.close()
                started.append((name, process, stderr_file))
                previous_stdout = process.stdout

            finished_at, timed_out = self._wait_all(started, effective_timeout)
            return PipelineResult(
                stages=tuple(
                    StageResult(
                        name=name,
                        returncode=process.returncode,
                        stderr=self._read_stderr(stderr_file),
                        timed_out=name in timed_out,
                        finished_at=finished_at.get(name),
                    )
                    for name, process, stderr_file in started
                )
            )
        except BaseException:
            self._kill(started)
            raise
        finally:
            for _, _, stderr_file in started:
                stderr_file.close()

    def _wait_all(self, started, timeout: Optional[float]) -> Tuple[Dict[str, float], List[str]]:
        """Reap every stage, recording when each one exited.

        Exit order tells a stage that failed first apart from upstream stages
        that only failed because their reader was gone.
        """
        finished_at: Dict[str, float] = {}

        def wait_for(name, process):
            process.wait()
            finished_at[name] = time.monotonic()

        waiters = [
            threading.Thread(target=wait_for, args=(name, process), daemon=True)
            for name, process, _ in started
        ]
        for waiter in waiters:
            waiter.start()

        deadline = time.monotonic() + timeout if timeout is not None else None
        timed_out: List[str] = []
        for waiter in waiters:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            waiter.join(remaining)
            if waiter.is_alive():
                timed_out = [name for name, process, _ in started if name not in finished_at]
                self.logger.debug("Pipeline exceeded %ss, killing: %s", timeout, ", ".join(timed_out))
                self._kill(started)
                break

        for waiter in waiters:
            waiter.join()
        return finished_at, timed_out

    @staticmethod
    def _kill(started):
        for _, process, _ in started:
            if process.poll() is None:
                process.kill()
                process.wait()

    @staticmethod
    def _read_stderr(stderr_file) -> str:
        stderr_file.seek(0)
        return stderr_file.read().decode("utf-8", errors="replace").strip()
