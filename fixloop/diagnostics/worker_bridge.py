"""
Diagnostic Worker Bridge
========================
Turns a DiagnosticRequest into a ProblemReport by delegating the type
check to an isolated worker process.

BOUNDARY RULES (CRITICAL):
    - One worker process per request. Workers are never reused.
    - Exactly one input message, exactly one terminal event.
    - The worker is terminated on EVERY exit path (success, failure
      message, transport error, abnormal exit, caller cancellation).
    - Every failure surfaces as DiagnosticFailure. No raw process errors
      leak to the caller, and a report is never partially returned.
    - No retries here. Retry policy belongs to the caller.

Terminal events (first wins):
    message success=true   → ProblemReport
    message success=false  → DiagnosticFailure(error)
    spawn/pipe/parse error → DiagnosticFailure(underlying error)
    exit before message    → DiagnosticFailure("worker exited with code N")

TIMEOUTS:
    None. A hung worker hangs the caller. Wrap the call in
    asyncio.wait_for for a deadline; cancellation still tears the
    worker down through WorkerProcess.__aexit__.
"""
import asyncio
import logging
import os
import shlex
import sys
from dataclasses import dataclass
from typing import List, Optional, Sequence

from pydantic import ValidationError

from fixloop.core.config import TSC_WORKER_COMMAND
from fixloop.core.errors import DiagnosticFailure
from fixloop.models.problem_report import (
    DiagnosticRequest,
    ProblemReport,
    WorkerInput,
    WorkerOutput,
)

logger = logging.getLogger(__name__)

# A report for a big project easily exceeds asyncio's 64 KiB line default
_MAX_MESSAGE_BYTES = 32 * 1024 * 1024

_WORKER_SCRIPT = os.path.join(os.path.dirname(os.path.abspath(__file__)), "tsc_worker.py")


def resolve_worker_command() -> List[str]:
    """Command line used to spawn a worker (TSC_WORKER_COMMAND overrides)."""
    if TSC_WORKER_COMMAND:
        return shlex.split(TSC_WORKER_COMMAND)
    return [sys.executable, _WORKER_SCRIPT]


# ---------------------------------------------------------------------------
# Worker Outcome
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class WorkerOutcome:
    """Result of one worker run: a report, or the reason it failed."""
    report: Optional[ProblemReport] = None
    failure_reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.report is not None

    @classmethod
    def success(cls, report: ProblemReport) -> "WorkerOutcome":
        return cls(report=report)

    @classmethod
    def failure(cls, reason: str) -> "WorkerOutcome":
        return cls(failure_reason=reason)


# ---------------------------------------------------------------------------
# Worker Process Handle
# ---------------------------------------------------------------------------
class WorkerProcess:
    """
    One-shot handle around a worker child process.

    Usage:
        async with WorkerProcess(command) as worker:
            await worker.send(message)
            output = await worker.receive()
        # worker is dead and reaped here
    """

    def __init__(self, command: Sequence[str]) -> None:
        self.command = list(command)
        self.process: Optional[asyncio.subprocess.Process] = None

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process else None

    @property
    def has_exited(self) -> bool:
        return self.process is None or self.process.returncode is not None

    async def start(self) -> None:
        self.process = await asyncio.create_subprocess_exec(
            *self.command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            limit=_MAX_MESSAGE_BYTES,
        )
        logger.debug("Worker started | pid=%d", self.process.pid)

    async def __aenter__(self) -> "WorkerProcess":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.terminate()

    async def send(self, message: WorkerInput) -> None:
        """Write the single input message and close stdin."""
        stdin = self.process.stdin
        try:
            stdin.write(message.model_dump_json().encode("utf-8") + b"\n")
            await stdin.drain()
            stdin.close()
        except (BrokenPipeError, ConnectionResetError):
            # Worker died before reading; receive() reports how it exited
            logger.debug("Worker %d closed stdin early", self.process.pid)

    async def receive(self) -> WorkerOutput:
        """Wait for the single output message or the worker's exit."""
        while True:
            try:
                line = await self.process.stdout.readline()
            except ValueError as e:
                raise DiagnosticFailure(f"worker message too large: {e}") from e
            if not line:
                code = await self.process.wait()
                if code != 0:
                    raise DiagnosticFailure(f"worker exited with code {code}")
                raise DiagnosticFailure("worker exited without reporting a result")
            if line.strip():
                break
        try:
            return WorkerOutput.model_validate_json(line)
        except ValidationError as e:
            raise DiagnosticFailure(f"malformed worker message: {e}") from e

    async def terminate(self) -> None:
        """Kill and reap the worker. Safe to call repeatedly or after exit."""
        if self.has_exited:
            return
        try:
            self.process.kill()
        except ProcessLookupError:
            pass
        await self.process.wait()
        logger.debug("Worker %d terminated | code=%s", self.process.pid, self.process.returncode)


# ---------------------------------------------------------------------------
# Bridge
# ---------------------------------------------------------------------------
async def run_diagnostic_worker(
    request: DiagnosticRequest,
    worker_command: Optional[Sequence[str]] = None,
) -> WorkerOutcome:
    """Spawn one worker for *request* and collect its outcome."""
    command = list(worker_command or resolve_worker_command())
    try:
        async with WorkerProcess(command) as worker:
            await worker.send(WorkerInput(rawResponse=request.raw_response, appPath=request.target_path))
            output = await worker.receive()
    except DiagnosticFailure as e:
        return WorkerOutcome.failure(e.reason)
    except OSError as e:
        return WorkerOutcome.failure(f"{type(e).__name__}: {e}")

    if output.success and output.data is not None:
        return WorkerOutcome.success(output.data)
    return WorkerOutcome.failure(output.error or "Unknown worker error")


async def generate_problem_report(
    request: DiagnosticRequest,
    worker_command: Optional[Sequence[str]] = None,
) -> ProblemReport:
    """
    Type-check the edits in ``request.raw_response`` against the project
    at ``request.target_path``.

    Parameters
    ----------
    request : DiagnosticRequest
        Raw AI response plus absolute project root.
    worker_command : sequence of str, optional
        Worker command line; defaults to ``resolve_worker_command()``.

    Returns
    -------
    ProblemReport
        Exactly the report the worker emitted, problems in emitted order.

    Raises
    ------
    DiagnosticFailure
        On every failure path.
    """
    logger.info("Starting TSC worker for app %s", request.target_path)

    outcome = await run_diagnostic_worker(request, worker_command)

    if outcome.ok:
        logger.info(
            "TSC worker completed successfully for app %s | problems=%d",
            request.target_path, len(outcome.report.problems),
        )
        return outcome.report

    logger.error("TSC worker failed for app %s: %s", request.target_path, outcome.failure_reason)
    raise DiagnosticFailure(outcome.failure_reason)
