"""
Fix Service
===========
Composes the two components into the detect-and-fix loop:

    AI response → diagnostics worker → ProblemReport
                → (problems found) → fix prompt → failover stream

The worker bridge and the stream orchestrator never call each other;
this module is the only place they meet.
"""
import logging
from typing import Optional, Sequence

from fixloop.diagnostics.worker_bridge import generate_problem_report
from fixloop.llm.backends import Backend, get_backup_backends, get_primary_backend
from fixloop.llm.client import ErrorObserver, StreamHandle, StreamOptions, start_text_stream
from fixloop.llm.failover import StartStream, stream_with_failover
from fixloop.llm.prompts import FIX_SYSTEM_PROMPT, create_problem_fix_prompt
from fixloop.models.problem_report import DiagnosticRequest, ProblemReport

logger = logging.getLogger(__name__)


class FixService:
    """
    Detect problems in generated code and stream a fix for them.

    Parameters
    ----------
    primary : Backend or None
        Model the user picked (defaults to PRIMARY_PROVIDER).
    backups : sequence of Backend or None
        Failover order (defaults to BACKUP_PROVIDERS).
    start_stream : callable
        Generation API handed to the orchestrator.
    worker_command : sequence of str or None
        Diagnostics worker command line override.
    """

    def __init__(
        self,
        primary: Optional[Backend] = None,
        backups: Optional[Sequence[Backend]] = None,
        start_stream: StartStream = start_text_stream,
        worker_command: Optional[Sequence[str]] = None,
    ) -> None:
        self.primary = primary or get_primary_backend()
        self.backups = list(backups) if backups is not None else get_backup_backends(primary_name=self.primary.name)
        self.start_stream = start_stream
        self.worker_command = worker_command

    async def check_problems(self, raw_response: str, app_path: str) -> ProblemReport:
        request = DiagnosticRequest(raw_response=raw_response, target_path=app_path)
        return await generate_problem_report(request, worker_command=self.worker_command)

    def build_fix_options(self, report: ProblemReport, on_error: Optional[ErrorObserver] = None) -> StreamOptions:
        return StreamOptions(
            backend=self.primary,
            system=FIX_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": create_problem_fix_prompt(report)}],
            on_error=on_error,
        )

    async def stream_fix(self, report: ProblemReport, on_error: Optional[ErrorObserver] = None) -> StreamHandle:
        logger.info(
            "Streaming fix for %d problem(s) | primary=%s | backups=%s",
            len(report.problems), self.primary.name, [b.name for b in self.backups] or "none",
        )
        options = self.build_fix_options(report, on_error)
        return await stream_with_failover(options, self.backups, start_stream=self.start_stream)
