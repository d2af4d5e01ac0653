"""
POST /fix
Diagnoses a raw AI response and, when problems are found, streams a fix
from the configured model (with backup failover) as plain text.

Response:
    no problems    → JSON {"problems": [], "fix": null}
    problems found → text/plain stream, X-Fix-Backend header names the
                     backend that accepted the request
    all models down → 502 "Primary model failed: <primary error>"
"""
import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from fixloop.api.problems import ProblemsRequest
from fixloop.core.errors import DiagnosticFailure
from fixloop.llm.client import StreamErrorEvent
from fixloop.services.fix_service import FixService

logger = logging.getLogger(__name__)

router = APIRouter()

_service: FixService | None = None


def get_fix_service() -> FixService:
    global _service
    if _service is None:
        _service = FixService()
    return _service


def _log_attempt_failure(event: StreamErrorEvent) -> None:
    logger.warning("Fix stream attempt failed on %s: %s", event.backend_name, event.error)


@router.post("/fix")
async def fix_problems(request: ProblemsRequest):
    service = get_fix_service()
    try:
        report = await service.check_problems(request.raw_response, request.app_path)
    except DiagnosticFailure as e:
        raise HTTPException(status_code=422, detail=str(e))

    if not report.problems:
        return {"problems": [], "fix": None}

    try:
        handle = await service.stream_fix(report, on_error=_log_attempt_failure)
    except Exception as e:
        raise HTTPException(status_code=502, detail=f"Primary model failed: {e}")

    # text_stream() closes the handle when it runs; the background task
    # covers a client that disconnects before the first chunk
    return StreamingResponse(
        handle.text_stream(),
        media_type="text/plain",
        headers={
            "X-Fix-Backend": handle.backend.name,
            "X-Problem-Count": str(len(report.problems)),
        },
        background=BackgroundTask(handle.aclose),
    )
