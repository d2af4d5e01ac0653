"""
POST /problems
Type-checks the file edits in a raw AI response against a project and
returns the ProblemReport.

Diagnostics only: no model backend is resolved here, so a broken LLM
setting never affects this endpoint.
"""
import logging

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, field_validator

from fixloop.core.errors import DiagnosticFailure
from fixloop.diagnostics.worker_bridge import generate_problem_report
from fixloop.models.problem_report import DiagnosticRequest, ProblemReport

logger = logging.getLogger(__name__)

router = APIRouter()


class ProblemsRequest(BaseModel):
    raw_response: str
    app_path: str

    @field_validator("app_path")
    @classmethod
    def validate_absolute(cls, v: str) -> str:
        if not v.startswith("/") and ":" not in v[:3]:
            raise ValueError("app_path must be an absolute path")
        return v


@router.post("/problems", response_model=ProblemReport)
async def check_problems(request: ProblemsRequest):
    diagnostic_request = DiagnosticRequest(raw_response=request.raw_response, target_path=request.app_path)
    try:
        return await generate_problem_report(diagnostic_request)
    except DiagnosticFailure as e:
        raise HTTPException(status_code=422, detail=str(e))
