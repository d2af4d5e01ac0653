"""
Problem Report Models
=====================
Pydantic models for the diagnostics boundary.
This is the contract between the TypeScript worker, the worker bridge and
every downstream consumer (HTTP layer, fix prompt builder).

Problem fields:
    file        — relative to the project root, forward slashes
    line        — 1-based
    column      — 1-based
    severity    — "error" or "warning"
    message     — flattened compiler message
    code        — originating rule id (e.g. "TS2304")

Ordering:
    ProblemReport.problems keeps the order the compiler emitted.
    Nothing in this package re-sorts it.

Wire messages use camelCase keys (rawResponse, appPath) since the worker
is addressed through a language-neutral JSON protocol.
"""
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class Problem(BaseModel):
    model_config = ConfigDict(frozen=True)

    file: str
    line: int = Field(ge=1)
    column: int = Field(ge=1)
    severity: Literal["error", "warning"] = "error"
    message: str
    code: str = ""


class ProblemReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    problems: tuple[Problem, ...] = ()


class DiagnosticRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    raw_response: str
    target_path: str


class WorkerInput(BaseModel):
    rawResponse: str
    appPath: str


class WorkerOutput(BaseModel):
    success: bool
    data: Optional[ProblemReport] = None
    error: Optional[str] = None
