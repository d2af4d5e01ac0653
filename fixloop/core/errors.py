"""
Error Types
===========
Errors that cross component boundaries.

DiagnosticFailure
    The only error the worker bridge raises. Worker failure messages,
    transport errors and abnormal exits are all normalised into it.

StreamAttemptFailure
    Record of one failed backend attempt inside the failover loop.
    Never raised; on total failure the primary's own exception is
    re-raised instead.
"""
from dataclasses import dataclass


class DiagnosticFailure(Exception):
    """Could not analyze the generated code."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Could not analyze the generated code: {reason}")


@dataclass(frozen=True)
class StreamAttemptFailure:
    backend_name: str
    error: BaseException
    is_primary: bool = False

    def describe(self) -> str:
        role = "primary" if self.is_primary else "backup"
        return f"{role} {self.backend_name}: {type(self.error).__name__}: {self.error}"
