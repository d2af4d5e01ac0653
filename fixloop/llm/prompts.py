"""
LLM Prompts
===========
Prompts for the fix-problems step of the detect-and-fix loop.

Prompt Design Rules:
    - The model answers with <dyad-write> tags only, so its answer can
      be fed straight back into the diagnostics worker.
    - Every problem is listed with file:line:column and its TS code.
    - Fix the reported problems only; no unrelated refactoring.
"""
import logging

from fixloop.models.problem_report import Problem, ProblemReport

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# System Prompt
# ---------------------------------------------------------------------------
FIX_SYSTEM_PROMPT = (
    "You are a TypeScript fixer working inside an existing project.\n"
    "\n"
    "HARD RULES — you MUST follow ALL of these:\n"
    "1. Fix ONLY the reported compile-time errors.\n"
    "2. Do NOT refactor, rename, or reorganise unrelated code.\n"
    "3. Preserve ALL comments exactly as they are.\n"
    "4. Write every changed file in full, wrapped in a tag:\n"
    '   <dyad-write path="relative/path.tsx" description="short reason">\n'
    "   ...complete file content...\n"
    "   </dyad-write>\n"
    "5. Use <dyad-rename from=\"a\" to=\"b\"></dyad-rename> and "
    "<dyad-delete path=\"a\"></dyad-delete> only when the fix needs them.\n"
    "6. Keep any explanation to one or two sentences outside the tags."
)


# ---------------------------------------------------------------------------
# User Prompt Builder
# ---------------------------------------------------------------------------
def format_problem(index: int, problem: Problem) -> str:
    location = f"{problem.file}:{problem.line}:{problem.column}"
    code = f" ({problem.code})" if problem.code else ""
    return f"{index}. {location} - {problem.message}{code}"


def create_problem_fix_prompt(report: ProblemReport) -> str:
    """
    Build the user prompt asking the model to fix every problem in *report*.

    Problems are listed in report order.
    """
    total = len(report.problems)
    noun = "error" if total == 1 else "errors"
    parts = [f"Fix these {total} TypeScript compile-time {noun}:", ""]
    parts.extend(format_problem(i, p) for i, p in enumerate(report.problems, 1))
    parts.extend(["", "Please fix all errors in a concise way."])
    return "\n".join(parts)
