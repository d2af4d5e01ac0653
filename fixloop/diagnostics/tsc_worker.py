"""
TypeScript Diagnostics Worker
=============================
Standalone worker process spawned by the worker bridge, one per request.

Protocol:
    stdin   — exactly one JSON line: {"rawResponse": str, "appPath": str}
    stdout  — exactly one JSON line: {"success": bool, "data"?: ProblemReport,
              "error"?: str}
    stderr  — log output only

Pipeline:
    1. Parse write/rename/delete tags from the raw response
    2. Locate the project's TypeScript (node_modules/typescript in the
       project or any parent directory)
    3. Locate the tsconfig (tsconfig.app.json before tsconfig.json)
    4. Build a scratch overlay with the edits applied
    5. Extend the tsconfig so every written TypeScript file is compiled,
       even outside the config's include patterns
    6. Run tsc --noEmit in the overlay and parse its diagnostics

Every failure inside the pipeline is reported as {"success": false}; the
process still exits 0. A non-zero exit means the worker itself broke.
"""
import json
import logging
import os
import re
import subprocess
import sys
from typing import List

# Allow running as a plain script path as well as with -m
if __package__ in (None, ""):
    sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..")))

from fixloop.core.config import NODE_BINARY
from fixloop.diagnostics.overlay import ProjectOverlay
from fixloop.diagnostics.response_tags import ResponseChanges, parse_response_changes
from fixloop.models.problem_report import Problem, ProblemReport, WorkerInput, WorkerOutput
from fixloop.utils.path_utils import normalize_path, to_posix

logger = logging.getLogger("fixloop.diagnostics.tsc_worker")

# vite apps keep the real client config in tsconfig.app.json; the root
# tsconfig.json there is only a project-reference shell.
TSCONFIG_CANDIDATES = ("tsconfig.app.json", "tsconfig.json")

# Written next to the real config inside the overlay only
CHECK_CONFIG_NAME = "tsconfig.fixloop-check.json"

_CHECKED_EXTENSIONS = (".ts", ".tsx")

_TSC_RELATIVE_PATH = os.path.join("node_modules", "typescript", "bin", "tsc")

# src/App.tsx(12,3): error TS2304: Cannot find name 'foo'.
_DIAGNOSTIC_RE = re.compile(
    r"^(?P<file>.+?)\((?P<line>\d+),(?P<column>\d+)\):\s+"
    r"(?P<severity>error|warning)\s+(?P<code>TS\d+):\s*(?P<message>.*)$"
)


class WorkerError(Exception):
    """A pipeline step failed; the message is reported to the bridge."""


def load_local_typescript(app_path: str) -> str:
    """
    Return the path of the tsc entry point serving *app_path*.

    The project's own node_modules is checked first, then each parent
    directory's, so hoisted and workspace installs are found the way
    Node resolves them.
    """
    directory = os.path.abspath(app_path)
    while True:
        tsc_path = os.path.join(directory, _TSC_RELATIVE_PATH)
        if os.path.isfile(tsc_path):
            return tsc_path
        parent = os.path.dirname(directory)
        if parent == directory:
            break
        directory = parent
    raise WorkerError(
        f"Failed to load TypeScript from {app_path} because of "
        f"missing {_TSC_RELATIVE_PATH.replace(os.sep, '/')}"
    )


def find_typescript_config(app_path: str) -> str:
    for name in TSCONFIG_CANDIDATES:
        if os.path.isfile(os.path.join(app_path, name)):
            return name
    raise WorkerError(
        f"No TypeScript configuration file found in {app_path}. "
        f"Expected one of: {', '.join(TSCONFIG_CANDIDATES)}"
    )


def changed_source_files(changes: ResponseChanges, overlay_root: str) -> List[str]:
    """TypeScript files the response writes or renames into place, in order."""
    candidates = [w.path for w in changes.writes] + [r.to_path for r in changes.renames]
    files: List[str] = []
    for path in candidates:
        rel = to_posix(os.path.normpath(to_posix(path)))
        if not rel.endswith(_CHECKED_EXTENSIONS) or rel in files:
            continue
        if os.path.isfile(os.path.join(overlay_root, rel)):
            files.append(rel)
    return files


def write_check_config(overlay_root: str, tsconfig_name: str, changes: ResponseChanges) -> str:
    """
    Return the config name tsc should run with.

    When the response touches TypeScript files, a config extending the
    project's own is written into the overlay with those files listed,
    so they are checked even if the project's include patterns miss
    them. Deleted files are gone from the overlay and drop out on their
    own.
    """
    files = changed_source_files(changes, overlay_root)
    if not files:
        return tsconfig_name

    config = {"extends": f"./{tsconfig_name}", "files": files}
    with open(os.path.join(overlay_root, CHECK_CONFIG_NAME), "w", encoding="utf-8") as f:
        json.dump(config, f, indent=2)
    logger.debug("Check config lists %d changed file(s)", len(files))
    return CHECK_CONFIG_NAME


def parse_tsc_output(output: str, root: str) -> List[Problem]:
    """
    Convert ``tsc --pretty false`` output into Problems, in emitted order.

    Indented lines following a diagnostic are the rest of a chained
    message and are appended to it. Diagnostics without a file
    (global/config diagnostics) are skipped.
    """
    problems: List[dict] = []
    for line in output.splitlines():
        match = _DIAGNOSTIC_RE.match(line)
        if match:
            problems.append({
                "file": normalize_path(match.group("file"), root),
                "line": int(match.group("line")),
                "column": int(match.group("column")),
                "severity": match.group("severity"),
                "code": match.group("code"),
                "message": match.group("message").strip(),
            })
        elif problems and line.startswith(" ") and line.strip():
            problems[-1]["message"] += "\n" + line.strip()
    return [Problem(**p) for p in problems]


def run_typescript_check(tsc_path: str, overlay_root: str, tsconfig_name: str) -> ProblemReport:
    command = [NODE_BINARY, tsc_path, "--noEmit", "--pretty", "false", "-p", tsconfig_name]
    logger.info("Running %s in %s", " ".join(command[1:]), overlay_root)
    try:
        result = subprocess.run(command, capture_output=True, text=True, cwd=overlay_root)
    except FileNotFoundError:
        raise WorkerError(f"Node executable not found: {NODE_BINARY}") from None

    problems = parse_tsc_output(result.stdout, overlay_root)
    # exit 1/2 mean "diagnostics reported"; anything else with no parsed
    # diagnostics means tsc itself failed
    if not problems and result.returncode not in (0, 1, 2):
        detail = (result.stderr or result.stdout).strip()[:500]
        raise WorkerError(f"tsc exited with code {result.returncode}: {detail}")
    if not problems and result.returncode != 0 and result.stdout.strip():
        raise WorkerError(f"TypeScript config error: {result.stdout.strip()[:500]}")
    return ProblemReport(problems=problems)


def process_typescript_check(worker_input: WorkerInput) -> WorkerOutput:
    try:
        app_path = os.path.abspath(worker_input.appPath)
        changes = parse_response_changes(worker_input.rawResponse)
        tsc_path = load_local_typescript(app_path)
        tsconfig_name = find_typescript_config(app_path)
        with ProjectOverlay(app_path, changes) as overlay_root:
            config_name = write_check_config(overlay_root, tsconfig_name, changes)
            report = run_typescript_check(tsc_path, overlay_root, config_name)
        return WorkerOutput(success=True, data=report)
    except Exception as e:
        logger.error("TypeScript check failed: %s", e)
        return WorkerOutput(success=False, error=str(e) or type(e).__name__)


def main() -> int:
    from fixloop.utils.logging_config import setup_logging
    setup_logging(level=logging.INFO, log_dir="", stream=sys.stderr)

    line = sys.stdin.readline()
    try:
        worker_input = WorkerInput.model_validate_json(line)
    except ValueError as e:
        output = WorkerOutput(success=False, error=f"Invalid worker input: {e}")
    else:
        output = process_typescript_check(worker_input)

    sys.stdout.write(output.model_dump_json(exclude_none=True) + "\n")
    sys.stdout.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())
