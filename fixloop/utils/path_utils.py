"""
Path Utils
==========
Path normalisation and project-relative conversion helpers.

Responsibilities:
    - Convert absolute compiler paths to project-relative paths
    - Normalise path separators to forward slashes
    - Validate that response-supplied paths stay inside the project root
"""
from pathlib import Path


class UnsafePathError(ValueError):
    """A response-supplied path points outside the project root."""


def to_posix(raw_path: str) -> str:
    return raw_path.replace("\\", "/")


def safe_join(root: str, relative: str) -> Path:
    """
    Join *relative* onto *root*, refusing results outside *root*.

    Raises
    ------
    UnsafePathError
        If *relative* is absolute or climbs out of *root* with ``..``.
    """
    base = Path(root).resolve()
    if Path(relative).is_absolute() or Path(to_posix(relative)).is_absolute():
        raise UnsafePathError(f"Absolute path not allowed: {relative}")
    candidate = (base / to_posix(relative)).resolve()
    try:
        candidate.relative_to(base)
    except ValueError:
        raise UnsafePathError(f"Path escapes project root: {relative}") from None
    return candidate


def normalize_path(raw_path: str, root: str) -> str:
    """
    Convert a tool-output path to a root-relative, forward-slash path.
    """
    try:
        p = Path(root, to_posix(raw_path)).resolve()
        return p.relative_to(Path(root).resolve()).as_posix()
    except (ValueError, RuntimeError):
        # Outside root: normalise slashes only
        return to_posix(raw_path)
