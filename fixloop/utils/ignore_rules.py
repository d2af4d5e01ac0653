"""
Ignore Rules
============
Directories left out when the diagnostics worker copies a project into
its scratch overlay.

Top-level build output and caches are skipped entirely. node_modules is
never copied at any depth; the top-level one is linked into the overlay
instead so the project's own TypeScript and type packages resolve.
"""
import os

LINKED_DIRS: tuple[str, ...] = ("node_modules",)

OVERLAY_IGNORE_DIRS: set[str] = {
    "node_modules", ".git", "dist", "build", ".next", ".turbo",
    ".cache", "coverage", "__pycache__", ".venv", "venv",
}

_NESTED_IGNORE_DIRS: set[str] = {"node_modules", ".git", "__pycache__"}


def overlay_ignore(project_root: str):
    """Return a ``shutil.copytree`` ignore callable for *project_root*."""
    root = os.path.abspath(project_root)

    def _ignore(directory: str, names: list[str]) -> set[str]:
        skip = OVERLAY_IGNORE_DIRS if os.path.abspath(directory) == root else _NESTED_IGNORE_DIRS
        return {n for n in names if n in skip}

    return _ignore
