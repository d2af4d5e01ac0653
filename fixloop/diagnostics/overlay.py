"""
Project Overlay
===============
Scratch copy of a project with a response's file edits applied, so the
type checker sees the code as it would be after the edits land.

The real project directory is never written to.

Layout:
    <tmp>/project        copy of the project, its node_modules linked in
    <tmp>/node_modules   link to the nearest parent directory's
                         node_modules, when packages are hoisted there

Edit order:
    1. Deletes
    2. Renames (content of the source moves to the destination when the
       source exists; otherwise the rename only removes the source)
    3. Writes

Lifecycle:
    with ProjectOverlay(app_path, changes) as root:
        ...  # root is the overlay directory
    # overlay removed here, on every exit path
"""
import logging
import os
import shutil
import tempfile
from typing import Optional

from fixloop.diagnostics.response_tags import ResponseChanges
from fixloop.utils.ignore_rules import LINKED_DIRS, overlay_ignore
from fixloop.utils.path_utils import safe_join

logger = logging.getLogger(__name__)


def _find_in_parents(path: str, name: str) -> Optional[str]:
    directory = os.path.dirname(path)
    while True:
        candidate = os.path.join(directory, name)
        if os.path.isdir(candidate):
            return candidate
        parent = os.path.dirname(directory)
        if parent == directory:
            return None
        directory = parent


class ProjectOverlay:

    def __init__(self, app_path: str, changes: ResponseChanges) -> None:
        self.app_path = os.path.abspath(app_path)
        self.changes = changes
        self._tmp_dir: Optional[str] = None
        self.root: str = ""

    def __enter__(self) -> str:
        self._tmp_dir = tempfile.mkdtemp(prefix="fixloop-overlay-")
        self.root = os.path.join(self._tmp_dir, "project")
        try:
            shutil.copytree(
                self.app_path, self.root,
                ignore=overlay_ignore(self.app_path),
                symlinks=True,
            )
            self._link_shared_dirs()
            self._apply_changes()
        except BaseException:
            self.cleanup()
            raise
        return self.root

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        if self._tmp_dir is not None:
            shutil.rmtree(self._tmp_dir, ignore_errors=True)
            self._tmp_dir = None

    def _link_shared_dirs(self) -> None:
        for name in LINKED_DIRS:
            source = os.path.join(self.app_path, name)
            if os.path.isdir(source):
                os.symlink(source, os.path.join(self.root, name), target_is_directory=True)
            hoisted = _find_in_parents(self.app_path, name)
            if hoisted is not None:
                os.symlink(hoisted, os.path.join(self._tmp_dir, name), target_is_directory=True)

    def _apply_changes(self) -> None:
        for rel in self.changes.deletes:
            target = safe_join(self.root, rel)
            if target.is_file():
                target.unlink()

        for rename in self.changes.renames:
            source = safe_join(self.root, rename.from_path)
            dest = safe_join(self.root, rename.to_path)
            if not source.is_file():
                logger.warning("Rename source %s does not exist, skipping content move", rename.from_path)
                continue
            dest.parent.mkdir(parents=True, exist_ok=True)
            os.replace(source, dest)

        for write in self.changes.writes:
            target = safe_join(self.root, write.path)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(write.content, encoding="utf-8")

        logger.debug(
            "Overlay ready | writes=%d | renames=%d | deletes=%d",
            len(self.changes.writes), len(self.changes.renames), len(self.changes.deletes),
        )
