"""
Response Tag Parser
===================
Extracts file edits from a raw AI response.

Supported tags:
    <dyad-write path="src/App.tsx" description="...">...</dyad-write>
    <dyad-rename from="a.ts" to="b.ts"></dyad-rename>
    <dyad-delete path="old.ts"></dyad-delete>

Write content has a leading/trailing markdown fence line removed.
Write tags without a path attribute are logged and skipped.
Order of tags in the response is preserved.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger(__name__)

_WRITE_RE = re.compile(r"<dyad-write([^>]*)>([\s\S]*?)</dyad-write>", re.IGNORECASE)
_PATH_ATTR_RE = re.compile(r'path="([^"]+)"')
_DESCRIPTION_ATTR_RE = re.compile(r'description="([^"]+)"')
_RENAME_RE = re.compile(r'<dyad-rename from="([^"]+)" to="([^"]+)"[^>]*>([\s\S]*?)</dyad-rename>')
_DELETE_RE = re.compile(r'<dyad-delete path="([^"]+)"[^>]*>([\s\S]*?)</dyad-delete>')


@dataclass
class WriteTag:
    path: str
    content: str
    description: Optional[str] = None


@dataclass
class RenameTag:
    from_path: str
    to_path: str


@dataclass
class ResponseChanges:
    """All file edits found in one response."""
    writes: List[WriteTag] = field(default_factory=list)
    renames: List[RenameTag] = field(default_factory=list)
    deletes: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.writes or self.renames or self.deletes)


def _strip_code_fence(content: str) -> str:
    lines = content.split("\n")
    if lines and lines[0].startswith("```"):
        lines.pop(0)
    if lines and lines[-1].startswith("```"):
        lines.pop()
    return "\n".join(lines)


def get_write_tags(raw_response: str) -> List[WriteTag]:
    tags: List[WriteTag] = []
    for match in _WRITE_RE.finditer(raw_response):
        attributes = match.group(1)
        path_match = _PATH_ATTR_RE.search(attributes)
        if not path_match:
            logger.warning("Found <dyad-write> tag without a valid 'path' attribute: %s", match.group(0)[:200])
            continue
        description_match = _DESCRIPTION_ATTR_RE.search(attributes)
        tags.append(WriteTag(
            path=path_match.group(1),
            content=_strip_code_fence(match.group(2).strip()),
            description=description_match.group(1) if description_match else None,
        ))
    return tags


def get_rename_tags(raw_response: str) -> List[RenameTag]:
    return [RenameTag(from_path=m.group(1), to_path=m.group(2)) for m in _RENAME_RE.finditer(raw_response)]


def get_delete_tags(raw_response: str) -> List[str]:
    return [m.group(1) for m in _DELETE_RE.finditer(raw_response)]


def parse_response_changes(raw_response: str) -> ResponseChanges:
    """Collect every write, rename and delete tag in *raw_response*."""
    return ResponseChanges(
        writes=get_write_tags(raw_response),
        renames=get_rename_tags(raw_response),
        deletes=get_delete_tags(raw_response),
    )
