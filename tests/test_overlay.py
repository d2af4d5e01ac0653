"""
Unit Tests — Response Tags, Project Overlay, Path Utils
========================================================
Covers tag extraction from raw AI responses and the scratch overlay the
type check runs against.
"""
import os

import pytest

from fixloop.diagnostics.overlay import ProjectOverlay
from fixloop.diagnostics.response_tags import (
    RenameTag,
    ResponseChanges,
    WriteTag,
    get_delete_tags,
    get_rename_tags,
    get_write_tags,
    parse_response_changes,
)
from fixloop.utils.path_utils import UnsafePathError, normalize_path, safe_join


PATCH_RESPONSE = """\
I'll fix the header and move the helper.

<dyad-write path="src/components/Header.tsx" description="Add title prop">
```tsx
export const Header = ({ title }: { title: string }) => <h1>{title}</h1>;
```
</dyad-write>

<dyad-rename from="src/utils.ts" to="src/lib/utils.ts"></dyad-rename>

<dyad-delete path="src/legacy.ts"></dyad-delete>

<DYAD-WRITE path="src/index.ts">export * from "./lib/utils";</DYAD-WRITE>
"""


# ---------------------------------------------------------------------------
# 1. Tag parsing
# ---------------------------------------------------------------------------
class TestResponseTags:

    def test_write_tags_strip_fences(self):
        tags = get_write_tags(PATCH_RESPONSE)
        assert tags[0] == WriteTag(
            path="src/components/Header.tsx",
            content="export const Header = ({ title }: { title: string }) => <h1>{title}</h1>;",
            description="Add title prop",
        )

    def test_write_tags_case_insensitive_and_ordered(self):
        assert [t.path for t in get_write_tags(PATCH_RESPONSE)] == [
            "src/components/Header.tsx", "src/index.ts",
        ]

    def test_write_tag_without_path_skipped(self):
        assert get_write_tags('<dyad-write description="x">code</dyad-write>') == []

    def test_rename_and_delete(self):
        assert get_rename_tags(PATCH_RESPONSE) == [RenameTag("src/utils.ts", "src/lib/utils.ts")]
        assert get_delete_tags(PATCH_RESPONSE) == ["src/legacy.ts"]

    def test_plain_text_has_no_changes(self):
        changes = parse_response_changes("No code changes needed.")
        assert changes.is_empty


# ---------------------------------------------------------------------------
# 2. Overlay
# ---------------------------------------------------------------------------
@pytest.fixture
def project(tmp_path):
    root = tmp_path / "app"
    (root / "src").mkdir(parents=True)
    (root / "src" / "utils.ts").write_text("export const add = (a: number, b: number) => a + b;\n")
    (root / "src" / "legacy.ts").write_text("export {};\n")
    (root / "node_modules" / "react").mkdir(parents=True)
    (root / "node_modules" / "react" / "index.js").write_text("module.exports = {};\n")
    (root / "dist").mkdir()
    (root / "dist" / "bundle.js").write_text("// built\n")
    (root / "tsconfig.json").write_text("{}\n")
    return root


class TestProjectOverlay:

    def test_applies_all_changes(self, project):
        changes = parse_response_changes(PATCH_RESPONSE)
        with ProjectOverlay(str(project), changes) as root:
            assert not os.path.exists(os.path.join(root, "src", "legacy.ts"))
            assert not os.path.exists(os.path.join(root, "src", "utils.ts"))
            with open(os.path.join(root, "src", "lib", "utils.ts")) as f:
                assert f.read().startswith("export const add")
            with open(os.path.join(root, "src", "components", "Header.tsx")) as f:
                assert "title" in f.read()
            assert os.path.isfile(os.path.join(root, "tsconfig.json"))

    def test_project_untouched(self, project):
        changes = parse_response_changes(PATCH_RESPONSE)
        with ProjectOverlay(str(project), changes):
            pass
        assert (project / "src" / "utils.ts").exists()
        assert (project / "src" / "legacy.ts").exists()
        assert not (project / "src" / "components").exists()

    def test_node_modules_linked_build_output_skipped(self, project):
        with ProjectOverlay(str(project), ResponseChanges()) as root:
            assert os.path.islink(os.path.join(root, "node_modules"))
            assert os.path.isfile(os.path.join(root, "node_modules", "react", "index.js"))
            assert not os.path.exists(os.path.join(root, "dist"))

    def test_hoisted_node_modules_linked_above_overlay(self, tmp_path):
        (tmp_path / "node_modules" / "@types" / "react").mkdir(parents=True)
        app = tmp_path / "packages" / "web"
        (app / "src").mkdir(parents=True)
        with ProjectOverlay(str(app), ResponseChanges()) as root:
            hoisted = os.path.join(os.path.dirname(root), "node_modules")
            assert os.path.islink(hoisted)
            assert os.path.isdir(os.path.join(hoisted, "@types", "react"))
            assert not os.path.exists(os.path.join(root, "node_modules"))
        assert (tmp_path / "node_modules" / "@types" / "react").is_dir()

    def test_removed_on_exit(self, project):
        overlay = ProjectOverlay(str(project), ResponseChanges())
        with overlay as root:
            assert os.path.isdir(root)
        assert not os.path.exists(root)
        overlay.cleanup()

    def test_removed_when_changes_fail(self, project):
        changes = ResponseChanges(writes=[WriteTag(path="../outside.ts", content="x")])
        overlay = ProjectOverlay(str(project), changes)
        with pytest.raises(UnsafePathError):
            overlay.__enter__()
        assert not os.path.exists(overlay.root)

    def test_rename_of_missing_source_is_skipped(self, project):
        changes = ResponseChanges(renames=[RenameTag("src/nope.ts", "src/yes.ts")])
        with ProjectOverlay(str(project), changes) as root:
            assert not os.path.exists(os.path.join(root, "src", "yes.ts"))


# ---------------------------------------------------------------------------
# 3. Path utils
# ---------------------------------------------------------------------------
class TestPathUtils:

    def test_safe_join_inside(self, tmp_path):
        assert safe_join(str(tmp_path), "src/App.tsx") == (tmp_path / "src" / "App.tsx").resolve()

    @pytest.mark.parametrize("bad", ["../x.ts", "src/../../x.ts", "/etc/passwd"])
    def test_safe_join_rejects_escape(self, tmp_path, bad):
        with pytest.raises(UnsafePathError):
            safe_join(str(tmp_path), bad)

    def test_normalize_relative(self, tmp_path):
        assert normalize_path("src/App.tsx", str(tmp_path)) == "src/App.tsx"

    def test_normalize_absolute_inside_root(self, tmp_path):
        assert normalize_path(str(tmp_path / "src" / "a.ts"), str(tmp_path)) == "src/a.ts"

    def test_normalize_outside_root_keeps_path(self, tmp_path):
        assert normalize_path("/usr/lib/node_modules/x.d.ts", str(tmp_path)) == "/usr/lib/node_modules/x.d.ts"
