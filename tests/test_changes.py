"""Tests for change set resolution."""

from mfe_build.changes import (
    parse_name_status,
    resolve_change_set,
    scan_sources,
    source_path_pattern,
)
from mfe_build.types import ChangeStatus, SourceChange


class TestParseNameStatus:
    """Tests for parse_name_status function."""

    def test_basic_statuses(self):
        output = (
            "A\tpackages/foo/src/a.ts\n"
            "M\tpackages/foo/src/b.ts\n"
            "D\tpackages/foo/src/c.ts\n"
        )
        assert parse_name_status(output) == [
            SourceChange(ChangeStatus.ADDED, "packages/foo/src/a.ts"),
            SourceChange(ChangeStatus.MODIFIED, "packages/foo/src/b.ts"),
            SourceChange(ChangeStatus.DELETED, "packages/foo/src/c.ts"),
        ]

    def test_rename_splits_into_delete_and_add(self):
        changes = parse_name_status("R100\tpackages/foo/src/old.ts\tpackages/foo/src/new.ts\n")
        assert changes == [
            SourceChange(ChangeStatus.DELETED, "packages/foo/src/old.ts"),
            SourceChange(ChangeStatus.ADDED, "packages/foo/src/new.ts"),
        ]

    def test_copy_adds_new_path_only(self):
        changes = parse_name_status("C075\tpackages/foo/src/a.ts\tpackages/bar/src/a.ts\n")
        assert changes == [SourceChange(ChangeStatus.ADDED, "packages/bar/src/a.ts")]

    def test_type_change_counts_as_modified(self):
        changes = parse_name_status("T\tpackages/foo/src/link.ts\n")
        assert changes == [SourceChange(ChangeStatus.MODIFIED, "packages/foo/src/link.ts")]

    def test_blank_and_malformed_lines_are_skipped(self):
        assert parse_name_status("\n\nX\n") == []


class TestSourcePathPattern:
    """Tests for source_path_pattern function."""

    def test_matches_package_sources(self):
        pattern = source_path_pattern()
        assert pattern.match("packages/foo/src/index.ts")
        assert pattern.match("packages/foo/src/pages/a/b.vue")

    def test_rejects_other_paths(self):
        pattern = source_path_pattern()
        assert not pattern.match("packages/foo/package.json")
        assert not pattern.match("packages/foo/test/a.ts")
        assert not pattern.match("scripts/build.js")
        assert not pattern.match("other/packages/foo/src/a.ts")


class TestScanSources:
    """Tests for scan_sources function."""

    def test_lists_matching_extensions(self, workspace):
        workspace.source("packages/foo/src/index.ts")
        workspace.source("packages/foo/src/view.vue")
        workspace.source("packages/foo/src/deep/widget.tsx")
        workspace.source("packages/foo/src/styles.css")
        workspace.source("packages/foo/README.md")

        changes = scan_sources(workspace.root)

        assert [c.path for c in changes] == [
            "packages/foo/src/deep/widget.tsx",
            "packages/foo/src/index.ts",
            "packages/foo/src/view.vue",
        ]
        assert all(c.status is ChangeStatus.ADDED for c in changes)

    def test_custom_extensions(self, workspace):
        workspace.source("packages/foo/src/index.js")
        workspace.source("packages/foo/src/index.ts")

        changes = scan_sources(workspace.root, extensions=["js"])

        assert [c.path for c in changes] == ["packages/foo/src/index.js"]

    def test_missing_packages_dir(self, workspace):
        assert scan_sources(workspace.root) == []


class TestResolveChangeSet:
    """Tests for resolve_change_set function."""

    def test_first_run_scans(self, workspace, revisions):
        workspace.source("packages/foo/src/index.ts")

        changes = resolve_change_set(revisions, workspace.root, None)

        assert changes == [SourceChange(ChangeStatus.ADDED, "packages/foo/src/index.ts")]
        assert revisions.diff_calls == []

    def test_diff_is_filtered_to_sources(self, workspace, revisions):
        revisions.diff = (
            "M\tpackages/foo/src/index.ts\n"
            "M\tpackages/foo/package.json\n"
            "A\tdocs/readme.md\n"
        )

        changes = resolve_change_set(revisions, workspace.root, "abc123")

        assert changes == [SourceChange(ChangeStatus.MODIFIED, "packages/foo/src/index.ts")]
        assert revisions.diff_calls == [("abc123", "HEAD")]
