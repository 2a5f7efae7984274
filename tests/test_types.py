"""Tests for shared types module."""

from mfe_build.types import (
    BuildKind,
    ChangeStatus,
    PackageType,
    RunMode,
    RunSummary,
    SourceChange,
)


class TestEnums:
    """Test enum definitions."""

    def test_run_mode_values(self) -> None:
        assert RunMode.LOCAL.value == "local"
        assert RunMode.STAGED.value == "staged"
        assert RunMode.PRODUCTION.value == "production"

    def test_run_mode_is_remote(self) -> None:
        """Only staged and production read a remote baseline."""
        assert not RunMode.LOCAL.is_remote
        assert RunMode.STAGED.is_remote
        assert RunMode.PRODUCTION.is_remote

    def test_change_status_values(self) -> None:
        assert ChangeStatus("A") is ChangeStatus.ADDED
        assert ChangeStatus("M") is ChangeStatus.MODIFIED
        assert ChangeStatus("D") is ChangeStatus.DELETED

    def test_package_type_values(self) -> None:
        assert {t.value for t in PackageType} == {"pages", "components", "utils", "container"}

    def test_build_kind_values(self) -> None:
        assert {k.value for k in BuildKind} == {"lib", "container", "vendor"}


class TestDataclasses:
    """Test dataclass definitions."""

    def test_source_change_is_hashable(self) -> None:
        change = SourceChange(ChangeStatus.ADDED, "packages/foo/src/a.ts")
        assert change in {SourceChange(ChangeStatus.ADDED, "packages/foo/src/a.ts")}

    def test_summary_noop(self) -> None:
        """A summary without changes is a no-op."""
        assert RunSummary(revision="r1").is_noop
        summary = RunSummary(
            revision="r2",
            changes=[SourceChange(ChangeStatus.MODIFIED, "packages/foo/src/a.ts")],
        )
        assert not summary.is_noop
