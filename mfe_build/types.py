"""Shared type definitions for mfe_build.

This module contains enums and dataclasses shared across subpackages
to avoid circular imports.
"""

from dataclasses import dataclass, field
from enum import Enum


class RunMode(str, Enum):
    """Where a run sources its previous baseline from."""

    LOCAL = "local"
    STAGED = "staged"
    PRODUCTION = "production"

    @property
    def is_remote(self) -> bool:
        """Whether the baseline lives on a remote origin."""
        return self is not RunMode.LOCAL


class ChangeStatus(str, Enum):
    """Status of a changed source file."""

    ADDED = "A"
    MODIFIED = "M"
    DELETED = "D"


class PackageType(str, Enum):
    """Declared build type of a local package."""

    PAGES = "pages"
    COMPONENTS = "components"
    UTILS = "utils"
    CONTAINER = "container"


class BuildKind(str, Enum):
    """Build strategy handed to the Bundler."""

    LIB = "lib"
    CONTAINER = "container"
    VENDOR = "vendor"


@dataclass(frozen=True)
class SourceChange:
    """A changed source path relative to the repository root."""

    status: ChangeStatus
    path: str


@dataclass
class RunSummary:
    """Outcome of an orchestrator run."""

    revision: str | None
    changes: list[SourceChange] = field(default_factory=list)
    built: list[str] = field(default_factory=list)
    vendors_built: list[str] = field(default_factory=list)
    evicted: list[str] = field(default_factory=list)
    container_rebuilt: bool = False
    html_written: bool = False

    @property
    def is_noop(self) -> bool:
        """True when nothing changed since the stored baseline."""
        return not self.changes


__all__ = [
    "BuildKind",
    "ChangeStatus",
    "PackageType",
    "RunMode",
    "RunSummary",
    "SourceChange",
]
