"""Change set resolution.

Determines which source files changed since the revision recorded in the
manifest. On a first run (no recorded revision) every source file is
reported as added.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from mfe_build.revision import RevisionControl
from mfe_build.types import ChangeStatus, SourceChange

logger = logging.getLogger(__name__)


def source_path_pattern(packages_dir: str = "packages") -> re.Pattern[str]:
    """Return the pattern matching ``<packages_dir>/<id>/src/<file>`` paths."""
    return re.compile(rf"^{re.escape(packages_dir)}/[^/]+/src/.+")


def parse_name_status(output: str) -> list[SourceChange]:
    """Parse ``git diff --name-status`` output.

    Renames and copies (``R100``/``C075`` followed by two paths) are split
    into a deletion of the old path (renames only) and an addition of the
    new path. Type changes and unmerged entries count as modifications.

    Args:
        output: Raw command output.

    Returns:
        Changes in output order.
    """
    changes: list[SourceChange] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        parts = line.split("\t")
        letter = parts[0][:1].upper()
        if letter in ("R", "C") and len(parts) >= 3:
            if letter == "R":
                changes.append(SourceChange(ChangeStatus.DELETED, parts[1]))
            changes.append(SourceChange(ChangeStatus.ADDED, parts[2]))
        elif letter == "A" and len(parts) >= 2:
            changes.append(SourceChange(ChangeStatus.ADDED, parts[1]))
        elif letter == "D" and len(parts) >= 2:
            changes.append(SourceChange(ChangeStatus.DELETED, parts[1]))
        elif len(parts) >= 2:
            changes.append(SourceChange(ChangeStatus.MODIFIED, parts[1]))
        else:
            logger.debug("Ignoring unparseable diff line: %r", line)
    return changes


def scan_sources(
    root: Path,
    packages_dir: str = "packages",
    extensions: list[str] | None = None,
) -> list[SourceChange]:
    """List every source file as added, for a run without a baseline.

    Args:
        root: Repository root.
        packages_dir: Directory holding local packages.
        extensions: File extensions to include (without dot).

    Returns:
        Added changes sorted by path.
    """
    suffixes = {f".{ext.lstrip('.')}" for ext in (extensions or ["ts", "tsx", "vue"])}
    base = root / packages_dir
    if not base.is_dir():
        logger.warning("Packages directory does not exist: %s", base)
        return []

    changes = [
        SourceChange(ChangeStatus.ADDED, path.relative_to(root).as_posix())
        for path in sorted(base.glob("*/src/**/*"))
        if path.is_file() and path.suffix in suffixes
    ]
    logger.info("First run: %d source file(s) found", len(changes))
    return changes


def resolve_change_set(
    revisions: RevisionControl,
    root: Path,
    prior_revision: str | None,
    packages_dir: str = "packages",
    extensions: list[str] | None = None,
) -> list[SourceChange]:
    """Resolve the source files changed since ``prior_revision``.

    Args:
        revisions: Revision-control collaborator.
        root: Repository root.
        prior_revision: Revision recorded by the previous run, if any.
        packages_dir: Directory holding local packages.
        extensions: Extensions scanned when there is no prior revision.

    Returns:
        Changed source paths restricted to ``<packages_dir>/*/src/**``.

    Raises:
        RevisionControlError: If the diff cannot be computed.
    """
    if not prior_revision:
        return scan_sources(root, packages_dir, extensions)

    pattern = source_path_pattern(packages_dir)
    output = revisions.diff_name_status(prior_revision, "HEAD")
    changes = [c for c in parse_name_status(output) if pattern.match(c.path)]
    logger.info(
        "%d source change(s) since %s",
        len(changes),
        prior_revision,
    )
    return changes


__all__ = [
    "parse_name_status",
    "resolve_change_set",
    "scan_sources",
    "source_path_pattern",
]
