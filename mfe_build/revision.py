"""Revision-control access for change detection.

This module handles:
- Reading the current revision identifier
- Listing changed paths with their status between two revisions

Only the git CLI is supported; callers depend on the ``RevisionControl``
protocol so tests can substitute an in-memory implementation.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Protocol

from mfe_build.errors import MfeBuildError

logger = logging.getLogger(__name__)

# Default timeout for git commands (seconds)
GIT_TIMEOUT = 60


class RevisionControlError(MfeBuildError):
    """Raised when a revision-control command fails."""

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        code: str = "revision_error",
    ) -> None:
        super().__init__(message, code=code)
        self.exit_code = exit_code


class RevisionControl(Protocol):
    """Contract consumed by the change set resolver."""

    def current_revision(self) -> str:
        """Return the identifier of the working revision."""
        ...

    def diff_name_status(self, base: str, head: str = "HEAD") -> str:
        """Return ``--name-status`` output between two revisions."""
        ...


class GitRevisionControl:
    """RevisionControl backed by the git command line."""

    def __init__(self, repo_root: Path, timeout: int = GIT_TIMEOUT) -> None:
        self.repo_root = repo_root
        self.timeout = timeout

    def _run(self, args: list[str]) -> str:
        cmd = ["git", *args]
        logger.debug("Running %s in %s", " ".join(cmd), self.repo_root)
        try:
            result = subprocess.run(
                cmd,
                cwd=self.repo_root,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=True,
            )
        except subprocess.TimeoutExpired as e:
            raise RevisionControlError(
                f"git {args[0]} timed out after {self.timeout}s",
                exit_code=-1,
                code="timeout",
            ) from e
        except subprocess.CalledProcessError as e:
            raise RevisionControlError(
                f"git {args[0]} failed: {e.stderr.strip()}",
                exit_code=e.returncode,
            ) from e
        except OSError as e:
            raise RevisionControlError(
                f"Failed to run git: {e}",
                code="execution_error",
            ) from e
        return result.stdout

    def current_revision(self) -> str:
        return self._run(["rev-parse", "--short", "HEAD"]).strip()

    def diff_name_status(self, base: str, head: str = "HEAD") -> str:
        return self._run(["diff", base, head, "--name-status"])


__all__ = [
    "GIT_TIMEOUT",
    "GitRevisionControl",
    "RevisionControl",
    "RevisionControlError",
]
