"""Bundler contract and subprocess implementation.

This module handles:
- The request/report types exchanged with the Bundler
- Running an external Bundler command over stdin/stdout
- Capturing Bundler diagnostics to per-build log files
- Recording a report into a module's manifest record

The Bundler itself (module-graph compilation, hashing, code splitting)
lives outside this package. Any implementation of the ``Bundler``
protocol can be plugged into a run.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import shlex
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from mfe_build.errors import MfeBuildError
from mfe_build.manifest.models import ModuleRecord
from mfe_build.packages.resolver import Alias
from mfe_build.types import BuildKind

logger = logging.getLogger(__name__)


class BundlerError(MfeBuildError):
    """Raised when the Bundler fails to compile a module."""

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        log_path: Path | None = None,
        code: str = "bundler_error",
    ) -> None:
        super().__init__(message, code=code)
        self.exit_code = exit_code
        self.log_path = log_path


@dataclass
class BuildRequest:
    """Everything the Bundler needs for one build.

    Attributes:
        kind: Build strategy (lib, container, vendor).
        name: Module name the output is recorded under.
        entry: Entry file (repository-relative) or virtual module id.
        out_dir: Artifact directory.
        aliases: Path aliases.
        externals: Module names kept out of the output.
        external_patterns: Regular expressions of module ids kept out.
        entry_file_names: Output naming pattern for entry chunks.
        chunk_file_names: Output naming pattern for shared chunks.
        asset_file_names: Output naming pattern for other assets.
        virtual_source: Body of the entry when it is a virtual module.
        sourcemap: Emit source maps.
        minify: Minify output.
    """

    kind: BuildKind
    name: str
    entry: str
    out_dir: str
    aliases: list[Alias] = field(default_factory=list)
    externals: list[str] = field(default_factory=list)
    external_patterns: list[str] = field(default_factory=list)
    entry_file_names: str = "assets/[name]-[hash].js"
    chunk_file_names: str = "assets/[name]-[hash].js"
    asset_file_names: str = "assets/[name]-[hash][extname]"
    virtual_source: str | None = None
    sourcemap: bool = True
    minify: bool = False

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data


@dataclass
class BundleOutput:
    """One file emitted by a build."""

    file_name: str
    is_entry: bool = False
    is_stylesheet: bool = False
    imported_bindings: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BundleOutput:
        file_name = str(data["fileName"] if "fileName" in data else data["file_name"])
        bindings = data.get("importedBindings", data.get("imported_bindings")) or {}
        return cls(
            file_name=file_name,
            is_entry=bool(data.get("isEntry", data.get("is_entry", False))),
            is_stylesheet=bool(
                data.get("isStylesheet", data.get("is_stylesheet", file_name.endswith(".css")))
            ),
            imported_bindings={k: list(v) for k, v in bindings.items()},
        )


@dataclass
class BundleReport:
    """Outputs of a build as reported by the Bundler."""

    outputs: list[BundleOutput] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BundleReport:
        return cls(outputs=[BundleOutput.from_dict(o) for o in data.get("outputs", [])])

    def entry(self) -> BundleOutput | None:
        for output in self.outputs:
            if output.is_entry:
                return output
        return None

    def stylesheet(self) -> BundleOutput | None:
        for output in self.outputs:
            if output.is_stylesheet:
                return output
        return None

    def imports(self) -> dict[str, set[str]]:
        """External module -> symbols imported by the entry chunk."""
        entry = self.entry()
        if entry is None:
            return {}
        return {name: set(symbols) for name, symbols in entry.imported_bindings.items()}


class Bundler(Protocol):
    """Contract of the module-graph compiler."""

    async def build(self, request: BuildRequest) -> BundleReport:
        """Compile one entry and report its outputs.

        Raises:
            BundlerError: If compilation fails.
        """
        ...


def record_report(record: ModuleRecord, report: BundleReport, name: str) -> None:
    """Store a build's entry chunk, stylesheet and imports in its record.

    Raises:
        BundlerError: If the report has no entry chunk.
    """
    entry = report.entry()
    if entry is None:
        raise BundlerError(f"Bundler reported no entry chunk for {name}", code="no_entry")
    record.js = f"/{entry.file_name.lstrip('/')}"
    stylesheet = report.stylesheet()
    record.css = f"/{stylesheet.file_name.lstrip('/')}" if stylesheet else None
    record.imports = report.imports()


def _log_name(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]+", "_", name).strip("_") or "module"


class SubprocessBundler:
    """Bundler that delegates to an external command.

    The command receives the request as JSON on stdin and must print a
    report ``{"outputs": [{"fileName", "isEntry", "importedBindings"}]}``
    as JSON on stdout. Anything written to stderr goes to the build log.
    """

    def __init__(
        self,
        command: list[str],
        cwd: Path,
        log_dir: Path,
        max_concurrent: int = 4,
    ) -> None:
        if not command:
            raise ValueError("command must be provided")
        self.command = command
        self.cwd = cwd
        self.log_dir = log_dir
        self._semaphore = asyncio.Semaphore(max_concurrent)

    async def build(self, request: BuildRequest) -> BundleReport:
        async with self._semaphore:
            return await self._run(request)

    async def _run(self, request: BuildRequest) -> BundleReport:
        self.log_dir.mkdir(parents=True, exist_ok=True)
        log_path = self.log_dir / f"{request.kind.value}-{_log_name(request.name)}.log"
        cmd_str = shlex.join(self.command)
        payload = json.dumps(request.to_dict()).encode("utf-8")

        logger.info("Building %s (%s)", request.name, request.kind.value)
        logger.debug("Executing bundler: %s", cmd_str)

        started_at = datetime.now(timezone.utc)
        try:
            process = await asyncio.create_subprocess_exec(
                *self.command,
                cwd=self.cwd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            error_message = f"Failed to execute bundler: {e}"
            logger.error(error_message)
            raise BundlerError(error_message, code="execution_error") from e

        stdout, stderr = await process.communicate(payload)
        finished_at = datetime.now(timezone.utc)

        with log_path.open("w", encoding="utf-8") as log_file:
            log_file.write(f"# Command: {cmd_str}\n")
            log_file.write(f"# Module: {request.name}\n")
            log_file.write(f"# Started: {started_at.isoformat()}\n")
            log_file.write("# " + "=" * 70 + "\n\n")
            log_file.write(stderr.decode("utf-8", errors="replace"))
            log_file.write(f"\n# Finished: {finished_at.isoformat()}\n")
            log_file.write(f"# Exit code: {process.returncode}\n")

        if process.returncode != 0:
            error_message = (
                f"Build of {request.name} failed with exit code {process.returncode}"
            )
            logger.error("%s. See log: %s", error_message, log_path)
            raise BundlerError(
                error_message,
                exit_code=process.returncode,
                log_path=log_path,
            )

        try:
            report = BundleReport.from_dict(json.loads(stdout))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise BundlerError(
                f"Bundler returned an invalid report for {request.name}: {e}",
                log_path=log_path,
                code="invalid_report",
            ) from e

        logger.debug("Built %s: %d output(s)", request.name, len(report.outputs))
        return report


__all__ = [
    "BuildRequest",
    "BundleOutput",
    "BundleReport",
    "Bundler",
    "BundlerError",
    "SubprocessBundler",
    "record_report",
]
