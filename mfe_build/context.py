"""Run-scoped state.

A RunContext is created once per orchestrator invocation and passed to
every component. Nothing run-scoped lives at module level, so several
runs can execute in one process (tests do this).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx

from mfe_build.cache import DerivedCache
from mfe_build.project import ProjectConfig
from mfe_build.types import RunMode, RunSummary

if TYPE_CHECKING:
    from mfe_build.builds.bundler import Bundler
    from mfe_build.builds.vendors import VendorGraph
    from mfe_build.config import Settings
    from mfe_build.manifest.store import ModuleMetadataStore
    from mfe_build.packages.resolver import PackageResolver
    from mfe_build.revision import RevisionControl


@dataclass
class RunContext:
    """Collaborators and mutable state of one run.

    Attributes:
        settings: Effective settings.
        project: Project file contents.
        store: Manifest store (loaded baseline, mutated by builds).
        packages: Package-manifest collaborator.
        bundler: Bundler implementation.
        revisions: Revision-control collaborator.
        client: HTTP client for remote baselines.
        baseline_url: Remote baseline origin for staged/production runs.
        cache: Derived-value cache shared by lookups.
        built: Package names already dispatched this run.
        container_name: Name of the container package if it was rebuilt.
        graph: Vendor dependency graph once local builds finished.
        summary: What the run did.
    """

    settings: Settings
    project: ProjectConfig
    store: ModuleMetadataStore
    packages: PackageResolver
    bundler: Bundler
    revisions: RevisionControl
    client: httpx.AsyncClient | None = None
    baseline_url: str | None = None
    cache: DerivedCache = field(default_factory=DerivedCache)
    built: set[str] = field(default_factory=set)
    container_name: str | None = None
    graph: VendorGraph | None = None
    summary: RunSummary = field(default_factory=lambda: RunSummary(revision=None))

    @property
    def mode(self) -> RunMode:
        return self.settings.mode

    @property
    def container_rebuilt(self) -> bool:
        return self.container_name is not None and self.container_name in self.built

    def is_local(self, module_name: str) -> bool:
        return self.packages.is_local(module_name)


__all__ = ["RunContext"]
