"""Build orchestrator module.

This module provides the high-level run API:
- run(): Main entry point - one incremental build of the repository
- Baseline bootstrap (local manifest or remote origin)
- Change resolution, local builds, vendor settlement, HTML injection
- Manifest persistence as the commit point of a successful run

Any fatal error propagates before the manifest is written, so the stored
revision only advances when every build of the run succeeded.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from mfe_build.builds.bundler import Bundler, SubprocessBundler
from mfe_build.builds.dispatcher import dispatch
from mfe_build.builds.vendors import rebuild_vendors
from mfe_build.cache import DerivedCache
from mfe_build.changes import resolve_change_set
from mfe_build.context import RunContext
from mfe_build.errors import MfeBuildError
from mfe_build.importmap import assemble
from mfe_build.manifest.baseline import fetch_remote_manifest, load_local_manifest
from mfe_build.manifest.models import Manifest
from mfe_build.manifest.store import ModuleMetadataStore
from mfe_build.packages.resolver import PackageResolver
from mfe_build.project import ProjectConfig, load_project_config
from mfe_build.revision import GitRevisionControl, RevisionControl
from mfe_build.types import RunMode, RunSummary, SourceChange

if TYPE_CHECKING:
    from mfe_build.config import Settings

logger = logging.getLogger(__name__)


def resolve_baseline_url(settings: Settings, project: ProjectConfig) -> str | None:
    """Return the remote baseline origin of the run mode, if any.

    Settings take precedence over the project file.

    Raises:
        MfeBuildError: If a remote mode has no configured origin.
    """
    if not settings.mode.is_remote:
        return None
    override = (
        settings.staged_url if settings.mode is RunMode.STAGED else settings.production_url
    )
    url = override or project.baseline_url(settings.mode)
    if not url:
        raise MfeBuildError(
            f"No baseline URL configured for {settings.mode.value} mode",
            code="configuration_error",
        )
    return url


async def load_baseline(
    settings: Settings,
    client: httpx.AsyncClient | None,
    baseline_url: str | None,
) -> Manifest:
    """Load the manifest the run starts from."""
    if baseline_url is None or client is None:
        return load_local_manifest(settings.manifest_path)
    return await fetch_remote_manifest(
        client,
        baseline_url,
        settings.manifest_name,
        timeout=settings.fetch_timeout,
    )


def pending_changes(
    settings: Settings,
    revisions: RevisionControl,
    prior_revision: str | None,
) -> list[SourceChange]:
    """Resolve the change set against a prior revision."""
    return resolve_change_set(
        revisions,
        settings.root_dir,
        prior_revision,
        settings.packages_dir,
        settings.source_extensions,
    )


async def execute(ctx: RunContext) -> RunSummary:
    """Perform one run with a prepared context.

    Returns:
        Summary of the run.

    Raises:
        MfeBuildError: On any fatal failure; nothing is persisted then.
    """
    summary = ctx.summary
    changes = pending_changes(
        ctx.settings, ctx.revisions, ctx.store.manifest.commit_hash
    )
    summary.changes = changes
    if not changes:
        logger.info("No source changes, nothing to do")
        summary.revision = ctx.store.manifest.commit_hash
        return summary

    revision = ctx.revisions.current_revision()
    logger.info("Building %d change(s) at revision %s", len(changes), revision)

    await dispatch(ctx, changes)
    await rebuild_vendors(ctx)
    summary.html_written = await assemble(ctx)

    ctx.store.persist(revision)
    summary.revision = revision
    logger.info(
        "Run complete: %d module(s) built, %d vendor(s) built, %d evicted",
        len(summary.built),
        len(summary.vendors_built),
        len(summary.evicted),
    )
    return summary


async def run(
    settings: Settings,
    *,
    bundler: Bundler | None = None,
    revisions: RevisionControl | None = None,
    client: httpx.AsyncClient | None = None,
) -> RunSummary:
    """Run one incremental build.

    Args:
        settings: Effective settings.
        bundler: Bundler to use (SubprocessBundler from settings if None).
        revisions: Revision control (git in ``root_dir`` if None).
        client: HTTP client for remote baselines (created if needed).

    Returns:
        Summary of the run.

    Raises:
        MfeBuildError: On any fatal failure.
    """
    project = load_project_config(settings.root_dir / settings.project_config)
    baseline_url = resolve_baseline_url(settings, project)

    if bundler is None:
        bundler = SubprocessBundler(
            settings.bundler_command,
            cwd=settings.root_dir,
            log_dir=settings.root_dir / ".mfe-build" / "logs",
            max_concurrent=settings.max_concurrent_builds,
        )
    if revisions is None:
        revisions = GitRevisionControl(settings.root_dir)

    owns_client = client is None and baseline_url is not None
    if owns_client:
        client = httpx.AsyncClient()

    try:
        manifest = await load_baseline(settings, client, baseline_url)
        cache = DerivedCache()
        ctx = RunContext(
            settings=settings,
            project=project,
            store=ModuleMetadataStore(
                manifest,
                settings.dist_path,
                settings.manifest_path,
                delete_files=not settings.mode.is_remote,
            ),
            packages=PackageResolver(settings, project, cache),
            bundler=bundler,
            revisions=revisions,
            client=client,
            baseline_url=baseline_url,
            cache=cache,
        )
        return await execute(ctx)
    finally:
        if owns_client and client is not None:
            await client.aclose()


__all__ = ["execute", "load_baseline", "pending_changes", "resolve_baseline_url", "run"]
