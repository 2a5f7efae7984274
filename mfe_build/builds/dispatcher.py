"""Build dispatch for changed local packages.

This module handles:
- Grouping changed paths into build units by package type
- Evicting outdated outputs before a unit is rebuilt
- Running the Bundler for every unit concurrently

Pages build one unit per changed page file. Components, utils and the
container build once per package name from the package's main entry,
however many of their files changed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from mfe_build.builds.bundler import BuildRequest, record_report
from mfe_build.context import RunContext
from mfe_build.errors import ConfigurationError
from mfe_build.packages.resolver import PackageManifestError
from mfe_build.types import BuildKind, ChangeStatus, PackageType, SourceChange

logger = logging.getLogger(__name__)

PER_PACKAGE_TYPES = {
    PackageType.COMPONENTS.value,
    PackageType.UTILS.value,
    PackageType.CONTAINER.value,
}


@dataclass
class BuildUnit:
    """One dispatched build.

    Attributes:
        module_name: Name the output is recorded under.
        package_id: Directory name of the owning package.
        kind: Bundler strategy.
        entry: Repository-relative entry file.
        evict_first: Drop previous outputs before building.
        delete_only: The entry is gone; evict without building.
    """

    module_name: str
    package_id: str
    kind: BuildKind
    entry: str
    evict_first: bool = False
    delete_only: bool = False

    def merge(self, change: SourceChange) -> None:
        """Fold another change of the same unit into it."""
        if change.status is not ChangeStatus.ADDED:
            self.evict_first = True
        if change.status is not ChangeStatus.DELETED:
            self.delete_only = False


def removed_package_records(ctx: RunContext, package_id: str) -> list[str]:
    """Store records emitted by a package whose package.json is gone.

    Packages are published as ``<scope>/<id>``; pages add their source path
    below that name.
    """
    name = f"{ctx.settings.scope}/{package_id}"
    records = sorted(
        n for n in ctx.store.modules if n == name or n.startswith(name + "/")
    )
    logger.warning(
        "Package %s was removed, evicting %d record(s)", package_id, len(records)
    )
    return records


def plan_build_units(ctx: RunContext, changes: list[SourceChange]) -> list[BuildUnit]:
    """Group changed paths into build units.

    Records dispatched package names in ``ctx.built`` and the container's
    name in ``ctx.container_name``. Deletions under a package whose
    package.json is gone evict every record that package emitted.

    Raises:
        ConfigurationError: If a package has no or an unknown build type.
        PackageManifestError: If a package.json cannot be read.
    """
    packages = ctx.packages
    units: dict[str, BuildUnit] = {}
    removed: dict[str, str] = {}

    for change in changes:
        package_id = packages.package_id(change.path)
        try:
            descriptor = packages.descriptor(package_id)
        except PackageManifestError as e:
            if e.code == "package_not_found" and change.status is ChangeStatus.DELETED:
                removed.setdefault(package_id, change.path)
                continue
            raise

        package_type = packages.package_type(package_id)

        if package_type == PackageType.PAGES.value:
            module_name = packages.module_name(change.path)
            unit = units.get(module_name)
            if unit is None:
                unit = units[module_name] = BuildUnit(
                    module_name=module_name,
                    package_id=package_id,
                    kind=BuildKind.LIB,
                    entry=change.path,
                    delete_only=True,
                )
            unit.merge(change)

        elif package_type in PER_PACKAGE_TYPES:
            name = descriptor.name
            unit = units.get(name)
            if unit is None:
                is_container = package_type == PackageType.CONTAINER.value
                if is_container:
                    ctx.container_name = name
                ctx.built.add(name)
                unit = units[name] = BuildUnit(
                    module_name=name,
                    package_id=package_id,
                    kind=BuildKind.CONTAINER if is_container else BuildKind.LIB,
                    entry=packages.entry_path(package_id),
                )
            # The package still exists, so a deleted file only means a rebuild
            if change.status is not ChangeStatus.ADDED:
                unit.evict_first = True

        else:
            raise ConfigurationError(descriptor.name, package_type)

    for package_id, path in removed.items():
        for name in removed_package_records(ctx, package_id):
            if name not in units:
                units[name] = BuildUnit(
                    module_name=name,
                    package_id=package_id,
                    kind=BuildKind.LIB,
                    entry=path,
                    evict_first=True,
                    delete_only=True,
                )

    logger.info(
        "Planned %d build unit(s) from %d change(s)", len(units), len(changes)
    )
    return list(units.values())


def make_request(ctx: RunContext, unit: BuildUnit) -> BuildRequest:
    """Compose the Bundler request of a local build unit."""
    settings = ctx.settings
    packages = ctx.packages
    assets = settings.assets_dir
    return BuildRequest(
        kind=unit.kind,
        name=unit.module_name,
        entry=unit.entry,
        out_dir=str(settings.dist_path),
        aliases=packages.aliases(unit.package_id),
        externals=packages.externals(unit.package_id),
        external_patterns=packages.external_patterns(),
        entry_file_names=f"{assets}/[name]-[hash].js",
        chunk_file_names=f"{assets}/[name]-[hash].js",
        asset_file_names=f"{assets}/[name]-[hash][extname]",
        sourcemap=settings.sourcemap,
        minify=settings.minify,
    )


async def build_unit(ctx: RunContext, unit: BuildUnit) -> None:
    """Evict (if needed) and build one unit, recording its outputs.

    Raises:
        BundlerError: If the build fails.
    """
    if unit.evict_first or unit.delete_only:
        ctx.store.remove(unit.module_name)
        ctx.summary.evicted.append(unit.module_name)
    if unit.delete_only:
        return

    report = await ctx.bundler.build(make_request(ctx, unit))
    record_report(ctx.store.get(unit.module_name), report, unit.module_name)
    ctx.summary.built.append(unit.module_name)


async def dispatch(ctx: RunContext, changes: list[SourceChange]) -> list[BuildUnit]:
    """Plan and run every local build of the change set.

    The first failing build propagates and aborts the run.

    Returns:
        The dispatched units.
    """
    units = plan_build_units(ctx, changes)
    await asyncio.gather(*(build_unit(ctx, unit) for unit in units))
    if ctx.container_rebuilt:
        ctx.summary.container_rebuilt = True
    return units


__all__ = [
    "BuildUnit",
    "build_unit",
    "dispatch",
    "make_request",
    "plan_build_units",
    "removed_package_records",
]
