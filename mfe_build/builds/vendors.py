"""Vendor chunk graph, export aggregation and rebuilds.

This module handles:
- Building the peer-dependency graph over vendor packages referenced by
  local modules
- Computing the symbols each vendor chunk has to re-export
- Rebuilding vendor chunks whose required symbols changed and evicting
  vendors nobody references any more

A vendor V's required symbols are the symbols local modules import from V
plus the symbols V's dependents (vendors declaring V as a peer) import
from V in their own chunks. A dependent is therefore finalized, and
rebuilt if needed, before V is evaluated.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field

from mfe_build.builds.bundler import BuildRequest, record_report
from mfe_build.context import RunContext
from mfe_build.errors import MfeBuildError
from mfe_build.manifest.models import ModuleRecord
from mfe_build.packages.resolver import PackageManifestError
from mfe_build.project import ResolverSpec
from mfe_build.types import BuildKind

logger = logging.getLogger(__name__)


class GraphCycleError(MfeBuildError):
    """Raised when vendor peer dependencies form a cycle."""

    def __init__(self, cycle: list[str]) -> None:
        super().__init__(
            f"Cyclic peer dependencies: {' -> '.join(cycle)}",
            code="graph_cycle",
        )
        self.cycle = cycle


@dataclass
class VendorNode:
    """Peer relations of one vendor package."""

    name: str
    dependencies: list[str] = field(default_factory=list)
    dependents: list[str] = field(default_factory=list)


class VendorGraph:
    """Depends-on and depended-on-by relations among vendor packages."""

    def __init__(self, peer_lookup: Callable[[str], list[str]]) -> None:
        self._peer_lookup = peer_lookup
        self._scanned: set[str] = set()
        self._missing: set[str] = set()
        self.nodes: dict[str, VendorNode] = {}

    @classmethod
    def from_records(
        cls,
        modules: Mapping[str, ModuleRecord],
        is_local: Callable[[str], bool],
        peer_lookup: Callable[[str], list[str]],
    ) -> VendorGraph:
        """Scan local records' imports for vendor references."""
        graph = cls(peer_lookup)
        for name, record in modules.items():
            if not is_local(name) or not record.imports:
                continue
            for imported in record.imports:
                if not is_local(imported):
                    graph.add_vendor(imported)
        return graph

    def node(self, name: str) -> VendorNode:
        node = self.nodes.get(name)
        if node is None:
            node = self.nodes[name] = VendorNode(name)
        return node

    def add_vendor(self, name: str) -> None:
        """Add a referenced vendor and, transitively, the peers it declares.

        The referenced vendor must be installed. A peer reached only through
        another vendor may be an optional one that is not installed; it
        keeps its node and dependents edge but declares no peers itself.

        Raises:
            PackageManifestError: If the referenced vendor is not installed.
        """
        pending = [(name, True)]
        while pending:
            current, referenced = pending.pop()
            if current in self._scanned and not (referenced and current in self._missing):
                continue
            self._scanned.add(current)
            node = self.node(current)
            try:
                node.dependencies = list(self._peer_lookup(current))
            except PackageManifestError as e:
                if referenced or e.code != "package_not_found":
                    raise
                logger.debug("Peer %s is not installed, skipping its peers", current)
                self._missing.add(current)
                continue
            for dep in node.dependencies:
                dep_node = self.node(dep)
                if current not in dep_node.dependents:
                    dep_node.dependents.append(current)
                pending.append((dep, False))

    def __contains__(self, name: str) -> bool:
        return name in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def check_acyclic(self) -> None:
        """Fail fast on cycles along the dependents edges.

        Raises:
            GraphCycleError: With the vendors forming the cycle.
        """
        done: set[str] = set()
        for root in sorted(self.nodes):
            if root in done:
                continue
            in_progress: list[str] = []
            stack: list[tuple[str, Iterable[str]]] = []
            in_progress.append(root)
            stack.append((root, iter(self.nodes[root].dependents)))
            while stack:
                current, children = stack[-1]
                child = next(children, None)
                if child is None:
                    stack.pop()
                    in_progress.pop()
                    done.add(current)
                    continue
                if child in done:
                    continue
                if child in in_progress:
                    cycle = in_progress[in_progress.index(child) :] + [child]
                    raise GraphCycleError(cycle)
                in_progress.append(child)
                stack.append((child, iter(self.nodes[child].dependents)))


def direct_requirements(
    modules: Mapping[str, ModuleRecord],
    is_local: Callable[[str], bool],
) -> dict[str, set[str]]:
    """Union of symbols local modules import from each vendor."""
    required: dict[str, set[str]] = {}
    for name, record in modules.items():
        if not is_local(name) or not record.imports:
            continue
        for imported, symbols in record.imports.items():
            if not is_local(imported):
                required.setdefault(imported, set()).update(symbols)
    return required


def peer_usage(
    vendor: str,
    dependents: Iterable[str],
    modules: Mapping[str, ModuleRecord],
) -> set[str] | None:
    """Symbols the chunks of ``dependents`` import from ``vendor``.

    Returns None when no dependent chunk imports the vendor at all.
    """
    usage: set[str] | None = None
    for dependent in dependents:
        record = modules.get(dependent)
        if record is None or not record.is_built or not record.imports:
            continue
        if vendor in record.imports:
            usage = (usage or set()) | record.imports[vendor]
    return usage


def previous_requirements(
    graph: VendorGraph,
    modules: Mapping[str, ModuleRecord],
    is_local: Callable[[str], bool],
) -> dict[str, set[str]]:
    """Required symbols per vendor as recorded by the previous run."""
    required = direct_requirements(modules, is_local)
    for name, node in graph.nodes.items():
        usage = peer_usage(name, node.dependents, modules)
        if usage is not None:
            required[name] = required.get(name, set()) | usage
    return required


def to_kebab(symbol: str) -> str:
    """``DatePicker`` -> ``date-picker``."""
    return re.sub(r"(?<!^)(?=[A-Z])", "-", symbol).lower()


def render_vendor_source(
    vendor: str,
    symbols: Iterable[str],
    resolver: ResolverSpec | None = None,
) -> str:
    """Render the virtual entry module of a vendor chunk.

    A ``*`` binding (namespace import) re-exports the whole package, and
    ``default`` always comes from the package root, resolver or not.

    Args:
        vendor: Vendor package name.
        symbols: Symbols the chunk must re-export.
        resolver: Optional sub-path mapping for per-symbol entries.

    Returns:
        ES module source.
    """
    ordered = sorted(set(symbols))
    if not ordered:
        return f'import "{vendor}";\n'

    lines: list[str] = []
    if "*" in ordered:
        lines.append(f'export * from "{vendor}";')
    named = [s for s in ordered if s != "*"]
    if resolver is None:
        if named:
            lines.append(f'export {{ {", ".join(named)} }} from "{vendor}";')
        return "\n".join(lines) + "\n"

    if "default" in named:
        lines.append(f'export {{ default }} from "{vendor}";')
    for symbol in named:
        if symbol == "default":
            continue
        params = {"binding": symbol, "kebab": to_kebab(symbol)}
        if resolver.side_effects:
            lines.append(f'import "{vendor}/{resolver.side_effects.format(**params)}";')
        lines.append(
            f'export {{ default as {symbol} }} from "{vendor}/{resolver.path.format(**params)}";'
        )
    return "\n".join(lines) + "\n"


class VendorAggregator:
    """Decides and performs vendor chunk rebuilds for one run."""

    def __init__(self, ctx: RunContext, graph: VendorGraph) -> None:
        self.ctx = ctx
        self.graph = graph
        initial = ctx.store.initial.modules
        self.previous = previous_requirements(graph, initial, ctx.is_local)
        self.direct = direct_requirements(ctx.store.modules, ctx.is_local)
        self.current: dict[str, set[str]] = {}
        self._tasks: dict[str, asyncio.Task[set[str] | None]] = {}
        self._initial = initial

    async def run(self) -> dict[str, set[str]]:
        """Evaluate every vendor, then evict unreferenced ones.

        Returns:
            Current required symbols of every referenced vendor.

        Raises:
            GraphCycleError: If peer dependencies are cyclic.
            BundlerError: If a vendor build fails.
        """
        self.graph.check_acyclic()
        await asyncio.gather(*(self.evaluate(name) for name in sorted(self.graph.nodes)))
        self.evict_unreferenced()
        return self.current

    def evaluate(self, vendor: str) -> asyncio.Task[set[str] | None]:
        """Return the (shared) evaluation task of a vendor."""
        task = self._tasks.get(vendor)
        if task is None:
            task = self._tasks[vendor] = asyncio.ensure_future(self._evaluate(vendor))
        return task

    async def _evaluate(self, vendor: str) -> set[str] | None:
        node = self.graph.node(vendor)
        results = await asyncio.gather(*(self.evaluate(d) for d in node.dependents))
        referenced = [d for d, result in zip(node.dependents, results) if result is not None]

        required = set(self.direct[vendor]) if vendor in self.direct else None
        usage = peer_usage(vendor, referenced, self.ctx.store.modules)
        if usage is not None:
            required = (required or set()) | usage
        if required is None:
            return None

        self.current[vendor] = required
        previous = self.previous.get(vendor)
        initial_record = self._initial.get(vendor)
        if initial_record is None or not initial_record.is_built:
            logger.info("Vendor %s is new, building", vendor)
        elif previous != required:
            logger.info(
                "Vendor %s exports changed (%d -> %d symbol(s)), rebuilding",
                vendor,
                len(previous or ()),
                len(required),
            )
        else:
            logger.debug("Vendor %s unchanged", vendor)
            return required

        await self.rebuild(vendor, required)
        return required

    def make_request(self, vendor: str, symbols: set[str]) -> BuildRequest:
        settings = self.ctx.settings
        resolver = self.ctx.project.resolvers.get(vendor)
        return BuildRequest(
            kind=BuildKind.VENDOR,
            name=vendor,
            entry=settings.vendor_entry,
            out_dir=str(settings.dist_path),
            externals=list(self.graph.node(vendor).dependencies),
            entry_file_names=f"{settings.assets_dir}/{vendor}.[hash].js",
            chunk_file_names=f"{settings.assets_dir}/{vendor}-[name].[hash].js",
            asset_file_names=f"{settings.assets_dir}/{vendor}.[hash][extname]",
            virtual_source=render_vendor_source(vendor, symbols, resolver),
            sourcemap=settings.sourcemap,
            minify=settings.minify,
        )

    async def rebuild(self, vendor: str, symbols: set[str]) -> None:
        self.ctx.store.remove(vendor)
        report = await self.ctx.bundler.build(self.make_request(vendor, symbols))
        record_report(self.ctx.store.get(vendor), report, vendor)
        self.ctx.summary.vendors_built.append(vendor)

    def evict_unreferenced(self) -> list[str]:
        """Evict vendor records no local module or dependent references."""
        evicted = []
        for name in sorted(self.ctx.store.modules):
            if self.ctx.is_local(name) or name in self.current:
                continue
            self.ctx.store.remove(name)
            evicted.append(name)
        self.ctx.summary.evicted.extend(evicted)
        return evicted


async def rebuild_vendors(ctx: RunContext) -> dict[str, set[str]]:
    """Build the vendor graph from the store and settle every vendor chunk."""
    graph = VendorGraph.from_records(
        ctx.store.modules, ctx.is_local, ctx.packages.peer_dependencies
    )
    ctx.graph = graph
    logger.info("Vendor graph: %d package(s)", len(graph))
    return await VendorAggregator(ctx, graph).run()


__all__ = [
    "GraphCycleError",
    "VendorAggregator",
    "VendorGraph",
    "VendorNode",
    "direct_requirements",
    "peer_usage",
    "previous_requirements",
    "rebuild_vendors",
    "render_vendor_source",
    "to_kebab",
]
