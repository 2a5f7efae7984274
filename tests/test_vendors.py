"""Tests for builds/vendors.py module."""

import pytest

from mfe_build.builds.vendors import (
    GraphCycleError,
    VendorAggregator,
    VendorGraph,
    direct_requirements,
    peer_usage,
    rebuild_vendors,
    render_vendor_source,
    to_kebab,
)
from mfe_build.context import RunContext
from mfe_build.manifest.models import Manifest, ModuleRecord
from mfe_build.manifest.store import ModuleMetadataStore
from mfe_build.packages.resolver import PackageManifestError, PackageResolver
from mfe_build.project import ProjectConfig, ResolverSpec
from mfe_build.types import BuildKind


def is_local(name):
    return name.startswith("@vue-mfe/")


def peers_from(table):
    return lambda name: table.get(name, [])


def installed_peers(table):
    """Peer lookup where only the keys of ``table`` are installed."""

    def lookup(name):
        if name not in table:
            raise PackageManifestError(f"{name} is not installed", code="package_not_found")
        return table[name]

    return lookup


def make_context(workspace, bundler, revisions, manifest=None):
    settings = workspace.settings()
    return RunContext(
        settings=settings,
        project=ProjectConfig(),
        store=ModuleMetadataStore(
            manifest or Manifest(), settings.dist_path, settings.manifest_path
        ),
        packages=PackageResolver(settings),
        bundler=bundler,
        revisions=revisions,
    )


class TestVendorGraph:
    """Tests for VendorGraph."""

    def test_from_records_scans_vendor_imports(self):
        modules = {
            "@vue-mfe/foo": ModuleRecord(
                js="/f.js", imports={"ui-kit": {"Button"}, "@vue-mfe/bar": {"x"}}
            ),
            "lib-y": ModuleRecord(js="/y.js", imports={"lib-z": {"z"}}),
        }
        graph = VendorGraph.from_records(
            modules, is_local, peers_from({"ui-kit": ["vue"]})
        )

        assert set(graph.nodes) == {"ui-kit", "vue"}
        assert graph.node("ui-kit").dependencies == ["vue"]
        assert graph.node("vue").dependents == ["ui-kit"]
        assert "lib-z" not in graph

    def test_peers_scanned_transitively(self):
        graph = VendorGraph(peers_from({"a": ["b"], "b": ["c"]}))
        graph.add_vendor("a")

        assert set(graph.nodes) == {"a", "b", "c"}
        assert graph.node("c").dependents == ["b"]

    def test_shared_peer_has_all_dependents(self):
        graph = VendorGraph(peers_from({"a": ["vue"], "b": ["vue"]}))
        graph.add_vendor("a")
        graph.add_vendor("b")

        assert sorted(graph.node("vue").dependents) == ["a", "b"]
        assert len(graph) == 3

    def test_peer_lookup_is_called_once(self):
        calls = []

        def lookup(name):
            calls.append(name)
            return []

        graph = VendorGraph(lookup)
        graph.add_vendor("a")
        graph.add_vendor("a")
        assert calls == ["a"]

    def test_acyclic_graph_passes(self):
        graph = VendorGraph(peers_from({"a": ["b", "c"], "b": ["c"]}))
        graph.add_vendor("a")
        graph.check_acyclic()

    def test_cycle_detected(self):
        graph = VendorGraph(peers_from({"a": ["b"], "b": ["c"], "c": ["a"]}))
        graph.add_vendor("a")

        with pytest.raises(GraphCycleError) as exc_info:
            graph.check_acyclic()

        cycle = exc_info.value.cycle
        assert cycle[0] == cycle[-1]
        assert set(cycle) == {"a", "b", "c"}

    def test_self_peer_is_a_cycle(self):
        graph = VendorGraph(peers_from({"a": ["a"]}))
        graph.add_vendor("a")
        with pytest.raises(GraphCycleError):
            graph.check_acyclic()

    def test_uninstalled_peer_keeps_its_edge(self):
        """An optional peer that is not installed should not stop the scan."""
        graph = VendorGraph(installed_peers({"vue-demi": ["@vue/composition-api"]}))
        graph.add_vendor("vue-demi")

        assert set(graph.nodes) == {"vue-demi", "@vue/composition-api"}
        assert graph.node("@vue/composition-api").dependencies == []
        assert graph.node("@vue/composition-api").dependents == ["vue-demi"]

    def test_uninstalled_referenced_vendor_fails(self):
        graph = VendorGraph(installed_peers({}))
        with pytest.raises(PackageManifestError) as exc_info:
            graph.add_vendor("lib-x")
        assert exc_info.value.code == "package_not_found"

    def test_uninstalled_peer_fails_once_referenced(self):
        """A peer skipped as optional must still be installed when imported directly."""
        graph = VendorGraph(installed_peers({"vue-demi": ["@vue/composition-api"]}))
        graph.add_vendor("vue-demi")
        with pytest.raises(PackageManifestError):
            graph.add_vendor("@vue/composition-api")


class TestRequirements:
    """Tests for direct_requirements and peer_usage."""

    def test_direct_requirements_union(self):
        modules = {
            "@vue-mfe/a": ModuleRecord(js="/a.js", imports={"vue": {"ref"}}),
            "@vue-mfe/b": ModuleRecord(js="/b.js", imports={"vue": {"computed"}, "@vue-mfe/a": {"x"}}),
            "ui-kit": ModuleRecord(js="/k.js", imports={"vue": {"h"}}),
        }
        assert direct_requirements(modules, is_local) == {"vue": {"ref", "computed"}}

    def test_peer_usage(self):
        modules = {
            "ui-kit": ModuleRecord(js="/k.js", imports={"vue": {"h"}}),
            "router": ModuleRecord(js="/r.js", imports={"vue": {"inject"}}),
            "other": ModuleRecord(js="/o.js", imports={}),
        }
        assert peer_usage("vue", ["ui-kit", "router", "other"], modules) == {"h", "inject"}
        assert peer_usage("vue", ["other", "missing"], modules) is None

    def test_peer_usage_ignores_unbuilt(self):
        modules = {"ui-kit": ModuleRecord(imports={"vue": {"h"}})}
        assert peer_usage("vue", ["ui-kit"], modules) is None


class TestRenderVendorSource:
    """Tests for render_vendor_source function."""

    def test_named_exports(self):
        assert render_vendor_source("vue", {"ref", "computed"}) == (
            'export { computed, ref } from "vue";\n'
        )

    def test_no_symbols(self):
        assert render_vendor_source("normalize.css", set()) == 'import "normalize.css";\n'

    def test_resolver_without_side_effects(self):
        resolver = ResolverSpec(path="lib/{binding}")
        assert render_vendor_source("kit", ["Button"], resolver) == (
            'export { default as Button } from "kit/lib/Button";\n'
        )

    def test_namespace_import_exports_everything(self):
        assert render_vendor_source("dayjs", {"*", "default", "extend"}) == (
            'export * from "dayjs";\n'
            'export { default, extend } from "dayjs";\n'
        )

    def test_namespace_only(self):
        assert render_vendor_source("dayjs", {"*"}) == 'export * from "dayjs";\n'

    def test_resolver_keeps_default_on_package_root(self):
        resolver = ResolverSpec(path="lib/{binding}")
        assert render_vendor_source("kit", ["*", "Button", "default"], resolver) == (
            'export * from "kit";\n'
            'export { default } from "kit";\n'
            'export { default as Button } from "kit/lib/Button";\n'
        )

    def test_kebab(self):
        assert to_kebab("DatePicker") == "date-picker"
        assert to_kebab("Button") == "button"
        assert to_kebab("message") == "message"


class TestVendorAggregator:
    """Tests for VendorAggregator decisions."""

    @pytest.mark.asyncio
    async def test_new_vendor_is_built(self, workspace, bundler, revisions):
        workspace.vendor("lib-x")
        ctx = make_context(workspace, bundler, revisions)
        ctx.store.get("@vue-mfe/foo").js = "/assets/foo.js"
        ctx.store.get("@vue-mfe/foo").imports = {"lib-x": {"ref"}}

        current = await rebuild_vendors(ctx)

        assert current == {"lib-x": {"ref"}}
        assert ctx.summary.vendors_built == ["lib-x"]
        request = bundler.request("lib-x")
        assert request.kind is BuildKind.VENDOR
        assert request.entry == "vendor"
        assert request.entry_file_names == "assets/lib-x.[hash].js"
        assert ctx.store.modules["lib-x"].is_built
        assert ctx.graph is not None

    @pytest.mark.asyncio
    async def test_unchanged_vendor_is_kept(self, workspace, bundler, revisions):
        workspace.vendor("lib-x")
        manifest = Manifest(
            modules={
                "@vue-mfe/foo": ModuleRecord(js="/assets/foo.js", imports={"lib-x": {"ref"}}),
                "lib-x": ModuleRecord(js="/assets/lib-x.1.js"),
            }
        )
        ctx = make_context(workspace, bundler, revisions, manifest)

        await rebuild_vendors(ctx)

        assert bundler.requests == []
        assert ctx.store.modules["lib-x"].js == "/assets/lib-x.1.js"

    @pytest.mark.asyncio
    async def test_each_vendor_evaluated_once(self, workspace, bundler, revisions):
        """A peer shared by several dependents should be built once, after them."""
        workspace.vendor("a", peers=["vue"])
        workspace.vendor("b", peers=["vue"])
        workspace.vendor("vue")
        bundler.imports["a"] = {"vue": ["h"]}
        bundler.imports["b"] = {"vue": ["inject"]}
        ctx = make_context(workspace, bundler, revisions)
        ctx.store.get("@vue-mfe/foo").js = "/f.js"
        ctx.store.get("@vue-mfe/foo").imports = {"a": {"A"}, "b": {"B"}}

        current = await rebuild_vendors(ctx)

        vendors = bundler.names(BuildKind.VENDOR)
        assert sorted(vendors) == ["a", "b", "vue"]
        assert vendors[-1] == "vue"
        assert current["vue"] == {"h", "inject"}

    @pytest.mark.asyncio
    async def test_peer_only_vendor_needs_referenced_dependent(
        self, workspace, bundler, revisions
    ):
        """A peer used only by unreferenced vendors is not required."""
        workspace.vendor("a", peers=["vue"])
        workspace.vendor("vue")
        ctx = make_context(workspace, bundler, revisions)
        aggregator = VendorAggregator(ctx, VendorGraph(ctx.packages.peer_dependencies))
        aggregator.graph.add_vendor("a")

        current = await aggregator.run()

        assert current == {}
        assert bundler.requests == []
