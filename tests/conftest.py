"""Shared fixtures: a throwaway repository layout plus in-memory collaborators."""

from __future__ import annotations

import json
import re
from pathlib import Path

import pytest

from mfe_build.builds.bundler import BuildRequest, BundleOutput, BundleReport, BundlerError
from mfe_build.config import Settings
from mfe_build.types import BuildKind

SHELL_HTML = "<!doctype html><html><head><!-- mfe placeholder --></head><body></body></html>\n"


class FakeRevisionControl:
    """RevisionControl returning canned revisions and diffs."""

    def __init__(self, revision: str = "r1", diff: str = "") -> None:
        self.revision = revision
        self.diff = diff
        self.diff_calls: list[tuple[str, str]] = []

    def current_revision(self) -> str:
        return self.revision

    def diff_name_status(self, base: str, head: str = "HEAD") -> str:
        self.diff_calls.append((base, head))
        return self.diff

    def advance(self, revision: str, diff: str) -> None:
        self.revision = revision
        self.diff = diff


class FakeBundler:
    """Bundler writing placeholder chunks into the artifact directory.

    Each build emits a uniquely numbered entry chunk so a rebuild is visible
    as a changed asset path. ``imports`` maps a module name to the bindings
    its entry chunk reports; ``styles`` lists modules that emit a stylesheet.
    """

    def __init__(self) -> None:
        self.imports: dict[str, dict[str, list[str]]] = {}
        self.styles: set[str] = set()
        self.fail: set[str] = set()
        self.requests: list[BuildRequest] = []
        self.counter = 0

    def names(self, kind: BuildKind | None = None) -> list[str]:
        return [r.name for r in self.requests if kind is None or r.kind is kind]

    def request(self, name: str) -> BuildRequest:
        return next(r for r in reversed(self.requests) if r.name == name)

    async def build(self, request: BuildRequest) -> BundleReport:
        self.requests.append(request)
        if request.name in self.fail:
            raise BundlerError(f"Build of {request.name} failed", exit_code=1)

        self.counter += 1
        out_dir = Path(request.out_dir)
        stem = re.sub(r"[^A-Za-z0-9]+", "_", request.name).strip("_")
        entry = f"assets/{stem}-{self.counter:04d}.js"
        (out_dir / "assets").mkdir(parents=True, exist_ok=True)
        (out_dir / entry).write_text(request.virtual_source or "export {}\n")
        (out_dir / f"{entry}.map").write_text("{}")
        outputs = [
            BundleOutput(
                file_name=entry,
                is_entry=True,
                imported_bindings=self.imports.get(request.name, {}),
            )
        ]
        if request.name in self.styles:
            css = f"assets/{stem}-{self.counter:04d}.css"
            (out_dir / css).write_text("")
            outputs.append(BundleOutput(file_name=css, is_stylesheet=True))
        if request.kind is BuildKind.CONTAINER:
            (out_dir / "index.html").write_text(SHELL_HTML)
        return BundleReport(outputs=outputs)


class Workspace:
    """Micro-frontend repository under a temporary directory."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def package(
        self,
        package_id: str,
        package_type: str | None,
        name: str | None = None,
        main: str = "src/index.ts",
        dependencies: dict[str, str] | None = None,
    ) -> Path:
        data: dict = {
            "name": name or f"@vue-mfe/{package_id}",
            "main": main,
            "dependencies": dependencies or {},
        }
        if package_type is not None:
            data["mfe"] = {"type": package_type}
        path = self.root / "packages" / package_id / "package.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data))
        return path

    def source(self, path: str, content: str = "") -> Path:
        target = self.root / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
        return target

    def vendor(self, name: str, peers: list[str] | None = None) -> Path:
        data = {
            "name": name,
            "peerDependencies": {peer: "*" for peer in peers or []},
        }
        path = self.root / "node_modules" / name / "package.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data))
        return path

    def settings(self, **overrides) -> Settings:
        return Settings(root_dir=self.root, **overrides)

    @property
    def dist(self) -> Path:
        return self.root / "dist"

    def manifest(self) -> dict:
        return json.loads((self.dist / "meta.json").read_text())


@pytest.fixture
def workspace(tmp_path: Path) -> Workspace:
    """Empty repository layout."""
    return Workspace(tmp_path)


@pytest.fixture
def bundler() -> FakeBundler:
    return FakeBundler()


@pytest.fixture
def revisions() -> FakeRevisionControl:
    return FakeRevisionControl()
