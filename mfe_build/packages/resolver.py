"""Package lookups for local and vendor packages.

This module handles:
- Mapping a source path to its package id and descriptor
- Local module naming (one module per page, one per other package)
- Bundler aliases and externals per package
- Peer dependencies of vendor packages

Every lookup is a pure function of its identifier and is memoized in the
run's DerivedCache.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from mfe_build.cache import DerivedCache
from mfe_build.errors import MfeBuildError
from mfe_build.packages.schema import PackageDescriptor
from mfe_build.project import ProjectConfig
from mfe_build.types import PackageType

if TYPE_CHECKING:
    from mfe_build.config import Settings

logger = logging.getLogger(__name__)


class PackageManifestError(MfeBuildError):
    """Raised when a package.json is missing or invalid."""

    def __init__(self, message: str, code: str = "package_manifest_error") -> None:
        super().__init__(message, code=code)


@dataclass(frozen=True)
class Alias:
    """Bundler path alias.

    Attributes:
        find: Literal prefix, or a regular expression when ``regex`` is set.
        replacement: Replacement path; may reference regex groups as ``$1``.
        regex: Whether ``find`` is a regular expression.
    """

    find: str
    replacement: str
    regex: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def package_root_name(module_name: str) -> str:
    """Return the installable package name of a bare import specifier.

    ``lodash/debounce`` -> ``lodash``; ``@scope/pkg/sub`` -> ``@scope/pkg``.
    """
    parts = module_name.split("/")
    if module_name.startswith("@") and len(parts) >= 2:
        return "/".join(parts[:2])
    return parts[0]


def read_package_json(path: Path) -> PackageDescriptor:
    """Read and validate a package.json file.

    Raises:
        PackageManifestError: If the file is missing or invalid.
    """
    try:
        with path.open(encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise PackageManifestError(
            f"Package manifest not found: {path}",
            code="package_not_found",
        ) from e
    except (OSError, json.JSONDecodeError) as e:
        raise PackageManifestError(f"Cannot read {path}: {e}") from e

    try:
        return PackageDescriptor.model_validate(data)
    except ValidationError as e:
        raise PackageManifestError(f"Invalid package manifest {path}: {e}") from e


class PackageResolver:
    """Package-manifest collaborator bound to one repository."""

    def __init__(
        self,
        settings: Settings,
        project: ProjectConfig | None = None,
        cache: DerivedCache | None = None,
    ) -> None:
        self.settings = settings
        self.project = project or ProjectConfig()
        self.cache = cache or DerivedCache()
        self._path_pattern = re.compile(
            rf"^{re.escape(settings.packages_dir)}/([^/]+)/"
        )

    def is_local(self, module_name: str) -> bool:
        """Whether a module name belongs to the local package scope."""
        return module_name.startswith(self.settings.local_prefix)

    def package_id(self, path: str) -> str:
        """Return the package id owning a repository-relative path.

        Raises:
            ValueError: If the path is outside the packages directory.
        """
        match = self._path_pattern.match(path)
        if not match:
            raise ValueError(f"Not a package source path: {path}")
        return match.group(1)

    def package_dir(self, package_id: str) -> str:
        return f"{self.settings.packages_dir}/{package_id}"

    def descriptor(self, package_id: str) -> PackageDescriptor:
        """Return the descriptor of a local package.

        Raises:
            PackageManifestError: If its package.json is missing or invalid.
        """
        return self.cache.get_or_compute(
            "descriptor",
            package_id,
            lambda: read_package_json(
                self.settings.root_dir / self.package_dir(package_id) / "package.json"
            ),
        )

    def descriptor_for_path(self, path: str) -> PackageDescriptor:
        return self.descriptor(self.package_id(path))

    def package_type(self, package_id: str) -> str | None:
        """Declared build type, falling back to the project file."""
        declared = self.descriptor(package_id).mfe.type
        return declared or self.project.package_type(package_id)

    def module_name(self, path: str) -> str:
        """Return the local module name a source path is emitted under.

        Pages are emitted per file (``<name>/src/pages/a.vue``); every other
        package type is a single module named after the package.
        """
        package_id = self.package_id(path)
        name = self.descriptor(package_id).name
        if self.package_type(package_id) == PackageType.PAGES.value:
            return name + path[len(self.package_dir(package_id)) :]
        return name

    def entry_path(self, package_id: str) -> str:
        """Repository-relative path of the package's main entry."""
        main = self.descriptor(package_id).main.removeprefix("./")
        return f"{self.package_dir(package_id)}/{main}"

    def aliases(self, package_id: str) -> list[Alias]:
        """Bundler aliases for building a package."""
        return self.cache.get_or_compute(
            "aliases", package_id, lambda: self._compute_aliases(package_id)
        )

    def _compute_aliases(self, package_id: str) -> list[Alias]:
        alias_key = f"@{package_id}"
        aliases: list[Alias] = []
        if self.package_type(package_id) == PackageType.PAGES.value:
            # Cross-page imports stay external and resolve through the import map
            aliases.append(
                Alias(
                    find=re.escape(alias_key) + r"(/.+\.(vue|ts|tsx))",
                    replacement=f"{self.settings.scope}/{package_id}/src$1",
                    regex=True,
                )
            )
        src_dir = self.settings.root_dir / self.package_dir(package_id) / "src"
        aliases.append(Alias(find=alias_key, replacement=str(src_dir)))
        return aliases

    def externals(self, package_id: str) -> list[str]:
        """Runtime dependencies kept out of a package's chunks."""
        return self.cache.get_or_compute(
            "externals",
            package_id,
            lambda: sorted(self.descriptor(package_id).dependencies),
        )

    def external_patterns(self) -> list[str]:
        """Regular expressions of module ids kept external for every build."""
        return [f"^{re.escape(self.settings.local_prefix)}"]

    def peer_dependencies(self, vendor: str) -> list[str]:
        """Declared peer dependencies of an installed vendor package.

        Raises:
            PackageManifestError: If the vendor is not installed.
        """
        root_name = package_root_name(vendor)
        return self.cache.get_or_compute(
            "peers",
            root_name,
            lambda: list(
                read_package_json(
                    self.settings.root_dir / "node_modules" / root_name / "package.json"
                ).peer_dependencies
            ),
        )


__all__ = [
    "Alias",
    "PackageManifestError",
    "PackageResolver",
    "package_root_name",
    "read_package_json",
]
