"""Project file loading.

The project file (``mfe.config.yaml`` by default) holds settings that
belong to the repository rather than to a machine: remote baseline URLs,
package type fallbacks and vendor sub-path resolvers.

Example::

    oss:
      staged: https://cdn.example.com/qa/
      production: https://cdn.example.com/prod/
    packages:
      home:
        type: pages
    resolvers:
      ant-design-vue:
        path: es/{kebab}
        side_effects: es/{kebab}/style/css
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from mfe_build.types import RunMode

logger = logging.getLogger(__name__)


class PackageOverride(BaseModel):
    """Per-package settings from the project file."""

    model_config = ConfigDict(extra="forbid")

    type: str | None = Field(default=None, description="Build type fallback")


class ResolverSpec(BaseModel):
    """Sub-path mapping for a vendor that needs per-symbol entries.

    Attributes:
        path: Template of the module path exporting one symbol as default.
        side_effects: Optional template of a module imported for side
            effects before the symbol (stylesheets and the like).
    """

    model_config = ConfigDict(extra="forbid")

    path: str
    side_effects: str | None = None

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Validate path is relative to the vendor package."""
        if v.startswith("/"):
            raise ValueError("path must be relative to the vendor package")
        return v


class OssSpec(BaseModel):
    """Remote baseline origins."""

    model_config = ConfigDict(extra="forbid")

    staged: str | None = None
    production: str | None = None


class ProjectConfig(BaseModel):
    """Validated project file contents."""

    model_config = ConfigDict(extra="forbid")

    oss: OssSpec = Field(default_factory=OssSpec)
    packages: dict[str, PackageOverride] = Field(default_factory=dict)
    resolvers: dict[str, ResolverSpec] = Field(default_factory=dict)

    def baseline_url(self, mode: RunMode) -> str | None:
        """Return the configured base URL for a remote run mode."""
        if mode is RunMode.STAGED:
            return self.oss.staged
        if mode is RunMode.PRODUCTION:
            return self.oss.production
        return None

    def package_type(self, package_id: str) -> str | None:
        override = self.packages.get(package_id)
        return override.type if override else None


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dict.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content as a dictionary.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        ValueError: If the document is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a YAML mapping, got {type(data).__name__}")
    return data


def load_project_config(path: Path) -> ProjectConfig:
    """Load the project file, defaulting to an empty config when absent.

    Raises:
        yaml.YAMLError: If the file is not valid YAML.
        pydantic.ValidationError: If data does not match the schema.
    """
    if not path.exists():
        logger.debug("No project file at %s, using defaults", path)
        return ProjectConfig()
    return ProjectConfig.model_validate(load_yaml(path))


__all__ = [
    "OssSpec",
    "PackageOverride",
    "ProjectConfig",
    "ResolverSpec",
    "load_project_config",
    "load_yaml",
]
