"""Configuration settings for mfe_build.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > project
file > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from mfe_build.types import RunMode


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the MFE_BUILD_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="MFE_BUILD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Layout
    root_dir: Path = Field(
        default_factory=Path.cwd,
        description="Repository root containing packages/ and dist/",
    )
    packages_dir: str = Field(
        default="packages",
        description="Directory holding the local source packages",
    )
    dist_dir: str = Field(
        default="dist",
        description="Artifact directory for emitted chunks, manifest and shell",
    )
    assets_dir: str = Field(
        default="assets",
        description="Sub-directory of dist for hashed chunks",
    )
    vendor_entry: str = Field(
        default="vendor",
        description="Identifier of the synthetic vendor entry module",
    )
    scope: str = Field(
        default="@vue-mfe",
        description="Namespace prefix of local package names",
    )
    source_extensions: list[str] = Field(
        default_factory=lambda: ["ts", "tsx", "vue"],
        description="Source file extensions scanned on a first run",
    )
    manifest_name: str = Field(default="meta.json")
    html_name: str = Field(default="index.html")
    project_config: str = Field(
        default="mfe.config.yaml",
        description="Project file with baseline URLs, package types and resolvers",
    )

    # Operational modes
    mode: RunMode = Field(
        default=RunMode.LOCAL,
        description="Where the previous baseline comes from",
    )
    staged_url: str | None = Field(
        default=None,
        description="Base URL of the staged baseline (overrides project file)",
    )
    production_url: str | None = Field(
        default=None,
        description="Base URL of the production baseline (overrides project file)",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Concurrency
    max_concurrent_builds: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Maximum concurrent Bundler invocations",
    )

    # Timeouts (in seconds)
    fetch_timeout: int = Field(
        default=30,
        ge=1,
        description="Timeout for remote baseline fetches",
    )

    # Bundler
    bundler_command: list[str] = Field(
        default_factory=lambda: ["node", "scripts/bundle.mjs"],
        description="Command that runs the Bundler protocol over stdin/stdout",
    )
    sourcemap: bool = Field(default=True)
    minify: bool = Field(default=False)

    # HTML injection
    html_placeholder: str = Field(default="<!-- mfe placeholder -->")
    registry_global: str = Field(
        default="mfe",
        description="Name of the window global holding the module registry",
    )

    @property
    def dist_path(self) -> Path:
        """Absolute artifact directory."""
        return self.root_dir / self.dist_dir

    @property
    def packages_path(self) -> Path:
        """Absolute local packages directory."""
        return self.root_dir / self.packages_dir

    @property
    def manifest_path(self) -> Path:
        return self.dist_path / self.manifest_name

    @property
    def html_path(self) -> Path:
        return self.dist_path / self.html_name

    @property
    def local_prefix(self) -> str:
        """Prefix identifying local module names."""
        return f"{self.scope}/"


def get_settings(**overrides: object) -> Settings:
    """Get the application settings.

    Args:
        **overrides: Explicit values (e.g. from CLI flags) taking precedence
            over the environment.

    Returns:
        Settings instance loaded from environment.
    """
    values = {k: v for k, v in overrides.items() if v is not None}
    return Settings(**values)


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = ["Settings", "get_settings", "print_settings_json"]
