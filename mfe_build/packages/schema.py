"""Pydantic models for package.json documents.

Only the keys the orchestrator reads are modelled; everything else in a
package.json is ignored.
"""

from pydantic import BaseModel, ConfigDict, Field


class MfeSection(BaseModel):
    """The ``mfe`` section of a local package.json."""

    model_config = ConfigDict(extra="ignore")

    type: str | None = Field(default=None, description="Declared build type")


class PackageDescriptor(BaseModel):
    """Descriptor of a local or vendor package.

    Attributes:
        name: Published package name (e.g. '@vue-mfe/home').
        main: Main entry path relative to the package directory.
        mfe: Build settings of a local package.
        dependencies: Runtime dependencies (externalized when building).
        peer_dependencies: Peer dependencies (vendor graph edges).
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str
    main: str = Field(default="src/index.ts")
    mfe: MfeSection = Field(default_factory=MfeSection)
    dependencies: dict[str, str] = Field(default_factory=dict)
    peer_dependencies: dict[str, str] = Field(
        default_factory=dict, alias="peerDependencies"
    )


__all__ = ["MfeSection", "PackageDescriptor"]
