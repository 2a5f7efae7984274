"""Pydantic models for the persisted build manifest.

The manifest file is a JSON object::

    {"hash": "<revision>", "modules": {"<name>": {"js": ..., "css": ..., "imports": {...}}}}

Symbol sets are held as Python sets and serialized as sorted lists so the
file is byte-stable between runs that change nothing.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class ModuleRecord(BaseModel):
    """Emitted assets and import usage of one module.

    Attributes:
        js: Root-absolute path of the entry chunk.
        css: Root-absolute path of the stylesheet, if one was emitted.
        imports: Imported module name -> symbol names observed by the Bundler.
    """

    model_config = ConfigDict(extra="ignore")

    js: str | None = None
    css: str | None = None
    imports: dict[str, set[str]] | None = None

    @field_serializer("imports")
    def serialize_imports(
        self, imports: dict[str, set[str]] | None
    ) -> dict[str, list[str]] | None:
        if imports is None:
            return None
        return {name: sorted(symbols) for name, symbols in sorted(imports.items())}

    @property
    def is_built(self) -> bool:
        return bool(self.js)

    def asset_paths(self) -> list[str]:
        """Return the emitted asset paths of this record."""
        return [p for p in (self.js, self.css) if p]

    def registry_entry(self) -> dict[str, str]:
        """Return the runtime registry view (asset paths only)."""
        entry = {"js": self.js or ""}
        if self.css:
            entry["css"] = self.css
        return entry


class Manifest(BaseModel):
    """Source revision and module records of the last successful run."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    commit_hash: str | None = Field(default=None, alias="hash")
    modules: dict[str, ModuleRecord] = Field(default_factory=dict)

    @classmethod
    def from_json(cls, text: str | bytes) -> Manifest:
        """Parse a manifest document.

        Raises:
            pydantic.ValidationError: If the document does not match.
        """
        return cls.model_validate_json(text)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_json(self) -> str:
        """Serialize to canonical JSON (sorted keys)."""
        return json.dumps(self.to_dict(), indent=2, sort_keys=True) + "\n"


__all__ = ["Manifest", "ModuleRecord"]
