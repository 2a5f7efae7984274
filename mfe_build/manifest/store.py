"""Module metadata store.

Holds the manifest for the duration of a run:
- get(): memoized record access, creating empty records on demand
- remove(): eviction of a module's emitted files and record
- persist(): atomic write of the manifest with the new revision

The store is single-writer. Two runs against the same artifact
directory will corrupt each other's view of the manifest.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from mfe_build.manifest.models import Manifest, ModuleRecord

logger = logging.getLogger(__name__)


def write_atomic(path: Path, content: str) -> Path:
    """Write text to ``path`` through a temporary file and ``os.replace``.

    Args:
        path: Destination file.
        content: Text to write (UTF-8).

    Returns:
        The destination path.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    ) as tmp_file:
        tmp_file.write(content)
        tmp_path = Path(tmp_file.name)
    try:
        os.replace(tmp_path, path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise
    return path


class ModuleMetadataStore:
    """Run-scoped owner of the manifest."""

    def __init__(
        self,
        manifest: Manifest,
        dist_dir: Path,
        manifest_path: Path,
        delete_files: bool = True,
    ) -> None:
        """Initialize the store.

        Args:
            manifest: Manifest loaded at run start (mutated in place).
            dist_dir: Artifact directory asset paths are relative to.
            manifest_path: Where persist() writes.
            delete_files: Whether remove() deletes emitted files.
        """
        self.manifest = manifest
        self.dist_dir = dist_dir
        self.manifest_path = manifest_path
        self.delete_files = delete_files
        self._initial = manifest.model_copy(deep=True)

    @property
    def modules(self) -> dict[str, ModuleRecord]:
        return self.manifest.modules

    @property
    def initial(self) -> Manifest:
        """Deep copy of the manifest as it was when the run started."""
        return self._initial

    def get(self, name: str) -> ModuleRecord:
        """Return the record for ``name``, creating an empty one if needed."""
        record = self.manifest.modules.get(name)
        if record is None:
            record = self.manifest.modules[name] = ModuleRecord()
        return record

    def has(self, name: str) -> bool:
        record = self.manifest.modules.get(name)
        return record is not None and record.is_built

    def remove(self, name: str) -> list[str]:
        """Evict a module: delete its emitted files and drop its record.

        File deletion is best-effort and skipped when the store was created
        with ``delete_files=False`` (remote baselines).

        Returns:
            Asset paths that belonged to the evicted record.
        """
        record = self.manifest.modules.pop(name, None)
        if record is None:
            return []
        removals = record.asset_paths()
        if self.delete_files:
            for asset in removals:
                self._delete_asset(asset)
        logger.info("Evicted %s (%d asset(s))", name, len(removals))
        return removals

    def _delete_asset(self, asset: str) -> None:
        target = self.dist_dir / asset.lstrip("/")
        try:
            target.unlink(missing_ok=True)
            sourcemap = target.with_name(target.name + ".map")
            sourcemap.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Failed to delete %s: %s", target, e)

    def import_map(self) -> dict[str, str]:
        """Module name -> entry chunk path for every built module."""
        return {
            name: record.js
            for name, record in sorted(self.manifest.modules.items())
            if record.js
        }

    def registry(self) -> dict[str, dict[str, str]]:
        """Module name -> asset paths for every built module."""
        return {
            name: record.registry_entry()
            for name, record in sorted(self.manifest.modules.items())
            if record.js
        }

    def prune_unbuilt(self) -> None:
        """Drop records that never received an entry chunk."""
        for name in [n for n, r in self.manifest.modules.items() if not r.is_built]:
            del self.manifest.modules[name]

    def persist(self, revision: str | None = None) -> Path:
        """Write the manifest, advancing its revision when one is given.

        Returns:
            Path of the written manifest.
        """
        if revision is not None:
            self.manifest.commit_hash = revision
        self.prune_unbuilt()
        write_atomic(self.manifest_path, self.manifest.to_json())
        logger.info(
            "Wrote manifest with %d module(s) to %s",
            len(self.manifest.modules),
            self.manifest_path,
        )
        return self.manifest_path


__all__ = ["ModuleMetadataStore", "write_atomic"]
