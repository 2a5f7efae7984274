"""Build manifest module.

This module handles:
- Manifest and module record models
- Loading the previous baseline (local file or remote origin)
- The run-scoped metadata store and atomic persistence
"""

from mfe_build.manifest.models import Manifest, ModuleRecord
from mfe_build.manifest.store import ModuleMetadataStore

__all__ = ["Manifest", "ModuleMetadataStore", "ModuleRecord"]
