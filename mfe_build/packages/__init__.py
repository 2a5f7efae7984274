"""Package manifest module.

Access via mfe_build.packages.resolver for lookups and
mfe_build.packages.schema for the package.json models.
"""

from mfe_build.packages.resolver import PackageManifestError, PackageResolver
from mfe_build.packages.schema import PackageDescriptor

__all__ = ["PackageDescriptor", "PackageManifestError", "PackageResolver"]
