"""Build orchestration module.

This module handles:
- The Bundler contract and its subprocess implementation
- Dispatching changed local packages to build units
- Vendor graph construction, export aggregation and vendor rebuilds
"""

from mfe_build.builds.bundler import (
    BuildRequest,
    BundleOutput,
    BundleReport,
    Bundler,
    BundlerError,
)

__all__ = ["BuildRequest", "BundleOutput", "BundleReport", "Bundler", "BundlerError"]

# Access the dispatcher and vendor logic via mfe_build.builds.dispatcher and
# mfe_build.builds.vendors; they import the run context.
