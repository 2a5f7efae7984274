"""mfe-build - Incremental build orchestrator for micro-frontend repositories.

This package rebuilds only the source packages that changed since the last
successful build, keeps shared vendor chunks minimal and deduplicated, and
injects a browser import map plus a runtime module registry into the shell.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
