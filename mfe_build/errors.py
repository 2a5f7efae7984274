"""Error base class for mfe_build.

Every error raised by the orchestrator carries a stable ``code`` so the
CLI and callers can branch on it without parsing messages.
"""


class MfeBuildError(Exception):
    """Base error for build orchestration failures."""

    def __init__(self, message: str, code: str = "mfe_build_error") -> None:
        super().__init__(message)
        self.code = code


class ConfigurationError(MfeBuildError):
    """Raised when a package declares no build type or an unknown one."""

    def __init__(self, package: str, declared: str | None) -> None:
        if declared:
            message = f"Package {package} declares unknown build type '{declared}'"
        else:
            message = f"Package {package} does not declare a build type"
        super().__init__(message, code="configuration_error")
        self.package = package
        self.declared = declared


__all__ = ["ConfigurationError", "MfeBuildError"]
