"""
Centralized exception hierarchy for hoverkit.

Every failure inside the engine cache, the AOT pipeline and the build
environment composer is raised as a subclass of HoverKitError. Only the CLI
boundary decides how a failure terminates the process.
"""


# ============================================================================
# Base Exceptions
# ============================================================================


class HoverKitError(Exception):
    """Base exception for all hoverkit errors."""

    pass


# ============================================================================
# Configuration Exceptions
# ============================================================================


class ConfigurationError(HoverKitError):
    """Raised when the resolved build configuration is unusable."""

    pass


class CachePathError(ConfigurationError):
    """Raised when the engine cache root cannot be used."""

    def __init__(self, cache_root: str):
        self.cache_root = cache_root
        super().__init__(
            f"Cannot save the engine to '{cache_root}', engine cache is not "
            "compatible with path containing spaces. Please use another "
            "engine cache path (--cache-path)."
        )


class UnsupportedPlatformError(ConfigurationError):
    """Raised when a target OS is not one of linux, darwin or windows."""

    def __init__(self, target_os: str):
        self.target_os = target_os
        super().__init__(f"Target platform {target_os} is not supported")


# ============================================================================
# Engine Cache Exceptions
# ============================================================================


class EngineCacheError(HoverKitError):
    """Base exception for engine cache population errors."""

    pass


class EngineVersionError(EngineCacheError):
    """Raised when the required engine version cannot be determined."""

    pass


class EngineAssemblyError(EngineCacheError):
    """Raised when extracted engine files cannot be put in their final layout."""

    pass


# ============================================================================
# Build Exceptions
# ============================================================================


class BuildError(HoverKitError):
    """Base exception for build step errors."""

    pass


class SnapshotError(BuildError):
    """Raised when an AOT snapshot stage fails."""

    def __init__(self, stage: str, message: str, output: str = ""):
        self.stage = stage
        self.output = output
        msg = f"{stage} failed: {message}"
        if output:
            msg += f"\n{output}"
        super().__init__(msg)
