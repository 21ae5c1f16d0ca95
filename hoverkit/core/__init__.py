"""
Core functionality for hoverkit.

This package contains the foundational modules that the engine cache and the
build steps depend on.
"""

from .exceptions import (
    HoverKitError,
    ConfigurationError,
    CachePathError,
    UnsupportedPlatformError,
    EngineCacheError,
    EngineVersionError,
    EngineAssemblyError,
    BuildError,
    SnapshotError,
)

from .platform import (
    BuildMode,
    PlatformKey,
    DEBUG_MODE,
    JIT_RELEASE_MODE,
    PROFILE_MODE,
    RELEASE_MODE,
    BUILD_MODES,
    base_platform,
    platform_name,
    engine_cache_path,
    host_os,
    default_cache_root,
)

from .config import (
    BuildConfig,
    resolve_build_config,
)

__all__ = [
    "HoverKitError",
    "ConfigurationError",
    "CachePathError",
    "UnsupportedPlatformError",
    "EngineCacheError",
    "EngineVersionError",
    "EngineAssemblyError",
    "BuildError",
    "SnapshotError",
    "BuildMode",
    "PlatformKey",
    "DEBUG_MODE",
    "JIT_RELEASE_MODE",
    "PROFILE_MODE",
    "RELEASE_MODE",
    "BUILD_MODES",
    "base_platform",
    "platform_name",
    "engine_cache_path",
    "host_os",
    "default_cache_root",
    "BuildConfig",
    "resolve_build_config",
]
