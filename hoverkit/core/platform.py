"""
Platform and cache key resolution for hoverkit.

This module derives the identifiers used to name engine cache directories and
to select remote engine artifacts, and detects the host operating system.

Features:
- Build modes (debug, jit_release, profile, release) with their AOT-ness
- Base platform ('linux-x64') and platform ('linux-x64-release') strings
- Engine cache path derivation (pure, no I/O)
- Host OS detection normalized to 'linux', 'darwin' or 'windows'
- Default user cache directory

Usage:
    from hoverkit.core.platform import RELEASE_MODE, engine_cache_path

    path = engine_cache_path("linux", Path("/home/me/.cache"), RELEASE_MODE)
    # /home/me/.cache/hover/engine/linux-x64-release
"""

import functools
import os
import platform
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Union

from hoverkit.core.exceptions import UnsupportedPlatformError

SUPPORTED_OS = ("linux", "darwin", "windows")

# TODO: support more architectures than x64 once arm64 engine builds are published
BASE_ARCH = "x64"


@dataclass(frozen=True)
class BuildMode:
    """
    Engine build mode.

    Attributes:
        name: Engine flavour name used in artifact URLs ('release', 'profile', ...)
        is_aot: Whether the application is compiled ahead of time
    """

    name: str
    is_aot: bool

    def __str__(self) -> str:
        return self.name


DEBUG_MODE = BuildMode(name="debug_unopt", is_aot=False)
JIT_RELEASE_MODE = BuildMode(name="jit_release", is_aot=False)
PROFILE_MODE = BuildMode(name="profile", is_aot=True)
RELEASE_MODE = BuildMode(name="release", is_aot=True)

BUILD_MODES: Dict[str, BuildMode] = {
    "debug": DEBUG_MODE,
    "jit-release": JIT_RELEASE_MODE,
    "profile": PROFILE_MODE,
    "release": RELEASE_MODE,
}


@dataclass(frozen=True)
class PlatformKey:
    """
    Identity of an engine cache entry.

    Example:
        >>> PlatformKey("linux", "x64", RELEASE_MODE).platform_string()
        'linux-x64-release'
    """

    target_os: str
    base_arch: str
    mode: BuildMode

    def base_platform_string(self) -> str:
        return f"{self.target_os}-{self.base_arch}"

    def platform_string(self) -> str:
        platform_string = self.base_platform_string()
        if self.mode.is_aot:
            platform_string += f"-{self.mode.name}"
        return platform_string


def validate_target_os(target_os: str) -> str:
    """
    Check that target_os is a supported target.

    Raises:
        UnsupportedPlatformError: If target_os is not linux, darwin or windows
    """
    if target_os not in SUPPORTED_OS:
        raise UnsupportedPlatformError(target_os)
    return target_os


def platform_key(target_os: str, mode: BuildMode) -> PlatformKey:
    """Build the cache key for a target OS and build mode."""
    return PlatformKey(target_os=target_os, base_arch=BASE_ARCH, mode=mode)


def base_platform(target_os: str) -> str:
    """
    Get the base platform string for a target OS.

    Example:
        >>> base_platform("darwin")
        'darwin-x64'
    """
    return f"{target_os}-{BASE_ARCH}"


def platform_name(target_os: str, mode: BuildMode) -> str:
    """
    Get the platform string for a target OS and build mode.

    The mode name is appended only for AOT modes, so JIT builds share the
    base platform directory.

    Example:
        >>> platform_name("linux", RELEASE_MODE)
        'linux-x64-release'
        >>> platform_name("linux", DEBUG_MODE)
        'linux-x64'
    """
    return platform_key(target_os, mode).platform_string()


def engine_cache_path(
    target_os: str, cache_root: Union[str, Path], mode: BuildMode
) -> Path:
    """
    Get the engine cache directory for a target OS and build mode.

    Pure function: identical inputs always give the identical path and no
    filesystem access is performed.

    Args:
        target_os: Target OS ('linux', 'darwin', 'windows')
        cache_root: Root of the user cache
        mode: Build mode

    Returns:
        Path of the form <cache_root>/hover/engine/<platform>
    """
    return Path(cache_root) / "hover" / "engine" / platform_name(target_os, mode)


@functools.lru_cache(maxsize=1)
def host_os() -> str:
    """
    Detect the host operating system.

    Returns:
        'linux', 'darwin' or 'windows'

    Raises:
        UnsupportedPlatformError: If running on another OS
    """
    system = platform.system().lower()
    if system.startswith(("cygwin", "msys", "mingw")):
        system = "windows"
    return validate_target_os(system)


def default_cache_root() -> Path:
    """
    Get the platform-specific user cache directory.

    Returns:
        Path: The user cache directory.
            - Windows: %LOCALAPPDATA%
            - macOS: ~/Library/Caches
            - Linux: $XDG_CACHE_HOME or ~/.cache
    """
    if os.name == "nt":
        local_app_data = os.environ.get("LOCALAPPDATA")
        if local_app_data:
            return Path(local_app_data)
        return Path.home() / "AppData" / "Local"

    if platform.system() == "Darwin":
        return Path.home() / "Library" / "Caches"

    xdg_cache = os.environ.get("XDG_CACHE_HOME")
    if xdg_cache and os.path.isabs(xdg_cache):
        return Path(xdg_cache)
    return Path.home() / ".cache"


__all__ = [
    "SUPPORTED_OS",
    "BASE_ARCH",
    "BuildMode",
    "DEBUG_MODE",
    "JIT_RELEASE_MODE",
    "PROFILE_MODE",
    "RELEASE_MODE",
    "BUILD_MODES",
    "PlatformKey",
    "validate_target_os",
    "platform_key",
    "base_platform",
    "platform_name",
    "engine_cache_path",
    "host_os",
    "default_cache_root",
]
