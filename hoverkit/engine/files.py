"""
Engine file sets and per-OS naming.

An engine file set is the ordered list of cache-relative paths that a
populated engine cache entry must contain for a target OS. The same list is
used to relocate files after extraction and to stage them into the build
output directory.
"""

from typing import Tuple

from hoverkit.core.exceptions import UnsupportedPlatformError
from hoverkit.core.platform import BuildMode

_LIBRARY_NAMES = {
    "darwin": "FlutterMacOS",
    "linux": "flutter_engine",
    "windows": "flutter_engine",
}

_ENGINE_FILES = {
    "darwin": ("FlutterMacOS.framework",),
    "linux": ("libflutter_engine.so",),
    "windows": (
        "flutter_engine.dll",
        "flutter_engine.dll.exp",
        "flutter_engine.dll.lib",
        "flutter_engine.dll.pdb",
    ),
}

_ENGINE_ARCHIVES = {
    "darwin": "FlutterMacOS.framework.zip",
    "linux": "linux-x64-flutter-gtk.zip",
    "windows": "windows-x64-flutter.zip",
}


def library_name(target_os: str) -> str:
    """
    Name of the engine library as the linker sees it.

    Example:
        >>> library_name("darwin")
        'FlutterMacOS'
    """
    try:
        return _LIBRARY_NAMES[target_os]
    except KeyError:
        raise UnsupportedPlatformError(target_os) from None


def engine_files(target_os: str, mode: BuildMode) -> Tuple[str, ...]:
    """
    Ordered engine file set for a target OS.

    The first entry is the primary engine binary. The set currently does not
    vary with the build mode; the mode is part of the signature because the
    cache entry holding these files is mode specific.

    Example:
        >>> engine_files("linux", RELEASE_MODE)
        ('libflutter_engine.so',)
    """
    try:
        return _ENGINE_FILES[target_os]
    except KeyError:
        raise UnsupportedPlatformError(target_os) from None


def engine_archive_name(target_os: str) -> str:
    """File name of the engine archive published for a target OS."""
    try:
        return _ENGINE_ARCHIVES[target_os]
    except KeyError:
        raise UnsupportedPlatformError(target_os) from None


def executable_extension(target_os: str) -> str:
    """'.exe' on Windows, empty elsewhere."""
    return ".exe" if target_os == "windows" else ""


def gen_snapshot_name(target_os: str) -> str:
    """File name of the snapshot generator for a target OS."""
    return "gen_snapshot" + executable_extension(target_os)


__all__ = [
    "library_name",
    "engine_files",
    "engine_archive_name",
    "executable_extension",
    "gen_snapshot_name",
]
