"""
Compiler and linker environment of the native build.

The go-flutter embedder is compiled with cgo. Its linker must find the engine
library in the engine cache and in the build output directory, and the
produced executable must look for the engine next to itself at runtime.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from hoverkit.core.exceptions import UnsupportedPlatformError
from hoverkit.core.platform import host_os as detect_host_os
from hoverkit.engine.files import library_name

logger = logging.getLogger(__name__)

MACOS_VERSION_MIN = "-mmacosx-version-min=10.10"

# Cross compilers used when building from a linux host
CROSS_COMPILERS = {
    "windows": "x86_64-w64-mingw32-gcc",
    "darwin": "o32-clang",
}


@dataclass
class BuildEnvironment:
    """
    Flags and variables for the native build step.

    Attributes:
        target_os: Target OS
        ldflags: Linker flags (CGO_LDFLAGS)
        cflags: Compiler flags (CGO_CFLAGS)
        variables: Additional environment variables
    """

    target_os: str
    ldflags: List[str] = field(default_factory=list)
    cflags: List[str] = field(default_factory=list)
    variables: Dict[str, str] = field(default_factory=dict)

    @property
    def cgo_ldflags(self) -> str:
        return " ".join(self.ldflags)

    @property
    def cgo_cflags(self) -> str:
        return " ".join(self.cflags)

    def as_env(self) -> Dict[str, str]:
        """
        Environment variables to add to the go build environment.

        Example:
            >>> env = compose_build_environment("linux", cache, out).as_env()
            >>> env["CGO_LDFLAGS"]
            '-L/cache -L/out -lflutter_engine -Wl,-rpath,$ORIGIN'
        """
        env = {
            "GO111MODULE": "on",
            "CGO_LDFLAGS": self.cgo_ldflags,
            "CGO_CFLAGS": self.cgo_cflags,
            "GOOS": self.target_os,
            "GOARCH": "amd64",
            "CGO_ENABLED": "1",
        }
        env.update(self.variables)
        return env


def compose_build_environment(
    target_os: str,
    cache_path: Path,
    output_dir: Path,
    host_os: Optional[str] = None,
) -> BuildEnvironment:
    """
    Compose the compiler/linker flags for the native build.

    Args:
        target_os: Target OS ('linux', 'darwin', 'windows')
        cache_path: Engine cache entry
        output_dir: Build output directory
        host_os: OS running the build (auto-detected if None)

    Returns:
        BuildEnvironment for the target

    Raises:
        UnsupportedPlatformError: If the target OS is not supported
    """
    library = library_name(target_os)
    ldflags: List[str] = []
    cflags: List[str] = []

    if target_os == "darwin":
        ldflags += [f"-F{cache_path}", "-Wl,-rpath,@executable_path"]
        ldflags += [f"-F{output_dir}", f"-L{output_dir}"]
        ldflags += [MACOS_VERSION_MIN, "-framework", library]
        cflags.append(MACOS_VERSION_MIN)
    elif target_os == "linux":
        ldflags += [f"-L{cache_path}", f"-L{output_dir}"]
        ldflags += [f"-l{library}", "-Wl,-rpath,$ORIGIN"]
    elif target_os == "windows":
        ldflags += [f"-L{cache_path}", f"-L{output_dir}"]
        ldflags.append(f"-l{library}")
    else:
        raise UnsupportedPlatformError(target_os)

    variables: Dict[str, str] = {}
    if (host_os or detect_host_os()) == "linux" and target_os in CROSS_COMPILERS:
        variables["CC"] = CROSS_COMPILERS[target_os]

    environment = BuildEnvironment(
        target_os=target_os, ldflags=ldflags, cflags=cflags, variables=variables
    )
    logger.debug(f"CGO_LDFLAGS={environment.cgo_ldflags}")
    return environment


__all__ = [
    "MACOS_VERSION_MIN",
    "CROSS_COMPILERS",
    "BuildEnvironment",
    "compose_build_environment",
]
