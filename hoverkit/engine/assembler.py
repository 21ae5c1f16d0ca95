"""
Platform specific assembly of an extracted engine.

After the engine archive has been extracted into the scratch directory, its
files are put into their final cache layout:

- linux: the engine library is moved into the cache entry and stripped once,
  at populate time, instead of at every build
- windows: the engine library and its companion files are moved
- darwin: the nested framework zip is extracted into the cache entry and the
  framework's symlink skeleton is (re)created from a FrameworkLinkPlan
"""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence, Tuple

from hoverkit.core.exceptions import EngineAssemblyError, UnsupportedPlatformError
from hoverkit.core.filesystem import FilesystemError, extract_zip, move_file, replace_symlink
from hoverkit.core.platform import BuildMode
from hoverkit.engine.files import engine_files, library_name

logger = logging.getLogger(__name__)

STRIP_COMMAND = ("strip", "-s")


@dataclass(frozen=True)
class FrameworkLink:
    """A symlink inside a .framework bundle, both paths relative to the bundle."""

    name: str
    target: str


FrameworkLinkPlan = Tuple[FrameworkLink, ...]


def framework_link_plan(library: str) -> FrameworkLinkPlan:
    """
    Symlink skeleton of a macOS framework bundle.

    Order matters: the later links resolve through Versions/Current, which
    is created first.

    Example:
        >>> [(l.name, l.target) for l in framework_link_plan("FlutterMacOS")][:2]
        [('Versions/Current', 'A'), ('FlutterMacOS', 'Versions/Current/FlutterMacOS')]
    """
    return (
        FrameworkLink("Versions/Current", "A"),
        FrameworkLink(library, f"Versions/Current/{library}"),
        FrameworkLink("Headers", "Versions/Current/Headers"),
        FrameworkLink("Modules", "Versions/Current/Modules"),
        FrameworkLink("Resources", "Versions/Current/Resources"),
    )


def apply_link_plan(framework_dir: Path, plan: Sequence[FrameworkLink]) -> None:
    """
    Create every link of a plan inside framework_dir.

    Existing entries at the link paths are replaced, so applying a plan twice
    gives the same result.

    Raises:
        EngineAssemblyError: If a link can't be created
    """
    for link in plan:
        try:
            replace_symlink(link.target, framework_dir / link.name)
        except FilesystemError as e:
            raise EngineAssemblyError(str(e)) from e
        logger.debug(f"Linked {link.name} -> {link.target}")


class PlatformAssembler:
    """
    Moves extracted engine files into their final cache layout.

    Example:
        >>> assembler = PlatformAssembler("linux", RELEASE_MODE)
        >>> assembler.assemble(scratch / "engine", cache_path)
    """

    def __init__(
        self,
        target_os: str,
        mode: BuildMode,
        strip_command: Sequence[str] = STRIP_COMMAND,
    ):
        self.target_os = target_os
        self.mode = mode
        self.strip_command = tuple(strip_command)

    def assemble(self, extract_root: Path, cache_path: Path) -> None:
        """
        Relocate and transform extracted engine files.

        Args:
            extract_root: Where the engine archive was extracted
            cache_path: Engine cache entry

        Raises:
            EngineAssemblyError: If a file can't be moved, linked or stripped
            UnsupportedPlatformError: If the target OS is unknown
        """
        if self.target_os == "darwin":
            self._assemble_framework(extract_root, cache_path)
        elif self.target_os == "linux":
            self._relocate_engine_files(extract_root, cache_path)
            self._strip(cache_path / engine_files(self.target_os, self.mode)[0])
        elif self.target_os == "windows":
            self._relocate_engine_files(extract_root, cache_path)
        else:
            raise UnsupportedPlatformError(self.target_os)

    def _relocate_engine_files(self, extract_root: Path, cache_path: Path) -> None:
        for engine_file in engine_files(self.target_os, self.mode):
            try:
                move_file(extract_root / engine_file, cache_path / engine_file)
            except FilesystemError as e:
                raise EngineAssemblyError(
                    f"Failed to move downloaded {engine_file}: {e}"
                ) from e

    def _assemble_framework(self, extract_root: Path, cache_path: Path) -> None:
        library = library_name(self.target_os)
        framework_zip = extract_root / f"{library}.framework.zip"
        framework_dir = cache_path / f"{library}.framework"

        try:
            extract_zip(framework_zip, framework_dir)
        except FilesystemError as e:
            raise EngineAssemblyError(f"Failed to unzip engine framework: {e}") from e

        apply_link_plan(framework_dir, framework_link_plan(library))

    def _strip(self, binary: Path) -> None:
        command = [*self.strip_command, str(binary)]
        logger.debug(f"Stripping {binary}")
        try:
            result = subprocess.run(command, capture_output=True, text=True)
        except OSError as e:
            raise EngineAssemblyError(f"Failed to strip {binary}: {e}") from e

        if result.returncode != 0:
            raise EngineAssemblyError(
                f"Failed to strip {binary}: exit status {result.returncode}\n"
                f"{result.stderr}"
            )


__all__ = [
    "STRIP_COMMAND",
    "FrameworkLink",
    "FrameworkLinkPlan",
    "framework_link_plan",
    "apply_link_plan",
    "PlatformAssembler",
]
