"""
Build output directory management.

The output directory (go/build/outputs/<os>) collects everything the shipped
application needs next to the executable: the flutter_assets bundle, the
engine library, icudtl.dat and, for AOT builds, libapp.so.
"""

import logging
from pathlib import Path
from typing import List

from hoverkit.core.exceptions import BuildError
from hoverkit.core.filesystem import FilesystemError, copy_entry, safe_rmtree
from hoverkit.core.platform import BuildMode
from hoverkit.engine.files import engine_files

logger = logging.getLogger(__name__)

ICU_DATA = "icudtl.dat"


def clean_output_directory(output_dir: Path) -> Path:
    """
    Remove and recreate the build output directory.

    Raises:
        BuildError: If the directory can't be removed or created
    """
    logger.info("Cleaning the build directory")
    try:
        safe_rmtree(output_dir)
        output_dir.mkdir(mode=0o775, parents=True, exist_ok=True)
    except (FilesystemError, OSError) as e:
        raise BuildError(f"Failed to reset output directory {output_dir}: {e}") from e
    return output_dir


def stage_engine_files(
    target_os: str, cache_path: Path, output_dir: Path, mode: BuildMode
) -> List[Path]:
    """
    Copy the engine files and ICU data from the cache into the output directory.

    Previous copies are replaced. The darwin framework is copied with its
    symlinks intact.

    Returns:
        The staged paths in the output directory

    Raises:
        BuildError: If a file can't be copied
    """
    staged = []
    names = [*engine_files(target_os, mode), f"artifacts/{ICU_DATA}"]

    for name in names:
        source = cache_path / name
        destination = output_dir / Path(name).name
        try:
            copy_entry(source, destination)
        except FilesystemError as e:
            raise BuildError(f"Failed to copy {Path(name).name}: {e}") from e
        staged.append(destination)

    return staged


__all__ = [
    "ICU_DATA",
    "clean_output_directory",
    "stage_engine_files",
]
