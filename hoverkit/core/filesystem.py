"""
File system utilities for hoverkit.

This module provides the file operations the engine cache is built from:
- Zip extraction with directory traversal (zip-slip) protection
- File relocation preserving permission bits
- Idempotent symlink replacement
- Safe directory removal, atomic writes and scoped temporary directories
"""

import os
import shutil
import stat
import tempfile
import zipfile
from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional, Union

from hoverkit.core.exceptions import HoverKitError

IS_WINDOWS = os.name == "nt"


# ============================================================================
# Errors
# ============================================================================


class FilesystemError(HoverKitError):
    """Base exception for filesystem operations."""

    pass


class LinkCreationError(FilesystemError):
    """Failed to create a symbolic link."""

    pass


class ArchiveExtractionError(FilesystemError):
    """Failed to extract an archive."""

    pass


class InsecureArchiveError(ArchiveExtractionError):
    """Archive contains insecure paths (directory traversal attempt)."""

    pass


# ============================================================================
# Path Utilities
# ============================================================================


def is_relative_to(path: Path, parent: Path) -> bool:
    """
    Check if path is relative to (under) parent directory.

    Example:
        >>> is_relative_to(Path("/home/user/project/file.txt"), Path("/home/user"))
        True
    """
    try:
        path.relative_to(parent)
        return True
    except ValueError:
        return False


def _member_destination(name: str, destination: Path) -> Path:
    """
    Resolve the extraction path of an archive member.

    The member path must land strictly inside destination once normalized.

    Raises:
        InsecureArchiveError: If the member attempts directory traversal
    """
    root = Path(os.path.abspath(destination))
    member_path = Path(os.path.normpath(os.path.join(root, name)))

    if member_path == root or not is_relative_to(member_path, root):
        raise InsecureArchiveError(
            f"{member_path}: illegal file path. Archive member '{name}' "
            "attempts directory traversal, extraction has been blocked."
        )
    return member_path


# ============================================================================
# Archive Extraction
# ============================================================================


def _member_mode(info: zipfile.ZipInfo) -> Optional[int]:
    """Permission bits stored in a zip entry, None when the archive has none."""
    mode = (info.external_attr >> 16) & 0o7777
    return mode or None


def extract_zip(
    archive_path: Union[str, Path], destination: Union[str, Path]
) -> List[Path]:
    """
    Extract a zip archive into a destination directory.

    Entries are processed in archive order. Each entry is checked for
    directory traversal before anything is written for it. Directory entries
    are created with their parents; file entries are streamed to a new file
    and get the permission bits declared in the archive.

    Extraction is not atomic: when an entry fails, the files written for the
    previous entries stay on disk.

    Args:
        archive_path: Path to the .zip file
        destination: Directory to extract into

    Returns:
        Every path created (directories included), in archive order

    Raises:
        InsecureArchiveError: If an entry escapes the destination
        ArchiveExtractionError: If the archive cannot be read or written out

    Example:
        >>> extract_zip('artifacts.zip', '/tmp/artifacts')
        [PosixPath('/tmp/artifacts/icudtl.dat'), ...]
    """
    archive_path = Path(archive_path)
    destination = Path(destination)

    if not archive_path.exists():
        raise ArchiveExtractionError(f"Archive not found: {archive_path}")

    extracted: List[Path] = []

    try:
        with zipfile.ZipFile(archive_path, "r") as zf:
            for info in zf.infolist():
                member_path = _member_destination(info.filename, destination)
                extracted.append(member_path)

                if info.is_dir():
                    member_path.mkdir(parents=True, exist_ok=True)
                    continue

                member_path.parent.mkdir(parents=True, exist_ok=True)
                with zf.open(info, "r") as source, open(member_path, "wb") as target:
                    shutil.copyfileobj(source, target)

                mode = _member_mode(info)
                if mode is not None:
                    os.chmod(member_path, mode)
    except InsecureArchiveError:
        raise
    except (OSError, zipfile.BadZipFile, zipfile.LargeZipFile) as e:
        raise ArchiveExtractionError(f"Failed to extract {archive_path}: {e}") from e

    return extracted


# ============================================================================
# Relocation and Links
# ============================================================================


def move_file(source: Union[str, Path], destination: Union[str, Path]) -> None:
    """
    Move a file, preserving its permission bits.

    The content is copied to destination (truncating any existing file) and
    the source is removed afterwards, so moves across filesystems work.

    Raises:
        FilesystemError: If the copy or the removal fails
    """
    source = Path(source)
    destination = Path(destination)

    try:
        perm = stat.S_IMODE(source.stat().st_mode)
    except OSError as e:
        raise FilesystemError(f"Couldn't open src file: {e}") from e

    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, destination)
        os.chmod(destination, perm)
    except OSError as e:
        raise FilesystemError(f"Writing to output file failed: {e}") from e

    try:
        source.unlink()
    except OSError as e:
        raise FilesystemError(f"Failed removing original file: {e}") from e


def replace_symlink(target: Union[str, Path], link_path: Union[str, Path]) -> None:
    """
    Create a symbolic link, replacing whatever entry exists at link_path.

    The target is stored as given, so relative targets stay relative to the
    link's directory. Re-applying the same link is a no-op in effect.

    Args:
        target: What the link points to (e.g. 'Versions/Current/Headers')
        link_path: Where the link is created

    Raises:
        LinkCreationError: If the existing entry can't be removed or the link
            can't be created
    """
    link_path = Path(link_path)

    try:
        if link_path.is_dir() and not link_path.is_symlink():
            shutil.rmtree(link_path)
        else:
            link_path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        raise LinkCreationError(f"Failed to remove existing symlink {link_path}: {e}") from e

    try:
        os.symlink(str(target), link_path)
    except OSError as e:
        raise LinkCreationError(f"Failed to create symlink {link_path} -> {target}: {e}") from e


# ============================================================================
# Safe File Operations
# ============================================================================


def atomic_write(
    file_path: Union[str, Path], content: Union[str, bytes], encoding: str = "utf-8"
) -> None:
    """
    Write file atomically using temp file + rename.

    The file is never observed in a partially-written state.

    Example:
        >>> atomic_write('version', '3b309bda072a6b326e8aa4591a5836af600923ce')
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_path_str)

    try:
        if isinstance(content, str):
            with open(temp_fd, "w", encoding=encoding) as f:
                f.write(content)
        else:
            with open(temp_fd, "wb") as f:
                f.write(content)

        temp_path.replace(file_path)

    except Exception:
        temp_path.unlink(missing_ok=True)
        raise


def safe_rmtree(
    path: Union[str, Path], require_prefix: Optional[Union[str, Path]] = None
) -> None:
    """
    Remove a directory tree with safeguards.

    Args:
        path: Directory to remove
        require_prefix: If specified, path must be under this directory

    Raises:
        ValueError: If path is not under require_prefix
        FilesystemError: If deletion fails

    Example:
        >>> safe_rmtree('/tmp/build', require_prefix='/tmp')
    """
    path = Path(os.path.abspath(path))

    if require_prefix is not None:
        require_prefix = Path(os.path.abspath(require_prefix))
        if not is_relative_to(path, require_prefix):
            raise ValueError(
                f"Refusing to delete '{path}': not under required prefix '{require_prefix}'"
            )

    if not path.exists() and not path.is_symlink():
        return

    if path.is_symlink() or not path.is_dir():
        raise FilesystemError(f"Path is not a directory: {path}")

    try:
        if IS_WINDOWS:

            def handle_remove_readonly(func, failed_path, exc):
                """Error handler for Windows read-only files."""
                if not os.access(failed_path, os.W_OK):
                    os.chmod(failed_path, stat.S_IWRITE)
                    func(failed_path)
                else:
                    raise

            shutil.rmtree(path, onerror=handle_remove_readonly)
        else:
            shutil.rmtree(path)

    except Exception as e:
        raise FilesystemError(f"Failed to remove directory '{path}': {e}") from e


def copy_entry(source: Union[str, Path], destination: Union[str, Path]) -> None:
    """
    Copy a file or a directory tree, keeping symlinks as symlinks.

    An existing destination is replaced.

    Raises:
        FilesystemError: If the copy fails
    """
    source = Path(source)
    destination = Path(destination)

    try:
        if destination.is_symlink() or destination.is_file():
            destination.unlink()
        elif destination.is_dir():
            shutil.rmtree(destination)

        destination.parent.mkdir(parents=True, exist_ok=True)
        if source.is_dir() and not source.is_symlink():
            shutil.copytree(source, destination, symlinks=True)
        else:
            shutil.copy2(source, destination, follow_symlinks=False)
    except OSError as e:
        raise FilesystemError(f"Failed to copy {source} to {destination}: {e}") from e


# ============================================================================
# Temporary Directory Management
# ============================================================================


@contextmanager
def temporary_directory(prefix: str = "hover-engine-download"):
    """
    Context manager for a scratch directory with guaranteed cleanup.

    The directory is created with mode 0700 and removed on every exit path,
    including exceptions.

    Yields:
        Path to temporary directory

    Example:
        >>> with temporary_directory() as tmp:
        ...     (tmp / 'engine.zip').write_bytes(b'...')
    """
    temp_dir = Path(tempfile.mkdtemp(prefix=prefix))

    try:
        yield temp_dir
    finally:
        if temp_dir.exists():
            safe_rmtree(temp_dir)


__all__ = [
    "IS_WINDOWS",
    "FilesystemError",
    "LinkCreationError",
    "ArchiveExtractionError",
    "InsecureArchiveError",
    "is_relative_to",
    "extract_zip",
    "move_file",
    "replace_symlink",
    "atomic_write",
    "safe_rmtree",
    "copy_entry",
    "temporary_directory",
]
