"""
Engine cache validation and population.

The engine cache holds, per target platform and build mode, everything the
native build needs from the Flutter engine: the engine library, the
artifacts (frontend compiler, icudtl.dat), and for AOT modes the dart-sdk,
the patched product SDK and gen_snapshot.

A cache entry is valid if and only if its version stamp equals the required
engine version. The stamp is written last, after every artifact has been
downloaded, extracted and relocated, so an interrupted populate leaves an
entry without a stamp and the next run repopulates it from scratch.

Usage:
    from hoverkit.engine.cache import validate_or_update_engine

    result = validate_or_update_engine("linux", cache_root, "", RELEASE_MODE)
    print(f"Engine at {result.cache_path}")
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

from hoverkit.core.config import DEFAULT_STORAGE_BASE_URL
from hoverkit.core.download import DownloadError, ProgressCallback, fetch, render_progress
from hoverkit.core.exceptions import CachePathError, EngineCacheError, EngineAssemblyError
from hoverkit.core.filesystem import (
    FilesystemError,
    atomic_write,
    extract_zip,
    move_file,
    safe_rmtree,
    temporary_directory,
)
from hoverkit.core.locking import DEFAULT_LOCK_TIMEOUT, engine_cache_lock
from hoverkit.core.platform import (
    BuildMode,
    engine_cache_path,
    platform_name,
    validate_target_os,
)
from hoverkit.engine.artifacts import ArtifactSet, artifact_sets
from hoverkit.engine.assembler import PlatformAssembler
from hoverkit.engine.files import gen_snapshot_name
from hoverkit.engine.version import flutter_required_engine_version

logger = logging.getLogger(__name__)

VERSION_FILE = "version"

Fetcher = Callable[..., Path]
VersionResolver = Callable[[], str]


@dataclass
class EngineCacheResult:
    """Result of an engine cache validation."""

    cache_path: Path
    """Engine cache entry directory"""

    version: str
    """Engine version held by the entry"""

    was_cached: bool
    """Whether the entry was already valid (no download needed)"""


class EngineCacheManager:
    """
    Validates engine cache entries and repopulates stale ones.

    Populating an entry:
    1. Delete the entry and recreate it empty
    2. Download and extract artifacts.zip into <entry>/artifacts
    3. For AOT modes, download and extract dart-sdk and the patched SDK
    4. Download and extract the engine archive into a scratch directory
    5. Move the engine files into the entry (PlatformAssembler)
    6. For non-darwin AOT modes, move gen_snapshot into the entry
    7. Write the version stamp

    Downloads run one after another. Populates of the same entry by several
    processes are serialized with a lock file next to the entry.

    Example:
        >>> manager = EngineCacheManager(Path.home() / ".cache")
        >>> result = manager.validate_or_update("linux", "", RELEASE_MODE)
    """

    def __init__(
        self,
        cache_root: Union[str, Path],
        storage_base_url: str = DEFAULT_STORAGE_BASE_URL,
        fetcher: Fetcher = fetch,
        version_resolver: VersionResolver = flutter_required_engine_version,
        progress_callback: Optional[ProgressCallback] = render_progress,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
    ):
        """
        Initialize engine cache manager.

        Args:
            cache_root: Cache root; entries live under <cache_root>/hover/engine
            storage_base_url: Host serving the flutter_infra artifacts
            fetcher: Download function, fetch(url, destination, progress_callback)
            version_resolver: Supplies the required version when none is given
            progress_callback: Download progress renderer, None for silence
            lock_timeout: Seconds to wait for another process populating the entry
        """
        self.cache_root = Path(cache_root)
        self.storage_base_url = storage_base_url
        self.fetcher = fetcher
        self.version_resolver = version_resolver
        self.progress_callback = progress_callback
        self.lock_timeout = lock_timeout

    def cache_path(self, target_os: str, mode: BuildMode) -> Path:
        """Engine cache entry for a target OS and build mode."""
        return engine_cache_path(target_os, self.cache_root, mode)

    def read_version_stamp(self, cache_path: Path) -> str:
        """
        Read the version stamp of a cache entry.

        Returns:
            The stamp, or an empty string if the entry has none. Bytes that
            aren't valid UTF-8 are replaced, so a corrupt stamp never matches.

        Raises:
            EngineCacheError: If the stamp exists but can't be read
        """
        try:
            stamp = (cache_path / VERSION_FILE).read_bytes()
        except FileNotFoundError:
            return ""
        except OSError as e:
            raise EngineCacheError(f"Failed to read cached engine version: {e}") from e
        return stamp.decode("utf-8", errors="replace")

    def validate_or_update(
        self, target_os: str, required_version: str, mode: BuildMode
    ) -> EngineCacheResult:
        """
        Make sure the cache entry for target_os and mode holds required_version.

        Args:
            target_os: Target OS ('linux', 'darwin', 'windows')
            required_version: Engine version, empty to use the Flutter SDK's
            mode: Build mode

        Returns:
            EngineCacheResult describing the entry

        Raises:
            CachePathError: If the cache path contains whitespace
            EngineCacheError: If any download, extraction or relocation fails
        """
        validate_target_os(target_os)
        cache_path = self.cache_path(target_os, mode)

        # Whitespace in this path ends up split apart in the cgo linker flags
        if any(c.isspace() for c in str(cache_path)):
            raise CachePathError(str(self.cache_root))

        cached_version = self.read_version_stamp(cache_path)
        if not required_version:
            required_version = self.version_resolver()

        if cached_version == required_version:
            logger.info("Using engine from cache")
            return EngineCacheResult(cache_path, required_version, was_cached=True)

        with engine_cache_lock(cache_path, timeout=self.lock_timeout):
            # Another process may have populated the entry while we waited
            if self.read_version_stamp(cache_path) == required_version:
                logger.info("Using engine from cache")
                return EngineCacheResult(cache_path, required_version, was_cached=True)

            self._reset_entry(cache_path)
            with temporary_directory(prefix="hover-engine-download") as scratch:
                self._populate(target_os, mode, required_version, cache_path, scratch)

            try:
                atomic_write(cache_path / VERSION_FILE, required_version)
            except OSError as e:
                raise EngineCacheError(f"Failed to write version file: {e}") from e

        return EngineCacheResult(cache_path, required_version, was_cached=False)

    def _reset_entry(self, cache_path: Path) -> None:
        try:
            safe_rmtree(cache_path, require_prefix=self.cache_root)
        except (FilesystemError, ValueError) as e:
            raise EngineCacheError(f"Failed to remove outdated engine: {e}") from e

        try:
            cache_path.mkdir(mode=0o775, parents=True, exist_ok=True)
        except OSError as e:
            raise EngineCacheError(f"Failed to create engine cache directory: {e}") from e

    def _populate(
        self,
        target_os: str,
        mode: BuildMode,
        version: str,
        cache_path: Path,
        scratch: Path,
    ) -> None:
        platform = platform_name(target_os, mode)

        extract_root = scratch
        for artifact_set in artifact_sets(target_os, mode, version, self.storage_base_url):
            logger.info(
                f"Downloading {artifact_set.label} for platform {platform} "
                f"at version {version}..."
            )
            root = cache_path if artifact_set.into_cache else scratch
            destination = root / artifact_set.subdir if artifact_set.subdir else root
            self._download_and_extract(artifact_set, scratch, destination)
            if not artifact_set.into_cache:
                extract_root = destination

        PlatformAssembler(target_os, mode).assemble(extract_root, cache_path)

        # darwin ships gen_snapshot inside artifacts.zip
        if mode.is_aot and target_os != "darwin":
            name = gen_snapshot_name(target_os)
            try:
                move_file(extract_root / name, cache_path / name)
            except FilesystemError as e:
                raise EngineAssemblyError(f"Failed to move downloaded gen_snapshot: {e}") from e

    def _download_and_extract(
        self, artifact_set: ArtifactSet, scratch: Path, destination: Path
    ) -> None:
        archive_path = scratch / artifact_set.archive_name

        try:
            self.fetcher(artifact_set.url, archive_path, self.progress_callback)
        except DownloadError as e:
            if not artifact_set.into_cache:
                logger.info(
                    "That may mean no engine download is currently available. "
                    "You'll have to wait for one to get available"
                )
            raise EngineCacheError(f"Failed to download {artifact_set.label}: {e}") from e

        try:
            extract_zip(archive_path, destination)
        except FilesystemError as e:
            raise EngineCacheError(f"Failed to extract {artifact_set.label}: {e}") from e


def validate_or_update_engine(
    target_os: str,
    cache_root: Union[str, Path],
    required_version: str,
    mode: BuildMode,
    **kwargs,
) -> EngineCacheResult:
    """
    Validate the cached engine against the required version, downloading a
    new engine when it is missing or outdated.

    Convenience wrapper around EngineCacheManager; keyword arguments are
    passed to its constructor.

    Example:
        >>> from hoverkit.engine.cache import validate_or_update_engine
        >>> validate_or_update_engine("linux", "/home/me/.cache", "", RELEASE_MODE)
    """
    manager = EngineCacheManager(cache_root, **kwargs)
    return manager.validate_or_update(target_os, required_version, mode)


__all__ = [
    "VERSION_FILE",
    "EngineCacheResult",
    "EngineCacheManager",
    "validate_or_update_engine",
]
