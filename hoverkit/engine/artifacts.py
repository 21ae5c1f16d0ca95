"""
Remote engine artifact locations.

Engine artifacts are published under
{base}/flutter_infra/flutter/{engine_version}/. This module knows which
archives a cache entry needs and where each one is extracted.
"""

from dataclasses import dataclass
from typing import List

from hoverkit.core.config import DEFAULT_STORAGE_BASE_URL
from hoverkit.core.platform import BuildMode, base_platform, platform_name
from hoverkit.engine.files import engine_archive_name


@dataclass(frozen=True)
class ArtifactSet:
    """
    One downloadable archive of an engine cache entry.

    Attributes:
        label: Human readable name used in log messages
        url: Remote location of the zip archive
        archive_name: File name of the archive in the scratch directory
        subdir: Extraction directory, relative to the cache entry (or to the
            scratch directory when into_cache is False); empty for the root
        into_cache: Whether the archive is extracted straight into the cache
    """

    label: str
    url: str
    archive_name: str
    subdir: str
    into_cache: bool = True


def infra_url(version: str, base_url: str = DEFAULT_STORAGE_BASE_URL) -> str:
    """
    Root URL of an engine version.

    Example:
        >>> infra_url("abc123")
        'https://storage.googleapis.com/flutter_infra/flutter/abc123'
    """
    return f"{base_url.rstrip('/')}/flutter_infra/flutter/{version}"


def artifacts_url(target_os: str, version: str, base_url: str = DEFAULT_STORAGE_BASE_URL) -> str:
    return f"{infra_url(version, base_url)}/{base_platform(target_os)}/artifacts.zip"


def dart_sdk_url(target_os: str, version: str, base_url: str = DEFAULT_STORAGE_BASE_URL) -> str:
    return f"{infra_url(version, base_url)}/dart-sdk-{base_platform(target_os)}.zip"


def patched_sdk_url(version: str, base_url: str = DEFAULT_STORAGE_BASE_URL) -> str:
    return f"{infra_url(version, base_url)}/flutter_patched_sdk_product.zip"


def engine_url(
    target_os: str,
    mode: BuildMode,
    version: str,
    base_url: str = DEFAULT_STORAGE_BASE_URL,
) -> str:
    platform = platform_name(target_os, mode)
    return f"{infra_url(version, base_url)}/{platform}/{engine_archive_name(target_os)}"


def artifact_sets(
    target_os: str,
    mode: BuildMode,
    version: str,
    base_url: str = DEFAULT_STORAGE_BASE_URL,
) -> List[ArtifactSet]:
    """
    Archives needed to populate an engine cache entry, in download order.

    The engine archive itself is extracted into the scratch directory, since
    its contents are relocated by the platform assembler afterwards.
    """
    sets = [
        ArtifactSet(
            label="artifacts",
            url=artifacts_url(target_os, version, base_url),
            archive_name="artifacts.zip",
            subdir="artifacts",
        )
    ]

    if mode.is_aot:
        sets.append(
            ArtifactSet(
                label="dart-sdk",
                url=dart_sdk_url(target_os, version, base_url),
                archive_name="dart-sdk.zip",
                subdir="",
            )
        )
        sets.append(
            ArtifactSet(
                label="flutter patched sdk",
                url=patched_sdk_url(version, base_url),
                archive_name="flutter_patched_sdk_product.zip",
                subdir="",
            )
        )

    sets.append(
        ArtifactSet(
            label="engine",
            url=engine_url(target_os, mode, version, base_url),
            archive_name="engine.zip",
            subdir="engine",
            into_cache=False,
        )
    )
    return sets


__all__ = [
    "ArtifactSet",
    "infra_url",
    "artifacts_url",
    "dart_sdk_url",
    "patched_sdk_url",
    "engine_url",
    "artifact_sets",
]
