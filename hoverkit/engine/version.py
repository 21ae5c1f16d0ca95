"""
Engine version required by the installed Flutter SDK.

The Flutter SDK pins the engine it was built against in
bin/internal/engine.version. When no engine version is configured, that pin
is the version the engine cache must hold.
"""

import logging
import shutil
from pathlib import Path
from typing import Optional

from hoverkit.core.exceptions import EngineVersionError

logger = logging.getLogger(__name__)


def flutter_sdk_root(flutter_bin: Optional[str] = None) -> Path:
    """
    Locate the Flutter SDK from the flutter executable on PATH.

    Raises:
        EngineVersionError: If flutter is not installed
    """
    flutter_bin = flutter_bin or shutil.which("flutter")
    if not flutter_bin:
        raise EngineVersionError(
            "Failed to lookup 'flutter' executable. Please install flutter.\n"
            "https://flutter.dev/docs/get-started/install"
        )
    # <sdk>/bin/flutter, possibly reached through a symlink
    return Path(flutter_bin).resolve().parent.parent


def flutter_required_engine_version(flutter_bin: Optional[str] = None) -> str:
    """
    Read the engine version pinned by the Flutter SDK.

    Raises:
        EngineVersionError: If the SDK or its engine.version file is missing
    """
    version_file = flutter_sdk_root(flutter_bin) / "bin" / "internal" / "engine.version"
    try:
        version = version_file.read_text(encoding="utf-8").strip()
    except OSError as e:
        raise EngineVersionError(f"Failed to read the flutter engine version: {e}") from e

    if not version:
        raise EngineVersionError(f"Empty flutter engine version in {version_file}")

    logger.debug(f"Flutter SDK requires engine {version}")
    return version


__all__ = [
    "flutter_sdk_root",
    "flutter_required_engine_version",
]
