"""
Shared utilities for CLI commands.

Turns parsed command-line arguments into the BuildConfig every command
works from, so no command reads flags on its own.
"""

import logging
from pathlib import Path
from typing import Optional

from hoverkit.core.download import ProgressCallback, render_progress
from hoverkit.core.config import BuildConfig, resolve_build_config
from hoverkit.core.platform import BUILD_MODES, BuildMode, RELEASE_MODE, host_os

logger = logging.getLogger(__name__)


def resolve_mode(args, default: BuildMode = RELEASE_MODE) -> BuildMode:
    """
    Get the build mode selected on the command line.

    Args:
        args: Parsed arguments with an optional 'mode' attribute
        default: Mode used when no mode flag was given

    Returns:
        The selected BuildMode
    """
    mode_name = getattr(args, "mode", None)
    if not mode_name:
        return default
    return BUILD_MODES[mode_name]


def build_config_from_args(args) -> BuildConfig:
    """
    Resolve the build configuration from parsed arguments.

    Example:
        >>> args = CLI().parse_args(["engine", "--target-os", "linux"])
        >>> build_config_from_args(args).target_os
        'linux'
    """
    cache_path = getattr(args, "cache_path", None)
    config = resolve_build_config(
        target_os=getattr(args, "target_os", None) or host_os(),
        cache_root=Path(cache_path) if cache_path else None,
        mode=resolve_mode(args),
        engine_version=getattr(args, "engine_version", None) or "",
        opengl=getattr(args, "opengl", None),
        flutter_target=getattr(args, "target", None),
        project_root=Path(getattr(args, "project_root", None) or Path.cwd()),
    )
    logger.debug(f"Resolved build configuration: {config}")
    return config


def progress_callback_from_args(args) -> Optional[ProgressCallback]:
    """Download progress renderer, None when --quiet was given."""
    if getattr(args, "quiet", False):
        return None
    return render_progress


def print_key_values(values: dict) -> None:
    """Print a mapping as KEY=VALUE lines, sorted by key."""
    for key in sorted(values):
        print(f"{key}={values[key]}")


__all__ = [
    "resolve_mode",
    "build_config_from_args",
    "progress_callback_from_args",
    "print_key_values",
]
