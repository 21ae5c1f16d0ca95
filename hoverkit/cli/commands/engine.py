"""
Engine command implementation.

Validates the cached Flutter engine and downloads a new one when it is
missing or does not match the required version.
"""

import logging

from hoverkit.cli.utils import build_config_from_args, progress_callback_from_args
from hoverkit.engine.cache import validate_or_update_engine

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the engine command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    config = build_config_from_args(args)

    if args.print_path:
        print(config.engine_cache_path)
        return 0

    result = validate_or_update_engine(
        config.target_os,
        config.cache_root,
        config.engine_version,
        config.mode,
        storage_base_url=config.storage_base_url,
        progress_callback=progress_callback_from_args(args),
    )
    if not result.was_cached:
        logger.info(f"Engine {result.version} installed in {result.cache_path}")
    print(result.cache_path)
    return 0
