"""
Stage command implementation.

Copies the cached engine into the build output directory.
"""

import logging

from hoverkit.build.outputs import clean_output_directory, stage_engine_files
from hoverkit.cli.utils import build_config_from_args

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the stage command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    config = build_config_from_args(args)

    if args.clean:
        clean_output_directory(config.output_dir)

    for path in stage_engine_files(
        config.target_os, config.engine_cache_path, config.output_dir, config.mode
    ):
        logger.info(f"Staged {path.name}")
    return 0
