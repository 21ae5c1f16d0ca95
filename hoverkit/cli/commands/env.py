"""
Env command implementation.

Prints the cgo environment the go build of the application needs.
"""

import logging

from hoverkit.build.environment import compose_build_environment
from hoverkit.cli.utils import build_config_from_args, print_key_values

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the env command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    config = build_config_from_args(args)

    if config.opengl == "none":
        logger.warning(
            "The '--opengl=none' flag makes go-flutter incompatible with texture plugins!"
        )

    environment = compose_build_environment(
        config.target_os, config.engine_cache_path, config.output_dir
    )
    print_key_values(environment.as_env())
    return 0
