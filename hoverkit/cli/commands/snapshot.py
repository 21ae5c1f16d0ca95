"""
Snapshot command implementation.

Compiles the bundled application into an AOT ELF snapshot.
"""

import logging

from hoverkit.build.aot import build_aot_snapshot
from hoverkit.cli.utils import build_config_from_args, progress_callback_from_args
from hoverkit.engine.cache import validate_or_update_engine

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the snapshot command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 when the mode is not AOT)
    """
    config = build_config_from_args(args)

    if not config.mode.is_aot:
        logger.error("AOT snapshots are only built with --profile or --release")
        return 1

    if not args.skip_engine_download:
        validate_or_update_engine(
            config.target_os,
            config.cache_root,
            config.engine_version,
            config.mode,
            storage_base_url=config.storage_base_url,
            progress_callback=progress_callback_from_args(args),
        )

    elf_snapshot = build_aot_snapshot(config)
    logger.info(f"Generated {elf_snapshot}")
    return 0
