"""
Engine cache management for hoverkit.

This module provides functionality for:
- Engine cache path derivation and validation
- Engine artifact download and extraction
- Platform specific assembly of the engine files
"""

from hoverkit.core.platform import engine_cache_path
from hoverkit.engine.cache import (
    EngineCacheManager,
    EngineCacheResult,
    validate_or_update_engine,
)
from hoverkit.engine.assembler import (
    FrameworkLink,
    PlatformAssembler,
    framework_link_plan,
)
from hoverkit.engine.files import (
    engine_files,
    library_name,
)

__all__ = [
    "engine_cache_path",
    "EngineCacheManager",
    "EngineCacheResult",
    "validate_or_update_engine",
    "FrameworkLink",
    "PlatformAssembler",
    "framework_link_plan",
    "engine_files",
    "library_name",
]
