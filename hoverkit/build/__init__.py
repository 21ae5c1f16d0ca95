"""
Native build preparation: AOT snapshots, build environment and outputs.
"""

from hoverkit.build.aot import AotSnapshotPipeline, build_aot_snapshot
from hoverkit.build.environment import BuildEnvironment, compose_build_environment
from hoverkit.build.outputs import clean_output_directory, stage_engine_files

__all__ = [
    "AotSnapshotPipeline",
    "build_aot_snapshot",
    "BuildEnvironment",
    "compose_build_environment",
    "clean_output_directory",
    "stage_engine_files",
]
