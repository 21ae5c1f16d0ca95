"""
Ahead-of-time snapshot pipeline.

AOT builds compile the application's Dart code into an ELF snapshot linked
into the shipped binary, in two stages:

- kernel: the frontend compiler turns the entry point into a tree-shaken,
  product-mode kernel snapshot (kernel_snapshot.dill)
- elf: gen_snapshot compiles the kernel snapshot into libapp.so

Both stages run on every AOT build; the kernel snapshot is an intermediate
that is removed once the ELF snapshot exists.
"""

import dataclasses
import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from hoverkit.core.config import BuildConfig
from hoverkit.core.exceptions import BuildError, SnapshotError
from hoverkit.engine.files import executable_extension, gen_snapshot_name

logger = logging.getLogger(__name__)

KERNEL_SNAPSHOT = "kernel_snapshot.dill"
ELF_SNAPSHOT = "libapp.so"

# Snapshots produced by `flutter build bundle` that only JIT engines load.
JIT_ASSETS = ("isolate_snapshot_data", "vm_snapshot_data", "kernel_blob.bin")


@dataclass(frozen=True)
class SnapshotStage:
    """
    One external tool invocation of the pipeline.

    Attributes:
        name: Stage name used in logs and errors
        command: Full command line
        inputs: Paths that must exist before the stage runs
        output: Path the stage produces
    """

    name: str
    command: Tuple[str, ...]
    inputs: Tuple[Path, ...]
    output: Path

    def run(self, cwd: Optional[Path] = None) -> Path:
        """
        Run the stage and check that it produced its output.

        Raises:
            SnapshotError: If an input is missing, the tool fails or the output
                is missing or empty
        """
        missing = [str(path) for path in self.inputs if not path.exists()]
        if missing:
            raise SnapshotError(self.name, f"missing input(s): {', '.join(missing)}")

        logger.debug(f"Running: {' '.join(self.command)}")
        try:
            result = subprocess.run(
                list(self.command), capture_output=True, text=True, cwd=cwd
            )
        except OSError as e:
            raise SnapshotError(self.name, str(e)) from e

        if result.returncode != 0:
            raise SnapshotError(
                self.name,
                f"exit status {result.returncode}",
                output=(result.stdout or "") + (result.stderr or ""),
            )

        if not self.output.is_file() or self.output.stat().st_size == 0:
            raise SnapshotError(self.name, f"no output produced at {self.output}")

        return self.output


@dataclass(frozen=True)
class AotToolchain:
    """Engine cache tools used by the pipeline."""

    dart: Path
    frontend_server: Path
    patched_sdk_root: Path
    gen_snapshot: Path

    @classmethod
    def from_cache(cls, target_os: str, cache_path: Path) -> "AotToolchain":
        """
        Locate the AOT tools inside a populated engine cache entry.

        gen_snapshot ships with the artifacts on darwin and next to the engine
        elsewhere.
        """
        if target_os == "darwin":
            gen_snapshot = cache_path / "artifacts" / gen_snapshot_name(target_os)
        else:
            gen_snapshot = cache_path / gen_snapshot_name(target_os)

        return cls(
            dart=cache_path / "dart-sdk" / "bin" / ("dart" + executable_extension(target_os)),
            frontend_server=cache_path / "artifacts" / "frontend_server.dart.snapshot",
            patched_sdk_root=cache_path / "flutter_patched_sdk_product",
            gen_snapshot=gen_snapshot,
        )

    def absolute(self) -> "AotToolchain":
        """The same toolchain with every path made absolute."""
        return dataclasses.replace(
            self,
            **{f.name: _absolute(getattr(self, f.name)) for f in dataclasses.fields(self)},
        )


def _absolute(path: Path) -> Path:
    return Path(os.path.abspath(path))


def prune_jit_assets(asset_dir: Path) -> List[Path]:
    """
    Remove JIT-only snapshots from a flutter_assets directory.

    Returns:
        The files that were removed

    Raises:
        BuildError: If an existing file can't be removed
    """
    removed = []
    for name in JIT_ASSETS:
        path = asset_dir / name
        try:
            path.unlink()
        except FileNotFoundError:
            continue
        except OSError as e:
            raise BuildError(f"Failed to remove unused {name}: {e}") from e
        removed.append(path)
    return removed


class AotSnapshotPipeline:
    """
    Kernel + ELF snapshot generation for one AOT build.

    Example:
        >>> pipeline = AotSnapshotPipeline(config)
        >>> elf = pipeline.run()
    """

    def __init__(self, config: BuildConfig, toolchain: Optional[AotToolchain] = None):
        self.config = config
        # Tools run from the project root, so every path handed to them is absolute
        self.project_root = _absolute(config.project_root)
        self.output_dir = _absolute(config.output_dir)
        toolchain = toolchain or AotToolchain.from_cache(
            config.target_os, config.engine_cache_path
        )
        self.toolchain = toolchain.absolute()
        self.kernel_snapshot = self.output_dir / KERNEL_SNAPSHOT
        self.elf_snapshot = self.output_dir / ELF_SNAPSHOT

    def kernel_stage(self) -> SnapshotStage:
        tools = self.toolchain
        target = self.project_root / self.config.flutter_target
        command = (
            str(tools.dart),
            str(tools.frontend_server),
            f"--sdk-root={tools.patched_sdk_root}",
            "--target=flutter",
            "--aot",
            "--tfa",
            "-Ddart.vm.product=true",
            f"--packages={self.config.packages_file}",
            f"--output-dill={self.kernel_snapshot}",
            self.config.flutter_target,
        )
        return SnapshotStage(
            name="Generating kernel snapshot",
            command=command,
            inputs=(tools.dart, tools.frontend_server, tools.patched_sdk_root, target),
            output=self.kernel_snapshot,
        )

    def elf_stage(self) -> SnapshotStage:
        command: List[str] = [
            str(self.toolchain.gen_snapshot),
            "--no-causal-async-stacks",
            "--lazy-async-stacks",
            "--deterministic",
            "--snapshot_kind=app-aot-elf",
            f"--elf={self.elf_snapshot}",
        ]
        if self.config.mode.name == "release":
            command.append("--strip")
        if self.config.target_os == "darwin":
            command.extend(["--dedup-instructions", "--no-code-comments"])
        command.append(str(self.kernel_snapshot))

        return SnapshotStage(
            name="Generating ELF snapshot",
            command=tuple(command),
            inputs=(self.toolchain.gen_snapshot, self.kernel_snapshot),
            output=self.elf_snapshot,
        )

    def stages(self) -> Sequence[SnapshotStage]:
        return (self.kernel_stage(), self.elf_stage())

    def run(self) -> Path:
        """
        Run both stages and remove the intermediate kernel snapshot.

        Returns:
            Path to the ELF snapshot

        Raises:
            BuildError: If the build mode is not AOT
            SnapshotError: If a stage fails
        """
        if not self.config.mode.is_aot:
            raise BuildError(f"Build mode {self.config.mode} does not use AOT snapshots")

        self.output_dir.mkdir(parents=True, exist_ok=True)

        # gen_snapshot must only ever see a kernel snapshot built by this run
        try:
            self.kernel_snapshot.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise BuildError(f"Failed to remove stale {KERNEL_SNAPSHOT}: {e}") from e

        for stage in self.stages():
            logger.info(stage.name)
            stage.run(cwd=self.project_root)

        try:
            self.kernel_snapshot.unlink()
        except OSError as e:
            raise BuildError(f"Failed to remove {KERNEL_SNAPSHOT}: {e}") from e

        return self.elf_snapshot


def build_aot_snapshot(config: BuildConfig, asset_dir: Optional[Path] = None) -> Path:
    """
    Prune the JIT assets of a bundle and generate its ELF snapshot.

    Args:
        config: Build configuration (must use an AOT mode)
        asset_dir: flutter_assets directory, defaults to the output directory's

    Returns:
        Path to the ELF snapshot
    """
    if not config.mode.is_aot:
        raise BuildError(f"Build mode {config.mode} does not use AOT snapshots")

    asset_dir = asset_dir or config.output_dir / "flutter_assets"
    for path in prune_jit_assets(asset_dir):
        logger.debug(f"Removed unused {path.name}")
    return AotSnapshotPipeline(config).run()


__all__ = [
    "KERNEL_SNAPSHOT",
    "ELF_SNAPSHOT",
    "JIT_ASSETS",
    "SnapshotStage",
    "AotToolchain",
    "AotSnapshotPipeline",
    "prune_jit_assets",
    "build_aot_snapshot",
]
