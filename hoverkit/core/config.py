"""
Build configuration for hoverkit.

All settings that influence the engine cache and the native build are
resolved once into an immutable BuildConfig and passed explicitly to every
operation. Values come from, in order of precedence:

1. Explicit arguments (command-line flags)
2. The project file go/hover.yaml
3. Environment variables (FLUTTER_STORAGE_BASE_URL)
4. Built-in defaults
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from hoverkit.core.exceptions import ConfigurationError
from hoverkit.core.platform import (
    BuildMode,
    RELEASE_MODE,
    default_cache_root,
    engine_cache_path,
    host_os,
    validate_target_os,
)

logger = logging.getLogger(__name__)

BUILD_PATH = "go"
PROJECT_CONFIG_FILE = "hover.yaml"

DEFAULT_STORAGE_BASE_URL = "https://storage.googleapis.com"
STORAGE_BASE_URL_ENV = "FLUTTER_STORAGE_BASE_URL"

DEFAULT_FLUTTER_TARGET = "lib/main_desktop.dart"
DEFAULT_OPENGL_VERSION = "3.3"
DEFAULT_PACKAGES_FILE = ".packages"


@dataclass(frozen=True)
class BuildConfig:
    """
    Resolved configuration of one hover invocation.

    Attributes:
        target_os: Target OS ('linux', 'darwin', 'windows')
        cache_root: Root of the cache (engine lives under hover/engine/)
        mode: Build mode
        engine_version: Required engine version, empty to use the Flutter SDK's
        opengl: OpenGL flavour passed to the go build tags
        flutter_target: Main entry-point file of the application
        storage_base_url: Host serving flutter_infra artifacts
        project_root: Root of the Flutter project
        packages_file: Dart package configuration used by the kernel compiler
    """

    target_os: str
    cache_root: Path
    mode: BuildMode = RELEASE_MODE
    engine_version: str = ""
    opengl: str = DEFAULT_OPENGL_VERSION
    flutter_target: str = DEFAULT_FLUTTER_TARGET
    storage_base_url: str = DEFAULT_STORAGE_BASE_URL
    project_root: Path = field(default_factory=Path.cwd)
    packages_file: str = DEFAULT_PACKAGES_FILE

    @property
    def engine_cache_path(self) -> Path:
        """Engine cache entry for this target and mode."""
        return engine_cache_path(self.target_os, self.cache_root, self.mode)

    @property
    def build_path(self) -> Path:
        """The go-flutter project directory."""
        return self.project_root / BUILD_PATH

    @property
    def output_dir(self) -> Path:
        """Build output directory for the target OS."""
        return self.build_path / "build" / "outputs" / self.target_os

    @property
    def intermediates_dir(self) -> Path:
        """Intermediates directory for the target OS."""
        return self.build_path / "build" / "intermediates" / self.target_os


def load_yaml_config(config_file: Path, required: bool = False) -> Dict[str, Any]:
    """
    Load and parse a YAML configuration file.

    Args:
        config_file: Path to YAML configuration file
        required: If True, raise error if file doesn't exist

    Returns:
        Configuration dictionary (empty dict if file doesn't exist and not required)

    Raises:
        ConfigurationError: If the file is required and missing, or is not
            valid YAML mapping
    """
    if not config_file.exists():
        if required:
            raise ConfigurationError(f"Configuration file not found: {config_file}")
        logger.debug(f"Config file not found (optional): {config_file}")
        return {}

    logger.debug(f"Loading configuration from {config_file}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_file}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Failed to read {config_file}: {e}") from e

    config = config or {}
    if not isinstance(config, dict):
        raise ConfigurationError(f"Expected a mapping in {config_file}")
    return config


def load_project_config(project_root: Path) -> Dict[str, Any]:
    """Load go/hover.yaml of a project, empty when the project has none."""
    return load_yaml_config(project_root / BUILD_PATH / PROJECT_CONFIG_FILE)


def storage_base_url(environ: Optional[Mapping[str, str]] = None) -> str:
    """
    Get the host serving engine artifacts.

    FLUTTER_STORAGE_BASE_URL overrides the default Google storage host, the
    same variable the Flutter tool honours for mirrors.
    """
    environ = os.environ if environ is None else environ
    return environ.get(STORAGE_BASE_URL_ENV) or DEFAULT_STORAGE_BASE_URL


def resolve_build_config(
    target_os: str,
    cache_root: Optional[Union[str, Path]] = None,
    mode: BuildMode = RELEASE_MODE,
    engine_version: str = "",
    opengl: Optional[str] = None,
    flutter_target: Optional[str] = None,
    project_root: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> BuildConfig:
    """
    Resolve the configuration of a build.

    Explicit arguments win over go/hover.yaml, which wins over defaults.
    Relative project and cache paths are made absolute against the current
    directory, since the AOT tools run from the project root.

    Raises:
        UnsupportedPlatformError: If target_os is not supported
        ConfigurationError: If the configuration is inconsistent
    """
    validate_target_os(target_os)
    project_root = Path(os.path.abspath(project_root or Path.cwd()))
    project_config = load_project_config(project_root)

    if cache_root is None:
        cache_root = project_config.get("cache-path") or default_cache_root()
    if str(cache_root) == "":
        raise ConfigurationError("Missing cache path, cannot continue.")

    if not engine_version and project_config.get("engine-version"):
        logger.warning("changing the engine version can lead to undesirable behavior")
        engine_version = str(project_config["engine-version"])

    if opengl is None:
        opengl = str(project_config.get("opengl") or DEFAULT_OPENGL_VERSION)

    if flutter_target is None:
        flutter_target = str(project_config.get("target") or DEFAULT_FLUTTER_TARGET)

    if mode.is_aot and target_os != host_os():
        raise ConfigurationError("AOT builds currently only work on their host OS")

    return BuildConfig(
        target_os=target_os,
        cache_root=Path(os.path.abspath(cache_root)),
        mode=mode,
        engine_version=engine_version,
        opengl=opengl,
        flutter_target=flutter_target,
        storage_base_url=storage_base_url(environ),
        project_root=project_root,
    )


__all__ = [
    "BUILD_PATH",
    "PROJECT_CONFIG_FILE",
    "DEFAULT_STORAGE_BASE_URL",
    "STORAGE_BASE_URL_ENV",
    "DEFAULT_FLUTTER_TARGET",
    "DEFAULT_OPENGL_VERSION",
    "BuildConfig",
    "load_yaml_config",
    "load_project_config",
    "storage_base_url",
    "resolve_build_config",
]
