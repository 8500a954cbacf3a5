"""
Consolidated configuration system for ganpanel.

This module provides the Pydantic-based settings for polling, launching and
GIF assembly, the validated RunConfig describing one generation run, and the
helpers that turn the one-line generator path file into concrete paths.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.errors import ConfigLoadError
from .core.mapping import ModelId

# =============================================================================
# POLL SETTINGS
# =============================================================================

class PollSettings(BaseModel):
    """Output polling configuration."""

    interval_sec: Annotated[float, Field(
        gt=0.0,
        le=10.0,
        description="Interval in seconds between two output poll ticks"
    )] = 0.1

    max_scan_index: Annotated[int, Field(
        ge=1,
        description="Upper bound on frame indices visited when clearing old outputs"
    )] = 100000


# =============================================================================
# RUN SETTINGS
# =============================================================================

class RunSettings(BaseModel):
    """Command line and launch configuration."""

    min_smoothing_count: Annotated[int, Field(
        ge=1,
        description="Smallest count accepted when random/smooth modes are enabled"
    )] = 2

    corrected_count: Annotated[int, Field(
        ge=2,
        description="Count substituted when the requested count is too small"
    )] = 10

    executable_name: Annotated[str, Field(
        min_length=1,
        description="File name of the generator inside its installation directory"
    )] = "stylegan.exe" if os.name == "nt" else "stylegan"

    frame_pattern: Annotated[str, Field(
        description="Filename pattern of generated frames"
    )] = "image_{index:04d}.png"

    command_log_name: Annotated[str, Field(
        description="File overwritten with the invoked command before each run"
    )] = "command_line.txt"

    process_log_name: Annotated[str, Field(
        description="File receiving the generator's stdout and stderr"
    )] = "generator_output.log"

    @field_validator("frame_pattern")
    @classmethod
    def validate_frame_pattern(cls, v):
        """Ensure the pattern embeds the frame index."""
        if "{index" not in v:
            raise ValueError(f"frame_pattern must contain an {{index}} field, got {v}")
        return v


# =============================================================================
# ASSEMBLY SETTINGS
# =============================================================================

class AssemblySettings(BaseModel):
    """Animated GIF output configuration."""

    frame_duration_ms: Annotated[int, Field(
        gt=0,
        description="Display duration of each GIF frame in milliseconds"
    )] = 100

    loop: Annotated[int, Field(
        ge=0,
        description="GIF loop count (0 loops forever)"
    )] = 0

    default_output_name: Annotated[str, Field(
        description="Artifact file name used when no output path is given"
    )] = "animation.gif"


# =============================================================================
# PATH SETTINGS
# =============================================================================

class PathSettings(BaseModel):
    """Location of the generator installation."""

    path_file_name: Annotated[str, Field(
        description="One-line text file holding the generator installation path"
    )] = "stylegan_path.txt"

    generator_dir: Annotated[Path | None, Field(
        description="Generator installation directory; overrides the path file when set"
    )] = None


# =============================================================================
# RUN CONFIGURATION
# =============================================================================

class RunConfig(BaseModel):
    """Parameters of one generation run."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    seed_start: int = 5
    seed_end: int = 841
    count: Annotated[int, Field(ge=0)] = 1
    start_index: Annotated[int, Field(ge=0)] = 0
    random_seed: bool = False
    smooth_z: bool = False
    smooth_psi: bool = False
    model_id: ModelId = ModelId.FFHQ
    model_base_path: Path | None = None

    @model_validator(mode="after")
    def validate_exclusive_modes(self):
        """Random seed, smooth z and smooth psi cannot be combined."""
        enabled = [name for name in ("random_seed", "smooth_z", "smooth_psi") if getattr(self, name)]
        if len(enabled) > 1:
            raise ValueError(f"Only one of random_seed/smooth_z/smooth_psi may be set, got {', '.join(enabled)}")
        return self

    @property
    def uses_sequence_mode(self) -> bool:
        """True when one of the random/smooth modes is enabled."""
        return self.random_seed or self.smooth_z or self.smooth_psi


# =============================================================================
# GENERATOR PATHS
# =============================================================================

@dataclass(frozen=True)
class GeneratorPaths:
    """Paths derived from the generator installation directory."""

    install_dir: Path
    executable: Path
    working_dir: Path
    model_dir: Path

    @classmethod
    def from_install_dir(cls, install_dir: Path, executable_name: str | None = None) -> GeneratorPaths:
        """Derive the executable, working and model directories.

        The generator runs from (and writes its frames into) the parent of its
        installation directory; models live in a ``model`` folder beside it.
        """
        install_dir = Path(install_dir)
        working_dir = install_dir.resolve().parent
        return cls(
            install_dir=install_dir,
            executable=install_dir / (executable_name or app_config.run.executable_name),
            working_dir=working_dir,
            model_dir=working_dir / "model",
        )


def read_generator_path(path_file: Path) -> Path:
    """Read the generator installation path from a one-line text file.

    Args:
        path_file: File whose first line is the installation directory

    Returns:
        The installation directory as a Path

    Raises:
        ConfigLoadError: If the file is missing, unreadable or empty
    """
    try:
        with open(path_file, encoding="utf-8") as f:
            line = f.readline()
    except OSError as e:
        raise ConfigLoadError(f"Cannot read generator path file {path_file}: {e}") from e

    value = line.strip()
    if not value:
        raise ConfigLoadError(f"Generator path file {path_file} is empty")
    return Path(value)


# =============================================================================
# MAIN APPLICATION CONFIGURATION
# =============================================================================

class AppConfig(BaseSettings):
    """
    Main application configuration with environment variable support.

    All settings can be overridden via environment variables with GANPANEL_ prefix.
    Example: GANPANEL_POLL__INTERVAL_SEC=0.5
    """

    model_config = SettingsConfigDict(
        env_prefix="GANPANEL_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    poll: PollSettings = PollSettings()
    run: RunSettings = RunSettings()
    assembly: AssemblySettings = AssemblySettings()
    paths: PathSettings = PathSettings()

    def frame_name(self, index: int) -> str:
        """Filename of the frame with the given index."""
        return self.run.frame_pattern.format(index=index)


# =============================================================================
# DEFAULT INSTANCE
# =============================================================================

# Create default configuration instance for easy importing
app_config = AppConfig()


def create_config_from_env() -> AppConfig:
    """Create a new configuration instance from environment variables."""
    return AppConfig()
