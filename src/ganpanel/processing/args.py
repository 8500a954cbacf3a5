"""
Generator command line construction.

Turns a RunConfig into the ordered argument list understood by the external
generator, correcting the frame count when a random/smooth mode needs more
than one frame.
"""

from __future__ import annotations

from pathlib import Path

from ..config import RunConfig, app_config
from ..core.errors import ValidationWarning
from ..core.mapping import ModelMapper
from ..core.types import BuiltArguments
from ..output.logger import SimpleLogger


class ArgumentBuilder:
    """Builds generator arguments from run configurations."""

    def __init__(
        self,
        min_count: int | None = None,
        corrected_count: int | None = None,
        logger: SimpleLogger | None = None,
    ) -> None:
        self.min_count = min_count if min_count is not None else app_config.run.min_smoothing_count
        self.corrected_count = corrected_count if corrected_count is not None else app_config.run.corrected_count
        self.logger = logger

    def effective_count(self, config: RunConfig) -> tuple[int, ValidationWarning | None]:
        """Return the count to request and the warning describing any correction."""
        if config.uses_sequence_mode and config.count < self.min_count:
            warning = ValidationWarning(
                f"Count {config.count} is too small for random/smooth mode; using {self.corrected_count}",
                requested=config.count,
                corrected=self.corrected_count,
            )
            return self.corrected_count, warning
        return config.count, None

    def build(self, config: RunConfig, model_dir: Path | None = None) -> BuiltArguments:
        """
        Build the ordered argument list for one run.

        Args:
            config: Run parameters
            model_dir: Directory holding the model files; falls back to
                config.model_base_path

        Returns:
            BuiltArguments with the tokens, the effective count and an
            optional correction warning
        """
        count, warning = self.effective_count(config)
        if warning is not None and self.logger:
            self.logger.warning(str(warning))

        args = [
            "--seed", str(config.seed_start),
            "--seed2", str(config.seed_end),
            "--num", str(count),
            "--start_index", str(config.start_index),
        ]
        if config.random_seed:
            args += ["--random_seed", "1"]
        if config.smooth_z:
            args += ["--smooth_z", "1"]
        if config.smooth_psi:
            args += ["--smooth_psi", "1"]

        model_file = ModelMapper.resolve(config.model_id)
        args += ["--model", model_file]

        base = model_dir if model_dir is not None else config.model_base_path
        args += ["--model_path", format_model_path(base)]

        return BuiltArguments(args=args, count=count, model_file=model_file, warning=warning)


def format_model_path(model_dir: Path | None) -> str:
    """Render the model directory with the trailing slash the generator concatenates onto."""
    if model_dir is None:
        return "./"
    return Path(model_dir).as_posix().rstrip("/") + "/"


def build_arguments(config: RunConfig, model_dir: Path | None = None) -> BuiltArguments:
    """Build arguments with the default settings."""
    return ArgumentBuilder().build(config, model_dir)
