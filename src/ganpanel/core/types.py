"""
Core data types for ganpanel.

This module contains the run state owned by the controller, the read-only
snapshot handed to the display layer, and the messages that flow through the
controller's event queue.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable

import numpy as np

from .errors import ValidationWarning


class RunPhase(str, Enum):
    """Lifecycle of a generation run."""

    IDLE = "idle"
    LAUNCHING = "launching"
    RUNNING = "running"
    POLLING = "polling"  # process exited, frames still expected


@dataclass
class Frame:
    """A decoded output frame."""

    index: int
    path: Path
    pixels: np.ndarray  # RGB, uint8

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


@dataclass
class RunState:
    """Mutable state of the current run, owned by the controller."""

    working_dir: Path
    next_expected_index: int = 0
    total_expected: int = 0
    process: Any = None
    is_running: bool = False
    phase: RunPhase = RunPhase.IDLE
    displayed_index: int | None = None
    exit_code: int | None = None

    @property
    def is_complete(self) -> bool:
        return self.next_expected_index >= self.total_expected

    def reset(self, total_expected: int, process: Any) -> None:
        """Start tracking a freshly launched run."""
        self.next_expected_index = 0
        self.total_expected = total_expected
        self.process = process
        self.is_running = True
        self.phase = RunPhase.RUNNING
        self.displayed_index = None
        self.exit_code = None

    def snapshot(self) -> RunSnapshot:
        return RunSnapshot(
            working_dir=self.working_dir,
            next_expected_index=self.next_expected_index,
            total_expected=self.total_expected,
            is_running=self.is_running,
            phase=self.phase,
            displayed_index=self.displayed_index,
            exit_code=self.exit_code,
        )


@dataclass(frozen=True)
class RunSnapshot:
    """Read-only view of RunState for listeners."""

    working_dir: Path
    next_expected_index: int
    total_expected: int
    is_running: bool
    phase: RunPhase
    displayed_index: int | None
    exit_code: int | None

    @property
    def progress(self) -> float:
        if self.total_expected <= 0:
            return 1.0
        return self.next_expected_index / self.total_expected

    @property
    def seek_enabled(self) -> bool:
        """Seeking and GIF assembly only make sense for multi-frame runs."""
        return self.total_expected > 1


@dataclass(frozen=True)
class BuiltArguments:
    """Command line tokens produced for one run."""

    args: list[str]
    count: int
    model_file: str
    warning: ValidationWarning | None = None

    @property
    def corrected(self) -> bool:
        return self.warning is not None


@dataclass(frozen=True)
class AssemblyResult:
    """Outcome of a GIF assembly pass."""

    output_path: Path
    indices: list[int] = field(default_factory=list)
    written: bool = False
    frames_written: int = 0
    skipped: list[int] = field(default_factory=list)  # present but undecodable

    def __len__(self) -> int:
        return self.frames_written


# =============================================================================
# EVENT QUEUE MESSAGES
# =============================================================================

@dataclass(frozen=True)
class PollTick:
    """Posted by the recurring task on every interval."""


@dataclass(frozen=True)
class ProcessExited:
    """Posted by the exit watcher when the generator terminates."""

    run_id: int
    returncode: int


@dataclass(frozen=True)
class AssemblyFinished:
    """Posted by a background assembly when it finishes."""

    result: AssemblyResult | None
    error: str | None = None


@dataclass(frozen=True)
class SeekRequested:
    """Posted by an input thread to view an already produced frame."""

    index: int


@dataclass(frozen=True)
class AssembleRequested:
    """Posted by an input thread to build the GIF from the current frames."""

    output_path: Path | None = None


@dataclass(frozen=True)
class CallRequested:
    """Posted by an input thread to run a display callback on the controller thread."""

    callback: Callable[[], None]
