"""
Generator process launcher.

Clears stale frames, records the invoked command, starts the generator
without blocking and watches it from a daemon thread so that its exit can be
reported back to the controller.
"""

from __future__ import annotations

import subprocess
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from ..config import app_config
from ..core.errors import LaunchError
from ..output.logger import SimpleLogger
from ..utils.subprocess import pretty_command, resolve_executable
from .image import frame_path

ExitCallback = Callable[[int], None]


@dataclass
class LaunchHandle:
    """A started generator process."""

    command: list[str]
    process: subprocess.Popen
    watcher: threading.Thread

    def poll(self) -> Optional[int]:
        return self.process.poll()


class RunLauncher:
    """Starts the generator for one run at a time."""

    def __init__(
        self,
        max_scan_index: int | None = None,
        frame_pattern: str | None = None,
        command_log_name: str | None = None,
        process_log_name: str | None = None,
        logger: SimpleLogger | None = None,
    ) -> None:
        self.max_scan_index = max_scan_index or app_config.poll.max_scan_index
        self.frame_pattern = frame_pattern or app_config.run.frame_pattern
        self.command_log_name = command_log_name or app_config.run.command_log_name
        self.process_log_name = process_log_name or app_config.run.process_log_name
        self.logger = logger

    def clear_outputs(self, working_dir: Path) -> int:
        """Delete frames from index 0 up to the first gap; returns the number removed."""
        removed = 0
        for i in range(self.max_scan_index):
            path = frame_path(working_dir, i, self.frame_pattern)
            if not path.is_file():
                break
            path.unlink()
            removed += 1
        return removed

    def write_command_log(self, working_dir: Path, command: list[str]) -> Path:
        """Overwrite the command log with a timestamped copy of the command."""
        log_path = Path(working_dir) / self.command_log_name
        with open(log_path, "w", encoding="utf-8") as f:
            f.write(f"{datetime.now().strftime('%H:%M:%S')} {pretty_command(command)}\n")
        return log_path

    def launch(self, command: list[str], working_dir: Path, on_exit: ExitCallback) -> LaunchHandle:
        """
        Start the generator without waiting for it.

        Args:
            command: Executable followed by its arguments
            working_dir: Directory the generator runs in and writes frames to
            on_exit: Called once from the watcher thread with the return code

        Returns:
            LaunchHandle for the started process

        Raises:
            LaunchError: If the executable is missing, the working directory
                cannot be prepared or the process cannot be started
        """
        if not command:
            raise LaunchError("Empty generator command")
        if resolve_executable(command[0]) is None:
            raise LaunchError(f"Generator executable not found: {command[0]}")

        working_dir = Path(working_dir)
        if not working_dir.is_dir():
            raise LaunchError(f"Working directory does not exist: {working_dir}")

        try:
            removed = self.clear_outputs(working_dir)
            self.write_command_log(working_dir, command)
            out = open(working_dir / self.process_log_name, "ab")
        except OSError as e:
            raise LaunchError(f"Cannot prepare working directory {working_dir}: {e}", os_error=e) from e
        if removed and self.logger:
            self.logger.info(f"Removed {removed} frames from previous run")

        try:
            process = subprocess.Popen(
                command,
                cwd=str(working_dir),
                stdin=subprocess.DEVNULL,
                stdout=out,
                stderr=subprocess.STDOUT,
            )
        except OSError as e:
            out.close()
            raise LaunchError(f"Failed to start generator: {e.strerror or e}", os_error=e) from e

        def watch() -> None:
            try:
                returncode = process.wait()
            finally:
                out.close()
            on_exit(returncode)

        watcher = threading.Thread(target=watch, name=f"generator-{process.pid}-watcher", daemon=True)
        watcher.start()

        if self.logger:
            self.logger.info(f"Started generator (pid {process.pid}): {pretty_command(command)}")
        return LaunchHandle(command=list(command), process=process, watcher=watcher)

    @staticmethod
    def terminate(handle: LaunchHandle, timeout: float = 5.0) -> Optional[int]:
        """Stop a running generator; returns its exit code if it stopped."""
        if handle.process.poll() is not None:
            return handle.process.returncode
        handle.process.terminate()
        try:
            return handle.process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            handle.process.kill()
            return handle.process.wait()
