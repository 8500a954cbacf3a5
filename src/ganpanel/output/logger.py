"""
Simple logging system for the panel.

Lines are timestamped and written to the console (or, while the dashboard is
live, to a sink such as the scrollable log viewer) and appended to a log file.
"""

from __future__ import annotations

import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

LogSink = Callable[[str, Optional[str]], None]

STYLES = {
    "[SUCCESS]": "green",
    "[ERROR]": "red",
    "[WARNING]": "yellow",
}


class SimpleLogger:
    """Simple logger that writes to console and file."""

    def __init__(self, log_file: Optional[Path] = None, sink: Optional[LogSink] = None):
        self.log_file = log_file
        self.sink = sink
        self.start_time = time.time()

        if self.log_file:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_file, 'a', encoding='utf-8') as f:
                f.write(f"\n{'='*60}\n")
                f.write(f"Session started: {datetime.now().isoformat()}\n")
                f.write(f"{'='*60}\n")

    def log(self, message: str, prefix: str = "", error: bool = False) -> None:
        """Log a message to console (or sink) and file.

        Args:
            message: The message to log
            prefix: Optional prefix like [INFO], [ERROR], etc.
            error: Whether to write to stderr instead of stdout
        """
        timestamp = datetime.now().strftime("%H:%M:%S")

        if prefix:
            formatted = f"[{timestamp}] {prefix} {message}"
        else:
            formatted = f"[{timestamp}] {message}"

        if self.sink is not None:
            self.sink(formatted, STYLES.get(prefix))
        else:
            output = sys.stderr if error else sys.stdout
            print(formatted, file=output, flush=True)

        if self.log_file:
            try:
                with open(self.log_file, 'a', encoding='utf-8') as f:
                    f.write(formatted + '\n')
            except OSError:
                pass  # Don't fail on logging errors

    def progress(self, current: int, total: int, description: str = "") -> None:
        """Show simple progress indicator.

        Args:
            current: Current item number
            total: Total items
            description: Optional description
        """
        percent = (current / total * 100) if total > 0 else 0
        elapsed = time.time() - self.start_time

        if description:
            self.log(f"[{current}/{total}] ({percent:.1f}%) {description} - {elapsed:.1f}s elapsed")
        else:
            self.log(f"[{current}/{total}] ({percent:.1f}%) - {elapsed:.1f}s elapsed")

    def table(self, headers: List[str], rows: List[List[str]]) -> None:
        """Print a simple table.

        Args:
            headers: Column headers
            rows: Table rows
        """
        if not headers or not rows:
            return

        widths = [len(h) for h in headers]
        for row in rows:
            for i, cell in enumerate(row):
                if i < len(widths):
                    widths[i] = max(widths[i], len(str(cell)))

        separator = "+" + "+".join("-" * (w + 2) for w in widths) + "+"
        self.log(separator)
        self.log("|" + "|".join(f" {h:<{w}} " for h, w in zip(headers, widths)) + "|")
        self.log(separator)
        for row in rows:
            self.log("|" + "|".join(f" {str(cell):<{w}} " for cell, w in zip(row, widths)) + "|")
        self.log(separator)

    def success(self, message: str) -> None:
        """Log a success message."""
        self.log(message, prefix="[SUCCESS]")

    def error(self, message: str) -> None:
        """Log an error message."""
        self.log(message, prefix="[ERROR]", error=True)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.log(message, prefix="[WARNING]")

    def info(self, message: str) -> None:
        """Log an info message."""
        self.log(message, prefix="[INFO]")
