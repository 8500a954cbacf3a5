"""Subprocess and external command utilities."""

from __future__ import annotations

import os
import shlex
from pathlib import Path
from shutil import which


def pretty_command(cmd: list[str]) -> str:
    """Shell-quoted rendering of a command for logs."""
    return " ".join(shlex.quote(str(c)) for c in cmd)


def resolve_executable(executable: str | Path) -> Path | None:
    """Return the executable path if it exists or is found on PATH."""
    path = Path(executable)
    if path.is_file() and os.access(path, os.X_OK):
        return path
    found = which(str(executable))
    return Path(found) if found else None


def check_tools(executable: str | Path | None) -> tuple[bool, list[str]]:
    """Check availability of the generator executable.

    Args:
        executable: Path to the generator, or None when no path is configured

    Returns:
        Tuple[bool, List[str]]: (all_ok, problems). If `all_ok` is False, problems lists the issues.
    """
    problems: list[str] = []
    if executable is None:
        problems.append("generator path is not configured")
    elif resolve_executable(executable) is None:
        problems.append(f"generator not found or not executable: {executable}")
    return (len(problems) == 0, problems)
