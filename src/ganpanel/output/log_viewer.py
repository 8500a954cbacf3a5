"""
Scrollable log panel for the run dashboard.

Keeps a bounded history of log lines as Rich Text and renders the visible
window as a Panel, so the dashboard can scroll back while frames keep arriving.
"""

from __future__ import annotations

from collections import deque
from typing import Deque, List, Optional, Union

from rich.markup import escape
from rich.panel import Panel
from rich.text import Text


class ScrollableLogViewer:
    """A scrollable log viewer that maintains history and supports navigation.

    Args:
        max_visible_lines: Number of lines to show in the viewer at once
        max_history: Maximum number of log entries to keep in history
    """

    def __init__(self, max_visible_lines: int = 12, max_history: int = 2000) -> None:
        self.max_visible_lines = max_visible_lines
        self.logs: Deque[Text] = deque(maxlen=max_history)
        self.scroll_offset = 0
        self.follow = True

    def add_log(self, message: Union[str, Text], style: Optional[str] = None) -> None:
        """Add a log entry; keeps following the tail unless the user scrolled up."""
        entry = Text(message, style=style or "") if isinstance(message, str) else message
        self.logs.append(entry)
        if self.follow:
            self.scroll_to_bottom()

    def _max_offset(self) -> int:
        return max(0, len(self.logs) - self.max_visible_lines)

    def scroll_up(self, lines: int = 1) -> None:
        self.scroll_offset = max(0, self.scroll_offset - lines)
        self.follow = self.scroll_offset >= self._max_offset()

    def scroll_down(self, lines: int = 1) -> None:
        self.scroll_offset = min(self._max_offset(), self.scroll_offset + lines)
        self.follow = self.scroll_offset >= self._max_offset()

    def scroll_to_top(self) -> None:
        self.scroll_offset = 0
        self.follow = self._max_offset() == 0

    def scroll_to_bottom(self) -> None:
        self.scroll_offset = self._max_offset()
        self.follow = True

    def get_visible_logs(self) -> List[Text]:
        """Visible window, padded with blank lines to a stable height."""
        visible = list(self.logs)[self.scroll_offset:self.scroll_offset + self.max_visible_lines]
        while len(visible) < self.max_visible_lines:
            visible.append(Text(""))
        return visible

    def position(self) -> str:
        """Scroll indicator such as ``[TOP of 40]``."""
        total = len(self.logs)
        if not total:
            return ""
        if total <= self.max_visible_lines:
            return f"[showing all {total}]"
        if self.scroll_offset == 0:
            where = "TOP"
        elif self.scroll_offset >= self._max_offset():
            where = "BOTTOM"
        else:
            end = min(self.scroll_offset + self.max_visible_lines, total)
            where = f"{self.scroll_offset + 1}-{end}"
        return f"[{where} of {total}]"

    def get_panel(self, title: str = "Log") -> Panel:
        combined = Text("\n").join(self.get_visible_logs())
        indicator = self.position()
        if indicator:
            title = f"{title} {escape(indicator)}"
        return Panel(combined, title=f"[cyan]{title}[/]", border_style="cyan", title_align="left")

    def __rich__(self) -> Panel:
        return self.get_panel()

    def clear(self) -> None:
        self.logs.clear()
        self.scroll_offset = 0
        self.follow = True
