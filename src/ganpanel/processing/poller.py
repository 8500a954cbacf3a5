"""
Output polling.

The generator has no progress channel besides the files it writes, so each
tick looks for the next expected frame and advances the cursor once that frame
decodes.
"""

from __future__ import annotations

from typing import Callable, Optional

from ..core.types import Frame, RunState
from .image import decode_frame

FrameDecoder = Callable[..., Optional[Frame]]


class OutputPoller:
    """Advances RunState.next_expected_index as frames appear on disk."""

    def __init__(self, frame_pattern: str | None = None, decoder: FrameDecoder = decode_frame) -> None:
        self.frame_pattern = frame_pattern
        self.decoder = decoder

    def tick(self, state: RunState) -> Optional[Frame]:
        """
        Run one poll step against ``state``.

        Returns:
            The newly decoded frame when the cursor advanced, else None. A frame
            that exists but does not decode yet is retried on the next tick.
        """
        if state.next_expected_index >= state.total_expected:
            return None

        frame = self.decoder(state.working_dir, state.next_expected_index, self.frame_pattern)
        if frame is None:
            return None

        state.displayed_index = frame.index
        state.next_expected_index += 1
        return frame
