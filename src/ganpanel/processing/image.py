"""
Frame file helpers.

This module handles naming, locating and decoding the numbered frames the
generator writes into its working directory.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import cv2
import numpy as np

from ..config import app_config
from ..core.types import Frame


def frame_path(working_dir: Path, index: int, pattern: Optional[str] = None) -> Path:
    """Return the path of the frame with the given index."""
    name = (pattern or app_config.run.frame_pattern).format(index=index)
    return Path(working_dir) / name


def read_rgb(path: Path) -> Optional[np.ndarray]:
    """Load an image as an RGB uint8 array, or None when it cannot be decoded.

    A frame the generator is still writing fails to decode; callers treat
    ``None`` as "not ready yet".
    """
    try:
        data = np.fromfile(str(path), dtype=np.uint8)
    except OSError:
        return None
    if data.size == 0:
        return None
    img = cv2.imdecode(data, cv2.IMREAD_COLOR)
    if img is None:
        return None
    return cv2.cvtColor(img, cv2.COLOR_BGR2RGB)


def decode_frame(working_dir: Path, index: int, pattern: Optional[str] = None) -> Optional[Frame]:
    """Decode the frame at ``index`` if it exists and is readable."""
    path = frame_path(working_dir, index, pattern)
    if not path.is_file():
        return None
    pixels = read_rgb(path)
    if pixels is None:
        return None
    return Frame(index=index, path=path, pixels=pixels)


def existing_frame_indices(
    working_dir: Path, limit: int, pattern: Optional[str] = None
) -> list[int]:
    """Indices from 0 up to the first missing frame, capped at ``limit``."""
    indices = []
    for i in range(limit):
        if not frame_path(working_dir, i, pattern).is_file():
            break
        indices.append(i)
    return indices
