from pathlib import Path

import pytest

FAKE_GENERATOR = """
import os
import sys

import cv2
import numpy as np

args = sys.argv[1:]
opts = dict(zip(args[::2], args[1::2]))
num = int(opts.get("--num", "0"))
start = int(opts.get("--start_index", "0"))
for k in range(num):
    cv2.imwrite(f"image_{k + start:04d}.png", np.full((8, 8, 3), (k * 30) % 256, dtype=np.uint8))
print(f"generated {num}")
sys.exit(int(os.environ.get("FAKE_GENERATOR_EXIT", "0")))
"""


@pytest.fixture
def fake_generator(tmp_path: Path) -> Path:
    """Python script standing in for the generator executable; writes --num frames into its cwd."""
    script = tmp_path / "fake_generator.py"
    script.write_text(FAKE_GENERATOR, encoding="utf-8")
    return script
