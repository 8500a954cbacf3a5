"""
Sequence assembly for ganpanel.

This module collects whatever numbered frames currently exist in a working
directory and encodes them, in index order, into one animated GIF.
"""

from __future__ import annotations

from pathlib import Path
from typing import BinaryIO, List

from PIL import GifImagePlugin, Image

from ..config import app_config
from ..core.types import AssemblyResult
from ..output.logger import SimpleLogger
from .image import frame_path, read_rgb


def write_gif(fp: BinaryIO, images: List[Image.Image], duration_ms: int, loop: int) -> int:
    """
    Write ``images`` as an animated GIF, one GIF frame per image.

    ``Image.save(save_all=True)`` folds identical consecutive frames into one,
    so frames are written one by one instead. Each frame carries its own
    adaptive palette.

    Returns:
        Number of frames written
    """
    frames = [img.convert("RGB").convert("P", palette=Image.Palette.ADAPTIVE) for img in images]
    header, _ = GifImagePlugin.getheader(frames[0], info={"loop": loop, "duration": duration_ms})
    for block in header:
        fp.write(block)
    for frame in frames:
        for block in GifImagePlugin.getdata(frame, duration=duration_ms, include_color_table=True):
            fp.write(block)
    fp.write(b";")  # trailer
    return len(frames)


class SequenceAssembler:
    """Builds animated GIFs from generated frames.

    With no logger the assembler is silent; the result carries everything
    worth reporting, so a caller on another thread can log it later.
    """

    def __init__(
        self,
        frame_duration_ms: int | None = None,
        loop: int | None = None,
        frame_pattern: str | None = None,
        logger: SimpleLogger | None = None,
    ) -> None:
        self.frame_duration_ms = frame_duration_ms or app_config.assembly.frame_duration_ms
        self.loop = app_config.assembly.loop if loop is None else loop
        self.frame_pattern = frame_pattern
        self.logger = logger

    def collect(self, working_dir: Path, total_expected: int) -> tuple[list[int], list[Image.Image], list[int]]:
        """Decode frames 0..total_expected-1 that exist, skipping gaps.

        Returns the decoded indices, their images and the indices of files
        that exist but could not be decoded.
        """
        indices: list[int] = []
        images: list[Image.Image] = []
        skipped: list[int] = []
        for i in range(total_expected):
            path = frame_path(working_dir, i, self.frame_pattern)
            if not path.is_file():
                continue
            pixels = read_rgb(path)
            if pixels is None:
                skipped.append(i)
                continue
            indices.append(i)
            images.append(Image.fromarray(pixels))
        return indices, images, skipped

    def assemble(self, working_dir: Path, total_expected: int, output_path: Path | None = None) -> AssemblyResult:
        """
        Encode the present frames into one GIF.

        Args:
            working_dir: Directory holding the numbered frames
            total_expected: Number of frames the run was asked for
            output_path: Target GIF; defaults to the configured name inside
                working_dir. An existing file is overwritten.

        Returns:
            AssemblyResult listing the frame indices used
        """
        working_dir = Path(working_dir)
        out = Path(output_path) if output_path is not None else working_dir / app_config.assembly.default_output_name

        indices, images, skipped = self.collect(working_dir, total_expected)
        if not images:
            result = AssemblyResult(output_path=out, skipped=skipped)
            self.report(result)
            return result

        out.parent.mkdir(parents=True, exist_ok=True)
        with open(out, "wb") as fp:
            count = write_gif(fp, images, self.frame_duration_ms, self.loop)
        for img in images:
            img.close()

        result = AssemblyResult(output_path=out, indices=indices, written=True, frames_written=count, skipped=skipped)
        self.report(result)
        return result

    def report(self, result: AssemblyResult, logger: SimpleLogger | None = None) -> None:
        """Log the outcome of an assembly pass."""
        logger = logger or self.logger
        if logger is None:
            return
        for i in result.skipped:
            logger.warning(f"Skipping undecodable frame {frame_path(Path(), i, self.frame_pattern).name}")
        if result.written:
            logger.success(f"Wrote {result.output_path} ({result.frames_written} frames)")
        else:
            logger.warning(f"No frames found; {result.output_path.name} not written")
