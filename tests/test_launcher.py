import os
import queue
import re
import sys
from pathlib import Path

import cv2
import numpy as np
import pytest

from ganpanel.core.errors import LaunchError
from ganpanel.processing.launcher import RunLauncher


def write_frame(directory: Path, index: int) -> Path:
    path = directory / f"image_{index:04d}.png"
    assert cv2.imwrite(str(path), np.zeros((4, 4, 3), dtype=np.uint8))
    return path


def test_clear_outputs_stops_at_first_gap(tmp_path: Path):
    for i in (0, 1, 2, 4):
        write_frame(tmp_path, i)
    removed = RunLauncher().clear_outputs(tmp_path)
    assert removed == 3
    assert not (tmp_path / "image_0000.png").exists()
    assert (tmp_path / "image_0004.png").exists()


def test_clear_outputs_respects_scan_bound(tmp_path: Path):
    for i in range(5):
        write_frame(tmp_path, i)
    assert RunLauncher(max_scan_index=2).clear_outputs(tmp_path) == 2
    assert (tmp_path / "image_0002.png").exists()


def test_launch_runs_generator_and_reports_exit(tmp_path: Path, fake_generator: Path, monkeypatch):
    monkeypatch.setenv("FAKE_GENERATOR_EXIT", "3")
    workdir = tmp_path / "work"
    workdir.mkdir()
    write_frame(workdir, 0)
    write_frame(workdir, 1)
    exits: queue.Queue = queue.Queue()
    command = [sys.executable, str(fake_generator), "--seed", "1", "--num", "1", "--start_index", "0"]

    handle = RunLauncher().launch(command, workdir, on_exit=exits.put)

    assert exits.get(timeout=60) == 3
    handle.watcher.join(timeout=10)
    assert handle.poll() == 3
    # Stale frame 1 was cleared before the generator wrote frame 0 again
    assert (workdir / "image_0000.png").exists()
    assert not (workdir / "image_0001.png").exists()

    log_line = (workdir / "command_line.txt").read_text(encoding="utf-8").strip()
    assert re.match(r"^\d\d:\d\d:\d\d ", log_line)
    assert "--seed 1 --num 1 --start_index 0" in log_line
    assert "generated 1" in (workdir / "generator_output.log").read_text()


def test_command_log_is_overwritten(tmp_path: Path):
    launcher = RunLauncher()
    launcher.write_command_log(tmp_path, ["gen", "--num", "1"])
    launcher.write_command_log(tmp_path, ["gen", "--num", "2"])
    lines = (tmp_path / "command_line.txt").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    assert lines[0].endswith("gen --num 2")


def test_missing_executable_raises_and_keeps_frames(tmp_path: Path):
    write_frame(tmp_path, 0)
    with pytest.raises(LaunchError):
        RunLauncher().launch([str(tmp_path / "missing-generator")], tmp_path, on_exit=lambda rc: None)
    assert (tmp_path / "image_0000.png").exists()
    assert not (tmp_path / "command_line.txt").exists()


def test_missing_working_dir_raises(tmp_path: Path):
    with pytest.raises(LaunchError):
        RunLauncher().launch([sys.executable, "-c", "pass"], tmp_path / "nope", on_exit=lambda rc: None)


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
def test_start_failure_carries_os_error(tmp_path: Path):
    script = tmp_path / "generator"
    script.write_text("#!/nonexistent/interpreter\n", encoding="utf-8")
    script.chmod(0o755)
    with pytest.raises(LaunchError) as excinfo:
        RunLauncher().launch([str(script)], tmp_path, on_exit=lambda rc: None)
    assert excinfo.value.os_error is not None


def test_terminate_stops_running_process(tmp_path: Path):
    exits: queue.Queue = queue.Queue()
    handle = RunLauncher().launch(
        [sys.executable, "-c", "import time; time.sleep(60)"], tmp_path, on_exit=exits.put
    )
    code = RunLauncher.terminate(handle, timeout=10)
    assert code is not None
    assert exits.get(timeout=30) == code


@pytest.mark.parametrize("blocked", ["command_line.txt", "generator_output.log"])
def test_unwritable_working_dir_raises_launch_error(tmp_path: Path, blocked: str):
    # A directory in place of a log file makes opening it fail, even as root
    (tmp_path / blocked).mkdir()
    exits: queue.Queue = queue.Queue()

    with pytest.raises(LaunchError) as excinfo:
        RunLauncher().launch([sys.executable, "-c", "pass"], tmp_path, on_exit=exits.put)

    assert isinstance(excinfo.value.os_error, OSError)
    assert exits.empty()
