import sys
import threading
import time
from pathlib import Path

import cv2
import numpy as np
import pytest

from ganpanel.config import AppConfig, GeneratorPaths, RunConfig
from ganpanel.core.errors import LaunchError
from ganpanel.core.types import AssemblyFinished, CallRequested, PollTick, ProcessExited, RunPhase
from ganpanel.output.logger import SimpleLogger
from ganpanel.processing.controller import GenerationController


def write_frame(directory: Path, index: int, value: int = 100) -> None:
    assert cv2.imwrite(str(directory / f"image_{index:04d}.png"), np.full((8, 8, 3), value, dtype=np.uint8))


def make_controller(tmp_path: Path, **kwargs) -> GenerationController:
    paths = GeneratorPaths.from_install_dir(tmp_path / "stylegan", "stylegan")
    settings = AppConfig(poll={"interval_sec": 0.02})
    return GenerationController(paths, settings=settings, logger=SimpleLogger(), **kwargs)


def use_fake_generator(controller: GenerationController, script: Path, monkeypatch) -> None:
    original = controller.build_command

    def build(config):
        command, built = original(config)
        return [sys.executable, str(script), *command[1:]], built

    monkeypatch.setattr(controller, "build_command", build)


def test_full_run_with_timer(tmp_path: Path, fake_generator: Path, monkeypatch):
    controller = make_controller(tmp_path)
    use_fake_generator(controller, fake_generator, monkeypatch)
    snapshots = []
    controller.subscribe(lambda snap, frame: snapshots.append(snap))

    built = controller.start_run(RunConfig(seed_start=1, seed_end=2, count=3))
    assert built.count == 3
    assert controller.snapshot().phase is RunPhase.RUNNING
    assert controller.polling

    deadline = time.time() + 60
    while time.time() < deadline:
        controller.process_pending(timeout=0.1)
        snap = controller.snapshot()
        if snap.phase is RunPhase.IDLE and not snap.is_running:
            break

    snap = controller.snapshot()
    assert snap.next_expected_index == 3
    assert snap.phase is RunPhase.IDLE
    assert snap.exit_code == 0
    assert not controller.polling
    progress = [s.next_expected_index for s in snapshots]
    assert progress == sorted(progress)
    assert controller.current_frame.index == 2
    controller.close()


def test_corrected_count_drives_polling(tmp_path: Path, fake_generator: Path, monkeypatch):
    controller = make_controller(tmp_path, auto_poll=False)
    use_fake_generator(controller, fake_generator, monkeypatch)

    built = controller.start_run(RunConfig(count=1, random_seed=True))
    assert built.corrected
    assert controller.snapshot().total_expected == 10

    deadline = time.time() + 60
    while controller.snapshot().phase is not RunPhase.IDLE and time.time() < deadline:
        controller.process_pending(timeout=0.05)
        controller.tick()
    assert controller.snapshot().next_expected_index == 10


def test_launch_error_leaves_state_untouched(tmp_path: Path):
    write_frame(tmp_path, 0)
    controller = make_controller(tmp_path, auto_poll=False)
    before = controller.snapshot()

    with pytest.raises(LaunchError):
        controller.start_run(RunConfig(count=3))

    assert controller.snapshot() == before
    assert (tmp_path / "image_0000.png").exists()
    assert not controller.polling


def test_unconfigured_generator_cannot_launch(tmp_path: Path):
    controller = GenerationController(None, logger=SimpleLogger(), working_dir=tmp_path, auto_poll=False)
    with pytest.raises(LaunchError):
        controller.start_run(RunConfig())
    assert controller.snapshot().phase is RunPhase.IDLE


def test_exit_keeps_polling_until_total(tmp_path: Path):
    controller = make_controller(tmp_path, auto_poll=False)
    controller.state.reset(total_expected=2, process=None)

    controller.handle(ProcessExited(run_id=0, returncode=1))
    snap = controller.snapshot()
    assert snap.phase is RunPhase.POLLING
    assert snap.is_running is False
    assert snap.exit_code == 1

    controller.handle(PollTick())
    assert controller.snapshot().next_expected_index == 0

    write_frame(tmp_path, 0)
    write_frame(tmp_path, 1)
    controller.handle(PollTick())
    controller.handle(PollTick())
    snap = controller.snapshot()
    assert snap.next_expected_index == 2
    assert snap.phase is RunPhase.IDLE


def test_stale_exit_is_ignored(tmp_path: Path):
    controller = make_controller(tmp_path, auto_poll=False)
    controller.state.reset(total_expected=2, process=None)
    controller.post(ProcessExited(run_id=42, returncode=0))
    assert controller.process_pending() == 1
    snap = controller.snapshot()
    assert snap.is_running is True
    assert snap.phase is RunPhase.RUNNING


def test_every_tick_refreshes_listeners(tmp_path: Path):
    controller = make_controller(tmp_path, auto_poll=False)
    controller.state.reset(total_expected=3, process=None)
    calls = []
    unsubscribe = controller.subscribe(lambda snap, frame: calls.append(frame))

    controller.tick()
    write_frame(tmp_path, 0)
    controller.tick()
    assert len(calls) == 2
    assert calls[0] is None
    assert calls[1].index == 0

    unsubscribe()
    controller.tick()
    assert len(calls) == 2


def test_seek_does_not_move_cursor(tmp_path: Path):
    for i in range(3):
        write_frame(tmp_path, i, value=i * 50)
    controller = make_controller(tmp_path, auto_poll=False)
    snap = controller.adopt_existing(5)
    assert snap.next_expected_index == 3
    assert snap.total_expected == 5

    frame = controller.seek(1)
    assert frame.index == 1
    assert controller.snapshot().displayed_index == 1
    assert controller.snapshot().next_expected_index == 3

    # Clamped to the cursor; frame 3 does not exist yet
    assert controller.seek(10) is None
    assert controller.seek(-4).index == 0
    snap = controller.snapshot()
    assert snap.next_expected_index == 3
    assert snap.total_expected == 5


def test_assemble_in_background_posts_result(tmp_path: Path):
    for i in range(3):
        write_frame(tmp_path, i, value=i * 80)
    controller = make_controller(tmp_path, auto_poll=False)
    controller.adopt_existing(3)
    out = tmp_path / "bg.gif"

    fut = controller.assemble_in_background(out)
    assert fut.result(timeout=60).indices == [0, 1, 2]
    controller.process_pending(timeout=10)
    assert controller.last_assembly is not None
    assert controller.last_assembly.output_path == out
    assert out.exists()
    controller.close()


def test_assembly_failure_is_logged(tmp_path: Path):
    lines = []
    controller = GenerationController(
        None, logger=SimpleLogger(sink=lambda line, style: lines.append(line)), working_dir=tmp_path, auto_poll=False
    )
    controller.handle(AssemblyFinished(result=None, error="OSError: disk full"))
    assert controller.last_assembly is None
    assert any("disk full" in line for line in lines)


def test_unknown_message_is_rejected(tmp_path: Path):
    controller = make_controller(tmp_path, auto_poll=False)
    with pytest.raises(TypeError):
        controller.handle("tick")


def test_filesystem_launch_failure_returns_to_idle(tmp_path: Path, fake_generator: Path, monkeypatch):
    controller = make_controller(tmp_path, auto_poll=False)
    use_fake_generator(controller, fake_generator, monkeypatch)
    (tmp_path / "command_line.txt").mkdir()
    before = controller.snapshot()

    with pytest.raises(LaunchError) as excinfo:
        controller.start_run(RunConfig(count=2))

    assert excinfo.value.os_error is not None
    assert controller.snapshot() == before
    assert controller.snapshot().phase is RunPhase.IDLE


def test_background_assembly_logs_on_controller_thread(tmp_path: Path):
    for i in range(2):
        write_frame(tmp_path, i, value=i * 90)
    (tmp_path / "image_0002.png").write_bytes(b"partial")
    threads = []
    lines = []

    def sink(line, style):
        threads.append(threading.current_thread())
        lines.append(line)

    controller = GenerationController(
        None, logger=SimpleLogger(sink=sink), working_dir=tmp_path, auto_poll=False
    )
    controller.adopt_existing(3)
    threads.clear()

    controller.assemble_in_background(tmp_path / "bg.gif").result(timeout=60)
    assert threads == []

    controller.process_pending(timeout=10)
    assert threads
    assert all(t is threading.current_thread() for t in threads)
    assert any("image_0002.png" in line for line in lines)
    assert controller.last_assembly.frames_written == 2
    controller.close()


def test_posted_calls_run_on_controller_thread(tmp_path: Path):
    controller = make_controller(tmp_path, auto_poll=False)
    seen = []
    poster = threading.Thread(
        target=lambda: controller.post(CallRequested(lambda: seen.append(threading.current_thread())))
    )
    poster.start()
    poster.join()

    assert seen == []
    assert controller.process_pending(timeout=5) == 1
    assert seen == [threading.current_thread()]
