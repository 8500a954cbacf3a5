"""
Generation-run controller.

Owns the RunState of the current run. Timer ticks, generator exit
notifications and background assembly results arrive as messages on a single
queue and are handled one at a time on the thread that drains it, so RunState
is never mutated concurrently. Listeners receive read-only snapshots.
"""

from __future__ import annotations

import concurrent.futures as futures
import queue
from pathlib import Path
from typing import Callable, Optional

from ..config import AppConfig, GeneratorPaths, RunConfig, app_config
from ..core.errors import LaunchError
from ..core.types import (
    AssembleRequested,
    AssemblyFinished,
    AssemblyResult,
    BuiltArguments,
    CallRequested,
    Frame,
    PollTick,
    ProcessExited,
    RunPhase,
    RunSnapshot,
    RunState,
    SeekRequested,
)
from ..output.logger import SimpleLogger
from ..utils.timer import RecurringTask
from .args import ArgumentBuilder
from .image import decode_frame, existing_frame_indices
from .launcher import LaunchHandle, RunLauncher
from .poller import OutputPoller
from .sequence import SequenceAssembler

Listener = Callable[[RunSnapshot, Optional[Frame]], None]


class GenerationController:
    """Runs the generator and tracks its output for the display layer."""

    def __init__(
        self,
        paths: GeneratorPaths | None,
        settings: AppConfig | None = None,
        logger: SimpleLogger | None = None,
        working_dir: Path | None = None,
        auto_poll: bool = True,
    ) -> None:
        self.paths = paths
        self.settings = settings or app_config
        self.logger = logger or SimpleLogger()
        self.auto_poll = auto_poll

        run = self.settings.run
        self.builder = ArgumentBuilder(run.min_smoothing_count, run.corrected_count, logger=self.logger)
        self.launcher = RunLauncher(
            max_scan_index=self.settings.poll.max_scan_index,
            frame_pattern=run.frame_pattern,
            command_log_name=run.command_log_name,
            process_log_name=run.process_log_name,
            logger=self.logger,
        )
        self.poller = OutputPoller(frame_pattern=run.frame_pattern)
        self.assembler = SequenceAssembler(
            frame_duration_ms=self.settings.assembly.frame_duration_ms,
            loop=self.settings.assembly.loop,
            frame_pattern=run.frame_pattern,
            logger=self.logger,
        )
        # Runs on the worker thread; reports through AssemblyFinished instead
        self.background_assembler = SequenceAssembler(
            frame_duration_ms=self.settings.assembly.frame_duration_ms,
            loop=self.settings.assembly.loop,
            frame_pattern=run.frame_pattern,
        )

        if working_dir is None:
            working_dir = paths.working_dir if paths is not None else Path.cwd()
        self.state = RunState(working_dir=Path(working_dir))
        self.current_frame: Frame | None = None
        self.last_assembly: AssemblyResult | None = None

        self.events: queue.Queue = queue.Queue()
        self._listeners: list[Listener] = []
        self._handle: LaunchHandle | None = None
        self._run_id = 0
        self._timer: RecurringTask | None = None
        self._pool: futures.ThreadPoolExecutor | None = None

    # ------------------------------
    # Listeners
    # ------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def snapshot(self) -> RunSnapshot:
        return self.state.snapshot()

    def _notify(self, frame: Frame | None = None) -> None:
        snap = self.state.snapshot()
        for listener in list(self._listeners):
            listener(snap, frame)

    # ------------------------------
    # Run start
    # ------------------------------

    def build_command(self, config: RunConfig) -> tuple[list[str], BuiltArguments]:
        """Return the full generator command and the built arguments."""
        if self.paths is None:
            raise LaunchError("Generator path is not configured")
        model_dir = config.model_base_path or self.paths.model_dir
        built = self.builder.build(config, model_dir)
        return [str(self.paths.executable), *built.args], built

    def start_run(self, config: RunConfig) -> BuiltArguments:
        """
        Launch a new run, replacing the state of any previous one.

        Raises:
            LaunchError: If the generator cannot be started; RunState is left
                as it was
        """
        previous_phase = self.state.phase
        self.state.phase = RunPhase.LAUNCHING
        try:
            command, built = self.build_command(config)
            run_id = self._run_id + 1
            handle = self.launcher.launch(
                command,
                self.state.working_dir,
                on_exit=lambda rc: self.events.put(ProcessExited(run_id=run_id, returncode=rc)),
            )
        except LaunchError as e:
            self.state.phase = previous_phase
            self.logger.error(str(e))
            self._notify()
            raise

        self._run_id = run_id
        self._handle = handle
        self.current_frame = None
        self.state.reset(built.count, handle.process)
        self.logger.info(f"Run {run_id}: expecting {built.count} frames in {self.state.working_dir}")
        if self.auto_poll:
            self._start_timer()
        self._notify()
        return built

    def _start_timer(self) -> None:
        if self._timer is None:
            self._timer = RecurringTask(
                self.settings.poll.interval_sec, lambda: self.events.put(PollTick()), name="poll-timer"
            )
        self._timer.start()

    def _stop_timer(self) -> None:
        if self._timer is not None:
            self._timer.stop()

    @property
    def polling(self) -> bool:
        return self._timer is not None and self._timer.is_active

    # ------------------------------
    # Event queue
    # ------------------------------

    def post(self, message: object) -> None:
        self.events.put(message)

    def process_pending(self, timeout: float | None = None) -> int:
        """Handle queued messages in order; returns how many were handled.

        With a timeout, waits up to that long for the first message.
        """
        handled = 0
        try:
            message = self.events.get(timeout=timeout) if timeout else self.events.get_nowait()
        except queue.Empty:
            return 0
        while True:
            self.handle(message)
            handled += 1
            try:
                message = self.events.get_nowait()
            except queue.Empty:
                return handled

    def handle(self, message: object) -> None:
        if isinstance(message, PollTick):
            self.tick()
        elif isinstance(message, ProcessExited):
            self._on_process_exited(message)
        elif isinstance(message, AssemblyFinished):
            self._on_assembly_finished(message)
        elif isinstance(message, SeekRequested):
            self.seek(message.index)
        elif isinstance(message, AssembleRequested):
            self.assemble_in_background(message.output_path)
        elif isinstance(message, CallRequested):
            message.callback()
        else:
            raise TypeError(f"Unknown controller message: {message!r}")

    # ------------------------------
    # Message handlers
    # ------------------------------

    def tick(self) -> Frame | None:
        """One poll step; listeners are refreshed whatever the outcome."""
        frame = self.poller.tick(self.state)
        if frame is not None:
            self.current_frame = frame
            self.logger.progress(self.state.next_expected_index, self.state.total_expected, frame.path.name)

        if self.state.is_complete and self.state.phase in (RunPhase.RUNNING, RunPhase.POLLING):
            self.state.phase = RunPhase.IDLE
            self._stop_timer()
            self.logger.success(f"Run {self._run_id} complete: {self.state.total_expected} frames")

        self._notify(frame)
        return frame

    def _on_process_exited(self, message: ProcessExited) -> None:
        if message.run_id != self._run_id:
            self.logger.info(f"Generator from run {message.run_id} exited with code {message.returncode}")
            return
        self.state.is_running = False
        self.state.exit_code = message.returncode
        if self.state.phase is RunPhase.RUNNING:
            self.state.phase = RunPhase.POLLING
        self.logger.info(
            f"Generator exited with code {message.returncode} "
            f"({self.state.next_expected_index}/{self.state.total_expected} frames seen)"
        )
        self._notify()

    def _on_assembly_finished(self, message: AssemblyFinished) -> None:
        if message.error is not None:
            self.logger.error(f"GIF assembly failed: {message.error}")
        else:
            self.last_assembly = message.result
            self.assembler.report(message.result, self.logger)
        self._notify()

    # ------------------------------
    # User operations
    # ------------------------------

    def adopt_existing(self, count: int) -> RunSnapshot:
        """Track frames left on disk by an earlier run without launching anything."""
        present = existing_frame_indices(
            self.state.working_dir, min(count, self.settings.poll.max_scan_index), self.settings.run.frame_pattern
        )
        self.state.total_expected = count
        self.state.next_expected_index = len(present)
        return self.state.snapshot()

    def seek(self, index: int) -> Frame | None:
        """Display an already produced frame without moving the cursor."""
        index = max(0, min(index, self.state.next_expected_index))
        frame = decode_frame(self.state.working_dir, index, self.settings.run.frame_pattern)
        if frame is not None:
            self.current_frame = frame
            self.state.displayed_index = index
        self._notify(frame)
        return frame

    def assemble(self, output_path: Path | None = None) -> AssemblyResult:
        """Build the GIF from the frames present right now."""
        result = self.assembler.assemble(self.state.working_dir, self.state.total_expected, output_path)
        self.last_assembly = result
        return result

    def assemble_in_background(self, output_path: Path | None = None) -> futures.Future:
        """Assemble on a worker thread; the result comes back as an AssemblyFinished message."""
        if self._pool is None:
            self._pool = futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix="gif-assembly")
        working_dir = self.state.working_dir
        total = self.state.total_expected
        fut = self._pool.submit(self.background_assembler.assemble, working_dir, total, output_path)

        def done(f: futures.Future) -> None:
            try:
                self.events.put(AssemblyFinished(result=f.result()))
            except Exception as ex:
                self.events.put(AssemblyFinished(result=None, error=f"{type(ex).__name__}: {ex}"))

        fut.add_done_callback(done)
        return fut

    def cancel(self) -> None:
        """Stop polling and terminate the generator if it is still running."""
        self._stop_timer()
        if self._handle is not None and self._handle.poll() is None:
            code = RunLauncher.terminate(self._handle)
            self.logger.warning(f"Generator terminated (code {code})")
        if self.state.phase is not RunPhase.IDLE:
            self.state.phase = RunPhase.IDLE
            self._notify()

    def close(self) -> None:
        self._stop_timer()
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None
