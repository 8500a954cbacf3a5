#!/usr/bin/env python3
"""
ganpanel: launch a StyleGAN generator, watch its frames appear and build a GIF.

Subcommands:
- run: start the generator and follow its output on a live dashboard
- assemble: build the animated GIF from the frames currently on disk
- show: display information about one already generated frame
- check-tools: verify the generator path file and executable
"""

from __future__ import annotations

import argparse
import contextlib
import sys
import threading
import time
from collections.abc import Callable, Sequence
from pathlib import Path

from rich.console import Console, Group
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table

from ..config import AppConfig, GeneratorPaths, RunConfig, create_config_from_env, read_generator_path
from ..core.errors import ConfigLoadError, LaunchError
from ..core.mapping import ModelId, ModelMapper
from ..core.types import AssembleRequested, CallRequested, Frame, RunPhase, RunSnapshot, SeekRequested
from ..output.log_viewer import ScrollableLogViewer
from ..output.logger import SimpleLogger
from ..processing.controller import GenerationController
from ..utils.subprocess import check_tools, pretty_command

console = Console()
err_console = Console(stderr=True)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    p = argparse.ArgumentParser(
        prog="ganpanel",
        description="Launch a StyleGAN generator and assemble its frames into an animated GIF.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument("--path-file", type=Path, help="One-line file holding the generator installation path")
    p.add_argument("--generator-dir", type=Path, help="Generator installation directory (overrides --path-file)")
    sub = p.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Start a generation run", formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    run.add_argument("--seed", type=int, default=5, help="Seed of the first latent")
    run.add_argument("--seed2", type=int, default=841, help="Second seed (smooth z target)")
    run.add_argument("-n", "--num", type=int, default=1, help="Number of images to generate")
    run.add_argument("--start-index", type=int, default=0, help="Index of the first output image")
    mode = run.add_mutually_exclusive_group()
    mode.add_argument("--random-seed", action="store_true", help="Draw a fresh seed for every image")
    mode.add_argument("--smooth-z", action="store_true", help="Interpolate from --seed to --seed2")
    mode.add_argument("--smooth-psi", action="store_true", help="Sweep the truncation psi")
    run.add_argument(
        "-m", "--model", default=ModelId.FFHQ.value, help=f"Model label: {', '.join(m.value for m in ModelId)}"
    )
    run.add_argument("--model-path", type=Path, help="Model directory (defaults to <working dir>/model)")
    run.add_argument("--gif", type=Path, help="Assemble the frames into this GIF when the run completes")
    run.add_argument("--plain", action="store_true", help="Print log lines instead of the live dashboard")

    asm = sub.add_parser("assemble", help="Build the GIF from existing frames")
    asm.add_argument("-n", "--count", type=int, required=True, help="Number of frames the run produced")
    asm.add_argument("-o", "--output", type=Path, help="Output GIF (defaults to animation.gif in the working dir)")

    show = sub.add_parser("show", help="Show one generated frame")
    show.add_argument("index", type=int, help="Frame index")
    show.add_argument("-n", "--count", type=int, required=True, help="Number of frames the run produced")

    sub.add_parser("check-tools", help="Verify the generator installation and exit")
    return p.parse_args(argv)


def build_run_config(args: argparse.Namespace) -> RunConfig:
    """Create a RunConfig from parsed args."""
    return RunConfig(
        seed_start=args.seed,
        seed_end=args.seed2,
        count=args.num,
        start_index=args.start_index,
        random_seed=args.random_seed,
        smooth_z=args.smooth_z,
        smooth_psi=args.smooth_psi,
        model_id=ModelId.from_name(args.model),
        model_base_path=args.model_path,
    )


def load_paths(args: argparse.Namespace, settings: AppConfig, logger: SimpleLogger) -> GeneratorPaths | None:
    """Resolve the generator installation; a missing path file is reported, not fatal."""
    install_dir = args.generator_dir or settings.paths.generator_dir
    if install_dir is None:
        path_file = args.path_file or Path(settings.paths.path_file_name)
        try:
            install_dir = read_generator_path(path_file)
        except ConfigLoadError as e:
            logger.error(str(e))
            return None
    return GeneratorPaths.from_install_dir(install_dir, settings.run.executable_name)


# ------------------------------
# Dashboard
# ------------------------------


class Dashboard:
    """Live view of the run: configuration, progress, current frame and log."""

    def __init__(self, config: RunConfig, command: str, log_viewer: ScrollableLogViewer) -> None:
        self.config = config
        self.command = command
        self.log_viewer = log_viewer
        self.snapshot: RunSnapshot | None = None
        self.frame: Frame | None = None
        self.t0 = time.time()

    def update(self, snapshot: RunSnapshot, frame: Frame | None) -> None:
        self.snapshot = snapshot
        if frame is not None:
            self.frame = frame

    def header(self) -> Panel:
        table = Table(show_header=False, box=None, padding=(0, 1))
        table.add_column(style="dim")
        table.add_column()
        table.add_row("Model:", self.config.model_id.value)
        table.add_row("Seeds:", f"{self.config.seed_start} -> {self.config.seed_end}")
        mode = "random seed" if self.config.random_seed else "smooth z" if self.config.smooth_z else (
            "smooth psi" if self.config.smooth_psi else "single")
        table.add_row("Mode:", mode)
        table.add_row("Command:", self.command)
        return Panel(table, title="[bold cyan]Run Configuration[/bold cyan]", border_style="cyan", title_align="left")

    def status(self) -> Panel:
        snap = self.snapshot
        if snap is None:
            return Panel("launching...", title="[cyan]Status[/]", border_style="cyan")
        bar = ProgressBar(total=max(1, snap.total_expected), completed=snap.next_expected_index)
        process = "running" if snap.is_running else f"exited ({snap.exit_code})"
        lines = [
            f"Frames: {snap.next_expected_index}/{snap.total_expected} | Phase: {snap.phase.value} | "
            f"Generator: {process} | Elapsed: {time.time() - self.t0:.1f}s",
        ]
        if self.frame is not None:
            lines.append(f"Current: #{self.frame.index:04d} {self.frame.path.name} ({self.frame.width}x{self.frame.height})")
        lines.append("[dim]Controls: 's N' seek | 'g' make GIF | 'u'/'d'/'t'/'b' scroll log | 'q' quit[/dim]")
        return Panel(Group(bar, *lines), title="[cyan]Status[/]", border_style="cyan")

    def __rich__(self) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(self.header(), name="header", size=8),
            Layout(self.status(), name="status", size=6),
            Layout(self.log_viewer.get_panel(title="Log"), name="log", ratio=1),
        )
        return layout


def start_controls_listener(
    controller: GenerationController,
    log_viewer: ScrollableLogViewer,
    stop_event: threading.Event,
    gif_path: Path | None,
) -> threading.Thread:
    """Read simple line commands from stdin and forward them to the controller queue.

    Everything that touches the dashboard is posted, so it runs on the
    controller thread.
    """
    scrolls = {
        "u": lambda: log_viewer.scroll_up(5),
        "d": lambda: log_viewer.scroll_down(5),
        "t": log_viewer.scroll_to_top,
        "b": log_viewer.scroll_to_bottom,
    }

    def _reader() -> None:
        while not stop_event.is_set():
            line = sys.stdin.readline()
            if not line:
                break
            cmd, _, rest = line.strip().lower().partition(" ")
            if cmd == "s" and rest.strip().isdigit():
                controller.post(SeekRequested(int(rest)))
            elif cmd == "g":
                controller.post(AssembleRequested(gif_path))
            elif cmd in scrolls:
                controller.post(CallRequested(scrolls[cmd]))
            elif cmd == "q":
                stop_event.set()

    t = threading.Thread(target=_reader, name="controls-listener", daemon=True)
    t.start()
    return t


def follow_run(
    controller: GenerationController,
    stop_event: threading.Event,
    interval: float,
    refresh: Callable[[], None] | None = None,
) -> None:
    """Drain controller messages until the run completes or a stop is requested.

    ``refresh`` redraws the dashboard after each batch, on this thread.
    """
    while not stop_event.is_set():
        controller.process_pending(timeout=interval)
        if refresh is not None:
            refresh()
        if controller.snapshot().phase is RunPhase.IDLE:
            break


# ------------------------------
# Subcommands
# ------------------------------


def cmd_run(args: argparse.Namespace, settings: AppConfig) -> int:
    try:
        config = build_run_config(args)
    except ValueError as e:
        err_console.print(f"[bold red]Invalid run configuration:[/] {e}")
        return 1

    boot_logger = SimpleLogger()
    paths = load_paths(args, settings, boot_logger)
    if paths is None:
        err_console.print("[bold red]Cannot launch:[/] generator path is not configured")
        return 1

    log_viewer = ScrollableLogViewer()
    logger = SimpleLogger(
        log_file=paths.working_dir / "ganpanel.log" if paths.working_dir.is_dir() else None,
        sink=None if args.plain else log_viewer.add_log,
    )
    controller = GenerationController(paths, settings=settings, logger=logger)

    try:
        command, _ = controller.build_command(config)
    except LaunchError as e:
        err_console.print(f"[bold red]Cannot launch:[/] {e}")
        return 1
    dashboard = Dashboard(config, pretty_command(command), log_viewer)
    controller.subscribe(dashboard.update)

    stop_ev = threading.Event()
    t0 = time.time()
    try:
        live = None if args.plain else Live(dashboard, console=console, auto_refresh=False)
        with live if live is not None else contextlib.nullcontext():
            try:
                built = controller.start_run(config)
            except LaunchError as e:
                err_console.print(f"[bold red]Launch failed:[/] {e}")
                return 1
            if built.corrected:
                console.print(f"[yellow]{built.warning}[/]")
            if not args.plain and sys.stdin and sys.stdin.isatty():
                start_controls_listener(controller, log_viewer, stop_ev, args.gif)
            follow_run(controller, stop_ev, settings.poll.interval_sec, live.refresh if live is not None else None)
    except KeyboardInterrupt:
        err_console.print("Interrupted.")
        stop_ev.set()

    if stop_ev.is_set():
        controller.cancel()

    snap = controller.snapshot()
    result = None
    if args.gif is not None and snap.seek_enabled:
        result = controller.assemble(args.gif)
    controller.close()

    summary = Table(show_header=False, box=None, padding=(0, 1))
    summary.add_column(style="dim")
    summary.add_column()
    summary.add_row("Frames:", f"{snap.next_expected_index}/{snap.total_expected}")
    summary.add_row("Generator:", "running" if snap.is_running else f"exited ({snap.exit_code})")
    summary.add_row("Total Time:", f"{time.time() - t0:.1f}s")
    if result is not None:
        summary.add_row("GIF:", f"{result.output_path} ({len(result)} frames)" if result.written else "not written")
    console.print(Panel(summary, title="[bold cyan]Summary[/bold cyan]", border_style="cyan", title_align="left"))

    return 0 if snap.next_expected_index >= snap.total_expected else 1


def cmd_assemble(args: argparse.Namespace, settings: AppConfig) -> int:
    logger = SimpleLogger()
    paths = load_paths(args, settings, logger)
    controller = GenerationController(paths, settings=settings, logger=logger, auto_poll=False)
    controller.adopt_existing(args.count)
    result = controller.assemble(args.output)
    return 0 if result.written else 1


def cmd_show(args: argparse.Namespace, settings: AppConfig) -> int:
    logger = SimpleLogger()
    paths = load_paths(args, settings, logger)
    controller = GenerationController(paths, settings=settings, logger=logger, auto_poll=False)
    snap = controller.adopt_existing(args.count)
    if not snap.seek_enabled:
        logger.warning("Seeking needs a run of more than one frame")
        return 1
    frame = controller.seek(args.index)
    if frame is None:
        logger.error(f"Frame {args.index} is not available ({snap.next_expected_index} frames on disk)")
        return 1

    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column(style="dim")
    table.add_column()
    table.add_row("Index:", str(frame.index))
    table.add_row("File:", str(frame.path))
    table.add_row("Size:", f"{frame.width}x{frame.height}")
    table.add_row("Mean RGB:", ", ".join(f"{v:.1f}" for v in frame.pixels.reshape(-1, 3).mean(axis=0)))
    console.print(Panel(table, title=f"[bold cyan]Frame {frame.index}[/bold cyan]", border_style="cyan", title_align="left"))
    return 0


def cmd_check_tools(args: argparse.Namespace, settings: AppConfig) -> int:
    logger = SimpleLogger()
    paths = load_paths(args, settings, logger)
    ok, problems = check_tools(paths.executable if paths else None)
    if paths is not None:
        logger.table(
            ["Item", "Path"],
            [["Executable", str(paths.executable)], ["Working dir", str(paths.working_dir)], ["Models", str(paths.model_dir)]],
        )
    for row in ModelMapper.shadowed_rows():
        logger.warning(f"Model mapping row '{row.label}' -> {row.filename} is shadowed by a later row")
    if ok:
        console.print("[bold green]Tools OK:[/] generator")
        return 0
    for p in problems:
        err_console.print(f"[bold red]Missing:[/] {p}")
    return 1


COMMANDS = {
    "run": cmd_run,
    "assemble": cmd_assemble,
    "show": cmd_show,
    "check-tools": cmd_check_tools,
}


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point."""
    args = parse_args(argv)
    settings = create_config_from_env()
    return COMMANDS[args.command](args, settings)


if __name__ == "__main__":
    sys.exit(main())
