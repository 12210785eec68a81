"""Command-line entry point for Move Assist.

Attaches to a browser started with remote debugging, finds the chess.com
tab, starts Stockfish, waits for the board and then runs the poll loop
until the game ends or the operator interrupts.

Launch: move-assist [--depth 12] [--multipv 5] [--color auto]
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import signal
import sys

from assistant.browser import BrowserPageLocator, connect_browser
from assistant.config import AssistantConfig, load_config, normalize_player_color, parse_weights
from assistant.display import ConsoleDisplay
from assistant.engine import EngineSession
from assistant.errors import AssistantError, BrowserConnectionError, ConfigError
from assistant.log import get_logger, setup_logging
from assistant.orchestrator import SessionOrchestrator, StatusKind
from assistant.scanner import wait_for_board

logger = get_logger(__name__)

_LAUNCH_HELP = (
    "  Step 1: Close ALL browser windows completely",
    "  Step 2: Run one of these commands in a NEW terminal:",
    "",
    '  Edge:   msedge --remote-debugging-port={port}',
    '  Chrome: chrome --remote-debugging-port={port}',
    "",
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="move-assist",
        description="Suggest moves for a live chess.com game using Stockfish",
    )
    parser.add_argument("--depth", type=int, dest="engine_depth", help="Search depth")
    parser.add_argument("--multipv", type=int, help="Number of candidate lines")
    parser.add_argument(
        "--weights", type=parse_weights, dest="move_weights",
        help="Comma separated rank weights, e.g. 60,25,10,3,2",
    )
    parser.add_argument("--poll-interval", type=int, dest="poll_interval_ms",
                        help="Poll interval in milliseconds")
    parser.add_argument("--color", type=normalize_player_color, dest="player_color",
                        help="auto, white or black")
    parser.add_argument("--port", type=int, dest="debugging_port",
                        help="Browser remote debugging port")
    parser.add_argument("--stockfish", dest="stockfish_path", help="Path to Stockfish")
    parser.add_argument("--analysis-timeout", type=float, dest="analysis_timeout",
                        help="Seconds before an analysis is abandoned")
    parser.add_argument("--no-board", dest="show_board", action="store_false", default=None)
    parser.add_argument("--no-candidates", dest="show_candidates", action="store_false", default=None)
    parser.add_argument("--no-eval", dest="show_evaluation", action="store_false", default=None)
    parser.add_argument("--log-level", dest="log_level", help="DEBUG, INFO, WARNING or ERROR")
    return parser


def apply_args(config: AssistantConfig, args: argparse.Namespace) -> AssistantConfig:
    """Override ``config`` with every flag the operator actually passed."""
    fields = {f.name for f in dataclasses.fields(AssistantConfig)}
    overrides = {
        key: value for key, value in vars(args).items()
        if key in fields and value is not None
    }
    return dataclasses.replace(config, **overrides)


async def run(config: AssistantConfig, display: ConsoleDisplay) -> int:
    """Start everything up and run the loop; return the exit status."""
    display.clear()
    display.status("Connecting to browser...", StatusKind.info)
    display.status(
        f"Looking for browser on debugging port {config.debugging_port}...", StatusKind.info
    )
    try:
        driver = await asyncio.to_thread(connect_browser, config.debugging_port)
    except BrowserConnectionError as exc:
        logger.error("startup_failed", step="browser", error=str(exc))
        display.status("Could not connect to browser.", StatusKind.error)
        display.status("Please launch your browser with remote debugging enabled:", StatusKind.warning)
        for line in _LAUNCH_HELP:
            display.console.print(line.format(port=config.debugging_port))
        display.status("Then navigate to chess.com, start a game, and run move-assist again.",
                       StatusKind.info)
        return 1
    display.status("Connected!", StatusKind.success)

    locator = BrowserPageLocator(driver)
    try:
        page = await locator.find_game_page()
    except AssistantError as exc:
        logger.error("startup_failed", step="page", error=str(exc))
        display.status(str(exc), StatusKind.error)
        return 1
    display.status(f"Found chess.com tab: {page.identity}", StatusKind.success)

    stop_event = asyncio.Event()
    main_task = asyncio.current_task()
    orchestrator: SessionOrchestrator | None = None

    def _interrupt() -> None:
        display.status("Interrupted. Shutting down...", StatusKind.warning)
        # a second interrupt, or one during startup, cancels outright
        if (stop_event.is_set() or orchestrator is None) and main_task is not None:
            main_task.cancel()
        stop_event.set()

    loop = asyncio.get_running_loop()
    handled: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _interrupt)
            handled.append(sig)
        except (NotImplementedError, RuntimeError):
            # Windows: asyncio.run cancels the main task on Ctrl+C instead
            logger.debug("signal_handler_unavailable", signal=sig.name)

    display.status("Initializing Stockfish engine...", StatusKind.info)
    engine = EngineSession.from_config(config)
    try:
        try:
            await engine.start()
        except AssistantError as exc:
            logger.error("startup_failed", step="engine", error=str(exc))
            display.status(f"Failed to initialize Stockfish: {exc}", StatusKind.error)
            return 1
        display.status("Stockfish engine ready!", StatusKind.success)

        display.status("Waiting for chess board to load...", StatusKind.scanning)
        try:
            await wait_for_board(page, config.board_wait_timeout)
        except AssistantError as exc:
            logger.error("startup_failed", step="board", error=str(exc))
            display.status("Chess board not found. Is a game in progress?", StatusKind.error)
            return 1
        display.status("Chess board detected!", StatusKind.success)

        orchestrator = SessionOrchestrator(
            config, engine, locator, page, display, stop_event=stop_event
        )
        await orchestrator.run()
        return 0
    except asyncio.CancelledError:
        return 0
    finally:
        for sig in handled:
            loop.remove_signal_handler(sig)
        await engine.close()
        display.status("Engine stopped. Goodbye!", StatusKind.info)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for move-assist."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = apply_args(load_config(), args).validate()
    except ConfigError as exc:
        parser.error(str(exc))

    setup_logging(config.log_level)
    display = ConsoleDisplay(
        show_candidates=config.show_candidates,
        show_evaluation=config.show_evaluation,
        show_board=config.show_board,
    )

    try:
        status = asyncio.run(run(config, display))
    except KeyboardInterrupt:
        status = 0
    sys.exit(status)


if __name__ == "__main__":
    main()
