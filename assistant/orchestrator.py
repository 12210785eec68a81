"""Poll loop tying the scanner, engine, selector and display together."""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from assistant.config import AssistantConfig
from assistant.engine import EngineSession
from assistant.errors import AssistantError, is_connection_lost
from assistant.log import get_logger
from assistant.models import AnalysisResult, BoardState, EngineState, Suggestion
from assistant.scanner import Surface, detect_game_end, scan_board
from assistant.selector import select_candidate

logger = get_logger(__name__)

_SWITCH_PAUSE = 1.0


class StatusKind(str, Enum):
    info = "info"
    success = "success"
    warning = "warning"
    error = "error"
    waiting = "waiting"
    scanning = "scanning"


class PageLocator(Protocol):
    async def find_game_page(self) -> Surface:
        """Return the best chess.com page, raising PageNotFoundError if none."""
        ...


class PresentationSink(Protocol):
    def status(self, message: str, kind: StatusKind = StatusKind.info) -> None: ...

    def suggestion(self, suggestion: Suggestion, fen: str) -> None: ...

    def game_end(self, result: str | None) -> None: ...

    def clear(self) -> None: ...


@dataclass
class SessionContext:
    """Per-game state owned by the orchestrator."""

    page_id: str
    last_fen: str | None = None
    move_number: int = 0
    stale_polls: int = 0
    last_suggestion: Suggestion | None = None

    def reset(self, page_id: str) -> None:
        self.page_id = page_id
        self.last_fen = None
        self.move_number = 0
        self.stale_polls = 0
        self.last_suggestion = None


class SessionOrchestrator:
    """Watch a page, analyze new positions and surface suggestions.

    ``run`` loops until the game ends, reconnection fails, or ``stop``
    is called.
    """

    def __init__(
        self,
        config: AssistantConfig,
        engine: EngineSession,
        locator: PageLocator,
        surface: Surface,
        sink: PresentationSink,
        *,
        rng: random.Random | None = None,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        self._config = config
        self._engine = engine
        self._locator = locator
        self._surface = surface
        self._sink = sink
        self._rng = rng or random.Random()
        self._stop = stop_event or asyncio.Event()
        self.context = SessionContext(page_id=surface.identity)

    @property
    def surface(self) -> Surface:
        return self._surface

    def stop(self) -> None:
        self._stop.set()

    async def _sleep(self, seconds: float) -> bool:
        """Sleep unless stopped; return True if the stop signal fired."""
        try:
            await asyncio.wait_for(self._stop.wait(), seconds)
        except TimeoutError:
            return False
        return True

    async def run(self) -> None:
        self._sink.status("Game loop started! Watching for moves...", StatusKind.success)
        while not self._stop.is_set():
            try:
                if not await self.poll_once():
                    break
            except Exception as exc:
                if is_connection_lost(exc):
                    if not await self._reconnect(exc):
                        break
                    continue
                logger.error("poll_failed", error=str(exc), error_type=type(exc).__name__)
                self._sink.status(f"Error: {exc}", StatusKind.error)
                if await self._sleep(self._config.poll_interval * 2):
                    break
        logger.info("loop_stopped", moves=self.context.move_number)

    async def poll_once(self) -> bool:
        """Run one iteration of the loop; return False when it should end."""
        ctx = self.context
        if ctx.stale_polls >= self._config.stale_poll_threshold:
            if await self._check_for_new_page():
                return not await self._sleep(_SWITCH_PAUSE)

        state = await scan_board(self._surface, self._config.player_color)

        if ctx.move_number > 0:
            game_end = await detect_game_end(self._surface)
            if game_end.ended:
                logger.info("game_ended", result=game_end.result, moves=ctx.move_number)
                self._sink.clear()
                self._sink.game_end(game_end.result)
                return False

        if state.fen == ctx.last_fen:
            ctx.stale_polls += 1
            return not await self._sleep(self._config.poll_interval)

        ctx.stale_polls = 0
        ctx.last_fen = state.fen
        ctx.move_number += 1

        if state.is_my_turn:
            try:
                await self._suggest(state)
            except Exception:
                # forget the position so the next poll analyzes it again
                ctx.last_fen = None
                ctx.move_number -= 1
                raise
        else:
            if ctx.last_suggestion is None:
                self._sink.clear()
            self._sink.status(
                f"Move {ctx.move_number} - Opponent's turn. Waiting...",
                StatusKind.waiting,
            )

        return not await self._sleep(self._config.poll_interval)

    async def _suggest(self, state: BoardState) -> None:
        ctx = self.context
        self._sink.clear()
        self._sink.status(
            f"Move {ctx.move_number} - Your turn ({state.player_side.label})",
            StatusKind.info,
        )
        if self._engine.state is EngineState.not_started:
            self._sink.status("Restarting Stockfish...", StatusKind.warning)
            await self._engine.restart()
        self._sink.status("Analyzing position with Stockfish...", StatusKind.scanning)

        analysis = await self._analyze(state.fen)
        if analysis is None:
            return
        if not analysis.candidates:
            logger.warning("no_candidates", fen=state.fen, best_move=analysis.best_move)
            self._sink.status("No valid moves found!", StatusKind.error)
            return

        suggestion = select_candidate(
            analysis.candidates, self._config.move_weights, rng=self._rng
        )
        logger.info(
            "suggestion",
            move=suggestion.move,
            rank=suggestion.rank,
            evaluation=suggestion.evaluation,
            fen=state.fen,
        )
        self._sink.clear()
        self._sink.suggestion(suggestion, state.fen)
        ctx.last_suggestion = suggestion
        self._sink.status(
            "Make this move on the board, then wait for opponent...",
            StatusKind.waiting,
        )

    async def _analyze(self, fen: str) -> AnalysisResult | None:
        """Analyze ``fen``, giving up with None if stop fires first."""
        analysis = asyncio.ensure_future(self._engine.analyze(fen))
        stopped = asyncio.ensure_future(self._stop.wait())
        try:
            done, _ = await asyncio.wait(
                {analysis, stopped}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            stopped.cancel()
            if not analysis.done():
                analysis.cancel()
        if analysis not in done:
            logger.info("analysis_abandoned", fen=fen)
            return None
        return analysis.result()

    async def _check_for_new_page(self) -> bool:
        """Look for a different game tab; return True if we switched."""
        ctx = self.context
        self._sink.status("Board seems stale. Checking for new game tabs...", StatusKind.scanning)
        try:
            page = await self._locator.find_game_page()
        except AssistantError as exc:
            logger.warning("page_lookup_failed", error=str(exc))
            self._sink.status(f"Page lookup failed: {exc}", StatusKind.warning)
            ctx.stale_polls = 0
            return False

        if page.identity != ctx.page_id:
            self._surface = page
            ctx.reset(page.identity)
            logger.info("page_switched", page=page.identity)
            self._sink.status(f"Switched to new game: {page.identity}", StatusKind.success)
            return True

        ctx.stale_polls = 0
        return False

    async def _reconnect(self, exc: BaseException) -> bool:
        """Find the game tab again after a lost connection."""
        ctx = self.context
        logger.warning("connection_lost", error=str(exc))
        self._sink.status("Connection lost. Looking for game tab...", StatusKind.warning)
        try:
            page = await self._locator.find_game_page()
        except AssistantError as lookup_exc:
            logger.error("reconnect_failed", error=str(lookup_exc))
            self._sink.status("Could not reconnect. Exiting.", StatusKind.error)
            return False

        if page.identity != ctx.page_id:
            ctx.reset(page.identity)
        else:
            ctx.last_fen = None
            ctx.stale_polls = 0
        self._surface = page
        logger.info("reconnected", page=page.identity)
        self._sink.status("Reconnected!", StatusKind.success)
        return True


__all__ = [
    "PageLocator",
    "PresentationSink",
    "SessionContext",
    "SessionOrchestrator",
    "StatusKind",
]
