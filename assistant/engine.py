"""Stockfish session over the UCI line protocol.

Owns one long-lived engine process. Provides:
- Stockfish discovery (explicit path, known install paths, PATH)
- The uci / setoption / isready handshake as an explicit state machine
- Multi-PV analysis cycles returning rank-ordered candidates
- quit-then-kill shutdown

Engine output arrives through an asyncio subprocess protocol callback,
is split into complete lines and dispatched to the handler registered
for the current EngineState.
"""

from __future__ import annotations

import asyncio
import codecs
import shutil
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from assistant.errors import (
    AnalysisInProgressError,
    EngineAnalysisTimeout,
    EngineInitTimeout,
    EngineProcessError,
    ProtocolParseSkip,
)
from assistant.log import get_logger
from assistant.models import AnalysisResult, Candidate, EngineState, ScoreKind

if TYPE_CHECKING:
    from assistant.config import AssistantConfig

logger = get_logger(__name__)

# Stockfish search paths in priority order
_STOCKFISH_PATHS = [
    "/opt/homebrew/bin/stockfish",
    "/usr/local/bin/stockfish",
    "/usr/games/stockfish",
    "/usr/bin/stockfish",
]

_SCORE_KINDS = {"cp": ScoreKind.centipawn, "mate": ScoreKind.mate}


def find_stockfish(explicit_path: str | None = None) -> str:
    """Locate the Stockfish binary.

    Args:
        explicit_path: Path or command name given by the operator. When
            set, only this location is tried.

    Returns:
        Path to Stockfish binary.

    Raises:
        EngineProcessError: If Stockfish is not found anywhere.
    """
    if explicit_path:
        if Path(explicit_path).is_file():
            return explicit_path
        which_result = shutil.which(explicit_path)
        if which_result is not None:
            return which_result
        raise EngineProcessError(f"Stockfish not found at {explicit_path}")

    for path_str in _STOCKFISH_PATHS:
        if Path(path_str).is_file():
            return path_str

    which_result = shutil.which("stockfish")
    if which_result is not None:
        return which_result

    raise EngineProcessError(
        "Stockfish not found. Install it or set MOVE_ASSIST_STOCKFISH_PATH."
    )


def parse_info_line(line: str) -> Candidate:
    """Parse a multi-PV ``info`` line into a Candidate.

    Args:
        line: One line of engine output, e.g.
            ``info depth 12 multipv 2 score cp -31 nodes 900 pv d7d5 e4d5``.

    Returns:
        Candidate for the line's rank.

    Raises:
        ProtocolParseSkip: If the line is not an info line, lacks a
            ``multipv`` or ``pv`` tag, or has malformed values.
    """
    tokens = line.split()
    if not tokens or tokens[0] != "info":
        raise ProtocolParseSkip("not an info line")
    if "multipv" not in tokens or "pv" not in tokens:
        raise ProtocolParseSkip("info line without multipv and pv")

    depth: int | None = None
    rank: int | None = None
    score_kind: ScoreKind | None = None
    score_value: int | None = None
    pv: tuple[str, ...] = ()

    try:
        i = 1
        while i < len(tokens):
            token = tokens[i]
            if token == "depth":
                depth = int(tokens[i + 1])
                i += 2
            elif token == "multipv":
                rank = int(tokens[i + 1])
                i += 2
            elif token == "score":
                score_kind = _SCORE_KINDS.get(tokens[i + 1])
                score_value = int(tokens[i + 2])
                i += 3
            elif token == "pv":
                pv = tuple(tokens[i + 1:])
                break
            else:
                i += 1
    except (IndexError, ValueError) as exc:
        raise ProtocolParseSkip(f"malformed info line: {line!r}") from exc

    if rank is None or rank < 1 or not pv:
        raise ProtocolParseSkip("info line without a usable rank or move")

    return Candidate(
        rank=rank,
        move=pv[0],
        depth=depth,
        score_kind=score_kind,
        score_value=score_value,
        pv=pv,
    )


class LineBuffer:
    """Split a byte stream into complete, stripped, non-blank lines.

    A trailing partial line is held back until its newline arrives.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, data: bytes) -> list[str]:
        self._pending += self._decoder.decode(data)
        *complete, self._pending = self._pending.split("\n")
        return [line.strip() for line in complete if line.strip()]


class _EngineProtocol(asyncio.SubprocessProtocol):
    """Forward subprocess events to the owning session.

    Events from a process the session has already abandoned are dropped.
    """

    def __init__(self, session: EngineSession) -> None:
        self._session = session
        self._transport = None

    def connection_made(self, transport) -> None:
        self._transport = transport
        self._session.attach(transport)

    def pipe_data_received(self, fd: int, data: bytes) -> None:
        # stderr (fd 2) is drained and discarded
        if fd == 1 and self._session.owns(self._transport):
            self._session.data_received(data)

    def process_exited(self) -> None:
        if self._session.owns(self._transport):
            self._session.process_exited()


class EngineSession:
    """A Stockfish process driven through the UCI handshake and analysis.

    Only one ``analyze`` call may be in flight; a second one fails fast
    with AnalysisInProgressError.
    """

    def __init__(
        self,
        stockfish_path: str | None = None,
        *,
        depth: int = 10,
        multipv: int = 5,
        init_timeout: float = 15.0,
        quit_grace: float = 1.0,
        analysis_timeout: float | None = None,
    ) -> None:
        """Configure the session; nothing is spawned until ``start``.

        Args:
            stockfish_path: Explicit path to Stockfish binary.
                If None, auto-detects from known locations.
            depth: Search depth for every analysis.
            multipv: Number of ranked lines to request.
            init_timeout: Seconds allowed for the handshake.
            quit_grace: Seconds to wait after ``quit`` before killing.
            analysis_timeout: Optional per-analysis deadline in seconds.
        """
        self._stockfish_path = stockfish_path
        self._depth = depth
        self._multipv = multipv
        self._init_timeout = init_timeout
        self._quit_grace = quit_grace
        self._analysis_timeout = analysis_timeout

        self._state = EngineState.not_started
        self._transport: asyncio.SubprocessTransport | None = None
        self._buffer = LineBuffer()
        self._ready: asyncio.Future | None = None
        self._pending: asyncio.Future | None = None
        self._exited: asyncio.Future | None = None
        self._closing = False
        self._candidates: list[Candidate] = []
        self._handlers: dict[EngineState, Callable[[str], None]] = {
            EngineState.awaiting_handshake_ack: self._on_handshake_line,
            EngineState.awaiting_ready_ack: self._on_ready_line,
            EngineState.analyzing: self._on_analysis_line,
        }

    @classmethod
    def from_config(cls, config: AssistantConfig) -> EngineSession:
        return cls(
            config.stockfish_path,
            depth=config.engine_depth,
            multipv=config.multipv,
            init_timeout=config.engine_init_timeout,
            quit_grace=config.engine_quit_grace,
            analysis_timeout=config.analysis_timeout,
        )

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def candidates(self) -> list[Candidate]:
        """In-flight candidates, in arrival order."""
        return list(self._candidates)

    # ------------------------------------------------------------------
    # Process lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Spawn Stockfish and complete the handshake.

        Raises:
            EngineProcessError: If the binary is missing, cannot be
                spawned, or exits during the handshake.
            EngineInitTimeout: If the engine is not ready in time. The
                process is left running; call ``close`` to stop it.
        """
        if self._state is not EngineState.not_started:
            raise EngineProcessError("Engine session already started")

        self._closing = False
        self._buffer = LineBuffer()
        self._candidates = []
        path = find_stockfish(self._stockfish_path)
        loop = asyncio.get_running_loop()
        try:
            await loop.subprocess_exec(
                lambda: _EngineProtocol(self),
                path,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as exc:
            raise EngineProcessError(f"Could not start Stockfish at {path}: {exc}") from exc

        logger.info("engine_spawned", path=path)
        self.begin_handshake()
        await self.wait_ready()

    async def wait_ready(self) -> None:
        """Wait for the handshake started by ``begin_handshake``."""
        ready = self._ready
        if ready is None:
            raise EngineProcessError("Handshake has not been started")
        try:
            await asyncio.wait_for(asyncio.shield(ready), self._init_timeout)
        except TimeoutError:
            ready.cancel()
            raise EngineInitTimeout(
                f"Stockfish init timed out after {self._init_timeout:g}s"
            ) from None
        logger.info("engine_ready", multipv=self._multipv, depth=self._depth)

    def attach(self, transport: asyncio.SubprocessTransport) -> None:
        """Bind the subprocess transport; called once the pipes are open."""
        self._transport = transport
        self._exited = asyncio.get_running_loop().create_future()

    def owns(self, transport) -> bool:
        return transport is not None and transport is self._transport

    def begin_handshake(self) -> None:
        self._ready = asyncio.get_running_loop().create_future()
        self._state = EngineState.awaiting_handshake_ack
        self._send("uci")

    def process_exited(self) -> None:
        code = self._transport.get_returncode() if self._transport else None
        if self._closing:
            logger.info("engine_exited", code=code)
        else:
            logger.warning("engine_exited_unexpectedly", code=code, state=self._state.value)

        self._state = EngineState.not_started
        error = EngineProcessError(f"Stockfish process exited with code {code}")
        for future in (self._ready, self._pending):
            if future is not None and not future.done():
                future.set_exception(error)
        self._pending = None
        if self._exited is not None and not self._exited.done():
            self._exited.set_result(code)

    async def close(self) -> None:
        """Send ``quit`` and kill the process if it outlives the grace period."""
        transport = self._transport
        if transport is None:
            return
        self._closing = True

        if self._exited is not None and not self._exited.done():
            if self._stdin_writable():
                self._send("quit")
            try:
                await asyncio.wait_for(asyncio.shield(self._exited), self._quit_grace)
            except TimeoutError:
                logger.warning("engine_kill", grace=self._quit_grace)
                try:
                    transport.kill()
                except ProcessLookupError:
                    logger.debug("engine_already_gone")

        transport.close()
        self._transport = None
        self._state = EngineState.not_started

    async def restart(self) -> None:
        """Close whatever process is left and start a fresh one."""
        logger.warning("engine_restart", state=self._state.value)
        await self.close()
        await self.start()

    def _abandon(self) -> None:
        """Kill an engine that stopped answering and forget its process."""
        transport, self._transport = self._transport, None
        self._closing = True
        self._state = EngineState.not_started
        self._pending = None
        if transport is None:
            return
        try:
            transport.kill()
        except ProcessLookupError:
            logger.debug("engine_already_gone")
        transport.close()

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    async def analyze(self, fen: str) -> AnalysisResult:
        """Search ``fen`` to the configured depth.

        Args:
            fen: Position to analyze.

        Returns:
            AnalysisResult with candidates sorted by rank.

        Raises:
            AnalysisInProgressError: If another analysis is in flight.
            EngineProcessError: If the engine is not ready or exits.
            EngineAnalysisTimeout: If ``analysis_timeout`` is set and
                passes first. The search is stopped; if no best move
                follows within the quit grace period the process is
                killed and the session is left not started, ready for
                ``restart``.
        """
        if self._state is EngineState.analyzing:
            raise AnalysisInProgressError("An analysis is already in progress")
        if self._state is not EngineState.idle:
            raise EngineProcessError(f"Engine is not ready (state={self._state.value})")

        pending = asyncio.get_running_loop().create_future()
        self._candidates = []
        self._pending = pending
        self._state = EngineState.analyzing
        self._send("ucinewgame")
        self._send(f"position fen {fen}")
        self._send(f"go depth {self._depth}")

        if self._analysis_timeout is None:
            return await pending

        try:
            return await asyncio.wait_for(asyncio.shield(pending), self._analysis_timeout)
        except TimeoutError:
            pass

        logger.warning("analysis_timeout", timeout=self._analysis_timeout, fen=fen)
        if self._stdin_writable():
            self._send("stop")
        try:
            await asyncio.wait_for(asyncio.shield(pending), self._quit_grace)
        except TimeoutError:
            logger.error("engine_unresponsive", grace=self._quit_grace)
            pending.cancel()
            self._abandon()
        raise EngineAnalysisTimeout(
            f"Analysis did not finish within {self._analysis_timeout:g}s"
        )

    # ------------------------------------------------------------------
    # Line dispatch
    # ------------------------------------------------------------------

    def data_received(self, data: bytes) -> None:
        for line in self._buffer.feed(data):
            self.feed_line(line)

    def feed_line(self, line: str) -> None:
        """Dispatch one complete line to the current state's handler."""
        handler = self._handlers.get(self._state)
        if handler is None:
            logger.debug("engine_line_ignored", line=line, state=self._state.value)
            return
        handler(line)

    def _on_handshake_line(self, line: str) -> None:
        if line != "uciok":
            return
        self._state = EngineState.configuring_options
        self._send(f"setoption name MultiPV value {self._multipv}")
        self._state = EngineState.awaiting_ready_ack
        self._send("isready")

    def _on_ready_line(self, line: str) -> None:
        if line != "readyok":
            return
        self._state = EngineState.idle
        if self._ready is not None and not self._ready.done():
            self._ready.set_result(None)

    def _on_analysis_line(self, line: str) -> None:
        if line.startswith("bestmove"):
            self._finish_analysis(line)
        elif line.startswith("info"):
            try:
                candidate = parse_info_line(line)
            except ProtocolParseSkip:
                return
            self._upsert(candidate)

    def _upsert(self, candidate: Candidate) -> None:
        for idx, existing in enumerate(self._candidates):
            if existing.rank == candidate.rank:
                self._candidates[idx] = candidate
                return
        self._candidates.append(candidate)

    def _finish_analysis(self, line: str) -> None:
        tokens = line.split()
        best_move = tokens[1] if len(tokens) > 1 and tokens[1] != "(none)" else None
        ponder_move = tokens[3] if len(tokens) > 3 and tokens[2] == "ponder" else None
        result = AnalysisResult(
            best_move=best_move,
            candidates=sorted(self._candidates, key=lambda c: c.rank),
            ponder_move=ponder_move,
        )
        self._state = EngineState.idle
        pending, self._pending = self._pending, None
        logger.info("analysis_complete", best_move=best_move, candidates=len(result.candidates))
        if pending is not None and not pending.done():
            pending.set_result(result)

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def _stdin_writable(self) -> bool:
        if self._transport is None:
            return False
        stdin = self._transport.get_pipe_transport(0)
        return stdin is not None and not stdin.is_closing()

    def _send(self, command: str) -> None:
        if not self._stdin_writable():
            raise EngineProcessError(f"Cannot send {command.split()[0]!r}: engine stdin is closed")
        logger.debug("engine_send", command=command)
        self._transport.get_pipe_transport(0).write(f"{command}\n".encode())


__all__ = ["EngineSession", "LineBuffer", "find_stockfish", "parse_info_line"]
