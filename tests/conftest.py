"""Shared test fixtures with dual-mode support (fakes vs real Stockfish).

Usage:
    pytest tests/                  # Fast, fake page and fake engine pipes
    pytest tests/ --e2e            # Also run tests against real Stockfish

Helpers:
    FakeSurface    - In-memory page answering the scanner's queries.
    FakeTransport  - Subprocess transport recording what the engine is sent.
    RecordingSink  - Presentation sink that keeps every event.
    raw_pieces     - Builds the page's raw piece records from a FEN.
"""

from __future__ import annotations

import chess
import pytest

from assistant import scanner
from assistant.orchestrator import StatusKind

GAME_URL = "https://www.chess.com/game/live/12345"


# ---------------------------------------------------------------------------
# CLI option and marker registration
# ---------------------------------------------------------------------------


def pytest_addoption(parser):
    """Register --e2e CLI flag for real Stockfish tests."""
    parser.addoption(
        "--e2e",
        action="store_true",
        default=False,
        help="Run with real Stockfish engine (no fakes).",
    )


def pytest_configure(config):
    """Register the e2e marker."""
    config.addinivalue_line(
        "markers", "e2e: mark test as end-to-end (requires real Stockfish)"
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--e2e"):
        return
    skip_e2e = pytest.mark.skip(reason="needs --e2e and a Stockfish binary")
    for item in items:
        if "e2e" in item.keywords:
            item.add_marker(skip_e2e)


# ---------------------------------------------------------------------------
# Page fakes
# ---------------------------------------------------------------------------


def raw_pieces(fen: str = chess.STARTING_FEN) -> list[dict]:
    """Return ``{pieceType, squareNum}`` records as the page reports them."""
    board = chess.BaseBoard(fen.split()[0])
    records = []
    for square, piece in board.piece_map().items():
        color = "w" if piece.color == chess.WHITE else "b"
        records.append({
            "pieceType": f"{color}{piece.symbol().lower()}",
            "squareNum": f"{chess.square_file(square) + 1}{chess.square_rank(square) + 1}",
        })
    return records


class FakeSurface:
    """A page whose board, move list and modal are plain attributes."""

    def __init__(
        self,
        identity: str = GAME_URL,
        *,
        pieces: list[dict] | None = None,
        moves: list[str] | None = None,
        flipped: bool = False,
        game_end: dict | None = None,
        board_present: bool = True,
    ) -> None:
        self._identity = identity
        self.pieces = raw_pieces() if pieces is None else pieces
        self.moves = list(moves or [])
        self.flipped = flipped
        self.game_end = game_end or {"ended": False, "text": None}
        self.board_present = board_present
        self.error: BaseException | None = None
        self.scripts: list[str] = []
        self.waits: list[tuple[str, float]] = []

    @property
    def identity(self) -> str:
        return self._identity

    async def evaluate(self, script: str):
        self.scripts.append(script)
        if self.error is not None:
            raise self.error
        if script == scanner._SNAPSHOT_SCRIPT:
            return {
                "pieces": [dict(record) for record in self.pieces],
                "flipped": self.flipped,
                "moves": list(self.moves),
            }
        if script == scanner._GAME_END_SCRIPT:
            return dict(self.game_end)
        raise AssertionError(f"unexpected script: {script[:40]!r}")

    async def wait_for_selector(self, selector: str, timeout: float) -> None:
        self.waits.append((selector, timeout))
        if not self.board_present:
            raise TimeoutError(selector)


class FakeLocator:
    """Page locator returning queued pages (or raising queued errors)."""

    def __init__(self, *results) -> None:
        self.results = list(results)
        self.calls = 0

    async def find_game_page(self):
        self.calls += 1
        result = self.results[0] if len(self.results) == 1 else self.results.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result


class RecordingSink:
    """Presentation sink that records everything it is shown."""

    def __init__(self, on_suggestion=None) -> None:
        self.statuses: list[tuple[str, StatusKind]] = []
        self.suggestions: list[tuple] = []
        self.game_ends: list[str | None] = []
        self.clears = 0
        self.on_suggestion = on_suggestion

    def status(self, message, kind=StatusKind.info):
        self.statuses.append((message, StatusKind(kind)))

    def suggestion(self, suggestion, fen):
        self.suggestions.append((suggestion, fen))
        if self.on_suggestion is not None:
            self.on_suggestion(suggestion)

    def game_end(self, result):
        self.game_ends.append(result)

    def clear(self):
        self.clears += 1

    def messages(self, kind: StatusKind | None = None) -> list[str]:
        return [m for m, k in self.statuses if kind is None or k is kind]


# ---------------------------------------------------------------------------
# Engine pipe fakes
# ---------------------------------------------------------------------------


class FakePipe:
    """Engine stdin: records every line written."""

    def __init__(self) -> None:
        self.lines: list[str] = []
        self.closing = False

    def write(self, data: bytes) -> None:
        self.lines.extend(data.decode().splitlines())

    def is_closing(self) -> bool:
        return self.closing


class FakeTransport:
    def __init__(self) -> None:
        self.stdin = FakePipe()
        self.returncode: int | None = None
        self.killed = False
        self.closed = False

    def get_pipe_transport(self, fd: int):
        return self.stdin if fd == 0 else None

    def get_returncode(self):
        return self.returncode

    def kill(self) -> None:
        self.killed = True

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def surface() -> FakeSurface:
    return FakeSurface()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
