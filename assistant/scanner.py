"""Board scanner for chess.com pages.

Reads the piece inventory, move list and board orientation from the
rendered page and turns them into a BoardState. Page access goes through
the Surface protocol so the scanner does not care which browser driver
sits behind it.
"""

from __future__ import annotations

import re
from typing import Any, Iterable, Protocol

from assistant.errors import BoardNotFoundError, SurfaceUnavailable, is_connection_lost
from assistant.fen import encode_position
from assistant.models import BoardState, GameEnd, Piece, PieceKind, Side

BOARD_SELECTOR = "wc-chess-board, .board"

_PIECE_CLASS_RE = re.compile(r"^([wb])([pnbrqk])$")
_MOVE_NUMBER_RE = re.compile(r"^\d+\.?$")
_FILES = "abcdefgh"

_SNAPSHOT_SCRIPT = """
const board = document.querySelector('wc-chess-board, .board');
const pieces = [];
for (const el of document.querySelectorAll('.piece')) {
  let pieceType = null;
  let squareNum = null;
  for (const cls of el.classList) {
    if (/^[wb][pnbrqk]$/.test(cls)) pieceType = cls;
    if (cls.startsWith('square-')) squareNum = cls.slice(7);
  }
  if (pieceType && squareNum) pieces.push({pieceType, squareNum});
}
const nodes = document.querySelectorAll(
  '.main-line-row .node .node-highlight-content, ' +
  'move-list .move .text, ' +
  '.play-controller-moveList .move-text-component'
);
return {
  pieces,
  flipped: board ? board.classList.contains('flipped') : false,
  moves: Array.from(nodes, (el) => el.textContent.trim()),
};
"""

_GAME_END_SCRIPT = """
const selectors = [
  '.game-over-modal',
  '.modal-game-over-component',
  '.board-modal-container-container',
];
for (const sel of selectors) {
  const modal = document.querySelector(sel);
  if (!modal) continue;
  const rect = modal.getBoundingClientRect();
  const style = window.getComputedStyle(modal);
  const visible = rect.width > 0 && rect.height > 0 &&
    style.display !== 'none' && style.visibility !== 'hidden' &&
    style.opacity !== '0';
  if (visible) return {ended: true, text: modal.textContent || ''};
}
return {ended: false, text: null};
"""


class Surface(Protocol):
    """A rendered page that can be queried."""

    @property
    def identity(self) -> str:
        """Stable identifier of the page, its URL."""
        ...

    async def evaluate(self, script: str) -> Any:
        """Run a JavaScript function body and return its JSON-able result."""
        ...

    async def wait_for_selector(self, selector: str, timeout: float) -> None:
        """Block until ``selector`` matches an element or ``timeout`` passes."""
        ...


async def _query(surface: Surface, script: str) -> Any:
    try:
        return await surface.evaluate(script)
    except SurfaceUnavailable:
        raise
    except Exception as exc:
        if is_connection_lost(exc):
            raise SurfaceUnavailable(str(exc)) from exc
        raise


def square_from_surface(square_num: str | int) -> str | None:
    """Map a ``square-FR`` class suffix (``"52"``) to ``"e2"``.

    The last two digits are the 1-based file and rank. Anything else
    returns None.
    """
    text = str(square_num)
    if len(text) < 2 or not text[-2:].isdigit():
        return None
    file_idx = int(text[-2]) - 1
    rank_idx = int(text[-1]) - 1
    if not (0 <= file_idx <= 7 and 0 <= rank_idx <= 7):
        return None
    return f"{_FILES[file_idx]}{rank_idx + 1}"


def parse_pieces(raw: Iterable[dict] | None) -> list[Piece]:
    """Build Pieces from raw ``{pieceType, squareNum}`` records.

    Records with an unknown piece class or an off-board square are
    dropped.
    """
    pieces: list[Piece] = []
    for record in raw or ():
        match = _PIECE_CLASS_RE.match(str(record.get("pieceType", "")))
        square = square_from_surface(record.get("squareNum", ""))
        if match is None or square is None:
            continue
        color, kind = match.groups()
        pieces.append(Piece(kind=PieceKind(kind), side=Side(color), square=square))
    return pieces


def parse_move_list(raw: Iterable[str] | None) -> list[str]:
    """Drop blank entries and bare move numbers from the move list."""
    moves = []
    for text in raw or ():
        text = (text or "").strip()
        if text and not _MOVE_NUMBER_RE.match(text):
            moves.append(text)
    return moves


def side_to_move(ply_count: int) -> Side:
    """Black moves after an odd number of plies, white otherwise."""
    return Side.black if ply_count % 2 else Side.white


def player_side_from_orientation(flipped: Any) -> Side:
    """A flipped board means the operator plays black."""
    return Side.black if flipped else Side.white


async def read_snapshot(surface: Surface) -> dict:
    """Read pieces, orientation and move list in a single page query.

    Returns:
        ``{"pieces": [...], "flipped": bool, "moves": [...]}`` as the page
        reported them at one moment.
    """
    snapshot = await _query(surface, _SNAPSHOT_SCRIPT)
    return snapshot if isinstance(snapshot, dict) else {}


async def scan_board(surface: Surface, player_color: str = "auto") -> BoardState:
    """Take one snapshot of the board.

    Layout, orientation and move list all come from the same page query,
    so a move landing mid-scan cannot pair one position with the other
    side to move.

    Args:
        surface: Page to read.
        player_color: ``"auto"`` to read the board orientation, or ``"w"``
            / ``"b"`` to force the operator's side.

    Returns:
        BoardState with the encoded FEN and whose turn it is.

    Raises:
        SurfaceUnavailable: If the page connection is gone.
    """
    snapshot = await read_snapshot(surface)
    pieces = parse_pieces(snapshot.get("pieces"))
    if player_color == "auto":
        player_side = player_side_from_orientation(snapshot.get("flipped"))
    else:
        player_side = Side(player_color)
    move_list = parse_move_list(snapshot.get("moves"))
    turn = side_to_move(len(move_list))
    return BoardState(
        fen=encode_position(pieces, turn),
        turn=turn,
        player_side=player_side,
        pieces=tuple(pieces),
        move_list=tuple(move_list),
    )


async def wait_for_board(surface: Surface, timeout: float = 60.0) -> None:
    """Wait until the board element is present.

    Raises:
        BoardNotFoundError: If it does not appear within ``timeout`` seconds.
    """
    try:
        await surface.wait_for_selector(BOARD_SELECTOR, timeout)
    except TimeoutError as exc:
        raise BoardNotFoundError(
            f"Chess board not found within {timeout:.0f}s"
        ) from exc


def _summarize_result(text: str | None) -> str | None:
    if not text:
        return None
    lines = [line.strip() for line in text.split("\n")]
    lines = [line for line in lines if 0 < len(line) < 120]
    return "\n".join(lines[:3]) or None


async def detect_game_end(surface: Surface) -> GameEnd:
    """Check for a visible game-over modal and summarize its text."""
    status = await _query(surface, _GAME_END_SCRIPT) or {}
    if not status.get("ended"):
        return GameEnd(ended=False)
    return GameEnd(ended=True, result=_summarize_result(status.get("text")))


__all__ = [
    "BOARD_SELECTOR",
    "Surface",
    "detect_game_end",
    "parse_move_list",
    "parse_pieces",
    "player_side_from_orientation",
    "read_snapshot",
    "scan_board",
    "side_to_move",
    "square_from_surface",
    "wait_for_board",
]
