"""Canonical position encoding for scanned piece inventories.

The scanner trusts the page, so this module never checks legality: it
lays the pieces out, works out castling rights from home squares only,
and fills the en passant and move counters with fixed placeholders.
"""

from __future__ import annotations

from typing import Iterable

import chess

from assistant.log import get_logger
from assistant.models import Piece, PieceKind, Side

logger = get_logger(__name__)

STARTING_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"

# Placeholder en passant square, halfmove clock and fullmove number.
_FEN_TAIL = "- 0 1"

# (flag, king square, rook square, side), in FEN order
_CASTLING_RULES = (
    ("K", "e1", "h1", Side.white),
    ("Q", "e1", "a1", Side.white),
    ("k", "e8", "h8", Side.black),
    ("q", "e8", "a8", Side.black),
)

_PIECE_TYPES = {
    PieceKind.pawn: chess.PAWN,
    PieceKind.knight: chess.KNIGHT,
    PieceKind.bishop: chess.BISHOP,
    PieceKind.rook: chess.ROOK,
    PieceKind.queen: chess.QUEEN,
    PieceKind.king: chess.KING,
}


def square_index(name: str) -> int:
    """Convert an algebraic square (``"e4"``) to a 0-63 index.

    Raises:
        ValueError: If ``name`` is not a square.
    """
    return chess.parse_square(name)


def square_name(index: int) -> str:
    """Convert a 0-63 index back to its algebraic name."""
    return chess.square_name(index)


def castling_rights(pieces: Iterable[Piece]) -> str:
    """Return the FEN castling field for ``pieces``.

    A flag is present when the king and the matching rook both stand on
    their home squares. Earlier king or rook moves are not tracked.
    """
    occupied = {(p.kind, p.side, p.square) for p in pieces}
    flags = "".join(
        flag
        for flag, king_sq, rook_sq, side in _CASTLING_RULES
        if (PieceKind.king, side, king_sq) in occupied
        and (PieceKind.rook, side, rook_sq) in occupied
    )
    return flags or "-"


def board_layout(pieces: Iterable[Piece]) -> str:
    """Return the piece placement field, rank 8 first.

    Two pieces on one square is a scan problem upstream; the last one
    listed wins and a warning is logged.
    """
    board = chess.BaseBoard.empty()
    for piece in pieces:
        square = square_index(piece.square)
        if board.piece_at(square) is not None:
            logger.warning(
                "duplicate_square",
                square=piece.square,
                replaced=board.piece_at(square).symbol(),
                piece=piece.symbol,
            )
        color = chess.WHITE if piece.side is Side.white else chess.BLACK
        board.set_piece_at(square, chess.Piece(_PIECE_TYPES[piece.kind], color))
    return board.board_fen()


def encode_position(pieces: Iterable[Piece], turn: Side) -> str:
    """Encode a piece inventory and side to move as a FEN string.

    Args:
        pieces: Pieces as scanned from the board.
        turn: Side to move.

    Returns:
        FEN with fixed ``- 0 1`` placeholders, e.g. the starting
        inventory with white to move gives ``STARTING_FEN``.
    """
    pieces = list(pieces)
    return f"{board_layout(pieces)} {turn.value} {castling_rights(pieces)} {_FEN_TAIL}"


__all__ = [
    "STARTING_FEN",
    "board_layout",
    "castling_rights",
    "encode_position",
    "square_index",
    "square_name",
]
