"""Shared data models for Move Assist.

Piece and BoardState come from the board scanner, Candidate and
AnalysisResult from the engine session, and Suggestion from the
candidate selector. All of them are rebuilt every poll and never
mutated in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Side(str, Enum):
    """Player color, valued by its FEN letter."""

    white = "w"
    black = "b"

    @property
    def opponent(self) -> Side:
        return Side.black if self is Side.white else Side.white

    @property
    def label(self) -> str:
        return self.name.capitalize()


class PieceKind(str, Enum):
    """Piece type, valued by its lowercase FEN letter."""

    pawn = "p"
    knight = "n"
    bishop = "b"
    rook = "r"
    queen = "q"
    king = "k"


class ScoreKind(str, Enum):
    centipawn = "cp"
    mate = "mate"


class EngineState(str, Enum):
    """Where the engine session is in the UCI exchange."""

    not_started = "not_started"
    awaiting_handshake_ack = "awaiting_handshake_ack"
    configuring_options = "configuring_options"
    awaiting_ready_ack = "awaiting_ready_ack"
    idle = "idle"
    analyzing = "analyzing"


@dataclass(frozen=True)
class Piece:
    """One piece observed on the board."""

    kind: PieceKind
    side: Side
    square: str

    @property
    def symbol(self) -> str:
        """FEN symbol: uppercase for white, lowercase for black."""
        letter = self.kind.value
        return letter.upper() if self.side is Side.white else letter


@dataclass(frozen=True)
class Candidate:
    """One ranked line from a multi-PV analysis."""

    rank: int
    move: str
    depth: int | None = None
    score_kind: ScoreKind | None = None
    score_value: int | None = None
    pv: tuple[str, ...] = ()


@dataclass(frozen=True)
class AnalysisResult:
    """Outcome of one analysis cycle, candidates sorted by rank."""

    best_move: str | None
    candidates: list[Candidate] = field(default_factory=list)
    ponder_move: str | None = None


@dataclass(frozen=True)
class RankedOption:
    """A candidate as shown to the operator."""

    rank: int
    move: str
    evaluation: str
    selected: bool = False


@dataclass(frozen=True)
class Suggestion:
    """The move recommended to the operator plus the alternatives."""

    move: str
    rank: int
    evaluation: str
    candidates: tuple[RankedOption, ...] = ()


@dataclass(frozen=True)
class BoardState:
    """A single consistent snapshot of the page."""

    fen: str
    turn: Side
    player_side: Side
    pieces: tuple[Piece, ...] = ()
    move_list: tuple[str, ...] = ()

    @property
    def is_my_turn(self) -> bool:
        return self.turn is self.player_side


@dataclass(frozen=True)
class GameEnd:
    ended: bool
    result: str | None = None
