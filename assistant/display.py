"""Terminal display for Move Assist.

Renders suggestions, status lines and the game-over banner with Rich.
Move labels (SAN, piece names) come from python-chess; a move it cannot
apply to the scanned position is shown in UCI form.
"""

from __future__ import annotations

from dataclasses import dataclass

import chess
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from assistant.models import Suggestion
from assistant.orchestrator import StatusKind

# Unicode piece symbols
_PIECE_SYMBOLS = {
    "K": "♔", "Q": "♕", "R": "♖", "B": "♗",
    "N": "♘", "P": "♙",
    "k": "♚", "q": "♛", "r": "♜", "b": "♝",
    "n": "♞", "p": "♟",
}

_PIECE_NAMES = {
    chess.PAWN: "Pawn",
    chess.KNIGHT: "Knight",
    chess.BISHOP: "Bishop",
    chess.ROOK: "Rook",
    chess.QUEEN: "Queen",
    chess.KING: "King",
}

_STATUS_ICONS = {
    StatusKind.info: ("ℹ", "blue"),
    StatusKind.success: ("✓", "green"),
    StatusKind.warning: ("⚠", "yellow"),
    StatusKind.error: ("✗", "red"),
    StatusKind.waiting: ("◉", "magenta"),
    StatusKind.scanning: ("⟳", "cyan"),
}

_LIGHT_SQ = "#F0D9B5"
_DARK_SQ = "#B58863"
_FROM_SQ = "yellow"
_TO_SQ = "green"


@dataclass(frozen=True)
class MoveDescription:
    from_square: str
    to_square: str
    san: str
    description: str
    promotion: str | None = None


def describe_move(uci_move: str, fen: str) -> MoveDescription:
    """Describe a UCI move in the given position.

    Args:
        uci_move: Move such as ``e2e4`` or ``e7e8q``.
        fen: Position the move is played from.

    Returns:
        MoveDescription with SAN (UCI text when python-chess rejects the
        move) and a sentence like ``Pawn from e2 to e4``.
    """
    from_sq = uci_move[:2]
    to_sq = uci_move[2:4]
    promotion = uci_move[4] if len(uci_move) > 4 else None

    try:
        board = chess.Board(fen)
    except ValueError:
        board = None

    san = uci_move
    piece = None
    if board is not None:
        try:
            move = chess.Move.from_uci(uci_move)
        except ValueError:
            move = None
        if move is not None:
            piece = board.piece_at(move.from_square)
            if board.is_legal(move):
                san = board.san(move)

    symbol = _PIECE_SYMBOLS.get(piece.symbol(), "?") if piece else "?"
    name = _PIECE_NAMES[piece.piece_type] if piece else "Unknown"
    description = f"{symbol} {name} from {from_sq} to {to_sq}"
    if promotion:
        promo_type = chess.PIECE_SYMBOLS.index(promotion) if promotion in chess.PIECE_SYMBOLS else None
        description += f" (promote to {_PIECE_NAMES.get(promo_type, promotion)})"

    return MoveDescription(
        from_square=from_sq,
        to_square=to_sq,
        san=san,
        description=description,
        promotion=promotion,
    )


def render_board(fen: str, highlight_from: str | None = None, highlight_to: str | None = None) -> Table:
    """Render the board from white's side with the move squares highlighted."""
    board = chess.BaseBoard(fen.split()[0])
    table = Table(show_header=False, show_edge=False, pad_edge=False,
                  box=None, padding=(0, 0))
    table.add_column(width=2, justify="right")
    for _ in range(8):
        table.add_column(width=4, justify="center")

    for rank in range(7, -1, -1):
        row: list[Text] = [Text(str(rank + 1), style="bold cyan")]
        for file in range(8):
            sq = chess.square(file, rank)
            name = chess.square_name(sq)
            piece = board.piece_at(sq)

            is_light = (rank + file) % 2 == 1
            bg = _LIGHT_SQ if is_light else _DARK_SQ
            if name == highlight_from:
                bg = _FROM_SQ
            elif name == highlight_to:
                bg = _TO_SQ

            symbol = _PIECE_SYMBOLS.get(piece.symbol(), "?") if piece else " "
            row.append(Text(f" {symbol}  ", style=f"black on {bg}"))
        table.add_row(*row)

    file_labels = [Text("  ")]
    for f in range(8):
        file_labels.append(Text(f" {chr(ord('a') + f)}  ", style="bold cyan"))
    table.add_row(*file_labels)
    return table


class ConsoleDisplay:
    """Rich console implementation of the presentation sink."""

    def __init__(
        self,
        console: Console | None = None,
        *,
        show_candidates: bool = True,
        show_evaluation: bool = True,
        show_board: bool = True,
    ) -> None:
        self.console = console or Console()
        self.show_candidates = show_candidates
        self.show_evaluation = show_evaluation
        self.show_board = show_board

    def banner(self) -> None:
        self.console.print(
            Panel(
                Text.assemble(
                    ("♔  Chess Automation Assistant  ♚\n", "bold white"),
                    ("Move Suggester for Chess.com", "dim"),
                    justify="center",
                ),
                border_style="bold cyan",
            )
        )

    def clear(self) -> None:
        self.console.clear()
        self.banner()

    def status(self, message: str, kind: StatusKind = StatusKind.info) -> None:
        icon, style = _STATUS_ICONS.get(StatusKind(kind), _STATUS_ICONS[StatusKind.info])
        line = Text("  ")
        line.append(icon, style=style)
        line.append(f" {message}")
        self.console.print(line)

    def suggestion(self, suggestion: Suggestion, fen: str) -> None:
        info = describe_move(suggestion.move, fen)
        parts: list = []

        headline = Text()
        headline.append(f"   {info.san}   ", style="bold white on green")
        headline.append("  ")
        headline.append(info.description, style="dim")
        parts.append(headline)

        if self.show_evaluation:
            total = len(suggestion.candidates) or 1
            parts.append(Text(""))
            parts.append(Text(f"Evaluation: {suggestion.evaluation}", style="bold yellow"))
            parts.append(Text(f"Move rank: #{suggestion.rank} of {total} candidates", style="dim"))

        if self.show_board:
            parts.append(Text(""))
            parts.append(render_board(fen, info.from_square, info.to_square))

        if self.show_candidates and suggestion.candidates:
            parts.append(Text(""))
            parts.append(Text("All candidates:", style="bold blue"))
            for option in suggestion.candidates:
                option_info = describe_move(option.move, fen)
                line = Text()
                if option.selected:
                    line.append("▸ ", style="green")
                    line.append(f"#{option.rank} ")
                    line.append(option_info.san, style="bold green")
                else:
                    line.append("  ")
                    line.append(f"#{option.rank} ")
                    line.append(option_info.san, style="white")
                line.append(f" ({option.evaluation}) ", style="dim")
                line.append(option_info.description, style="dim")
                parts.append(line)

        self.console.print(
            Panel(Group(*parts), title="SUGGESTED MOVE", title_align="left", border_style="green")
        )

    def game_end(self, result: str | None) -> None:
        body = Text("GAME OVER", style="bold white", justify="center")
        if result:
            body.append(f"\n\nResult: {result}", style="bold")
        self.console.print(Panel(body, border_style="bold yellow"))


__all__ = ["ConsoleDisplay", "MoveDescription", "describe_move", "render_board"]
