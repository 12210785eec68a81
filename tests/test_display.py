"""Pytest tests for the Rich terminal display."""

from __future__ import annotations

import chess
from rich.console import Console

from assistant.display import ConsoleDisplay, describe_move, render_board
from assistant.fen import STARTING_FEN
from assistant.models import RankedOption, Suggestion
from assistant.orchestrator import StatusKind


def _display(**kwargs) -> tuple[ConsoleDisplay, Console]:
    console = Console(record=True, width=100, force_terminal=False)
    return ConsoleDisplay(console, **kwargs), console


def _suggestion() -> Suggestion:
    return Suggestion(
        move="d2d4",
        rank=2,
        evaluation="+0.30",
        candidates=(
            RankedOption(rank=1, move="e2e4", evaluation="+0.35"),
            RankedOption(rank=2, move="d2d4", evaluation="+0.30", selected=True),
            RankedOption(rank=3, move="g1f3", evaluation="+0.25"),
        ),
    )


# ---------------------------------------------------------------------------
# Move descriptions
# ---------------------------------------------------------------------------


class TestDescribeMove:

    def test_pawn_push(self):
        info = describe_move("e2e4", STARTING_FEN)
        assert info.san == "e4"
        assert info.from_square == "e2"
        assert info.to_square == "e4"
        assert info.description == "♙ Pawn from e2 to e4"
        assert info.promotion is None

    def test_knight(self):
        info = describe_move("g8f6", "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1")
        assert info.san == "Nf6"
        assert "Knight" in info.description

    def test_illegal_move_falls_back_to_uci(self):
        info = describe_move("e2e5", STARTING_FEN)
        assert info.san == "e2e5"
        assert "Pawn" in info.description

    def test_empty_square(self):
        info = describe_move("e4e5", STARTING_FEN)
        assert info.san == "e4e5"
        assert info.description == "? Unknown from e4 to e5"

    def test_promotion(self):
        fen = "8/4P3/8/8/8/8/k7/4K3 w - - 0 1"
        info = describe_move("e7e8q", fen)
        assert info.san.startswith("e8=Q")
        assert info.promotion == "q"
        assert info.description.endswith("(promote to Queen)")


class TestRenderBoard:

    def test_renders_all_ranks(self):
        console = Console(record=True, width=100)
        console.print(render_board(STARTING_FEN, "e2", "e4"))
        text = console.export_text()
        for label in "12345678":
            assert label in text
        assert "♔" in text and "♚" in text


# ---------------------------------------------------------------------------
# ConsoleDisplay
# ---------------------------------------------------------------------------


class TestConsoleDisplay:

    def test_status_line_has_icon(self):
        display, console = _display()
        display.status("Connected!", StatusKind.success)
        display.status("Oops", "error")
        text = console.export_text()
        assert "✓ Connected!" in text
        assert "✗ Oops" in text

    def test_suggestion_panel(self):
        display, console = _display()
        display.suggestion(_suggestion(), STARTING_FEN)
        text = console.export_text()
        assert "SUGGESTED MOVE" in text
        assert "d4" in text
        assert "Evaluation: +0.30" in text
        assert "Move rank: #2 of 3 candidates" in text
        assert "All candidates:" in text
        assert "▸ #2 d4" in text

    def test_sections_can_be_hidden(self):
        display, console = _display(show_candidates=False, show_evaluation=False, show_board=False)
        display.suggestion(_suggestion(), STARTING_FEN)
        text = console.export_text()
        assert "Evaluation" not in text
        assert "All candidates:" not in text
        assert "♜" not in text

    def test_game_end(self):
        display, console = _display()
        display.game_end("White Won\nby checkmate")
        text = console.export_text()
        assert "GAME OVER" in text
        assert "Result: White Won" in text

    def test_clear_prints_banner(self):
        display, console = _display()
        display.clear()
        assert "Chess Automation Assistant" in console.export_text()

    def test_knight_san_in_candidates(self):
        display, console = _display()
        display.suggestion(_suggestion(), chess.STARTING_FEN)
        assert "#3 Nf3" in console.export_text()
