"""Rank-weighted move selection.

Picks one of the engine's ranked candidates at random, weighted by rank,
so the recommendations look like human choices rather than always the
engine's top line.
"""

from __future__ import annotations

import random
from typing import Sequence

from assistant.models import Candidate, RankedOption, ScoreKind, Suggestion


def format_evaluation(candidate: Candidate | None) -> str:
    """Render a candidate's score, e.g. ``+0.35`` or ``Mate in 3``."""
    if candidate is None or candidate.score_value is None:
        return "?"
    if candidate.score_kind is ScoreKind.mate:
        return f"Mate in {candidate.score_value}"
    if candidate.score_kind is ScoreKind.centipawn:
        pawns = candidate.score_value / 100
        return f"+{pawns:.2f}" if pawns > 0 else f"{pawns:.2f}"
    return "?"


def aligned_weights(weights: Sequence[float], count: int) -> list[float]:
    """Truncate ``weights`` to ``count`` entries.

    Candidates beyond the end of the weight list get no selection weight.
    """
    aligned = [float(w) for w in weights[:count]]
    if not aligned:
        raise ValueError("At least one selection weight is required")
    if any(w <= 0 for w in aligned):
        raise ValueError(f"Selection weights must be positive, got {aligned}")
    return aligned


def pick_index(weights: Sequence[float], draw: float) -> int:
    """Walk the weights subtracting each from ``draw``.

    Returns the index at which the remainder first drops to zero or
    below. ``draw`` must lie in ``[0, sum(weights))``.
    """
    total = sum(weights)
    if not 0 <= draw < total:
        raise ValueError(f"draw must be in [0, {total}), got {draw}")
    remainder = draw
    for idx, weight in enumerate(weights):
        remainder -= weight
        if remainder <= 0:
            return idx
    # float rounding on draws just under the total
    return len(weights) - 1


def select_candidate(
    candidates: Sequence[Candidate],
    weights: Sequence[float],
    draw: float | None = None,
    *,
    rng: random.Random | None = None,
) -> Suggestion:
    """Choose one candidate by rank-weighted random draw.

    Args:
        candidates: Non-empty list sorted by rank.
        weights: Positive weight per rank, best rank first.
        draw: Fixed value in ``[0, total weight)``. When None, one is
            sampled from ``rng``.
        rng: Random source used when ``draw`` is None.

    Returns:
        Suggestion with every candidate listed and exactly one selected.

    Raises:
        ValueError: If ``candidates`` is empty or the weights or draw
            are invalid.
    """
    if not candidates:
        raise ValueError("Cannot select from an empty candidate list")

    if len(candidates) == 1:
        selected_idx = 0
    else:
        active = aligned_weights(weights, len(candidates))
        if draw is None:
            draw = (rng or random).random() * sum(active)
        selected_idx = pick_index(active, draw)

    selected = candidates[selected_idx]
    options = tuple(
        RankedOption(
            rank=idx + 1,
            move=candidate.move,
            evaluation=format_evaluation(candidate),
            selected=idx == selected_idx,
        )
        for idx, candidate in enumerate(candidates)
    )
    return Suggestion(
        move=selected.move,
        rank=selected_idx + 1,
        evaluation=format_evaluation(selected),
        candidates=options,
    )


__all__ = ["aligned_weights", "format_evaluation", "pick_index", "select_candidate"]
