"""Runtime configuration for Move Assist.

Values come from ``MOVE_ASSIST_*`` environment variables and are then
overridden by command-line flags (see ``assistant.cli``).
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from assistant.errors import ConfigError

ENV_PREFIX = "MOVE_ASSIST_"

_DEFAULT_WEIGHTS = (60.0, 25.0, 10.0, 3.0, 2.0)
_PLAYER_COLORS = {"auto": "auto", "white": "w", "w": "w", "black": "b", "b": "b"}
_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


@dataclass(frozen=True, slots=True)
class AssistantConfig:
    """Everything the poll loop, engine and display need to run."""

    engine_depth: int = 10
    multipv: int = 5
    move_weights: tuple[float, ...] = _DEFAULT_WEIGHTS
    poll_interval_ms: int = 1500
    player_color: str = "auto"
    debugging_port: int = 9222
    stockfish_path: str | None = None
    engine_init_timeout: float = 15.0
    engine_quit_grace: float = 1.0
    analysis_timeout: float | None = None
    stale_poll_threshold: int = 10
    board_wait_timeout: float = 120.0
    show_candidates: bool = True
    show_evaluation: bool = True
    show_board: bool = True
    log_level: str = "WARNING"

    @property
    def poll_interval(self) -> float:
        """Poll interval in seconds."""
        return self.poll_interval_ms / 1000.0

    def validate(self) -> AssistantConfig:
        """Check every field and return self.

        Raises:
            ConfigError: On the first invalid value.
        """
        if self.engine_depth < 1:
            raise ConfigError(f"engine_depth must be >= 1, got {self.engine_depth}")
        if self.multipv < 1:
            raise ConfigError(f"multipv must be >= 1, got {self.multipv}")
        if not self.move_weights:
            raise ConfigError("move_weights must contain at least one weight")
        if any(w <= 0 for w in self.move_weights):
            raise ConfigError(f"move_weights must all be positive, got {list(self.move_weights)}")
        if self.poll_interval_ms <= 0:
            raise ConfigError(f"poll_interval_ms must be positive, got {self.poll_interval_ms}")
        if self.player_color not in _PLAYER_COLORS.values():
            raise ConfigError(f"player_color must be auto, w or b, got {self.player_color!r}")
        if not 1 <= self.debugging_port <= 65535:
            raise ConfigError(f"debugging_port out of range: {self.debugging_port}")
        if self.engine_init_timeout <= 0:
            raise ConfigError("engine_init_timeout must be positive")
        if self.engine_quit_grace < 0:
            raise ConfigError("engine_quit_grace must not be negative")
        if self.analysis_timeout is not None and self.analysis_timeout <= 0:
            raise ConfigError("analysis_timeout must be positive when set")
        if self.stale_poll_threshold < 1:
            raise ConfigError("stale_poll_threshold must be >= 1")
        if self.board_wait_timeout <= 0:
            raise ConfigError("board_wait_timeout must be positive")
        return self


def normalize_player_color(raw: str) -> str:
    """Map ``auto``/``white``/``black`` (or ``w``/``b``) to auto/w/b."""
    try:
        return _PLAYER_COLORS[raw.strip().lower()]
    except KeyError:
        raise ConfigError(f"Unknown player color: {raw!r}") from None


def parse_weights(raw: str) -> tuple[float, ...]:
    """Parse a comma separated weight list such as ``"60,25,10"``."""
    try:
        weights = tuple(float(part) for part in raw.split(",") if part.strip())
    except ValueError:
        raise ConfigError(f"Invalid move weights: {raw!r}") from None
    if not weights:
        raise ConfigError("move weights must not be empty")
    return weights


def load_config(prefix: str = ENV_PREFIX) -> AssistantConfig:
    """Load configuration from environment variables.

    Numeric values that fail to parse fall back to their defaults.
    """
    defaults = AssistantConfig()

    def _get_env(key: str, default: str = "") -> str:
        return os.getenv(f"{prefix}{key}", default)

    def _parse_int(key: str, fallback: int) -> int:
        try:
            return int(_get_env(key, str(fallback)))
        except (TypeError, ValueError):
            return fallback

    def _parse_float(key: str, fallback: float | None) -> float | None:
        raw = _get_env(key, "")
        if not raw:
            return fallback
        try:
            return float(raw)
        except (TypeError, ValueError):
            return fallback

    def _parse_bool(key: str, fallback: bool) -> bool:
        raw = _get_env(key, "").strip().lower()
        if raw in _TRUTHY:
            return True
        if raw in _FALSY:
            return False
        return fallback

    weights_raw = _get_env("MOVE_WEIGHTS", "")
    move_weights = parse_weights(weights_raw) if weights_raw else defaults.move_weights

    return AssistantConfig(
        engine_depth=_parse_int("ENGINE_DEPTH", defaults.engine_depth),
        multipv=_parse_int("MULTIPV", defaults.multipv),
        move_weights=move_weights,
        poll_interval_ms=_parse_int("POLL_INTERVAL_MS", defaults.poll_interval_ms),
        player_color=normalize_player_color(_get_env("PLAYER_COLOR", "auto")),
        debugging_port=_parse_int("DEBUGGING_PORT", defaults.debugging_port),
        stockfish_path=_get_env("STOCKFISH_PATH", "") or None,
        engine_init_timeout=_parse_float("ENGINE_INIT_TIMEOUT", defaults.engine_init_timeout),
        engine_quit_grace=_parse_float("ENGINE_QUIT_GRACE", defaults.engine_quit_grace),
        analysis_timeout=_parse_float("ANALYSIS_TIMEOUT", None),
        stale_poll_threshold=_parse_int("STALE_POLL_THRESHOLD", defaults.stale_poll_threshold),
        board_wait_timeout=_parse_float("BOARD_WAIT_TIMEOUT", defaults.board_wait_timeout),
        show_candidates=_parse_bool("SHOW_CANDIDATES", defaults.show_candidates),
        show_evaluation=_parse_bool("SHOW_EVALUATION", defaults.show_evaluation),
        show_board=_parse_bool("SHOW_BOARD", defaults.show_board),
        log_level=_get_env("LOG_LEVEL", defaults.log_level),
    )


__all__ = [
    "AssistantConfig",
    "ENV_PREFIX",
    "load_config",
    "normalize_player_color",
    "parse_weights",
]
