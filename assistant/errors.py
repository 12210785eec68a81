"""Error taxonomy shared by the scanner, the engine session and the loop."""

from __future__ import annotations

# Substrings that mean the page (or the driver session behind it) went away.
_CONNECTION_LOST_MARKERS = (
    "Session closed",
    "Target closed",
    "Protocol error",
    "Execution context was destroyed",
    "no such window",
    "invalid session id",
    "chrome not reachable",
    "target window already closed",
)


class AssistantError(RuntimeError):
    """Base class for Move Assist errors."""

    code: str = "assistant_error"


class SurfaceUnavailable(AssistantError):
    """The page could not be queried; the caller should reconnect."""

    code = "surface_unavailable"


class PageNotFoundError(AssistantError):
    code = "page_not_found"


class BoardNotFoundError(AssistantError):
    code = "board_not_found"


class BrowserConnectionError(AssistantError):
    code = "browser_unreachable"


class EngineProcessError(AssistantError):
    """The engine process could not be spawned or exited unexpectedly."""

    code = "engine_process"


class EngineInitTimeout(AssistantError):
    code = "engine_init_timeout"


class EngineAnalysisTimeout(AssistantError):
    code = "engine_analysis_timeout"


class AnalysisInProgressError(AssistantError):
    """analyze() was called while another analysis was still in flight."""

    code = "analysis_in_progress"


class ConfigError(AssistantError, ValueError):
    code = "invalid_config"


class ProtocolParseSkip(AssistantError):
    """An engine info line without the fields needed to build a candidate.

    Raised by the info-line parser and dropped by the engine session;
    partial info lines are routine in UCI output.
    """

    code = "protocol_parse_skip"


def is_connection_lost(exc: BaseException) -> bool:
    """Return True if ``exc`` means the page connection is gone."""
    if isinstance(exc, SurfaceUnavailable):
        return True
    message = str(exc)
    return any(marker in message for marker in _CONNECTION_LOST_MARKERS)


__all__ = [
    "AssistantError",
    "SurfaceUnavailable",
    "PageNotFoundError",
    "BoardNotFoundError",
    "BrowserConnectionError",
    "EngineProcessError",
    "EngineInitTimeout",
    "EngineAnalysisTimeout",
    "AnalysisInProgressError",
    "ConfigError",
    "ProtocolParseSkip",
    "is_connection_lost",
]
