"""Error taxonomy for the lucky draw engine.

Every error is recoverable by the caller and is raised before any write that
would otherwise be left half done. Store failures (``SQLAlchemyError``) are not
wrapped and propagate unchanged.
"""

from __future__ import annotations

from typing import Optional


class LuckyDrawError(Exception):
    """Base class for lucky draw errors.

    Attributes
    ----------
    code : str
        Stable machine readable identifier, suitable for API error payloads.
    detail : str
        Human readable message.
    """

    code = "LUCKY_DRAW_ERROR"
    default_detail = "Lucky draw operation failed"

    def __init__(self, detail: Optional[str] = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ConfigNotFound(LuckyDrawError):
    code = "CONFIG_NOT_FOUND"
    default_detail = "Draw configuration not found"


class NoActiveConfiguration(LuckyDrawError):
    code = "NO_ACTIVE_CONFIG"
    default_detail = "No active draw configuration found for this event"


class DrawNotScheduled(LuckyDrawError):
    code = "DRAW_NOT_SCHEDULED"
    default_detail = "Draw is not in scheduled status"


class NoEntries(LuckyDrawError):
    code = "NO_ENTRIES"
    default_detail = "No eligible entries found"


class NoEligibleEntries(LuckyDrawError):
    code = "NO_ELIGIBLE_ENTRIES"
    default_detail = "No eligible entries after applying duplicate rules"


class PrizeTierNotFound(LuckyDrawError):
    code = "PRIZE_TIER_NOT_FOUND"
    default_detail = "Prize tier not found in configuration"


class NoEligibleEntriesForRedraw(LuckyDrawError):
    code = "NO_ELIGIBLE_ENTRIES_FOR_REDRAW"
    default_detail = "No eligible entries available for redraw"


class MaxEntriesPerUserReached(LuckyDrawError):
    code = "MAX_ENTRIES_REACHED"
    default_detail = "Maximum entries per user reached"


class WinnerNotFound(LuckyDrawError):
    code = "WINNER_NOT_FOUND"
    default_detail = "Winner not found"


class WinnerAlreadyReplaced(LuckyDrawError):
    code = "WINNER_ALREADY_REPLACED"
    default_detail = "Winner has already been replaced"


__all__ = [
    "ConfigNotFound",
    "DrawNotScheduled",
    "LuckyDrawError",
    "MaxEntriesPerUserReached",
    "NoActiveConfiguration",
    "NoEligibleEntries",
    "NoEligibleEntriesForRedraw",
    "NoEntries",
    "PrizeTierNotFound",
    "WinnerAlreadyReplaced",
    "WinnerNotFound",
]
