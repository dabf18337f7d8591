"""Read-only rollups for lucky draw dashboards."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .models import STATUS_COMPLETED, DrawConfiguration, Entry, Winner


@dataclass(frozen=True)
class EventStatistics:
    """Per-event counters.

    Attributes
    ----------
    total_entries : int
        Entries submitted across every configuration of the event.
    unique_participants : int
        Distinct participant identities among those entries.
    total_draws : int
        Configurations that reached ``"completed"``.
    total_winners : int
        Winner records, replaced ones included.
    """

    total_entries: int
    unique_participants: int
    total_draws: int
    total_winners: int


@dataclass(frozen=True)
class ParticipantStatistics:
    entry_count: int
    has_won: bool


class DrawStatisticsAggregator:
    """Counts entries, participants, draws and winners for an event."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def _count(self, stmt) -> int:
        return int(self._session.scalar(stmt) or 0)

    def event_statistics(self, event_id: str) -> EventStatistics:
        total_entries = self._count(
            select(func.count(Entry.id)).where(Entry.event_id == event_id)
        )
        unique_participants = self._count(
            select(func.count(func.distinct(Entry.participant_identity))).where(
                Entry.event_id == event_id
            )
        )
        total_draws = self._count(
            select(func.count(DrawConfiguration.id)).where(
                DrawConfiguration.event_id == event_id,
                DrawConfiguration.status == STATUS_COMPLETED,
            )
        )
        total_winners = self._count(
            select(func.count(Winner.id)).where(Winner.event_id == event_id)
        )
        return EventStatistics(
            total_entries=total_entries,
            unique_participants=unique_participants,
            total_draws=total_draws,
            total_winners=total_winners,
        )

    def participant_statistics(
        self, event_id: str, participant_identity: str
    ) -> ParticipantStatistics:
        """Return how often a participant entered and whether any entry won."""

        scope = (
            Entry.event_id == event_id,
            Entry.participant_identity == participant_identity,
        )
        entry_count = self._count(select(func.count(Entry.id)).where(*scope))
        win_count = self._count(
            select(func.count(Entry.id)).where(*scope, Entry.is_winner.is_(True))
        )
        return ParticipantStatistics(entry_count=entry_count, has_won=win_count > 0)


def get_event_statistics(session: Session, event_id: str) -> EventStatistics:
    return DrawStatisticsAggregator(session).event_statistics(event_id)


def get_participant_statistics(
    session: Session, event_id: str, participant_identity: str
) -> ParticipantStatistics:
    return DrawStatisticsAggregator(session).participant_statistics(
        event_id, participant_identity
    )


__all__ = [
    "DrawStatisticsAggregator",
    "EventStatistics",
    "ParticipantStatistics",
    "get_event_statistics",
    "get_participant_statistics",
]
