"""State machine coordinating a single execution of a lucky draw."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from .eligibility import filter_for_configuration
from .selection import Allocation, allocate_winners
from .shuffle import RandomSource, shuffled
from ..db.utils import utcnow
from ..errors import ConfigNotFound, DrawNotScheduled, NoEntries
from ..models import (
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_SCHEDULED,
    DrawConfiguration,
    Winner,
)
from ..stores import (
    ConfigurationStore,
    EntryStore,
    PhotoLookup,
    WinnerStore,
    resolve_display_fields,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DrawStatistics:
    """Counters reported alongside an execution.

    Attributes
    ----------
    total_entries : int
        Non-winning entries considered by the draw.
    eligible_entries : int
        Entries left after duplicate suppression.
    winners_selected : int
        Winners actually awarded. Lower than the configured slot total when
        the pool was too small.
    """

    total_entries: int
    eligible_entries: int
    winners_selected: int


@dataclass
class DrawExecution:
    """Outcome of :meth:`DrawOrchestrator.execute`."""

    configuration: DrawConfiguration
    winners: list[Winner] = field(default_factory=list)
    statistics: DrawStatistics = field(default_factory=lambda: DrawStatistics(0, 0, 0))


class DrawOrchestrator:
    """Validate, select, persist and close a draw configuration.

    The orchestrator works inside the caller's transaction: it flushes but
    never commits, so a failure anywhere leaves the caller free to roll back
    every entry mutation, winner row and status change together.
    """

    def __init__(
        self,
        session: Session,
        *,
        random_source: Optional[RandomSource] = None,
        photo_lookup: Optional[PhotoLookup] = None,
    ) -> None:
        """Create an orchestrator bound to a SQLAlchemy session.

        Parameters
        ----------
        session : Session
            Active session used for lookups and persistence.
        random_source : Optional[RandomSource], default: None
            Random source for the shuffle. The CSPRNG-backed default is used
            when omitted.
        photo_lookup : Optional[PhotoLookup], default: None
            Resolves display name and image for entries linked to a photo.
        """

        self._session = session
        self._random = random_source
        self._photos = photo_lookup
        self._configs = ConfigurationStore(session)
        self._entries = EntryStore(session)
        self._winners = WinnerStore(session)

    def execute(self, config_id: int) -> DrawExecution:
        """Run the draw for ``config_id`` exactly once.

        Steps
        -----
        1. Load the configuration and require ``status == "scheduled"``.
        2. Load the non-winning entries and apply the eligibility filter.
        3. Shuffle the eligible pool and allocate it to the prize tiers.
        4. Flip the status to ``"completed"`` with a compare-and-swap; a
           concurrent caller that lost the race gets :class:`DrawNotScheduled`.
        5. Mark winning entries and append the :class:`Winner` rows.

        Every validation happens before the first write.

        Raises
        ------
        ConfigNotFound
            If the configuration does not exist.
        DrawNotScheduled
            If the draw was already completed or cancelled.
        NoEntries
            If the configuration has no non-winning entries.
        NoEligibleEntries
            If no entry survives duplicate suppression.
        """

        configuration = self._load(config_id)
        if not configuration.is_scheduled:
            raise DrawNotScheduled(
                f"Draw {config_id} is {configuration.status}, not scheduled"
            )

        entries = self._entries.list_non_winning(configuration.id)
        if not entries:
            raise NoEntries()

        eligible = filter_for_configuration(entries, configuration)
        pool = shuffled(eligible, self._random)
        logger.debug(
            "Draw %s: %d entries, %d eligible after duplicate rules",
            configuration.id,
            len(entries),
            len(eligible),
        )

        start_order = self._winners.next_selection_order(configuration.event_id)
        allocations = allocate_winners(
            pool, configuration.tiers, start_order=start_order
        )

        now = utcnow()
        if not self._configs.transition_status(
            configuration.id, STATUS_SCHEDULED, STATUS_COMPLETED, completed_at=now
        ):
            raise DrawNotScheduled(f"Draw {config_id} was executed concurrently")

        winners = [self._award(allocation, drawn_at=now) for allocation in allocations]
        self._session.flush()

        statistics = DrawStatistics(
            total_entries=len(entries),
            eligible_entries=len(eligible),
            winners_selected=len(winners),
        )
        slots = configuration.total_slots
        if statistics.winners_selected < slots:
            logger.warning(
                "Draw %s under-filled: %d of %d prize slots awarded",
                configuration.id,
                statistics.winners_selected,
                slots,
            )
        logger.info(
            "Draw %s completed for event %s with %d winners",
            configuration.id,
            configuration.event_id,
            statistics.winners_selected,
        )
        return DrawExecution(
            configuration=configuration, winners=winners, statistics=statistics
        )

    def cancel(self, config_id: int, reason: Optional[str] = None) -> DrawConfiguration:
        """Move a scheduled draw to ``"cancelled"``. Entries are untouched.

        Raises
        ------
        ConfigNotFound
            If the configuration does not exist.
        DrawNotScheduled
            If the draw already left the scheduled state.
        """

        configuration = self._load(config_id)
        changed = self._configs.transition_status(
            configuration.id,
            STATUS_SCHEDULED,
            STATUS_CANCELLED,
            completed_at=utcnow(),
            cancellation_reason=reason,
        )
        if not changed:
            raise DrawNotScheduled(
                f"Draw {config_id} is {configuration.status}, not scheduled"
            )
        logger.info("Draw %s cancelled", configuration.id)
        return configuration

    def _load(self, config_id: int) -> DrawConfiguration:
        configuration = self._configs.get(config_id)
        if configuration is None:
            raise ConfigNotFound(f"Draw configuration {config_id} not found")
        return configuration

    def _award(self, allocation: Allocation, *, drawn_at: datetime) -> Winner:
        entry = self._entries.mark_winner(allocation.entry.id, allocation.tier.tier)
        participant_name, image_url = resolve_display_fields(entry, self._photos)
        winner = Winner(
            event_id=entry.event_id,
            entry_id=entry.id,
            participant_name=participant_name,
            display_image_url=image_url,
            prize_tier=allocation.tier.tier,
            prize_name=allocation.tier.name,
            prize_description=allocation.tier.description or "",
            selection_order=allocation.selection_order,
            drawn_at=drawn_at,
        )
        self._session.add(winner)
        return winner


__all__ = ["DrawExecution", "DrawOrchestrator", "DrawStatistics"]
