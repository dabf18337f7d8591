"""Corrective re-selection of a single prize tier after a draw."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from .shuffle import RandomSource, shuffled
from ..db.utils import utcnow
from ..errors import (
    ConfigNotFound,
    NoEligibleEntriesForRedraw,
    PrizeTierNotFound,
    WinnerAlreadyReplaced,
    WinnerNotFound,
)
from ..models import Entry, Winner
from ..stores import (
    ConfigurationStore,
    EntryStore,
    PhotoLookup,
    WinnerStore,
    resolve_display_fields,
)

logger = logging.getLogger(__name__)

DEFAULT_REPLACEMENT_REASON = "Winner unavailable"


@dataclass
class RedrawResult:
    """Outcome of :meth:`RedrawCoordinator.redraw`.

    Attributes
    ----------
    new_winner : Winner
        Freshly created award for the requested tier.
    previous_winner : Optional[Winner]
        The replaced award, now annotated; ``None`` when the redraw only added
        a winner.
    """

    new_winner: Winner
    previous_winner: Optional[Winner] = None


def redraw_description(base: Optional[str], reason: Optional[str]) -> str:
    marker = f"[REDRAW: {reason}]" if reason else "[REDRAW]"
    return f"{base or ''} {marker}".strip()


class RedrawCoordinator:
    """Replace or add a winner for one prize tier, keeping full history."""

    def __init__(
        self,
        session: Session,
        *,
        random_source: Optional[RandomSource] = None,
        photo_lookup: Optional[PhotoLookup] = None,
    ) -> None:
        self._session = session
        self._random = random_source
        self._photos = photo_lookup
        self._configs = ConfigurationStore(session)
        self._entries = EntryStore(session)
        self._winners = WinnerStore(session)

    def redraw(
        self,
        event_id: str,
        config_id: int,
        prize_tier: str,
        previous_winner_id: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> RedrawResult:
        """Select a new winner for ``prize_tier``.

        When ``previous_winner_id`` is given, that award is annotated as
        replaced and its entry returns to the pool. The new winner is drawn
        from non-winning entries of the configuration whose participant does
        not already hold another standing award for the event. Nothing is
        written unless a replacement can be drawn.

        The configuration row is locked for the duration of the caller's
        transaction so that two redraws cannot both work from the same
        snapshot of standing winners.

        Parameters
        ----------
        event_id : str
            Event the configuration belongs to.
        config_id : int
            Configuration providing the tier definition and the entry pool.
        prize_tier : str
            Tier to redraw, e.g. ``"grand"``.
        previous_winner_id : Optional[int], default: None
            Award being replaced, if any.
        reason : Optional[str], default: None
            Free form reason recorded on both the old and the new record.

        Raises
        ------
        ConfigNotFound
            If the configuration does not exist for ``event_id``.
        PrizeTierNotFound
            If the configuration declares no such tier.
        WinnerNotFound
            If ``previous_winner_id`` does not name a winner of the event.
        WinnerAlreadyReplaced
            If that winner was already superseded.
        NoEligibleEntriesForRedraw
            If no entry is left to draw from.
        """

        configuration = self._configs.get(config_id, for_update=True)
        if configuration is None or configuration.event_id != event_id:
            raise ConfigNotFound(
                f"Draw configuration {config_id} not found for event {event_id}"
            )

        tier = configuration.find_tier(prize_tier)
        if tier is None:
            raise PrizeTierNotFound(
                f'Prize tier "{prize_tier}" not found in configuration'
            )

        previous_winner: Optional[Winner] = None
        freed_entry: Optional[Entry] = None
        if previous_winner_id is not None:
            previous_winner = self._winners.get(previous_winner_id)
            if previous_winner is None or previous_winner.event_id != event_id:
                raise WinnerNotFound(f"Winner {previous_winner_id} not found")
            if not previous_winner.is_standing:
                raise WinnerAlreadyReplaced(
                    f"Winner {previous_winner_id} has already been replaced"
                )
            freed_entry = previous_winner.entry

        # Identities holding any other standing award stay excluded, even the
        # freed one when that participant won more than one tier.
        excluded = self._winners.standing_identities(
            event_id,
            excluding_winner_id=previous_winner.id if previous_winner else None,
        )
        candidates = self._entries.list_non_winning(configuration.id)
        if freed_entry is not None and freed_entry.config_id == configuration.id:
            candidates.append(freed_entry)
        pool = sorted(
            (e for e in candidates if e.participant_identity not in excluded),
            key=lambda e: e.id,
        )
        if not pool:
            raise NoEligibleEntriesForRedraw()

        if previous_winner is not None:
            self._winners.annotate_replacement(
                previous_winner.id, reason or DEFAULT_REPLACEMENT_REASON
            )
            self._entries.clear_winner(previous_winner.entry_id)
            self._session.flush()

        selected = shuffled(pool, self._random)[0]
        participant_name, image_url = resolve_display_fields(selected, self._photos)
        self._entries.mark_winner(selected.id, tier.tier)

        new_winner = Winner(
            event_id=event_id,
            entry_id=selected.id,
            participant_name=participant_name,
            display_image_url=image_url,
            prize_tier=tier.tier,
            prize_name=tier.name,
            prize_description=redraw_description(tier.description, reason),
            selection_order=self._winners.next_selection_order(event_id),
            is_redraw=True,
            drawn_at=utcnow(),
        )
        self._winners.create(new_winner)

        logger.info(
            "Redraw for draw %s tier %s: winner %s replaced by %s (pool of %d)",
            configuration.id,
            tier.tier,
            previous_winner.id if previous_winner is not None else None,
            new_winner.id,
            len(pool),
        )
        return RedrawResult(new_winner=new_winner, previous_winner=previous_winner)


__all__ = [
    "DEFAULT_REPLACEMENT_REASON",
    "RedrawCoordinator",
    "RedrawResult",
    "redraw_description",
]
