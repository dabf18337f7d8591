from typing import Any, Iterable, Mapping, Optional, Union
from datetime import datetime
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from .draw.orchestrator import DrawExecution, DrawOrchestrator
from .draw.redraw import RedrawCoordinator, RedrawResult
from .draw.shuffle import RandomSource
from .db.utils import utcnow
from .errors import (
    ConfigNotFound,
    MaxEntriesPerUserReached,
    NoActiveConfiguration,
    WinnerNotFound,
)
from .models import DrawConfiguration, Entry, PrizeTier, Winner
from .stores import ConfigurationStore, EntryStore, PhotoLookup, WinnerStore

TierSpec = Union[PrizeTier, Mapping[str, Any]]


def create_configuration(
    session: Session,
    event_id: str,
    prize_tiers: Iterable[TierSpec],
    *,
    max_entries_per_user: int = 1,
    prevent_duplicate_winners: bool = True,
    scheduled_at: Optional[datetime] = None,
    created_by: Optional[str] = None,
) -> DrawConfiguration:
    """Create a new scheduled draw configuration for ``event_id``.

    Several scheduled configurations may coexist for one event; entry
    creation and :func:`get_active_configuration` pick the most recently
    created one.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    event_id : str
        Owning event.
    prize_tiers : Iterable[PrizeTier | Mapping]
        Tier definitions, either :class:`PrizeTier` objects or mappings with
        ``tier``, ``name``, ``count`` and optional ``description`` keys.
    max_entries_per_user : int, default: 1
        Per-participant cap on entries.
    prevent_duplicate_winners : bool, default: True
        Whether a participant may win at most once per draw.
    scheduled_at : Optional[datetime]
        When the draw is planned to run. Informational only.
    created_by : Optional[str]
        Opaque identifier of the organizer.

    Returns
    -------
    DrawConfiguration
        The persisted configuration.

    Raises
    ------
    ValueError
        If a tier is malformed or ``max_entries_per_user`` is below 1.
    """

    tiers = [
        tier if isinstance(tier, PrizeTier) else PrizeTier.from_dict(tier)
        for tier in prize_tiers
    ]
    configuration = DrawConfiguration(
        event_id=event_id,
        prize_tiers=tiers,
        max_entries_per_user=max_entries_per_user,
        prevent_duplicate_winners=prevent_duplicate_winners,
        scheduled_at=scheduled_at,
        created_by=created_by,
    )
    return ConfigurationStore(session).create(configuration)


def get_active_configuration(
    session: Session, event_id: str
) -> Optional[DrawConfiguration]:
    """Return the configuration currently accepting entries for ``event_id``."""

    return ConfigurationStore(session).get_latest_scheduled(event_id)


def get_latest_configuration(
    session: Session, event_id: str
) -> Optional[DrawConfiguration]:
    """Return the active configuration, or else the most recent of any status."""

    store = ConfigurationStore(session)
    return store.get_latest_scheduled(event_id) or store.get_latest(event_id)


def _require_active(session: Session, event_id: str) -> DrawConfiguration:
    configuration = get_active_configuration(session, event_id)
    if configuration is None:
        raise NoActiveConfiguration()
    return configuration


def create_entry(
    session: Session,
    event_id: str,
    participant_identity: str,
    *,
    photo_id: Optional[str] = None,
    participant_name: Optional[str] = None,
) -> Entry:
    """Submit one entry to the event's active draw.

    Raises
    ------
    NoActiveConfiguration
        If the event has no scheduled configuration.
    MaxEntriesPerUserReached
        If the participant already holds ``max_entries_per_user`` entries.
    """

    configuration = _require_active(session, event_id)
    entries = EntryStore(session)

    existing = entries.count_by_config_and_identity(
        configuration.id, participant_identity
    )
    if existing >= (configuration.max_entries_per_user or 1):
        raise MaxEntriesPerUserReached()

    entry = entries.create(
        Entry(
            event_id=event_id,
            config_id=configuration.id,
            participant_identity=participant_identity,
            photo_id=photo_id,
            participant_name=participant_name,
        )
    )
    ConfigurationStore(session).increment_total_entries(configuration.id)
    return entry


def create_manual_entries(
    session: Session,
    event_id: str,
    participant_name: str,
    *,
    participant_identity: Optional[str] = None,
    photo_id: Optional[str] = None,
    entry_count: int = 1,
) -> tuple[list[Entry], str]:
    """Add entries on behalf of a participant, e.g. from an organizer desk.

    A ``manual_<uuid>`` identity is generated when ``participant_identity`` is
    omitted. The cap is checked for the whole batch up front, so either every
    requested entry is created or none is.

    Returns
    -------
    tuple[list[Entry], str]
        The created entries and the identity they were filed under.
    """

    configuration = _require_active(session, event_id)
    requested = entry_count if entry_count and entry_count > 0 else 1
    identity = participant_identity or f"manual_{uuid.uuid4()}"

    store = EntryStore(session)
    existing = store.count_by_config_and_identity(configuration.id, identity)
    if existing + requested > (configuration.max_entries_per_user or 1):
        raise MaxEntriesPerUserReached()

    created = [
        store.create(
            Entry(
                event_id=event_id,
                config_id=configuration.id,
                participant_identity=identity,
                photo_id=photo_id,
                participant_name=participant_name,
            )
        )
        for _ in range(requested)
    ]
    ConfigurationStore(session).increment_total_entries(configuration.id)
    return created, identity


def list_entries(
    session: Session,
    config_id: int,
    *,
    winners_only: bool = False,
    limit: Optional[int] = None,
    offset: int = 0,
) -> list[Entry]:
    """Return entries of a configuration, newest first."""

    stmt = select(Entry).where(Entry.config_id == config_id)
    if winners_only:
        stmt = stmt.where(Entry.is_winner.is_(True))
    stmt = stmt.order_by(Entry.created_at.desc(), Entry.id.desc())
    if limit is not None:
        stmt = stmt.limit(limit).offset(offset)
    return list(session.scalars(stmt).all())


def list_participant_entries(
    session: Session, event_id: str, participant_identity: str
) -> list[Entry]:
    stmt = (
        select(Entry)
        .where(
            Entry.event_id == event_id,
            Entry.participant_identity == participant_identity,
        )
        .order_by(Entry.created_at.desc(), Entry.id.desc())
    )
    return list(session.scalars(stmt).all())


def execute_draw(
    session: Session,
    config_id: int,
    *,
    random_source: Optional[RandomSource] = None,
    photo_lookup: Optional[PhotoLookup] = None,
) -> DrawExecution:
    """Run the draw for ``config_id``.

    This function wraps :meth:`DrawOrchestrator.execute`; see it for the
    error conditions. Commit the surrounding transaction to publish the
    result.
    """

    orchestrator = DrawOrchestrator(
        session, random_source=random_source, photo_lookup=photo_lookup
    )
    return orchestrator.execute(config_id)


def cancel_draw(
    session: Session, config_id: int, reason: Optional[str] = None
) -> DrawConfiguration:
    return DrawOrchestrator(session).cancel(config_id, reason)


def redraw_prize_tier(
    session: Session,
    event_id: str,
    config_id: int,
    prize_tier: str,
    *,
    previous_winner_id: Optional[int] = None,
    reason: Optional[str] = None,
    random_source: Optional[RandomSource] = None,
    photo_lookup: Optional[PhotoLookup] = None,
) -> RedrawResult:
    """Replace (or add) a winner for one prize tier.

    This function wraps :meth:`RedrawCoordinator.redraw`.
    """

    coordinator = RedrawCoordinator(
        session, random_source=random_source, photo_lookup=photo_lookup
    )
    return coordinator.redraw(
        event_id,
        config_id,
        prize_tier,
        previous_winner_id=previous_winner_id,
        reason=reason,
    )


def list_winners(session: Session, event_id: str, *, standing_only: bool = False) -> list[Winner]:
    """Return the event's winners in selection order.

    Replaced awards are included unless ``standing_only`` is set.
    """

    winners = WinnerStore(session).list_by_event(event_id)
    if standing_only:
        return [winner for winner in winners if winner.is_standing]
    return winners


def mark_winner_claimed(session: Session, winner_id: int) -> Winner:
    """Record that the prize of ``winner_id`` was handed over."""

    winner = WinnerStore(session).get(winner_id)
    if winner is None:
        raise WinnerNotFound(f"Winner {winner_id} not found")
    winner.is_claimed = True
    winner.notified_at = utcnow()
    session.flush()
    return winner


def get_configuration(session: Session, config_id: int) -> DrawConfiguration:
    configuration = ConfigurationStore(session).get(config_id)
    if configuration is None:
        raise ConfigNotFound(f"Draw configuration {config_id} not found")
    return configuration
