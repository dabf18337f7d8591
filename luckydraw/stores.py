"""SQLAlchemy-backed store adapters used by the draw engine.

The engine never issues queries directly; it goes through the three stores
below so the persistence rules (conditional status transitions, append-only
winners, replacement annotations) live in one place. All stores share the
caller's :class:`~sqlalchemy.orm.Session` and never commit; the caller owns
the transaction boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from .db.utils import utcnow
from .models import ANONYMOUS_NAME, STATUS_SCHEDULED, DrawConfiguration, Entry, Winner

REPLACED_MARKER = "[REPLACED: {reason}]"


@dataclass(frozen=True)
class PhotoDisplayInfo:
    """Display fields resolved from a photo linked to an entry."""

    name: Optional[str] = None
    image_url: Optional[str] = None


class PhotoLookup(Protocol):
    """External collaborator resolving a photo id to display fields."""

    def get_display_info(self, photo_id: str) -> Optional[PhotoDisplayInfo]:
        ...


class MappingPhotoLookup:
    """Photo lookup over an in-memory mapping of photo id to display info."""

    def __init__(self, photos: Optional[Mapping[str, PhotoDisplayInfo]] = None) -> None:
        self._photos = dict(photos or {})

    def get_display_info(self, photo_id: str) -> Optional[PhotoDisplayInfo]:
        return self._photos.get(photo_id)


def resolve_display_fields(
    entry: Entry, photo_lookup: Optional[PhotoLookup] = None
) -> tuple[str, str]:
    """Return ``(participant_name, display_image_url)`` for a winning entry.

    The entry's own name wins, then the linked photo's contributor name, then
    ``"Anonymous"``. The image URL comes from the photo, or is empty.
    """

    photo: Optional[PhotoDisplayInfo] = None
    if entry.photo_id and photo_lookup is not None:
        photo = photo_lookup.get_display_info(entry.photo_id)

    name = entry.participant_name or (photo.name if photo else None) or ANONYMOUS_NAME
    image_url = (photo.image_url if photo else None) or ""
    return name, image_url


class EntryStore:
    """CRUD over contest entries scoped to a draw configuration."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def create(self, entry: Entry) -> Entry:
        self._session.add(entry)
        self._session.flush()
        return entry

    def get(self, entry_id: int) -> Optional[Entry]:
        return self._session.get(Entry, entry_id)

    def count_by_config_and_identity(self, config_id: int, identity: str) -> int:
        stmt = select(func.count(Entry.id)).where(
            Entry.config_id == config_id,
            Entry.participant_identity == identity,
        )
        return int(self._session.scalar(stmt) or 0)

    def count_by_config(self, config_id: int) -> int:
        stmt = select(func.count(Entry.id)).where(Entry.config_id == config_id)
        return int(self._session.scalar(stmt) or 0)

    def list_non_winning(self, config_id: int) -> list[Entry]:
        """Return the configuration's non-winning entries, oldest first."""

        stmt = (
            select(Entry)
            .where(Entry.config_id == config_id, Entry.is_winner.is_(False))
            .order_by(Entry.created_at.asc(), Entry.id.asc())
        )
        return list(self._session.scalars(stmt).all())

    def mark_winner(self, entry_id: int, tier: str) -> Entry:
        entry = self._require(entry_id)
        entry.is_winner = True
        entry.prize_tier = tier
        return entry

    def clear_winner(self, entry_id: int) -> Entry:
        entry = self._require(entry_id)
        entry.is_winner = False
        entry.prize_tier = None
        return entry

    def _require(self, entry_id: int) -> Entry:
        entry = self.get(entry_id)
        if entry is None:
            raise LookupError(f"Entry {entry_id} does not exist")
        return entry


class ConfigurationStore:
    """CRUD over draw configurations."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def create(self, configuration: DrawConfiguration) -> DrawConfiguration:
        self._session.add(configuration)
        self._session.flush()
        return configuration

    def get(self, config_id: int, *, for_update: bool = False) -> Optional[DrawConfiguration]:
        """Load a configuration, optionally taking a row lock.

        ``for_update`` renders ``SELECT ... FOR UPDATE`` on backends that
        support it; SQLite ignores it and serializes writers on its own.
        """

        if not for_update:
            return self._session.get(DrawConfiguration, config_id)
        stmt = (
            select(DrawConfiguration)
            .where(DrawConfiguration.id == config_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self._session.scalar(stmt)

    def get_latest_scheduled(self, event_id: str) -> Optional[DrawConfiguration]:
        """Return the most recently created scheduled configuration."""

        stmt = (
            select(DrawConfiguration)
            .where(
                DrawConfiguration.event_id == event_id,
                DrawConfiguration.status == STATUS_SCHEDULED,
            )
            .order_by(DrawConfiguration.created_at.desc(), DrawConfiguration.id.desc())
        )
        return self._session.scalars(stmt).first()

    def get_latest(self, event_id: str) -> Optional[DrawConfiguration]:
        stmt = (
            select(DrawConfiguration)
            .where(DrawConfiguration.event_id == event_id)
            .order_by(DrawConfiguration.created_at.desc(), DrawConfiguration.id.desc())
        )
        return self._session.scalars(stmt).first()

    def update_status(self, config_id: int, status: str) -> None:
        """Unconditionally set ``status``. Prefer :meth:`transition_status`."""

        self._session.execute(
            update(DrawConfiguration)
            .where(DrawConfiguration.id == config_id)
            .values(status=status, updated_at=utcnow())
        )

    def transition_status(
        self,
        config_id: int,
        expected: str,
        new: str,
        **values: Any,
    ) -> bool:
        """Compare-and-swap the status of a configuration.

        Issues ``UPDATE ... WHERE id = :id AND status = :expected`` and
        reports whether exactly one row changed. A concurrent caller that
        already moved the row out of ``expected`` makes this return ``False``.
        """

        stmt = (
            update(DrawConfiguration)
            .where(
                DrawConfiguration.id == config_id,
                DrawConfiguration.status == expected,
            )
            .values(status=new, updated_at=utcnow(), **values)
            .execution_options(synchronize_session="fetch")
        )
        result = self._session.execute(stmt)
        return result.rowcount == 1

    def increment_total_entries(self, config_id: int) -> int:
        """Recompute the denormalized entry counter from the entry table."""

        self._session.flush()
        total = EntryStore(self._session).count_by_config(config_id)
        self._session.execute(
            update(DrawConfiguration)
            .where(DrawConfiguration.id == config_id)
            .values(total_entries=total, updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        return total


class WinnerStore:
    """Append-only record of awarded and redrawn winners."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def create(self, winner: Winner) -> Winner:
        self._session.add(winner)
        self._session.flush()
        return winner

    def get(self, winner_id: int) -> Optional[Winner]:
        return self._session.get(Winner, winner_id)

    def list_by_event(self, event_id: str) -> list[Winner]:
        return Winner.list_for_event(self._session, event_id)

    def annotate_replacement(self, winner_id: int, reason: str) -> Winner:
        """Mark a winner as superseded without deleting the row."""

        winner = self.get(winner_id)
        if winner is None:
            raise LookupError(f"Winner {winner_id} does not exist")
        now = utcnow()
        marker = REPLACED_MARKER.format(reason=reason)
        description = winner.prize_description or ""
        winner.prize_description = f"{description} {marker}".strip()
        winner.replaced_at = now
        winner.replacement_reason = reason
        winner.is_claimed = False
        winner.notified_at = now
        return winner

    def standing_identities(
        self, event_id: str, *, excluding_winner_id: Optional[int] = None
    ) -> set[str]:
        """Identities of every winner of ``event_id`` not yet replaced.

        The award ``excluding_winner_id`` is left out, so an identity only
        stays in the result while it holds another standing award.
        """

        stmt = (
            select(Entry.participant_identity)
            .join(Winner, Winner.entry_id == Entry.id)
            .where(Winner.event_id == event_id, Winner.replaced_at.is_(None))
            .distinct()
        )
        if excluding_winner_id is not None:
            stmt = stmt.where(Winner.id != excluding_winner_id)
        return set(self._session.scalars(stmt).all())

    def next_selection_order(self, event_id: str) -> int:
        """Return ``max(selection_order) + 1`` for the event, starting at 1."""

        stmt = select(func.coalesce(func.max(Winner.selection_order), 0)).where(
            Winner.event_id == event_id
        )
        return int(self._session.scalar(stmt) or 0) + 1


__all__ = [
    "ConfigurationStore",
    "EntryStore",
    "MappingPhotoLookup",
    "PhotoDisplayInfo",
    "PhotoLookup",
    "WinnerStore",
    "resolve_display_fields",
]
