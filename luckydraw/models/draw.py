"""Database models for the lucky draw subsystem."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    select,
    text,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import ID_TYPE, Base, utc_timestamp

# Rank order of prize tiers; lower index is drawn first.
TIER_ORDER: tuple[str, ...] = ("grand", "first", "second", "third", "consolation")
TIER_RANK: dict[str, int] = {tier: rank for rank, tier in enumerate(TIER_ORDER)}

DRAW_STATUSES: tuple[str, ...] = ("scheduled", "completed", "cancelled")
STATUS_SCHEDULED = "scheduled"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"

ANONYMOUS_NAME = "Anonymous"


@dataclass(frozen=True)
class PrizeTier:
    """One prize tier of a draw configuration.

    Attributes
    ----------
    tier : str
        Rank of the prize, one of :data:`TIER_ORDER`.
    name : str
        Display name of the prize.
    count : int
        Number of winner slots for this tier. Zero is allowed.
    description : Optional[str]
        Free form description copied onto each winner record.
    """

    tier: str
    name: str
    count: int
    description: Optional[str] = None

    def __post_init__(self) -> None:
        if self.tier not in TIER_RANK:
            raise ValueError(
                f"Unknown prize tier {self.tier!r}; expected one of {', '.join(TIER_ORDER)}"
            )
        if not self.name or not self.name.strip():
            raise ValueError("Prize tier name must not be empty")
        if isinstance(self.count, bool) or not isinstance(self.count, int):
            raise TypeError("Prize tier count must be an integer")
        if self.count < 0:
            raise ValueError("Prize tier count must be non-negative")

    @property
    def rank(self) -> int:
        return TIER_RANK[self.tier]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PrizeTier":
        """Build a tier from its JSON representation."""

        try:
            tier = data["tier"]
            name = data["name"]
        except KeyError as exc:
            raise ValueError(f"Prize tier is missing the {exc.args[0]!r} field") from exc
        return cls(
            tier=tier,
            name=name,
            count=data.get("count", 0),
            description=data.get("description"),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"tier": self.tier, "name": self.name, "count": self.count}
        if self.description is not None:
            data["description"] = self.description
        return data


def _coerce_tiers(prize_tiers: Iterable[PrizeTier | Mapping[str, Any]]) -> list[PrizeTier]:
    return [
        tier if isinstance(tier, PrizeTier) else PrizeTier.from_dict(tier)
        for tier in prize_tiers
    ]


class DrawConfiguration(Base):
    """Rule set and lifecycle record governing one draw for an event."""

    __tablename__ = "lucky_draw_configs"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    event_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    """Owning event. Opaque to the engine."""

    prize_tiers: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
    """Prize tiers as stored JSON; use :attr:`tiers` for parsed values."""

    max_entries_per_user: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1
    )
    """Cap of eligible entries per participant when duplicates are allowed."""

    prevent_duplicate_winners: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )
    """When set, at most one entry per participant is eligible."""

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=STATUS_SCHEDULED, index=True
    )
    """Lifecycle status ("scheduled", "completed" or "cancelled")."""

    total_entries: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Denormalized entry count, recomputed whenever an entry is added."""

    scheduled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    """Set when the draw leaves the scheduled state, either way."""

    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = utc_timestamp()
    updated_at: Mapped[datetime] = utc_timestamp(onupdate=True)

    entries: Mapped[list["Entry"]] = relationship(back_populates="configuration")

    __table_args__ = (
        CheckConstraint(
            "status IN ('scheduled','completed','cancelled')", name="draw_status_enum"
        ),
        CheckConstraint("max_entries_per_user >= 1", name="max_entries_positive"),
    )

    def __init__(
        self,
        *,
        event_id: str,
        prize_tiers: Iterable[PrizeTier | Mapping[str, Any]] = (),
        max_entries_per_user: int = 1,
        prevent_duplicate_winners: bool = True,
        status: str = STATUS_SCHEDULED,
        scheduled_at: Optional[datetime] = None,
        created_by: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> None:
        if max_entries_per_user < 1:
            raise ValueError("max_entries_per_user must be at least 1")
        if status not in DRAW_STATUSES:
            raise ValueError(f"Unknown draw status {status!r}")
        self.event_id = event_id
        self.prize_tiers = [tier.to_dict() for tier in _coerce_tiers(prize_tiers)]
        self.max_entries_per_user = max_entries_per_user
        self.prevent_duplicate_winners = prevent_duplicate_winners
        self.status = status
        self.total_entries = 0
        self.scheduled_at = scheduled_at
        self.created_by = created_by
        if created_at is not None:
            self.created_at = created_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<DrawConfiguration(id={id}, event_id={event}, status={status})>".format(
            id=self.id,
            event=self.event_id,
            status=self.status,
        )

    @property
    def tiers(self) -> list[PrizeTier]:
        """Prize tiers parsed from :attr:`prize_tiers`, in declaration order."""

        return _coerce_tiers(self.prize_tiers or [])

    @property
    def total_slots(self) -> int:
        return sum(tier.count for tier in self.tiers)

    def find_tier(self, tier: str) -> Optional[PrizeTier]:
        """Return the first declared tier named ``tier``, if any."""

        for candidate in self.tiers:
            if candidate.tier == tier:
                return candidate
        return None

    @property
    def is_scheduled(self) -> bool:
        return self.status == STATUS_SCHEDULED


class Entry(Base):
    """One contest submission."""

    __tablename__ = "lucky_draw_entries"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    event_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    config_id: Mapped[int] = mapped_column(
        ID_TYPE,
        ForeignKey("lucky_draw_configs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    photo_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    """Externally owned artifact, only used to enrich winner display fields."""

    participant_identity: Mapped[str] = mapped_column(String(255), nullable=False)
    """Opaque fingerprint used for duplicate suppression."""

    participant_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_winner: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    prize_tier: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    """Set only while :attr:`is_winner` is true."""

    created_at: Mapped[datetime] = utc_timestamp()

    configuration: Mapped["DrawConfiguration"] = relationship(back_populates="entries")
    winners: Mapped[list["Winner"]] = relationship(back_populates="entry")

    __table_args__ = (
        Index("ix_lucky_draw_entries_config_identity", "config_id", "participant_identity"),
        Index("ix_lucky_draw_entries_event_identity", "event_id", "participant_identity"),
    )

    def __init__(
        self,
        *,
        event_id: str,
        participant_identity: str,
        config_id: Optional[int] = None,
        configuration: Optional["DrawConfiguration"] = None,
        photo_id: Optional[str] = None,
        participant_name: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> None:
        if not participant_identity:
            raise ValueError("participant_identity must not be empty")
        self.event_id = event_id
        self.participant_identity = participant_identity
        if configuration is not None:
            self.configuration = configuration
        if config_id is not None:
            self.config_id = config_id
        self.photo_id = photo_id
        self.participant_name = participant_name
        self.is_winner = False
        self.prize_tier = None
        if created_at is not None:
            self.created_at = created_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<Entry(id={id}, config_id={config}, is_winner={won}, prize_tier={tier})>".format(
            id=self.id,
            config=self.config_id,
            won=self.is_winner,
            tier=self.prize_tier,
        )


class Winner(Base):
    """Immutable-once-written record of a prize award.

    Superseded awards are annotated through :attr:`replaced_at` and
    :attr:`replacement_reason`; rows are never deleted.
    """

    __tablename__ = "lucky_draw_winners"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    event_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    entry_id: Mapped[int] = mapped_column(
        ID_TYPE,
        ForeignKey("lucky_draw_entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    participant_name: Mapped[str] = mapped_column(String(255), nullable=False)
    display_image_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    prize_tier: Mapped[str] = mapped_column(String(20), nullable=False)
    prize_name: Mapped[str] = mapped_column(String(255), nullable=False)
    prize_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    selection_order: Mapped[int] = mapped_column(Integer, nullable=False)
    """Event-wide, strictly increasing award sequence number."""

    is_claimed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    is_redraw: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    """True when the award was produced by a redraw rather than the main draw."""

    replaced_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    """Set once another winner has taken over this award."""

    replacement_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    drawn_at: Mapped[datetime] = utc_timestamp()
    notified_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = utc_timestamp()

    entry: Mapped["Entry"] = relationship(back_populates="winners")

    __table_args__ = (
        UniqueConstraint(
            "event_id", "selection_order", name="uq_lucky_draw_winners_event_order"
        ),
    )

    def __init__(
        self,
        *,
        event_id: str,
        entry_id: Optional[int] = None,
        entry: Optional["Entry"] = None,
        participant_name: str,
        prize_tier: str,
        prize_name: str,
        selection_order: int,
        display_image_url: str = "",
        prize_description: Optional[str] = None,
        is_redraw: bool = False,
        drawn_at: Optional[datetime] = None,
    ) -> None:
        if prize_tier not in TIER_RANK:
            raise ValueError(f"Unknown prize tier {prize_tier!r}")
        self.event_id = event_id
        if entry is not None:
            self.entry = entry
        if entry_id is not None:
            self.entry_id = entry_id
        self.participant_name = participant_name
        self.display_image_url = display_image_url
        self.prize_tier = prize_tier
        self.prize_name = prize_name
        self.prize_description = prize_description
        self.selection_order = selection_order
        self.is_claimed = False
        self.is_redraw = is_redraw
        if drawn_at is not None:
            self.drawn_at = drawn_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<Winner(id={id}, event_id={event}, entry_id={entry}, prize_tier={tier}, selection_order={order})>".format(
            id=self.id,
            event=self.event_id,
            entry=self.entry_id,
            tier=self.prize_tier,
            order=self.selection_order,
        )

    @property
    def is_standing(self) -> bool:
        """Whether this award has not been superseded by a redraw."""

        return self.replaced_at is None

    @classmethod
    def list_for_event(cls, session: Session, event_id: str) -> list["Winner"]:
        """Return every winner of ``event_id`` in selection order."""

        stmt = (
            select(cls)
            .where(cls.event_id == event_id)
            .order_by(cls.selection_order.asc())
        )
        return list(session.scalars(stmt).all())


__all__ = [
    "ANONYMOUS_NAME",
    "DRAW_STATUSES",
    "DrawConfiguration",
    "Entry",
    "PrizeTier",
    "STATUS_CANCELLED",
    "STATUS_COMPLETED",
    "STATUS_SCHEDULED",
    "TIER_ORDER",
    "TIER_RANK",
    "Winner",
]
