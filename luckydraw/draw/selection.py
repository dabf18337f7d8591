"""Allocate a shuffled pool of entries to prize tiers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from ..models import Entry, PrizeTier


@dataclass(frozen=True)
class Allocation:
    """One entry awarded to one prize tier.

    Attributes
    ----------
    entry : Entry
        Winning entry.
    tier : PrizeTier
        Tier definition the entry was allocated to.
    selection_order : int
        Event-wide award sequence number.
    """

    entry: Entry
    tier: PrizeTier
    selection_order: int


def order_tiers(prize_tiers: Iterable[PrizeTier]) -> list[PrizeTier]:
    """Sort tiers grand first, consolation last; ties keep declaration order."""

    return sorted(prize_tiers, key=lambda tier: tier.rank)


def allocate_winners(
    pool: Sequence[Entry],
    prize_tiers: Iterable[PrizeTier],
    *,
    start_order: int = 1,
) -> list[Allocation]:
    """Assign entries from ``pool`` to tier slots in tier priority order.

    ``pool`` is consumed strictly in order, so it must already be shuffled.
    Selection orders are dense, starting at ``start_order``. Allocation stops
    silently when the pool runs out; callers compare the result length with the
    configured slot count to detect under-filled tiers.
    """

    if start_order < 1:
        raise ValueError("start_order must be at least 1")

    allocations: list[Allocation] = []
    position = 0
    for tier in order_tiers(prize_tiers):
        for _ in range(tier.count):
            if position >= len(pool):
                return allocations
            allocations.append(
                Allocation(
                    entry=pool[position],
                    tier=tier,
                    selection_order=start_order + position,
                )
            )
            position += 1
    return allocations


__all__ = ["Allocation", "allocate_winners", "order_tiers"]
