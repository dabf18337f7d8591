"""Reduce raw entries to the pool eligible for a draw."""

from __future__ import annotations

from typing import Iterable

from ..errors import NoEligibleEntries
from ..models import DrawConfiguration, Entry


def _cap(max_entries_per_user: int, prevent_duplicate_winners: bool) -> int:
    if prevent_duplicate_winners:
        return 1
    return max(1, max_entries_per_user or 1)


def per_user_cap(configuration: DrawConfiguration) -> int:
    """Return how many entries a single participant may have in the pool."""

    return _cap(
        configuration.max_entries_per_user,
        configuration.prevent_duplicate_winners,
    )


def filter_eligible(
    entries: Iterable[Entry],
    *,
    max_entries_per_user: int,
    prevent_duplicate_winners: bool,
) -> list[Entry]:
    """Apply the duplicate-suppression rules to ``entries``.

    Entries are grouped by participant identity, groups ordered by first
    appearance and each group keeping its original relative order. At most one
    entry per group survives when ``prevent_duplicate_winners`` is set,
    otherwise at most ``max_entries_per_user``.

    Raises
    ------
    NoEligibleEntries
        If nothing survives the filter.
    """

    cap = _cap(max_entries_per_user, prevent_duplicate_winners)

    groups: dict[str, list[Entry]] = {}
    for entry in entries:
        groups.setdefault(entry.participant_identity, []).append(entry)

    eligible: list[Entry] = []
    for group in groups.values():
        eligible.extend(group[:cap])

    if not eligible:
        raise NoEligibleEntries()
    return eligible


def filter_for_configuration(
    entries: Iterable[Entry], configuration: DrawConfiguration
) -> list[Entry]:
    return filter_eligible(
        entries,
        max_entries_per_user=configuration.max_entries_per_user,
        prevent_duplicate_winners=configuration.prevent_duplicate_winners,
    )


__all__ = ["filter_eligible", "filter_for_configuration", "per_user_cap"]
