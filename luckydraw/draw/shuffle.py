"""Fisher-Yates shuffle over an injected, cryptographically secure random source."""

from __future__ import annotations

import secrets
from typing import MutableSequence, Optional, Protocol, Sequence, TypeVar

T = TypeVar("T")


class RandomSource(Protocol):
    """Uniform integer generator used by :func:`secure_shuffle`."""

    def randbelow(self, upper: int) -> int:
        """Return a uniformly distributed integer in ``[0, upper)``."""
        ...


class SecureRandomSource:
    """Random source backed by the operating system CSPRNG (:mod:`secrets`)."""

    def randbelow(self, upper: int) -> int:
        if upper <= 0:
            raise ValueError("upper must be positive")
        return secrets.randbelow(upper)

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "SecureRandomSource()"


DEFAULT_RANDOM_SOURCE: RandomSource = SecureRandomSource()


def secure_shuffle(
    items: MutableSequence[T], source: Optional[RandomSource] = None
) -> MutableSequence[T]:
    """Shuffle ``items`` in place and return it.

    For ``i`` from ``len(items) - 1`` down to ``1`` a uniform ``j`` in
    ``[0, i]`` is drawn from ``source`` and elements ``i`` and ``j`` are
    swapped, so every permutation is equally likely given a uniform source.

    Parameters
    ----------
    items : MutableSequence[T]
        Sequence to permute.
    source : Optional[RandomSource], default: None
        Random source; the CSPRNG-backed :data:`DEFAULT_RANDOM_SOURCE` when
        omitted.
    """

    rng = source or DEFAULT_RANDOM_SOURCE
    for i in range(len(items) - 1, 0, -1):
        j = rng.randbelow(i + 1)
        items[i], items[j] = items[j], items[i]
    return items


def shuffled(items: Sequence[T], source: Optional[RandomSource] = None) -> list[T]:
    """Return a shuffled copy of ``items``; the input is left untouched."""

    copy = list(items)
    secure_shuffle(copy, source)
    return copy


__all__ = [
    "DEFAULT_RANDOM_SOURCE",
    "RandomSource",
    "SecureRandomSource",
    "secure_shuffle",
    "shuffled",
]
