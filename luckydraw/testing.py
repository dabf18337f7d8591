"""Deterministic helpers for test suites.

Nothing in this module is imported by the engine. Inject
:class:`SeededRandomSource` explicitly in tests that need reproducible draws;
production code paths always fall back to the CSPRNG-backed source.
"""

from __future__ import annotations

_LCG_MULTIPLIER = 1103515245
_LCG_INCREMENT = 12345
_LCG_MODULUS = 2**31


def string_hash(value: str) -> int:
    """Return the signed 32-bit ``h = 31 * h + c`` hash of ``value``."""

    h = 0
    for char in value:
        h = (h * 31 + ord(char)) & 0xFFFFFFFF
    return h - 0x100000000 if h & 0x80000000 else h


class SeededRandomSource:
    """Linear congruential random source seeded from a string.

    Not suitable for real draws: the output is fully predictable from the seed.
    """

    def __init__(self, seed: str) -> None:
        self.seed = seed
        self._state = string_hash(seed) % _LCG_MODULUS

    def randbelow(self, upper: int) -> int:
        if upper <= 0:
            raise ValueError("upper must be positive")
        self._state = (self._state * _LCG_MULTIPLIER + _LCG_INCREMENT) % _LCG_MODULUS
        return self._state % upper

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"SeededRandomSource(seed={self.seed!r})"


class ScriptedRandomSource:
    """Random source replaying a fixed list of values, each reduced modulo ``upper``."""

    def __init__(self, values: list[int]) -> None:
        self._values = list(values)
        self.calls: list[int] = []

    def randbelow(self, upper: int) -> int:
        self.calls.append(upper)
        if not self._values:
            return 0
        return self._values.pop(0) % upper


__all__ = ["ScriptedRandomSource", "SeededRandomSource", "string_hash"]
