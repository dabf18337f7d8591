"""Lucky draw engine: shuffle, eligibility, allocation, execution and redraw."""

from .eligibility import filter_eligible, filter_for_configuration, per_user_cap
from .orchestrator import DrawExecution, DrawOrchestrator, DrawStatistics
from .redraw import RedrawCoordinator, RedrawResult
from .selection import Allocation, allocate_winners, order_tiers
from .shuffle import (
    DEFAULT_RANDOM_SOURCE,
    RandomSource,
    SecureRandomSource,
    secure_shuffle,
    shuffled,
)

__all__ = [
    "Allocation",
    "DEFAULT_RANDOM_SOURCE",
    "DrawExecution",
    "DrawOrchestrator",
    "DrawStatistics",
    "RandomSource",
    "RedrawCoordinator",
    "RedrawResult",
    "SecureRandomSource",
    "allocate_winners",
    "filter_eligible",
    "filter_for_configuration",
    "order_tiers",
    "per_user_cap",
    "secure_shuffle",
    "shuffled",
]
