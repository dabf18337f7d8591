from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .draw import (  # noqa: F401
    ANONYMOUS_NAME,
    DRAW_STATUSES,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_SCHEDULED,
    TIER_ORDER,
    TIER_RANK,
    DrawConfiguration,
    Entry,
    PrizeTier,
    Winner,
)

__all__ = [
    "Base",
    "ANONYMOUS_NAME",
    "DRAW_STATUSES",
    "STATUS_CANCELLED",
    "STATUS_COMPLETED",
    "STATUS_SCHEDULED",
    "TIER_ORDER",
    "TIER_RANK",
    "DrawConfiguration",
    "Entry",
    "PrizeTier",
    "Winner",
]
