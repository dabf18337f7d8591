from sqlalchemy import BigInteger, DateTime, Integer
from sqlalchemy.orm import DeclarativeBase, mapped_column

from luckydraw.db.metadata import metadata_obj
from luckydraw.db.utils import utcnow

# BigInteger keys everywhere except SQLite, which only autoincrements INTEGER.
ID_TYPE = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    metadata = metadata_obj


def utc_timestamp(*, nullable: bool = False, onupdate: bool = False):
    """Timezone-aware timestamp column defaulting to the current UTC time."""
    kwargs = {"onupdate": utcnow} if onupdate else {}
    return mapped_column(
        DateTime(timezone=True), nullable=nullable, default=utcnow, **kwargs
    )


__all__ = ["Base", "ID_TYPE", "utc_timestamp"]
