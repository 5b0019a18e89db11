"""redditbg - SQLAlchemy ORM models.

Single table:
1. PersistentSets
"""

from sqlalchemy import Text, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class PersistentSetEntry(Base):
    """Membership of a URL in a named set.

    Rows are only ever inserted and looked up. The composite primary key
    (name, url) is the only uniqueness rule; timestamp is filled in by
    SQLite when omitted.
    """

    __tablename__ = "PersistentSets"

    # Set name (e.g. "downloaded", "invalid")
    name: Mapped[str] = mapped_column(Text, primary_key=True, nullable=False)

    # Insertion time as "YYYY-MM-DD HH:MM:SS" (UTC)
    timestamp: Mapped[str | None] = mapped_column(
        Text, nullable=True, server_default=text("CURRENT_TIMESTAMP")
    )

    url: Mapped[str] = mapped_column(Text, primary_key=True, nullable=False)

    def __repr__(self) -> str:
        return f"PersistentSetEntry(name={self.name!r}, url={self.url!r}, timestamp={self.timestamp!r})"
