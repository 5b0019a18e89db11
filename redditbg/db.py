"""redditbg - Database engine, session management and set primitives.

SQLAlchemy sync engine/session factory for SQLite, plus the insert/lookup
primitives for the PersistentSets table.
"""

from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy import Engine, create_engine, delete, func, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from redditbg.config import DB_PATH
from redditbg.models import Base, PersistentSetEntry

logger = logging.getLogger(__name__)


def get_database_url(db_path: str | Path | None = None) -> str:
    """Get SQLite database URL.

    Args:
        db_path: Optional path override. Defaults to config.DB_PATH.

    Returns:
        SQLite connection URL string.
    """
    path = db_path if db_path is not None else DB_PATH
    return f"sqlite:///{path}"


def create_db_engine(db_path: str | Path | None = None, echo: bool = False) -> Engine:
    """Create SQLAlchemy engine.

    Args:
        db_path: Optional path override for the database file.
        echo: If True, log all SQL statements.

    Returns:
        SQLAlchemy Engine instance.
    """
    path = Path(db_path if db_path is not None else DB_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(
        get_database_url(path),
        echo=echo,
        # Fetch workers use the set primitives from a thread pool; every
        # operation gets its own session, sessions are never shared.
        connect_args={"check_same_thread": False},
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to the given engine.

    Args:
        engine: SQLAlchemy Engine instance.

    Returns:
        Configured sessionmaker.
    """
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(db_path: str | Path | None = None, echo: bool = False) -> tuple[Engine, sessionmaker]:
    """Initialize the database: create engine, session factory, and all tables.

    This is idempotent - safe to call multiple times.

    Args:
        db_path: Optional path override for the database file.
        echo: If True, log all SQL statements.

    Returns:
        Tuple of (engine, SessionFactory).
    """
    engine = create_db_engine(db_path, echo=echo)
    SessionFactory = create_session_factory(engine)

    # CREATE TABLE IF NOT EXISTS semantics via checkfirst=True
    Base.metadata.create_all(engine)

    return engine, SessionFactory


# --- Set Membership Errors ---


class PersistentSetError(Exception):
    """Base exception for rejected PersistentSets inserts."""

    error_code = "SET_INSERT_FAILED"

    def __init__(self, name: str | None, url: str | None, message: str):
        self.name = name
        self.url = url
        self.message = message
        super().__init__(f"{self.error_code}: {message}")


class DuplicateSetMember(PersistentSetError):
    """Raised when (name, url) is already present."""

    error_code = "DUPLICATE_MEMBER"

    def __init__(self, name: str | None, url: str | None):
        super().__init__(name, url, f"{url!r} is already a member of set {name!r}")


class MissingSetField(PersistentSetError):
    """Raised when name or url is missing."""

    error_code = "MISSING_FIELD"

    def __init__(self, name: str | None, url: str | None, field_name: str):
        self.field_name = field_name
        super().__init__(name, url, f"PersistentSets.{field_name} is required")


def _classify_integrity_error(exc: IntegrityError, name: str | None, url: str | None) -> PersistentSetError:
    """Map SQLite's constraint message onto a PersistentSetError."""
    detail = str(exc.orig).lower()
    if "not null" in detail:
        field_name = "name" if "persistentsets.name" in detail else "url"
        return MissingSetField(name, url, field_name)
    if "unique" in detail or "primary key" in detail:
        return DuplicateSetMember(name, url)
    return PersistentSetError(name, url, str(exc.orig))


# --- Set Primitives ---


def insert_set_member(session: Session, name: str | None, url: str | None) -> PersistentSetEntry:
    """Insert a (name, url) row into PersistentSets.

    Uniqueness and NOT NULL are left to SQLite; the resulting integrity error
    is translated. A failed INSERT does not end the session's transaction.

    Note:
        This function does NOT commit the transaction. Caller must call
        session.commit() (or manage the transaction) to persist.

    Args:
        session: Active database session.
        name: Set name.
        url: Member URL.

    Returns:
        The inserted row, timestamp populated by the database.

    Raises:
        DuplicateSetMember: If (name, url) already exists.
        MissingSetField: If name or url is None.
    """
    stmt = insert(PersistentSetEntry).values(name=name, url=url)
    try:
        session.execute(stmt)
    except IntegrityError as exc:
        raise _classify_integrity_error(exc, name, url) from exc

    entry = session.get(PersistentSetEntry, (name, url))
    if entry is None:
        # Identity lookup right after INSERT; only a concurrent delete gets here
        raise PersistentSetError(name, url, "row vanished after insert")
    return entry


def set_contains(session: Session, name: str, url: str) -> bool:
    """Check whether url is a member of set name."""
    stmt = select(PersistentSetEntry.url).where(
        PersistentSetEntry.name == name,
        PersistentSetEntry.url == url,
    )
    return session.execute(stmt).first() is not None


def list_set_members(session: Session, name: str) -> list[PersistentSetEntry]:
    """List members of set name, oldest first."""
    stmt = (
        select(PersistentSetEntry)
        .where(PersistentSetEntry.name == name)
        .order_by(PersistentSetEntry.timestamp, PersistentSetEntry.url)
    )
    return list(session.execute(stmt).scalars())


def list_set_names(session: Session) -> list[str]:
    """List distinct set names, sorted."""
    stmt = select(PersistentSetEntry.name).distinct().order_by(PersistentSetEntry.name)
    return list(session.execute(stmt).scalars())


def count_set_members(session: Session, name: str) -> int:
    """Count members of set name."""
    stmt = select(func.count()).select_from(PersistentSetEntry).where(PersistentSetEntry.name == name)
    return int(session.execute(stmt).scalar_one())


def remove_set_member(session: Session, name: str, url: str) -> bool:
    """Remove url from set name.

    Note:
        Does NOT commit the transaction.

    Returns:
        True if a row was deleted.
    """
    stmt = delete(PersistentSetEntry).where(
        PersistentSetEntry.name == name,
        PersistentSetEntry.url == url,
    )
    result = session.execute(stmt)
    return result.rowcount > 0
