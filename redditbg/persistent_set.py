"""redditbg - Named handle over one PersistentSets set.

Each operation opens and closes its own session, so a single handle can be
shared by the fetch worker's threads.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import sessionmaker

from redditbg.db import (
    DuplicateSetMember,
    count_set_members,
    insert_set_member,
    list_set_members,
    set_contains,
)

logger = logging.getLogger(__name__)


class PersistentSet:
    """A set of URLs persisted under a name."""

    def __init__(self, name: str, session_factory: sessionmaker):
        if not name:
            raise ValueError("PersistentSet name is required")
        self.name = name
        self._session_factory = session_factory

    def insert(self, url: str) -> bool:
        """Add url to the set.

        Returns:
            True if the url was added, False if it was already present.
        """
        session = self._session_factory()
        try:
            insert_set_member(session, self.name, url)
            session.commit()
        except DuplicateSetMember:
            session.rollback()
            return False
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
        logger.debug("Inserted %r into set %r", url, self.name)
        return True

    def contains(self, url: str) -> bool:
        session = self._session_factory()
        try:
            return set_contains(session, self.name, url)
        finally:
            session.close()

    def members(self) -> list[str]:
        session = self._session_factory()
        try:
            return [entry.url for entry in list_set_members(session, self.name)]
        finally:
            session.close()

    def __contains__(self, url: object) -> bool:
        return isinstance(url, str) and self.contains(url)

    def __len__(self) -> int:
        session = self._session_factory()
        try:
            return count_set_members(session, self.name)
        finally:
            session.close()

    def __repr__(self) -> str:
        return f"PersistentSet({self.name!r})"
