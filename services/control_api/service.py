"""redditbg - Control API service logic.

Set and cache operations behind the control API. Functions here commit (or
roll back) the session they are given; the set primitives in redditbg.db
never do.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum

from sqlalchemy.orm import Session

from redditbg.config import MAX_CACHED
from redditbg.db import (
    DuplicateSetMember,
    MissingSetField,
    PersistentSetError,
    count_set_members,
    insert_set_member,
    list_set_members,
    list_set_names,
    remove_set_member,
)
from redditbg.models import PersistentSetEntry
from redditbg.utils.paths import list_cached_images

logger = logging.getLogger(__name__)


# --- Error Codes ---


class ControlErrorCode(StrEnum):
    """Error codes returned by the control API."""

    DUPLICATE_MEMBER = "DUPLICATE_MEMBER"
    MISSING_FIELD = "MISSING_FIELD"
    MEMBER_NOT_FOUND = "MEMBER_NOT_FOUND"
    SET_INSERT_FAILED = "SET_INSERT_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ControlError(Exception):
    """Base exception for control API errors."""

    def __init__(self, error_code: str, message: str):
        self.error_code = error_code
        self.message = message
        super().__init__(f"{error_code}: {message}")


class MemberNotFoundError(ControlError):
    """URL is not a member of the set."""

    def __init__(self, name: str, url: str):
        super().__init__(ControlErrorCode.MEMBER_NOT_FOUND, f"{url!r} is not a member of set {name!r}")


# --- Result Types ---


@dataclass
class CacheStatus:
    """Snapshot of the image cache."""

    cached: int
    max_cached: int

    @property
    def need(self) -> int:
        return max(0, self.max_cached - self.cached)


# --- Set Operations ---


def add_member(session: Session, name: str, url: str) -> PersistentSetEntry:
    """Add url to set name and commit.

    Raises:
        ControlError: DUPLICATE_MEMBER, MISSING_FIELD or SET_INSERT_FAILED.
    """
    try:
        entry = insert_set_member(session, name, url)
        session.commit()
    except DuplicateSetMember as e:
        session.rollback()
        raise ControlError(ControlErrorCode.DUPLICATE_MEMBER, e.message) from e
    except MissingSetField as e:
        session.rollback()
        raise ControlError(ControlErrorCode.MISSING_FIELD, e.message) from e
    except PersistentSetError as e:
        session.rollback()
        raise ControlError(ControlErrorCode.SET_INSERT_FAILED, e.message) from e

    logger.info("Added %s to set %s", url, name)
    return entry


def delete_member(session: Session, name: str, url: str) -> None:
    """Remove url from set name and commit.

    Raises:
        MemberNotFoundError: If url was not a member.
    """
    if not remove_set_member(session, name, url):
        session.rollback()
        raise MemberNotFoundError(name, url)
    session.commit()
    logger.info("Removed %s from set %s", url, name)


def list_sets(session: Session) -> list[tuple[str, int]]:
    """List (name, member count) for every set."""
    return [(name, count_set_members(session, name)) for name in list_set_names(session)]


def get_members(session: Session, name: str) -> list[PersistentSetEntry]:
    """List members of set name; an unknown set is empty."""
    return list_set_members(session, name)


# --- Cache ---


def cache_status() -> CacheStatus:
    """Count the images currently in the cache."""
    return CacheStatus(cached=len(list_cached_images()), max_cached=MAX_CACHED)
