"""redditbg - Orchestrator logic.

One refresh tick:
  listing -> fetch worker -> pick worker -> set background

Each step reports into the tick result dict. A failed listing still lets the
tick pick from what is already cached; a failed pick skips setting the
background. Errors never escape refresh_tick, so the periodic task keeps
running.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from sqlalchemy.orm import sessionmaker

from redditbg.config import SUBREDDITS
from redditbg.db import init_db
from redditbg.desktop import PlatformError, set_background
from redditbg.reddit import get_posts, subreddit_listing_url

logger = logging.getLogger(__name__)

# Step names in the tick result
STEP_LISTING = "listing"
STEP_FETCH = "fetch"
STEP_PICK = "pick"
STEP_BACKGROUND = "background"


def refresh_tick(
    session_factory: sessionmaker | None = None,
    subreddits: tuple[str, ...] | None = None,
    screen: tuple[int, int] | None = None,
    set_bg: Callable[[Path], None] = set_background,
) -> dict:
    """Fetch new posts, top up the cache and change the background.

    Args:
        session_factory: Optional session factory. Defaults to init_db().
        subreddits: Subreddits to poll. Defaults to config.SUBREDDITS.
        screen: Screen size override for the fetch worker.
        set_bg: Background setter (injectable for tests).

    Returns:
        Dict with one entry per step plus "ok".
    """
    # Local imports: workers live outside the redditbg package
    from services.worker_fetch.run import fetch_images
    from services.worker_pick.run import pick_image

    engine = None
    if session_factory is None:
        engine, session_factory = init_db()

    result: dict = {"ok": False}
    try:
        listing_url = subreddit_listing_url(subreddits or SUBREDDITS)
        logger.info("Fetching new posts from %s", listing_url)
        try:
            urls = get_posts(listing_url)
            result[STEP_LISTING] = {"ok": True, "posts": len(urls)}
        except Exception as e:
            logger.error("Failed to fetch listing %s: %s", listing_url, e)
            urls = []
            result[STEP_LISTING] = {"ok": False, "message": str(e)}

        fetch = fetch_images(session_factory, urls, screen=screen)
        result[STEP_FETCH] = {
            "ok": fetch.ok,
            "need": fetch.need,
            "fetched": fetch.fetched,
            "touched": fetch.touched,
            "error_code": fetch.error_code,
        }

        pick = pick_image()
        result[STEP_PICK] = {
            "ok": pick.ok,
            "source_url": pick.source_url,
            "error_code": pick.error_code,
        }
        if not pick.ok:
            logger.error("No background picked: %s", pick.message)
            return result

        try:
            set_bg(Path(pick.image_path).resolve())
        except PlatformError as e:
            logger.error("Failed to set background: %s", e)
            result[STEP_BACKGROUND] = {"ok": False, "message": str(e)}
            return result

        result[STEP_BACKGROUND] = {"ok": True, "path": pick.image_path}
        result["ok"] = True
        logger.info("Set background successfully")
        return result
    except Exception as e:
        logger.exception("Refresh tick failed")
        result["message"] = str(e)
        return result
    finally:
        if engine is not None:
            engine.dispose()
