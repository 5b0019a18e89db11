"""redditbg - Reddit listing client and HTTP helpers.

HTTP is plain urllib with a fixed User-Agent and exponential backoff:
attempt, then sleep BACKOFF_DELAYS_SECONDS[i] before attempt i + 2. After the
last delay the error propagates to the caller.
"""

from __future__ import annotations

import json
import logging
import time
import urllib.error
import urllib.request
from collections.abc import Callable, Iterable
from typing import TypeVar

from redditbg.config import BACKOFF_DELAYS_SECONDS, HTTP_TIMEOUT_SECONDS, USER_AGENT

logger = logging.getLogger(__name__)

T = TypeVar("T")

REDDIT_BASE_URL = "https://reddit.com"


class RedditListingError(Exception):
    """Raised when a listing response does not have the expected shape."""


def _is_retryable(exc: Exception) -> bool:
    """Client errors are final except 408/429; everything else is retried."""
    if isinstance(exc, urllib.error.HTTPError):
        return exc.code >= 500 or exc.code in (408, 429)
    return isinstance(exc, (urllib.error.URLError, OSError))


def with_backoff(
    fn: Callable[[], T],
    delays: Iterable[float] = BACKOFF_DELAYS_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call fn, retrying transient network errors with the given delays.

    Args:
        fn: Zero-argument callable performing one attempt.
        delays: Sleep durations between attempts.
        sleep: Sleep function (injectable for tests).

    Returns:
        The first successful result of fn.

    Raises:
        The last error, once delays are exhausted or the error is final.
    """
    pending = list(delays)
    attempt = 1
    while True:
        try:
            return fn()
        except Exception as e:
            if not _is_retryable(e) or not pending:
                raise
            delay = pending.pop(0)
            logger.debug("Attempt %d failed (%s); retrying in %ss", attempt, e, delay)
            sleep(delay)
            attempt += 1


def http_get(
    url: str,
    accept: str | None = None,
    timeout: float = HTTP_TIMEOUT_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> bytes:
    """GET url and return the body, with backoff.

    Args:
        url: URL to fetch.
        accept: Optional Accept header value.
        timeout: Socket timeout in seconds.
        sleep: Sleep function used between attempts.

    Returns:
        Response body bytes.
    """
    headers = {"User-Agent": USER_AGENT}
    if accept:
        headers["Accept"] = accept

    def attempt() -> bytes:
        request = urllib.request.Request(url, headers=headers)
        with urllib.request.urlopen(request, timeout=timeout) as response:
            return response.read()

    return with_backoff(attempt, sleep=sleep)


def subreddit_listing_url(subreddits: Iterable[str]) -> str:
    """Build the "new posts" listing URL for a multireddit.

    Args:
        subreddits: Subreddit names (without "r/").

    Returns:
        URL of the form https://reddit.com/r/a+b+c/new.json
    """
    names = [s.strip() for s in subreddits if s and s.strip()]
    if not names:
        raise ValueError("At least one subreddit is required")
    return f"{REDDIT_BASE_URL}/r/{'+'.join(names)}/new.json"


def parse_listing(listing: object) -> list[str]:
    """Extract post URLs from a decoded listing.

    Children without a string data.url are skipped.

    Raises:
        RedditListingError: If the top level is not a listing.
    """
    if not isinstance(listing, dict) or not isinstance(listing.get("data"), dict):
        raise RedditListingError("Toplevel was not a listing")
    children = listing["data"].get("children")
    if children is None:
        raise RedditListingError("Toplevel data did not contain children")
    if not isinstance(children, list):
        raise RedditListingError("Toplevel children were not an array")

    urls: list[str] = []
    for child in children:
        if not isinstance(child, dict):
            continue
        data = child.get("data")
        if not isinstance(data, dict):
            continue
        url = data.get("url")
        if isinstance(url, str) and url:
            urls.append(url)
    return urls


def get_posts(listing_url: str, sleep: Callable[[float], None] = time.sleep) -> list[str]:
    """Fetch a listing and return the URLs of its posts.

    Raises:
        RedditListingError: If the body is not a JSON listing.
        urllib.error.URLError: If the request keeps failing.
    """
    body = http_get(listing_url, accept="application/json", sleep=sleep)
    try:
        listing = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise RedditListingError(f"Listing was not valid JSON: {e}") from e
    urls = parse_listing(listing)
    logger.info("Listing %s returned %d posts", listing_url, len(urls))
    return urls
