"""redditbg - Fetch Worker.

Fills the image cache with wallpapers taken from a list of post URLs.

Input: candidate URLs (reddit post links)
Output: images/{base64url(url)}.png, resized to the screen size

Each URL is tried, in order, as:
1. a raw image (must match the screen aspect ratio within ASPECT_RATIO_EPSILON)
2. an imgur gallery page
3. a reddit gallery page
Gallery image URLs are fetched recursively. A gallery whose images were all
looked at is exhausted and recorded in the "invalid" set, as is every URL
that failed. URLs already in the "downloaded" or "invalid" set are skipped,
and a URL repeated within one batch is fetched only once.

Fetching stops once MAX_CACHED - (images already cached) new images exist.

Error codes:
- INVALID_ASPECT_RATIO: image does not fit the screen
- NOT_AN_IMAGE: body could not be decoded as an image
- UNRECOGNIZED_CONTENT: body is neither an image nor a known gallery
- SCREEN_SIZE_UNKNOWN: screen size could not be determined (whole batch)
"""

from __future__ import annotations

import io
import logging
import threading
import urllib.error
from collections.abc import Callable, Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from enum import StrEnum

from PIL import Image, UnidentifiedImageError
from sqlalchemy.orm import sessionmaker

from redditbg.config import (
    ASPECT_RATIO_EPSILON,
    DOWNLOADED_SET,
    FETCH_CONCURRENCY,
    INVALID_SET,
    MAX_CACHED,
)
from redditbg.desktop import PlatformError, screen_size
from redditbg.persistent_set import PersistentSet
from redditbg.reddit import http_get
from redditbg.utils.atomic_io import atomic_write_bytes
from redditbg.utils.paths import image_cache_path, list_cached_images, url_from_image_path
from services.worker_fetch.galleries import (
    GalleryParseError,
    extract_imgur_gallery_urls,
    extract_reddit_gallery_urls,
)

logger = logging.getLogger(__name__)

# Storage format for cached images
STORAGE_FORMAT = "PNG"

# Accept header for candidate URLs
IMAGE_ACCEPT = "image/*"


# --- Error Codes ---


class FetchErrorCode(StrEnum):
    """Error codes for the fetch worker."""

    INVALID_ASPECT_RATIO = "INVALID_ASPECT_RATIO"
    NOT_AN_IMAGE = "NOT_AN_IMAGE"
    UNRECOGNIZED_CONTENT = "UNRECOGNIZED_CONTENT"
    SCREEN_SIZE_UNKNOWN = "SCREEN_SIZE_UNKNOWN"


class FetchError(Exception):
    """Base exception for per-URL fetch failures."""

    def __init__(self, error_code: str, message: str):
        self.error_code = error_code
        self.message = message
        super().__init__(f"{error_code}: {message}")


class InvalidAspectRatio(FetchError):
    """Image aspect ratio is not within epsilon of the screen's."""

    def __init__(self, iw: int, ih: int, sw: int, sh: int):
        self.iw, self.ih, self.sw, self.sh = iw, ih, sw, sh
        super().__init__(
            FetchErrorCode.INVALID_ASPECT_RATIO,
            f"Aspect ratio not within epsilon ({iw}:{ih} instead of {sw}:{sh})",
        )


class NotAnImage(FetchError):
    """Body could not be decoded as an image."""

    def __init__(self, reason: str):
        super().__init__(FetchErrorCode.NOT_AN_IMAGE, f"Not an image: {reason}")


class UnrecognizedContent(FetchError):
    """Body is neither an image nor a known gallery page."""

    def __init__(self, url: str):
        super().__init__(FetchErrorCode.UNRECOGNIZED_CONTENT, f"Unable to parse {url} as anything known")


# --- Result Types ---


@dataclass
class FetchResult:
    """Result of a fetch batch."""

    ok: bool
    need: int = 0
    fetched: int = 0
    touched: int = 0
    error_code: str | None = None
    message: str | None = None


def count_cached() -> int:
    """Count published images in the cache."""
    return len(list_cached_images())


def aspect_ratio_matches(iw: int, ih: int, sw: int, sh: int, epsilon: float = ASPECT_RATIO_EPSILON) -> bool:
    """Check whether iw:ih is within epsilon of sw:sh."""
    return abs(iw / ih - sw / sh) <= epsilon


class Fetcher:
    """One fetch batch.

    Holds the downloaded/invalid sets, how many images are needed and how
    many were produced so far. Safe to drive from a thread pool.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        screen: tuple[int, int],
        get: Callable[..., bytes] = http_get,
        max_cached: int = MAX_CACHED,
        concurrency: int = FETCH_CONCURRENCY,
    ):
        self.downloaded = PersistentSet(DOWNLOADED_SET, session_factory)
        self.invalid = PersistentSet(INVALID_SET, session_factory)
        self.screen = screen
        self.concurrency = max(1, concurrency)
        self.need = max(0, max_cached - count_cached())
        self._get = get
        self._gotten = 0
        self._claimed: set[str] = set()
        self._lock = threading.Lock()

    @property
    def gotten(self) -> int:
        with self._lock:
            return self._gotten

    @property
    def enough(self) -> bool:
        return self.gotten >= self.need

    def _seen(self, url: str) -> bool:
        downloaded = url in self.downloaded
        invalid = url in self.invalid
        logger.debug("url=%s downloaded=%s invalid=%s", url, downloaded, invalid)
        return downloaded or invalid

    def _claim(self, url: str) -> bool:
        """Reserve url for this batch; False if it was already claimed."""
        with self._lock:
            if url in self._claimed:
                return False
            self._claimed.add(url)
            return True

    def _should_fetch(self, url: str) -> bool:
        if self._seen(url):
            return False
        if not self._claim(url):
            logger.debug("Skipping duplicate %s", url)
            return False
        return True

    # --- Content handlers ---

    def parse_raw_image(self, url: str, body: bytes) -> None:
        """Validate, resize and publish body as a cached image.

        Raises:
            NotAnImage: If Pillow cannot decode body.
            InvalidAspectRatio: If the image does not fit the screen.
        """
        sw, sh = self.screen
        try:
            with Image.open(io.BytesIO(body)) as img:
                img.load()
                logger.debug("%s detected as %s image", url, img.format)

                iw, ih = img.size
                if ih == 0 or not aspect_ratio_matches(iw, ih, sw, sh):
                    raise InvalidAspectRatio(iw, ih, sw, sh)

                if img.mode not in ("RGB", "RGBA", "L", "LA"):
                    img = img.convert("RGBA" if "A" in img.getbands() else "RGB")

                buf = io.BytesIO()
                img.resize((sw, sh), Image.Resampling.LANCZOS).save(buf, format=STORAGE_FORMAT)
        except (UnidentifiedImageError, Image.DecompressionBombError) as e:
            raise NotAnImage(str(e)) from e
        except OSError as e:
            # Truncated or otherwise broken image data
            raise NotAnImage(str(e)) from e

        dst = image_cache_path(url)
        atomic_write_bytes(dst, buf.getvalue())
        logger.info("Cached %s as %s", url, dst.name)

        with self._lock:
            self._gotten += 1

    def _fetch_gallery(self, url: str, gallery_urls: list[str]) -> None:
        touched = self.fetch_multiple(gallery_urls, concurrency=1)
        if touched >= len(gallery_urls):
            logger.debug("Exhausted gallery %s", url)
            self.invalid.insert(url)

    def _try_handlers(self, url: str) -> None:
        body = self._get(url, accept=IMAGE_ACCEPT)
        logger.debug("Got %d bytes from %s", len(body), url)

        try:
            self.parse_raw_image(url, body)
            return
        except NotAnImage as e:
            logger.debug("%s failed direct image check, continuing: %s", url, e)

        try:
            gallery = extract_imgur_gallery_urls(body)
        except GalleryParseError as e:
            logger.debug("%s failed imgur gallery check: %s", url, e)
        else:
            self._fetch_gallery(url, gallery)
            return

        try:
            gallery = extract_reddit_gallery_urls(body)
        except GalleryParseError as e:
            logger.debug("%s failed reddit gallery check: %s", url, e)
        else:
            self._fetch_gallery(url, gallery)
            return

        raise UnrecognizedContent(url)

    def fetch_one(self, url: str) -> bool:
        """Fetch one URL into the cache.

        Failures are logged and recorded in the invalid set; they never
        propagate.

        Returns:
            True if the URL was handled successfully.
        """
        try:
            self._try_handlers(url)
            return True
        except FetchError as e:
            logger.info("Failed fetching %s: %s", url, e.message)
        except (urllib.error.URLError, OSError) as e:
            logger.info("Failed fetching %s: %s", url, e)
        except Exception:
            logger.exception("Unexpected error fetching %s", url)

        self.invalid.insert(url)
        return False

    # --- Batch driving ---

    def fetch_multiple(self, urls: Iterable[str], concurrency: int | None = None) -> int:
        """Fetch URLs until enough images exist.

        Args:
            urls: Candidate URLs, consumed lazily.
            concurrency: Parallel fetches (defaults to self.concurrency).

        Returns:
            Number of URLs touched (pulled from urls), skipped ones included.
        """
        concurrency = self.concurrency if concurrency is None else max(1, concurrency)
        touched = 0
        it = iter(urls)

        if concurrency == 1:
            for url in it:
                if self.enough:
                    break
                touched += 1
                if self._should_fetch(url):
                    self.fetch_one(url)
            return touched

        with ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="fetch") as pool:
            pending: set[Future] = set()
            exhausted = False
            while True:
                while not exhausted and len(pending) < concurrency and not self.enough:
                    url = next(it, None)
                    if url is None:
                        exhausted = True
                        break
                    touched += 1
                    if not self._should_fetch(url):
                        continue
                    pending.add(pool.submit(self.fetch_one, url))

                if not pending:
                    break

                done, pending = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    future.result()
                logger.debug("gotten=%d need=%d in_flight=%d", self.gotten, self.need, len(pending))

                if self.enough:
                    # Running fetches finish (writes are atomic); queued ones are dropped
                    for future in pending:
                        future.cancel()
                    break

        return touched

    def record_downloaded(self) -> int:
        """Record every cached image's source URL in the downloaded set.

        Returns:
            Number of URLs newly added.
        """
        added = 0
        for path in list_cached_images():
            url = url_from_image_path(path)
            if url is None:
                logger.warning("Cached file %s does not encode a URL", path.name)
                continue
            if self.downloaded.insert(url):
                added += 1
        return added

    def fetch_toplevel(self, urls: Iterable[str]) -> FetchResult:
        """Run a full batch over urls."""
        if self.need == 0:
            logger.info("Image cache is full, nothing to fetch")
            return FetchResult(ok=True, need=0, message="Cache full")

        logger.info("Fetching up to %d images", self.need)
        touched = self.fetch_multiple(urls)
        self.record_downloaded()

        fetched = self.gotten
        logger.info("Fetched %d/%d images after touching %d URLs", fetched, self.need, touched)
        return FetchResult(ok=True, need=self.need, fetched=fetched, touched=touched)


def fetch_images(
    session_factory: sessionmaker,
    urls: Iterable[str],
    screen: tuple[int, int] | None = None,
    get: Callable[..., bytes] = http_get,
) -> FetchResult:
    """Fetch worker entry point.

    Args:
        session_factory: Session factory for the PersistentSets database.
        urls: Candidate URLs.
        screen: Screen size override; defaults to desktop.screen_size().
        get: HTTP GET function (injectable for tests).

    Returns:
        FetchResult describing the batch.
    """
    if screen is None:
        try:
            screen = screen_size()
        except PlatformError as e:
            logger.error("Cannot fetch images: %s", e)
            return FetchResult(
                ok=False,
                error_code=FetchErrorCode.SCREEN_SIZE_UNKNOWN,
                message=str(e),
            )

    fetcher = Fetcher(session_factory, screen, get=get)
    return fetcher.fetch_toplevel(urls)
