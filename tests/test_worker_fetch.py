"""Tests for the fetch worker (services.worker_fetch.run)."""

from __future__ import annotations

import io
import json
import urllib.error

import pytest
from PIL import Image

from redditbg.desktop import PlatformError
from redditbg.persistent_set import PersistentSet
from redditbg.utils.paths import image_cache_path, list_cached_images
from services.worker_fetch.run import (
    FetchErrorCode,
    Fetcher,
    InvalidAspectRatio,
    NotAnImage,
    aspect_ratio_matches,
    fetch_images,
)

SCREEN = (160, 90)


class FakeWeb:
    """In-memory stand-in for http_get."""

    def __init__(self, pages: dict[str, bytes]):
        self.pages = pages
        self.requests: list[str] = []

    def __call__(self, url, accept=None):
        self.requests.append(url)
        if url not in self.pages:
            raise urllib.error.URLError(f"no route to {url}")
        return self.pages[url]


def _imgur_page(urls: list[str]) -> bytes:
    inner = json.dumps({"media": [{"url": u} for u in urls]})
    return f"<html><script>window.postDataJSON={json.dumps(inner)}</script></html>".encode()


def _reddit_page(urls: list[str]) -> bytes:
    metadata = {f"m{i}": {"s": {"u": u}} for i, u in enumerate(urls)}
    data = json.dumps({"posts": {"models": {"t3_g": {"media": {"mediaMetadata": metadata}}}}})
    return f'<html><script id="data">window.___r = {data};</script></html>'.encode()


class TestAspectRatio:
    """Tests for aspect_ratio_matches."""

    def test_exact(self):
        assert aspect_ratio_matches(3840, 2160, 1920, 1080)

    def test_within_epsilon(self):
        assert aspect_ratio_matches(1920, 1080, 1978, 1110, epsilon=0.01)

    def test_outside_epsilon(self):
        assert not aspect_ratio_matches(1080, 1920, 1920, 1080)
        assert not aspect_ratio_matches(1600, 1200, 1920, 1080)


class TestParseRawImage:
    """Tests for Fetcher.parse_raw_image."""

    def test_caches_resized_png(self, temp_db, images_dir, image_bytes):
        """A fitting image should be resized to the screen and stored as PNG."""
        _, _, SessionFactory = temp_db
        fetcher = Fetcher(SessionFactory, SCREEN, get=FakeWeb({}))
        url = "https://i.redd.it/a.jpg"

        fetcher.parse_raw_image(url, image_bytes(320, 180, fmt="JPEG"))

        path = image_cache_path(url)
        assert path.parent == images_dir
        with Image.open(path) as img:
            assert img.format == "PNG"
            assert img.size == SCREEN
        assert fetcher.gotten == 1

    def test_wrong_aspect_ratio(self, temp_db, images_dir, image_bytes):
        _, _, SessionFactory = temp_db
        fetcher = Fetcher(SessionFactory, SCREEN, get=FakeWeb({}))

        with pytest.raises(InvalidAspectRatio) as exc_info:
            fetcher.parse_raw_image("https://i.redd.it/tall.png", image_bytes(90, 160))

        assert exc_info.value.error_code == FetchErrorCode.INVALID_ASPECT_RATIO
        assert "90:160 instead of 160:90" in exc_info.value.message
        assert list_cached_images() == []
        assert fetcher.gotten == 0

    def test_not_an_image(self, temp_db, images_dir):
        _, _, SessionFactory = temp_db
        fetcher = Fetcher(SessionFactory, SCREEN, get=FakeWeb({}))

        with pytest.raises(NotAnImage):
            fetcher.parse_raw_image("https://example.com/page", b"<html>hello</html>")

    def test_palette_image_converted(self, temp_db, images_dir):
        """Palette images should be stored in a true-color mode."""
        _, _, SessionFactory = temp_db
        fetcher = Fetcher(SessionFactory, SCREEN, get=FakeWeb({}))
        buf = io.BytesIO()
        Image.new("P", (32, 18)).save(buf, format="GIF")

        fetcher.parse_raw_image("https://i.imgur.com/a.gif", buf.getvalue())

        with Image.open(image_cache_path("https://i.imgur.com/a.gif")) as img:
            assert img.mode == "RGB"


class TestFetchOne:
    """Tests for Fetcher.fetch_one."""

    def test_raw_image(self, temp_db, images_dir, image_bytes):
        _, _, SessionFactory = temp_db
        url = "https://i.redd.it/a.png"
        fetcher = Fetcher(SessionFactory, SCREEN, get=FakeWeb({url: image_bytes(160, 90)}))

        assert fetcher.fetch_one(url) is True
        assert image_cache_path(url).exists()
        assert url not in fetcher.invalid

    def test_network_failure_marks_invalid(self, temp_db, images_dir):
        _, _, SessionFactory = temp_db
        fetcher = Fetcher(SessionFactory, SCREEN, get=FakeWeb({}))

        assert fetcher.fetch_one("https://gone.example/x") is False
        assert "https://gone.example/x" in fetcher.invalid

    def test_unrecognized_content_marks_invalid(self, temp_db, images_dir):
        _, _, SessionFactory = temp_db
        url = "https://www.reddit.com/r/wallpapers/comments/x/text_post/"
        fetcher = Fetcher(SessionFactory, SCREEN, get=FakeWeb({url: b"<html>just text</html>"}))

        assert fetcher.fetch_one(url) is False
        assert url in fetcher.invalid

    def test_bad_aspect_ratio_marks_invalid(self, temp_db, images_dir, image_bytes):
        _, _, SessionFactory = temp_db
        url = "https://i.redd.it/portrait.png"
        fetcher = Fetcher(SessionFactory, SCREEN, get=FakeWeb({url: image_bytes(90, 160)}))

        assert fetcher.fetch_one(url) is False
        assert url in fetcher.invalid

    def test_unexpected_error_marks_invalid(self, temp_db, images_dir):
        _, _, SessionFactory = temp_db

        def broken_get(url, accept=None):
            raise RuntimeError("boom")

        fetcher = Fetcher(SessionFactory, SCREEN, get=broken_get)

        assert fetcher.fetch_one("https://example.com/x") is False
        assert "https://example.com/x" in fetcher.invalid

    def test_imgur_gallery(self, temp_db, images_dir, image_bytes):
        """Every gallery image is fetched and the exhausted gallery marked invalid."""
        _, _, SessionFactory = temp_db
        gallery = "https://imgur.com/a/abc"
        images = ["https://i.imgur.com/1.png", "https://i.imgur.com/2.png"]
        web = FakeWeb(
            {
                gallery: _imgur_page(images),
                images[0]: image_bytes(160, 90),
                images[1]: image_bytes(320, 180),
            }
        )
        fetcher = Fetcher(SessionFactory, SCREEN, get=web)

        assert fetcher.fetch_one(gallery) is True

        assert all(image_cache_path(u).exists() for u in images)
        assert gallery in fetcher.invalid
        assert fetcher.gotten == 2

    def test_reddit_gallery(self, temp_db, images_dir, image_bytes):
        _, _, SessionFactory = temp_db
        gallery = "https://www.reddit.com/gallery/xyz"
        image = "https://preview.redd.it/1.png?s=abc"
        web = FakeWeb({gallery: _reddit_page([image]), image: image_bytes(160, 90)})
        fetcher = Fetcher(SessionFactory, SCREEN, get=web)

        assert fetcher.fetch_one(gallery) is True

        assert image_cache_path(image).exists()
        assert gallery in fetcher.invalid

    def test_partially_used_gallery_not_exhausted(self, temp_db, images_dir, image_bytes):
        """A gallery cut short because enough images exist stays usable."""
        _, _, SessionFactory = temp_db
        gallery = "https://imgur.com/a/abc"
        images = [f"https://i.imgur.com/{i}.png" for i in range(3)]
        pages = {gallery: _imgur_page(images)}
        pages.update({u: image_bytes(160, 90) for u in images})
        fetcher = Fetcher(SessionFactory, SCREEN, get=FakeWeb(pages), max_cached=1)

        assert fetcher.fetch_one(gallery) is True

        assert fetcher.gotten == 1
        assert gallery not in fetcher.invalid


class TestFetchMultiple:
    """Tests for Fetcher.fetch_multiple and fetch_toplevel."""

    def test_skips_seen_urls(self, temp_db, images_dir, image_bytes):
        """URLs in the downloaded or invalid sets are touched but not fetched."""
        _, _, SessionFactory = temp_db
        PersistentSet("downloaded", SessionFactory).insert("https://i.redd.it/old.png")
        PersistentSet("invalid", SessionFactory).insert("https://i.redd.it/bad.png")
        web = FakeWeb({"https://i.redd.it/new.png": image_bytes(160, 90)})
        fetcher = Fetcher(SessionFactory, SCREEN, get=web, concurrency=1)

        touched = fetcher.fetch_multiple(
            ["https://i.redd.it/old.png", "https://i.redd.it/bad.png", "https://i.redd.it/new.png"]
        )

        assert touched == 3
        assert web.requests == ["https://i.redd.it/new.png"]

    def test_stops_when_enough(self, temp_db, images_dir, image_bytes):
        _, _, SessionFactory = temp_db
        urls = [f"https://i.redd.it/{i}.png" for i in range(5)]
        web = FakeWeb({u: image_bytes(160, 90) for u in urls})
        fetcher = Fetcher(SessionFactory, SCREEN, get=web, max_cached=2, concurrency=1)

        touched = fetcher.fetch_multiple(urls)

        assert touched == 2
        assert web.requests == urls[:2]
        assert len(list_cached_images()) == 2

    def test_need_accounts_for_cached_images(self, temp_db, images_dir, image_bytes):
        _, _, SessionFactory = temp_db
        (images_dir / "a.png").write_bytes(image_bytes(160, 90))
        (images_dir / "b.png").write_bytes(image_bytes(160, 90))

        fetcher = Fetcher(SessionFactory, SCREEN, get=FakeWeb({}), max_cached=3)

        assert fetcher.need == 1

    def test_concurrent_fetch(self, temp_db, images_dir, image_bytes):
        """The thread-pool path should fill the cache and record results."""
        _, _, SessionFactory = temp_db
        good = [f"https://i.redd.it/{i}.png" for i in range(6)]
        bad = [f"https://gone.example/{i}" for i in range(4)]
        web = FakeWeb({u: image_bytes(160, 90) for u in good})
        fetcher = Fetcher(SessionFactory, SCREEN, get=web, max_cached=25, concurrency=4)

        touched = fetcher.fetch_multiple(bad + good)

        assert touched == 10
        assert fetcher.gotten == 6
        assert len(list_cached_images()) == 6
        assert all(u in fetcher.invalid for u in bad)

    def test_concurrent_fetch_stops_when_enough(self, temp_db, images_dir, image_bytes):
        _, _, SessionFactory = temp_db
        urls = [f"https://i.redd.it/{i}.png" for i in range(30)]
        web = FakeWeb({u: image_bytes(160, 90) for u in urls})
        fetcher = Fetcher(SessionFactory, SCREEN, get=web, max_cached=3, concurrency=2)

        touched = fetcher.fetch_multiple(urls)

        assert fetcher.gotten >= 3
        assert touched < len(urls)

    def test_toplevel_records_downloaded(self, temp_db, images_dir, image_bytes):
        _, _, SessionFactory = temp_db
        url = "https://i.redd.it/a.png"
        fetcher = Fetcher(SessionFactory, SCREEN, get=FakeWeb({url: image_bytes(160, 90)}))

        result = fetcher.fetch_toplevel([url])

        assert result.ok
        assert result.fetched == 1
        assert result.touched == 1
        assert url in fetcher.downloaded

    def test_repeated_url_fetched_once(self, temp_db, images_dir, image_bytes):
        """A URL listed twice in one batch is fetched once and never marked invalid."""
        _, _, SessionFactory = temp_db
        url = "https://i.redd.it/dup.png"
        web = FakeWeb({url: image_bytes(160, 90)})
        fetcher = Fetcher(SessionFactory, SCREEN, get=web, concurrency=4)

        result = fetcher.fetch_toplevel([url, url])

        assert result.fetched == 1
        assert result.touched == 2
        assert web.requests == [url]
        assert url in fetcher.downloaded
        assert url not in fetcher.invalid

    def test_gallery_repeating_image(self, temp_db, images_dir, image_bytes):
        _, _, SessionFactory = temp_db
        gallery = "https://imgur.com/a/rep"
        image = "https://i.imgur.com/1.png"
        web = FakeWeb({gallery: _imgur_page([image, image]), image: image_bytes(160, 90)})
        fetcher = Fetcher(SessionFactory, SCREEN, get=web)

        assert fetcher.fetch_one(gallery) is True

        assert web.requests.count(image) == 1
        assert image not in fetcher.invalid
        assert gallery in fetcher.invalid

    def test_toplevel_cache_full(self, temp_db, images_dir, image_bytes):
        _, _, SessionFactory = temp_db
        (images_dir / "a.png").write_bytes(image_bytes(160, 90))
        web = FakeWeb({})
        fetcher = Fetcher(SessionFactory, SCREEN, get=web, max_cached=1)

        result = fetcher.fetch_toplevel(["https://i.redd.it/new.png"])

        assert result.ok
        assert result.need == 0
        assert web.requests == []


class TestFetchImages:
    """Tests for the fetch_images entry point."""

    def test_screen_size_unknown(self, temp_db, images_dir, monkeypatch):
        _, _, SessionFactory = temp_db

        def no_screen():
            raise PlatformError("no display")

        monkeypatch.setattr("services.worker_fetch.run.screen_size", no_screen)

        result = fetch_images(SessionFactory, ["https://i.redd.it/a.png"], get=FakeWeb({}))

        assert not result.ok
        assert result.error_code == FetchErrorCode.SCREEN_SIZE_UNKNOWN

    def test_uses_detected_screen_size(self, temp_db, images_dir, image_bytes, monkeypatch):
        _, _, SessionFactory = temp_db
        monkeypatch.setattr("services.worker_fetch.run.screen_size", lambda: (64, 36))
        url = "https://i.redd.it/a.png"

        result = fetch_images(SessionFactory, [url], get=FakeWeb({url: image_bytes(160, 90)}))

        assert result.ok
        assert result.fetched == 1
        with Image.open(image_cache_path(url)) as img:
            assert img.size == (64, 36)
