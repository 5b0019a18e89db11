"""redditbg - Gallery page parsers for the fetch worker.

Pure functions: HTML body in, image URLs out. Fetching the URLs (and marking
exhausted galleries) is the worker's job.

Imgur:  a <script> containing `window.postDataJSON = "..."`; the quoted JS
        string holds JSON-encoded JSON with {"media": [{"url": ...}, ...]}.
Reddit: <script id="data"> containing `window.___r = {...}`; image URLs live
        at posts.models.*.media.mediaMetadata.*.s.u (HTML-escaped).
"""

from __future__ import annotations

import html
import json

from bs4 import BeautifulSoup


class GalleryParseError(Exception):
    """Raised when a body is not a gallery page of the expected kind."""


def _decode_html(body: bytes) -> BeautifulSoup:
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise GalleryParseError("Body was not valid UTF-8") from e
    return BeautifulSoup(text, "html.parser")


def _script_text(tag) -> str:
    return tag.string or ""


def extract_imgur_gallery_urls(body: bytes) -> list[str]:
    """Extract image URLs from an imgur gallery page.

    Raises:
        GalleryParseError: If the page has no usable postDataJSON.
    """
    soup = _decode_html(body)

    script = next(
        (tag for tag in soup.find_all("script") if "postDataJSON" in _script_text(tag)),
        None,
    )
    if script is None:
        raise GalleryParseError("Could not find postDataJSON in body")
    text = _script_text(script)

    quote_positions = [i for i in (text.find("'"), text.find('"')) if i != -1]
    if not quote_positions:
        raise GalleryParseError("Could not find starting quote")
    start = min(quote_positions)
    end = max(text.rfind("'"), text.rfind('"'))
    if end <= start:
        raise GalleryParseError("Could not find ending quote")
    code = text[start : end + 1]

    try:
        data = json.loads(code)
    except json.JSONDecodeError as e:
        raise GalleryParseError("Could not parse postDataJSON as a string") from e
    if not isinstance(data, str):
        raise GalleryParseError("postDataJSON was not a string")

    try:
        gallery = json.loads(data)
    except json.JSONDecodeError as e:
        raise GalleryParseError("Could not parse inner postDataJSON as a gallery") from e

    media = gallery.get("media") if isinstance(gallery, dict) else None
    if not isinstance(media, list):
        raise GalleryParseError("Gallery had no media list")

    urls = [m["url"] for m in media if isinstance(m, dict) and isinstance(m.get("url"), str)]
    if not urls:
        raise GalleryParseError("Gallery contained no media URLs")
    return urls


def extract_reddit_gallery_urls(body: bytes) -> list[str]:
    """Extract image URLs from a reddit gallery page.

    Raises:
        GalleryParseError: If the page has no usable data script.
    """
    soup = _decode_html(body)

    script = soup.find("script", id="data")
    if script is None:
        raise GalleryParseError("Could not find script with id 'data' in body")
    text = _script_text(script)

    start = text.find("{")
    end = text.rfind("}")
    if start == -1:
        raise GalleryParseError("Could not find opening brace")
    if end < start:
        raise GalleryParseError("Could not find closing brace")

    try:
        data = json.loads(text[start : end + 1])
    except json.JSONDecodeError as e:
        raise GalleryParseError("Could not parse data script as JSON") from e

    try:
        models = data["posts"]["models"]
    except (KeyError, TypeError) as e:
        raise GalleryParseError("Data script had no posts.models") from e
    if not isinstance(models, dict):
        raise GalleryParseError("posts.models was not an object")

    urls: list[str] = []
    for model in models.values():
        media = model.get("media") if isinstance(model, dict) else None
        metadata = media.get("mediaMetadata") if isinstance(media, dict) else None
        if not isinstance(metadata, dict):
            continue
        for item in metadata.values():
            source = item.get("s") if isinstance(item, dict) else None
            url = source.get("u") if isinstance(source, dict) else None
            if isinstance(url, str) and url:
                urls.append(html.unescape(url))

    if not urls:
        raise GalleryParseError("Gallery contained no media URLs")
    return urls
