"""redditbg - Canonical path utilities.

Returns canonical Paths. Does NOT create directories, except where noted;
directory creation is the responsibility of the calling code.
"""

import base64
import binascii
from pathlib import Path

from redditbg.config import (
    APP_SUBPATH,
    IMAGES_DIR,
    IS_WINDOWS,
    LOCAL_APPDATA_BASE,
    ROAMING_APPDATA_BASE,
)

# Cached images are normalized to PNG regardless of source format
IMAGE_EXTENSION = "png"


class AppDataNotConfigured(Exception):
    """Raised when an app-data root cannot be resolved from the environment."""

    def __init__(self, variable: str):
        self.variable = variable
        super().__init__(f"Environment variable {variable} is not set")


def roaming_appdata_dir() -> Path:
    """Get the roaming app-data directory.

    Returns:
        Path: %APPDATA%/PurpleMyst/redditbg (XDG config home elsewhere)

    Raises:
        AppDataNotConfigured: On Windows, if APPDATA is unset.
    """
    if ROAMING_APPDATA_BASE is None:
        raise AppDataNotConfigured("APPDATA" if IS_WINDOWS else "XDG_CONFIG_HOME")
    return ROAMING_APPDATA_BASE / APP_SUBPATH


def local_appdata_dir() -> Path:
    """Get the local app-data directory.

    Returns:
        Path: %LOCALAPPDATA%/PurpleMyst/redditbg (XDG data home elsewhere)

    Raises:
        AppDataNotConfigured: On Windows, if LOCALAPPDATA is unset.
    """
    if LOCAL_APPDATA_BASE is None:
        raise AppDataNotConfigured("LOCALAPPDATA" if IS_WINDOWS else "XDG_DATA_HOME")
    return LOCAL_APPDATA_BASE / APP_SUBPATH


def image_cache_path(url: str) -> Path:
    """Get the cache path for an image downloaded from url.

    The stem is the URL-safe base64 of the URL without padding, so the URL
    can be recovered from the file name alone.

    Args:
        url: Source URL of the image.

    Returns:
        Path: images/{base64url(url)}.png
    """
    stem = base64.urlsafe_b64encode(url.encode("utf-8")).decode("ascii").rstrip("=")
    return IMAGES_DIR / f"{stem}.{IMAGE_EXTENSION}"


def url_from_image_path(path: str | Path) -> str | None:
    """Recover the source URL from a cached image path.

    Returns:
        The URL, or None if the stem is not a base64-encoded UTF-8 string.
    """
    stem = Path(path).stem
    if not stem:
        return None
    padded = stem + "=" * (-len(stem) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        return raw.decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError):
        return None


def list_cached_images(images_dir: str | Path | None = None) -> list[Path]:
    """List published images in the cache, sorted by name.

    Temp files from in-flight writes are not included.
    """
    directory = Path(images_dir) if images_dir is not None else IMAGES_DIR
    if not directory.exists():
        return []
    return sorted(p for p in directory.glob(f"*.{IMAGE_EXTENSION}") if p.is_file())
