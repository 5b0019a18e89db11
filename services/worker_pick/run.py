"""redditbg - Pick Worker.

Takes one image out of the cache and publishes it as the current background
image.

Input: images/*.png
Output: current.png (atomic publish); the picked cache file is removed

Cache files that no longer decode are deleted along the way.

Error codes:
- NO_IMAGE_AVAILABLE: the cache holds no decodable image
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from redditbg.config import CURRENT_IMAGE_PATH
from redditbg.utils.atomic_io import atomic_write_bytes
from redditbg.utils.paths import list_cached_images, url_from_image_path

logger = logging.getLogger(__name__)


class PickErrorCode(StrEnum):
    """Error codes for the pick worker."""

    NO_IMAGE_AVAILABLE = "NO_IMAGE_AVAILABLE"


@dataclass
class PickResult:
    """Result of pick worker execution."""

    ok: bool
    error_code: str | None = None
    message: str | None = None
    image_path: str | None = None
    source_url: str | None = None


def _load_png(path: Path) -> bytes:
    """Decode path and re-encode it as PNG bytes.

    Raises:
        UnidentifiedImageError, OSError: If the file is not a readable image.
    """
    with Image.open(path) as img:
        img.load()
        buf = io.BytesIO()
        img.save(buf, format="PNG")
    return buf.getvalue()


def _remove(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Error while removing %s: %s", path, e)


def pick_image(current_path: str | Path | None = None) -> PickResult:
    """Pick the first valid cached image and publish it.

    Args:
        current_path: Destination override. Defaults to config.CURRENT_IMAGE_PATH.

    Returns:
        PickResult with the published path on success.
    """
    dst = Path(current_path) if current_path is not None else CURRENT_IMAGE_PATH

    for path in list_cached_images():
        try:
            data = _load_png(path)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            logger.warning("Error while parsing %s as an image: %s", path, e)
            logger.debug("Removing %s", path)
            _remove(path)
            continue

        atomic_write_bytes(dst, data)
        logger.info("Picked %s, removing it from the cache", path.name)
        _remove(path)
        return PickResult(
            ok=True,
            image_path=str(dst),
            source_url=url_from_image_path(path),
        )

    return PickResult(
        ok=False,
        error_code=PickErrorCode.NO_IMAGE_AVAILABLE,
        message="Could not find a valid image",
    )
