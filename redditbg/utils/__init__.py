"""redditbg - Utility modules."""

from redditbg.utils.atomic_io import atomic_write_bytes, cleanup_orphan_temp_files
from redditbg.utils.paths import (
    image_cache_path,
    list_cached_images,
    local_appdata_dir,
    roaming_appdata_dir,
    url_from_image_path,
)

__all__ = [
    # atomic_io
    "atomic_write_bytes",
    "cleanup_orphan_temp_files",
    # paths
    "image_cache_path",
    "list_cached_images",
    "local_appdata_dir",
    "roaming_appdata_dir",
    "url_from_image_path",
]
