"""redditbg - Configuration constants.

Plain module-level constants. Paths derive from the platform app-data
directories under APP_SUBPATH; REDDITBG_* environment variables override
selected values (mainly for testing and non-Windows desktops).
"""

import os
import sys
from pathlib import Path

from redditbg import __version__

IS_WINDOWS = sys.platform == "win32"

# Fixed subpath under the roaming/local app-data roots
APP_SUBPATH = Path("PurpleMyst") / "redditbg"


def _appdata_base(windows_var: str, xdg_var: str, xdg_default: str) -> Path | None:
    """Resolve an app-data root from the environment.

    Windows: the value of windows_var (APPDATA/LOCALAPPDATA), or None if unset.
    Elsewhere: the XDG variable, falling back to ~/xdg_default.
    """
    if IS_WINDOWS:
        raw = os.environ.get(windows_var)
        return Path(raw) if raw else None
    raw = os.environ.get(xdg_var)
    if raw:
        return Path(raw).expanduser()
    return Path.home() / xdg_default


def _get_data_dir_override() -> Path | None:
    raw = os.environ.get("REDDITBG_DATA_DIR")
    if raw and raw.strip():
        return Path(raw).expanduser()
    return None


def _get_screen_size_override() -> tuple[int, int] | None:
    """Parse REDDITBG_SCREEN_SIZE ("1920x1080").

    Returns:
        (width, height), or None if unset or malformed.
    """
    raw = os.environ.get("REDDITBG_SCREEN_SIZE", "").strip().lower()
    if not raw:
        return None
    width, sep, height = raw.partition("x")
    if not sep:
        return None
    try:
        size = (int(width), int(height))
    except ValueError:
        return None
    if size[0] <= 0 or size[1] <= 0:
        return None
    return size


def _get_http_timeout() -> float:
    env_val = os.environ.get("REDDITBG_HTTP_TIMEOUT_SEC")
    if env_val:
        try:
            timeout = float(env_val)
            if timeout > 0:
                return timeout
        except ValueError:
            pass
    return 60.0


def _get_subreddits() -> tuple[str, ...]:
    raw = os.environ.get("REDDITBG_SUBREDDITS", "")
    names = [part.strip() for part in raw.replace(",", " ").split() if part.strip()]
    if names:
        return tuple(names)
    return ("wallpapers", "wallpaper", "EarthPorn")


# App-data roots (None on Windows when the variable is missing)
ROAMING_APPDATA_BASE = _appdata_base("APPDATA", "XDG_CONFIG_HOME", ".config")
LOCAL_APPDATA_BASE = _appdata_base("LOCALAPPDATA", "XDG_DATA_HOME", ".local/share")

# Data directories. REDDITBG_DATA_DIR collapses both onto one directory.
_DATA_DIR_OVERRIDE = _get_data_dir_override()
ROAMING_DATA_DIR = _DATA_DIR_OVERRIDE or (
    (ROAMING_APPDATA_BASE or Path.home() / "AppData" / "Roaming") / APP_SUBPATH
)
LOCAL_DATA_DIR = _DATA_DIR_OVERRIDE or (
    (LOCAL_APPDATA_BASE or Path.home() / "AppData" / "Local") / APP_SUBPATH
)

# Image cache and the image currently used as background
IMAGES_DIR = LOCAL_DATA_DIR / "images"
CURRENT_IMAGE_PATH = LOCAL_DATA_DIR / "current.png"

# Log file
LOG_PATH = LOCAL_DATA_DIR / "redditbg.log"
LOG_LEVEL = os.environ.get("REDDITBG_LOG_LEVEL", "INFO").upper()

# Database path (PersistentSets)
DB_PATH = ROAMING_DATA_DIR / "redditbg.sqlite3"

# Queue directory and Huey database path
QUEUE_DIR = LOCAL_DATA_DIR / "queue"
HUEY_DB_PATH = QUEUE_DIR / "huey.db"

# Persistent set names used by the fetch worker
DOWNLOADED_SET = "downloaded"
INVALID_SET = "invalid"

# Cache sizing: one reddit listing page holds 25 posts
MAX_CACHED = 25
FETCH_CONCURRENCY = 25

# Accepted difference between screen and image aspect ratio
ASPECT_RATIO_EPSILON = 0.01

# HTTP
USER_AGENT = f"redditbg/{__version__}"
HTTP_TIMEOUT_SECONDS = _get_http_timeout()

# Exponential backoff delays between HTTP attempts (LOCKED)
BACKOFF_DELAYS_SECONDS = (1, 2, 4, 8, 16)
MAX_HTTP_ATTEMPTS = 1 + len(BACKOFF_DELAYS_SECONDS)

# Subreddits polled for new posts
SUBREDDITS = _get_subreddits()

# Refresh schedule: top of every hour
REFRESH_CRON_MINUTE = "0"

# Platform overrides
SCREEN_SIZE_OVERRIDE = _get_screen_size_override()
SET_BACKGROUND_COMMAND = os.environ.get("REDDITBG_SET_BACKGROUND_COMMAND", "").strip() or None
