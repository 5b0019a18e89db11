"""redditbg - Desktop integration.

Screen size, desktop background and "open this folder" for the current
platform. Windows goes through user32 via ctypes; other platforms rely on
configuration (REDDITBG_SCREEN_SIZE, REDDITBG_SET_BACKGROUND_COMMAND) and
the usual opener commands.
"""

from __future__ import annotations

import ctypes
import logging
import os
import shlex
import subprocess
import sys
from pathlib import Path

from redditbg.config import IS_WINDOWS, SCREEN_SIZE_OVERRIDE, SET_BACKGROUND_COMMAND

logger = logging.getLogger(__name__)

# user32 constants
SM_CXSCREEN = 0
SM_CYSCREEN = 1
SPI_SETDESKWALLPAPER = 0x0014

# Timeout for external background/opener commands
COMMAND_TIMEOUT_SECONDS = 30

# Replaced with the image path in REDDITBG_SET_BACKGROUND_COMMAND
PATH_PLACEHOLDER = "{path}"


class PlatformError(Exception):
    """Raised when a desktop operation is unsupported or fails."""


def _user32():
    return ctypes.windll.user32  # type: ignore[attr-defined]


def screen_size() -> tuple[int, int]:
    """Get the primary screen size in pixels.

    Returns:
        (width, height)

    Raises:
        PlatformError: If the size cannot be determined.
    """
    if SCREEN_SIZE_OVERRIDE is not None:
        return SCREEN_SIZE_OVERRIDE

    if not IS_WINDOWS:
        raise PlatformError(
            "Screen size is unknown on this platform; set REDDITBG_SCREEN_SIZE=WIDTHxHEIGHT"
        )

    user32 = _user32()
    width = user32.GetSystemMetrics(SM_CXSCREEN)
    height = user32.GetSystemMetrics(SM_CYSCREEN)

    # GetSystemMetrics does not set GetLastError; zero is the only failure signal
    if width == 0:
        raise PlatformError("GetSystemMetrics returned a zero width")
    if height == 0:
        raise PlatformError("GetSystemMetrics returned a zero height")

    return int(width), int(height)


def set_background(path: str | Path) -> None:
    """Set the desktop background to the image at path.

    Args:
        path: Absolute path to the image.

    Raises:
        PlatformError: If the path is relative, the platform is unsupported,
            or the OS call/command fails.
    """
    path = Path(path)
    if not path.is_absolute():
        raise PlatformError(f"Background path must be absolute: {path}")

    if IS_WINDOWS:
        ok = _user32().SystemParametersInfoW(SPI_SETDESKWALLPAPER, 0, str(path), 0)
        if not ok:
            err = ctypes.GetLastError()  # type: ignore[attr-defined]
            raise PlatformError(f"Failed to set background to {path} (error {err})")
        logger.info("Background set to %s", path)
        return

    if SET_BACKGROUND_COMMAND is None:
        raise PlatformError(
            "Setting the background is unsupported on this platform; "
            "set REDDITBG_SET_BACKGROUND_COMMAND (e.g. 'feh --bg-fill {path}')"
        )

    try:
        args = shlex.split(SET_BACKGROUND_COMMAND)
    except ValueError as e:
        raise PlatformError(f"Invalid REDDITBG_SET_BACKGROUND_COMMAND: {e}") from e

    # Substitute per argument so paths with spaces stay one argument; other braces pass through
    cmd = [arg.replace(PATH_PLACEHOLDER, str(path)) for arg in args]
    _run_command(cmd, f"set background to {path}")
    logger.info("Background set to %s", path)


def open_path(path: str | Path) -> None:
    """Open a directory or file with the platform's default handler.

    Raises:
        PlatformError: If the opener fails.
    """
    path = Path(path)
    if IS_WINDOWS:
        try:
            os.startfile(str(path))  # type: ignore[attr-defined]
        except OSError as e:
            raise PlatformError(f"Failed to open {path}: {e}") from e
        return

    opener = "open" if sys.platform == "darwin" else "xdg-open"
    _run_command([opener, str(path)], f"open {path}")


def _run_command(cmd: list[str], what: str) -> None:
    logger.debug("Running %s", cmd)
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            check=False,
            timeout=COMMAND_TIMEOUT_SECONDS,
        )
    except FileNotFoundError as e:
        raise PlatformError(f"Failed to {what}: {cmd[0]} not found") from e
    except subprocess.TimeoutExpired as e:
        raise PlatformError(f"Failed to {what}: {cmd[0]} timed out") from e
    except OSError as e:
        raise PlatformError(f"Failed to {what}: {e}") from e

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        raise PlatformError(f"Failed to {what}: exit code {result.returncode} {stderr}".rstrip())
