#!/usr/bin/env python3
"""Open the redditbg application-data directories in the file manager.

Subcommands:
  open-roaming-appdata (ora)  %APPDATA%/PurpleMyst/redditbg
  open-local-appdata   (ola)  %LOCALAPPDATA%/PurpleMyst/redditbg

Outside Windows the XDG config/data homes are used instead. The directory is
created first if it does not exist.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Callable, Sequence
from pathlib import Path

from redditbg.desktop import PlatformError, open_path
from redditbg.log import setup_logging
from redditbg.utils.paths import AppDataNotConfigured, local_appdata_dir, roaming_appdata_dir

logger = logging.getLogger(__name__)

# command name -> (aliases, directory resolver, help text)
SHORTCUTS: dict[str, tuple[list[str], Callable[[], Path], str]] = {
    "open-roaming-appdata": (["ora"], roaming_appdata_dir, "Open the roaming app-data directory"),
    "open-local-appdata": (["ola"], local_appdata_dir, "Open the local app-data directory"),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="redditbg-appdata",
        description="Open redditbg application-data directories",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    for command, (aliases, resolve, help_text) in SHORTCUTS.items():
        sub = subparsers.add_parser(command, aliases=aliases, help=help_text)
        sub.set_defaults(resolve=resolve)
    return parser


def open_appdata(resolve: Callable[[], Path]) -> Path:
    """Resolve, create and open an app-data directory.

    Raises:
        AppDataNotConfigured: If the directory's root is not configured.
        PlatformError: If the directory could not be opened.
    """
    directory = resolve()
    directory.mkdir(parents=True, exist_ok=True)
    logger.debug("Opening %s", directory)
    open_path(directory)
    return directory


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging()

    try:
        directory = open_appdata(args.resolve)
    except AppDataNotConfigured as exc:
        print(f"Cannot locate app-data directory: {exc}", file=sys.stderr)
        return 1
    except (PlatformError, OSError) as exc:
        print(f"Failed to open app-data directory: {exc}", file=sys.stderr)
        return 1

    print(f"Opened {directory}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
