"""redditbg - Reddit wallpaper fetcher.

Provides:
- PersistentSets SQLite table and set primitives
- Fetch/pick workers for the image cache
- Platform helpers (screen size, desktop background, app-data dirs)
"""

__version__ = "0.1.0"
