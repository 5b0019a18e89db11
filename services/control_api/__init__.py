"""redditbg - Control API service.

FastAPI service for inspecting and editing the persistent sets, checking the
image cache and queueing refreshes.
"""

__all__: list[str] = []
