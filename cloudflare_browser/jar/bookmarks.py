"""Bookmark storage."""

import threading
from typing import Dict

from ..errors import BookmarkError


class MemoryBookmarks:
    """In-memory name -> URL bookmark store."""

    def __init__(self):
        self._lock = threading.Lock()
        self._bookmarks: Dict[str, str] = {}

    def save(self, name: str, url: str) -> None:
        """Save a bookmark. Names are unique."""
        with self._lock:
            if name in self._bookmarks:
                raise BookmarkError(f"Bookmark with name '{name}' already exists.")
            self._bookmarks[name] = url

    def read(self, name: str) -> str:
        """Return the URL saved under name."""
        with self._lock:
            try:
                return self._bookmarks[name]
            except KeyError:
                raise BookmarkError(f"No bookmark exists with name '{name}'.") from None

    def remove(self, name: str) -> bool:
        with self._lock:
            return self._bookmarks.pop(name, None) is not None

    def has(self, name: str) -> bool:
        with self._lock:
            return name in self._bookmarks

    def all(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._bookmarks)
