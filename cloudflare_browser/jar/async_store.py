"""Store for documents fetched out of band.

AsyncStore maps a caller-chosen name to the most recently fetched document
for that name. Writes always win, nothing is evicted, and an unknown name
yields an empty placeholder document rather than an error.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from bs4 import BeautifulSoup

from ..document import empty_document


@dataclass(frozen=True, eq=False)
class AsyncDocument:
    """A stored document and the time it was stored."""
    document: BeautifulSoup = field(default_factory=empty_document)
    fetched_at: Optional[datetime] = None


class AsyncStore:
    """Concurrency-safe name -> document map."""

    def __init__(self):
        self._lock = threading.Lock()
        self._documents: Dict[str, AsyncDocument] = {}

    def set(self, name: str, document: BeautifulSoup) -> None:
        """Store a document under name, replacing any previous one."""
        entry = AsyncDocument(document=document, fetched_at=datetime.now())
        with self._lock:
            self._documents[name] = entry

    def get(self, name: str) -> BeautifulSoup:
        """Return the document stored under name, or an empty document."""
        return self.entry(name).document

    def entry(self, name: str) -> AsyncDocument:
        """Return the stored record for name, or an empty record."""
        with self._lock:
            entry = self._documents.get(name)
        return entry if entry is not None else AsyncDocument()

    def names(self) -> List[str]:
        with self._lock:
            return list(self._documents)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._documents

    def __len__(self) -> int:
        with self._lock:
            return len(self._documents)
