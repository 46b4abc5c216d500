"""Request and response value types exchanged with transports."""

from dataclasses import dataclass, field
from typing import Optional

from multidict import CIMultiDict, CIMultiDictProxy


@dataclass
class Request:
    """An outgoing HTTP request."""
    method: str
    url: str
    headers: CIMultiDict = field(default_factory=CIMultiDict)
    body: Optional[bytes] = None

    def __post_init__(self):
        self.method = self.method.upper()
        if not isinstance(self.headers, CIMultiDict):
            self.headers = CIMultiDict(self.headers)

    def copy(self, **changes) -> "Request":
        """Return a copy with its own header bag."""
        values = {
            "method": self.method,
            "url": self.url,
            "headers": CIMultiDict(self.headers),
            "body": self.body,
        }
        values.update(changes)
        return Request(**values)

    def __repr__(self) -> str:
        return f"<Request [{self.method}] {self.url}>"


@dataclass
class Response:
    """A received HTTP response.

    ``content`` holds the body exactly as it came off the wire, still
    content-encoded. ``request`` is the request of the hop that produced
    this response.
    """
    status_code: int
    headers: CIMultiDictProxy
    content: bytes
    url: str
    request: Optional[Request] = None

    def __post_init__(self):
        if not isinstance(self.headers, CIMultiDictProxy):
            self.headers = CIMultiDictProxy(CIMultiDict(self.headers))

    @property
    def content_type(self) -> str:
        return self.headers.get("Content-Type", "")

    @property
    def content_encoding(self) -> str:
        return self.headers.get("Content-Encoding", "").strip().lower()

    @property
    def location(self) -> Optional[str]:
        return self.headers.get("Location")

    @property
    def is_redirect(self) -> bool:
        """True if the response asks the client to follow Location."""
        return self.status_code in (301, 302, 303, 307, 308) and self.location is not None

    def __repr__(self) -> str:
        return f"<Response [{self.status_code}] {self.url}>"
