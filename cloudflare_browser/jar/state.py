"""Navigation state.

A State is the immutable snapshot of one resolved navigation: the request
that was sent, the response that came back (None when the round trip
failed) and the parsed document.
"""

from dataclasses import dataclass, field
from typing import Optional

from bs4 import BeautifulSoup

from ..document import empty_document
from ..http.messages import Request, Response


@dataclass(frozen=True, eq=False)
class State:
    """Represents a point in time of a browsing session."""
    request: Optional[Request] = None
    response: Optional[Response] = None
    document: BeautifulSoup = field(default_factory=empty_document)

    @property
    def url(self) -> Optional[str]:
        """Final URL of the navigation, if any."""
        if self.response is not None:
            return self.response.url
        if self.request is not None:
            return self.request.url
        return None

    @property
    def status_code(self) -> Optional[int]:
        """Response status code, or None when no response was received."""
        return self.response.status_code if self.response is not None else None

    def __repr__(self) -> str:
        return f"<State [{self.status_code}] {self.url}>"


def new_history_state(request: Optional[Request], response: Optional[Response],
                      document: BeautifulSoup) -> State:
    """Create and return a new State."""
    return State(request=request, response=response, document=document)
