"""Redirect handling.

Transports never follow redirects. The session engine follows them itself,
one hop at a time, building each hop from the previous one and asking the
RedirectPolicy whether the hop may be sent.
"""

from dataclasses import dataclass
from typing import FrozenSet, List
from urllib.parse import urljoin, urlparse

from ..errors import RedirectsDisabledError, TooManyRedirectsError
from ..http.messages import Request, Response
from .headers import copy_headers, inherit_headers

# Redirects that turn a non-GET/HEAD request into a GET without body.
METHOD_CHANGING = (301, 302, 303)

BODY_HEADERS = frozenset({"content-type", "content-length"})

# Not carried to another host.
SENSITIVE_HEADERS = frozenset({"authorization", "cookie", "www-authenticate"})


@dataclass
class RedirectHop:
    """The next request of a redirect chain.

    ``dropped`` names the headers deliberately removed while building the
    hop; inheritance must not bring them back.
    """
    request: Request
    dropped: FrozenSet[str] = frozenset()


class RedirectPolicy:
    """Decides whether a redirect hop may be followed."""

    def __init__(self, follow: bool = True, max_redirects: int = 10):
        self.follow = follow
        self.max_redirects = max_redirects

    def check(self, request: Request, via: List[Request],
              dropped: FrozenSet[str] = frozenset()) -> None:
        """Validate a hop and complete its headers.

        Args:
            request: The request about to be sent.
            via: Requests already sent in this chain, oldest first.
            dropped: Header names withheld anywhere earlier in the chain,
                which must not be inherited.

        Raises:
            RedirectsDisabledError: following redirects is switched off.
            TooManyRedirectsError: the chain reached the hop limit.
        """
        if not self.follow:
            raise RedirectsDisabledError(
                f"Redirects are disabled. Cannot follow '{request.url}'."
            )

        if len(via) >= self.max_redirects:
            raise TooManyRedirectsError("too many redirects")

        if via:
            inherit_headers(request.headers, via[0].headers, skip=dropped)


def build_redirect_request(previous: Request, response: Response) -> RedirectHop:
    """Build the request that follows a redirect response."""
    url = urljoin(response.url, response.location)
    headers = copy_headers(previous.headers)
    method = previous.method
    body = previous.body
    dropped = set()

    if response.status_code in METHOD_CHANGING and method not in ("GET", "HEAD"):
        method = "GET"
        body = None
        dropped.update(BODY_HEADERS)

    if urlparse(url).netloc.lower() != urlparse(previous.url).netloc.lower():
        dropped.update(SENSITIVE_HEADERS)

    for name in dropped:
        headers.popall(name, None)

    return RedirectHop(Request(method, url, headers, body), frozenset(dropped))
