"""
Shared fixtures for the test suite.

Network access is replaced by ScriptedTransport, which answers requests
from a queue of canned responses and records everything it was asked to
send.
"""

from pathlib import Path
from typing import Callable, List, Optional, Union

import pytest
from multidict import CIMultiDict

from cloudflare_browser.browser import Browser
from cloudflare_browser.config import BrowserConfig
from cloudflare_browser.http.messages import Request, Response
from cloudflare_browser.http.transport import Transport

FIXTURES = Path(__file__).parent / "fixtures"

CHALLENGE_HOST = "demo.example.com"
LEGACY_ANSWER = "168.5181599891"
CURRENT_ANSWER = "2.4164645335"


def load_fixture(name: str) -> bytes:
    return (FIXTURES / name).read_bytes()


Reply = Union[Response, Exception, Callable[[Request], Response]]


def make_response(request: Request, status: int = 200, body: bytes = b"",
                  headers: Optional[dict] = None, url: Optional[str] = None) -> Response:
    """Build a response for request."""
    return Response(
        status_code=status,
        headers=CIMultiDict(headers or {}),
        content=body,
        url=url or request.url,
        request=request,
    )


def html_reply(body: Union[str, bytes], status: int = 200, **headers) -> Callable[[Request], Response]:
    """Reply with an HTML page."""
    if isinstance(body, str):
        body = body.encode("utf-8")
    merged = {"Content-Type": "text/html; charset=utf-8"}
    merged.update({name.replace("_", "-"): value for name, value in headers.items()})
    return lambda request: make_response(request, status, body, merged)


def redirect_reply(location: str, status: int = 302) -> Callable[[Request], Response]:
    """Reply with a redirect."""
    return lambda request: make_response(request, status, b"", {"Location": location})


def challenge_reply(fixture: str, set_cookie: Optional[str] = None) -> Callable[[Request], Response]:
    """Reply with a captured challenge page, as the edge proxy serves it."""
    body = load_fixture(fixture)

    def reply(request: Request) -> Response:
        headers = CIMultiDict({"Content-Type": "text/html; charset=UTF-8", "Server": "cloudflare"})
        if set_cookie:
            headers.add("Set-Cookie", set_cookie)
        return Response(503, headers, body, request.url, request)

    return reply


class ScriptedTransport(Transport):
    """Transport that answers from a queue of replies.

    Each reply is a Response, a callable building one from the request, or
    an exception to raise. When the queue is empty the fallback reply is
    used.
    """

    def __init__(self, config: Optional[BrowserConfig] = None, fallback: Optional[Reply] = None):
        super().__init__(config)
        self.replies: List[Reply] = []
        self.requests: List[Request] = []
        self.fallback = fallback or html_reply("<html><head><title>ok</title></head></html>")

    def queue(self, *replies: Reply) -> "ScriptedTransport":
        self.replies.extend(replies)
        return self

    async def _send(self, request: Request) -> Response:
        self.requests.append(request)
        reply = self.replies.pop(0) if self.replies else self.fallback

        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        return reply


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: session engine tests over a scripted transport")


@pytest.fixture
def browser_config() -> BrowserConfig:
    """Create browser configuration for testing."""
    return BrowserConfig(challenge_delay=0, history_capacity=10)


@pytest.fixture
def transport(browser_config) -> ScriptedTransport:
    """Create scripted transport for testing."""
    return ScriptedTransport(browser_config)


@pytest.fixture
def browser(browser_config, transport) -> Browser:
    """Create browser wired to the scripted transport."""
    bow = Browser(browser_config, transport=transport)
    # The browser keeps its own copy of the configuration.
    transport.config = bow.config
    return bow
