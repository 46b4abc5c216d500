"""Transports perform single HTTP exchanges for a browsing session.

A transport never follows redirects and never decodes bodies: the session
engine owns both. It does own the cookie jar, so every request a session
makes, challenge follow-ups included, shares one cookie store.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import List, Optional

import aiohttp
from multidict import CIMultiDict
from yarl import URL

from ..config import BrowserConfig
from ..errors import ConfigurationError, TransportError, TransportTimeoutError
from ..jar.cookies import Cookie, CookieJar
from .messages import Request, Response

logger = logging.getLogger(__name__)


class Transport(ABC):
    """
    Abstract base class for session transports.

    Subclasses implement ``_send`` for one round trip. Cookie handling is
    shared and lives here.
    """

    def __init__(self, config: Optional[BrowserConfig] = None,
                 cookie_jar: Optional[CookieJar] = None):
        self.config = config or BrowserConfig()
        self.cookie_jar = cookie_jar if cookie_jar is not None else CookieJar()
        self._closed = False

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, request: Request) -> Response:
        """Perform one HTTP exchange without following redirects.

        Raises:
            TransportError: the round trip failed.
            TransportTimeoutError: the round trip timed out.
        """
        if self._closed:
            raise TransportError("Transport has been closed")

        outgoing = request.copy()
        if self.config.use_cookies and "Cookie" not in outgoing.headers:
            cookie_header = self.cookie_jar.get_cookie_header(outgoing.url)
            if cookie_header:
                outgoing.headers["Cookie"] = cookie_header

        response = await self._send(outgoing)
        response.request = request

        if self.config.use_cookies:
            set_cookies = response.headers.getall("Set-Cookie", [])
            if set_cookies:
                self.cookie_jar.parse_set_cookie(set_cookies, response.url)

        return response

    @abstractmethod
    async def _send(self, request: Request) -> Response:
        """Perform the actual round trip."""
        pass

    def cookies_for(self, url: str) -> List[Cookie]:
        """Return the cookies the jar would send to url."""
        return self.cookie_jar.get_cookies(url)

    async def close(self) -> None:
        """Close transport and release connections."""
        self._closed = True


class AiohttpTransport(Transport):
    """Transport backed by an aiohttp ClientSession.

    Automatic decompression is off so the raw body reaches the decoder
    pipeline, and aiohttp's own cookie handling is disabled in favour of
    the transport jar.
    """

    def __init__(self, config: Optional[BrowserConfig] = None,
                 cookie_jar: Optional[CookieJar] = None):
        super().__init__(config, cookie_jar)
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        """Create the client session on first use."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(ssl=None if self.config.verify_ssl else False)
            self._session = aiohttp.ClientSession(
                connector=connector,
                cookie_jar=aiohttp.DummyCookieJar(),
                auto_decompress=False,
                timeout=aiohttp.ClientTimeout(total=None),
            )
        return self._session

    async def _send(self, request: Request) -> Response:
        session = self._get_session()
        try:
            async with session.request(
                request.method,
                URL(request.url, encoded=True),
                headers=request.headers,
                data=request.body,
                allow_redirects=False,
                proxy=self.config.proxy_url,
                skip_auto_headers=("User-Agent", "Accept-Encoding", "Content-Type"),
            ) as response:
                content = await response.read()
                return Response(
                    status_code=response.status,
                    headers=CIMultiDict(response.headers),
                    content=content,
                    url=str(response.url),
                )
        except asyncio.TimeoutError as e:
            raise TransportTimeoutError(f"Request to {request.url} timed out") from e
        except aiohttp.ClientError as e:
            logger.warning(f"Request to {request.url} failed: {e}")
            raise TransportError(f"Request failed: {str(e)}") from e

    async def close(self) -> None:
        """Close the client session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
        await super().close()


def create_transport(config: Optional[BrowserConfig] = None,
                     cookie_jar: Optional[CookieJar] = None) -> Transport:
    """Create the transport selected by ``config.transport``."""
    config = config or BrowserConfig()

    if config.transport == "aiohttp":
        return AiohttpTransport(config, cookie_jar)

    if config.transport == "curl":
        from .curl import CurlTransport
        return CurlTransport(config, cookie_jar)

    raise ConfigurationError(f"Unsupported transport '{config.transport}'")
