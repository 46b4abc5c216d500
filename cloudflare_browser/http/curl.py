"""curl_cffi transport with Chrome TLS impersonation.

libcurl negotiates the TLS and HTTP/2 fingerprint of a real Chrome build,
which some edge proxies check before they even serve a challenge.
"""

import logging
from typing import Optional

from curl_cffi import CurlError
from curl_cffi.requests import AsyncSession
from multidict import CIMultiDict

from ..config import BrowserConfig
from ..errors import TransportError, TransportTimeoutError
from ..jar.cookies import CookieJar
from .messages import Request, Response
from .transport import Transport

logger = logging.getLogger(__name__)

# libcurl CURLE_OPERATION_TIMEDOUT
CURL_TIMEOUT_CODE = 28


class CurlTransport(Transport):
    """
    Transport using curl_cffi for Chrome-accurate TLS fingerprinting.

    libcurl decodes compressed bodies itself, so Content-Encoding is removed
    from responses before they reach the decoder pipeline.
    """

    def __init__(self, config: Optional[BrowserConfig] = None,
                 cookie_jar: Optional[CookieJar] = None):
        super().__init__(config, cookie_jar)
        self._session: Optional[AsyncSession] = None

    def _get_session(self) -> AsyncSession:
        """Create the curl_cffi async session on first use."""
        if self._session is None:
            session_kwargs = {
                "impersonate": self.config.impersonate,
                "verify": self.config.verify_ssl,
            }

            if self.config.proxy_url:
                session_kwargs["proxies"] = {
                    "http": self.config.proxy_url,
                    "https": self.config.proxy_url,
                }

            self._session = AsyncSession(**session_kwargs)
        return self._session

    async def _send(self, request: Request) -> Response:
        session = self._get_session()
        try:
            response = await session.request(
                method=request.method,
                url=request.url,
                headers=list(request.headers.items()),
                data=request.body,
                allow_redirects=False,
                default_headers=False,
            )
        except CurlError as e:
            if getattr(e, "code", None) == CURL_TIMEOUT_CODE:
                raise TransportTimeoutError(f"Request to {request.url} timed out") from e
            logger.warning(f"Request to {request.url} failed: {e}")
            raise TransportError(f"Request failed: {str(e)}") from e
        finally:
            # The transport jar is authoritative.
            session.cookies.clear()

        headers = CIMultiDict(response.headers.multi_items())
        headers.popall("Content-Encoding", None)
        headers.popall("Content-Length", None)

        return Response(
            status_code=response.status_code,
            headers=headers,
            content=response.content,
            url=str(response.url),
        )

    async def close(self) -> None:
        """Close the curl_cffi session."""
        if self._session is not None:
            await self._session.close()
            self._session = None
        await super().close()
