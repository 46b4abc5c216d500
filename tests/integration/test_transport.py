"""
Integration tests for the aiohttp transport against a local test server.
"""

import gzip

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from cloudflare_browser.browser import Browser
from cloudflare_browser.config import BrowserConfig
from cloudflare_browser.errors import ConfigurationError, TransportError
from cloudflare_browser.http.messages import Request
from cloudflare_browser.http.transport import AiohttpTransport, create_transport

PAGE = b"<html><head><title>Served</title></head><body>hello</body></html>"


async def gzipped(request):
    return web.Response(
        body=gzip.compress(PAGE),
        headers={"Content-Type": "text/html; charset=utf-8", "Content-Encoding": "gzip"},
    )


async def redirect(request):
    raise web.HTTPFound("/gzip")


async def set_cookie(request):
    response = web.Response(text="ok", content_type="text/html")
    response.headers.add("Set-Cookie", "a=1; Path=/")
    response.headers.add("Set-Cookie", "b=2; Path=/")
    return response


async def echo_headers(request):
    return web.json_response({
        "cookie": request.headers.get("Cookie"),
        "user_agent": request.headers.get("User-Agent"),
        "x_test": request.headers.get("X-Test"),
    })


def make_app():
    app = web.Application()
    app.router.add_get("/gzip", gzipped)
    app.router.add_get("/redirect", redirect)
    app.router.add_get("/cookies", set_cookie)
    app.router.add_get("/echo", echo_headers)
    return app


@pytest.mark.integration
class TestAiohttpTransport:
    """Test single exchanges over a real socket."""

    @pytest.mark.asyncio
    async def test_body_left_encoded(self):
        """Bodies reach the caller still content-encoded."""
        async with TestServer(make_app()) as server, AiohttpTransport() as transport:
            url = str(server.make_url("/gzip"))
            response = await transport.send(Request("GET", url))

        assert response.status_code == 200
        assert response.content_encoding == "gzip"
        assert gzip.decompress(response.content) == PAGE
        assert response.request.url == url

    @pytest.mark.asyncio
    async def test_redirect_not_followed(self):
        """Transports return redirects to the caller."""
        async with TestServer(make_app()) as server, AiohttpTransport() as transport:
            response = await transport.send(Request("GET", str(server.make_url("/redirect"))))

        assert response.status_code == 302
        assert response.is_redirect
        assert response.location == "/gzip"

    @pytest.mark.asyncio
    async def test_cookies_stored_and_sent(self):
        """Every Set-Cookie value is stored and sent on later requests."""
        async with TestServer(make_app()) as server, AiohttpTransport() as transport:
            await transport.send(Request("GET", str(server.make_url("/cookies"))))
            response = await transport.send(Request("GET", str(server.make_url("/echo"))))

        assert len(transport.cookie_jar) == 2
        assert b'"cookie": "a=1; b=2"' in response.content

    @pytest.mark.asyncio
    async def test_connection_error(self):
        """Unreachable hosts raise TransportError."""
        async with AiohttpTransport() as transport:
            with pytest.raises(TransportError):
                await transport.send(Request("GET", "http://127.0.0.1:9/"))

    @pytest.mark.asyncio
    async def test_closed_transport(self):
        """A closed transport refuses to send."""
        transport = AiohttpTransport()
        await transport.close()

        assert transport.closed
        with pytest.raises(TransportError):
            await transport.send(Request("GET", "http://127.0.0.1:9/"))

    @pytest.mark.asyncio
    async def test_browser_end_to_end(self):
        """A browser on the default transport follows, decodes and parses."""
        async with TestServer(make_app()) as server:
            async with Browser(BrowserConfig(challenge_delay=0)) as browser:
                browser.add_request_header("X-Test", "yes")
                await browser.open(str(server.make_url("/redirect")))

                assert browser.title == "Served"
                assert browser.url == str(server.make_url("/gzip"))

                await browser.open(str(server.make_url("/echo")))
                assert b'"x_test": "yes"' in browser.body.encode()


class TestCreateTransport:
    """Test transport selection."""

    def test_default_is_aiohttp(self):
        """aiohttp is the default transport."""
        assert isinstance(create_transport(), AiohttpTransport)

    def test_curl_transport(self):
        """The curl transport is selected by name."""
        from cloudflare_browser.http.curl import CurlTransport

        transport = create_transport(BrowserConfig(transport="curl"))

        assert isinstance(transport, CurlTransport)

    def test_unknown_transport(self):
        """Unknown names are rejected."""
        config = BrowserConfig()
        config.transport = "carrier-pigeon"

        with pytest.raises(ConfigurationError):
            create_transport(config)
