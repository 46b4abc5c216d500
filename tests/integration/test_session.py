"""
Integration tests for the session engine.

Every test drives a real Browser over ScriptedTransport, so redirects,
challenge solving, decoding and history run end to end without network.
"""

import asyncio
import gzip
import io

import pytest

from cloudflare_browser.browser import Attribute, Browser
from cloudflare_browser.config import DEFAULT_CLEAR_TIMEOUT
from cloudflare_browser.document import is_empty_document
from cloudflare_browser.errors import (
    AttributeNotFoundError,
    BookmarkError,
    ConfigurationError,
    DecodeError,
    ElementNotFoundError,
    PageNotLoadedError,
    RedirectsDisabledError,
    TooManyRedirectsError,
    TransportError,
    TransportTimeoutError,
)

from conftest import ScriptedTransport, html_reply, make_response, redirect_reply

PAGE = "http://example.com/"

LINKS = """
<html><head><title>Links</title></head><body>
  <a id="next" href="/next">next</a>
  <a id="bare">no href</a>
  <p id="para">text</p>
</body></html>
"""


def titled(title, extra=""):
    return html_reply(f"<html><head><title>{title}</title>{extra}</head><body></body></html>")


@pytest.mark.integration
class TestNavigation:
    """Test basic navigation and page accessors."""

    @pytest.mark.asyncio
    async def test_open(self, browser, transport):
        """Opening a page installs it as the current state."""
        transport.queue(titled("Home"))

        await browser.open(PAGE)

        assert browser.url == PAGE
        assert browser.status_code == 200
        assert browser.title == "Home"
        assert browser.response_headers["Content-Type"].startswith("text/html")
        assert transport.requests[0].method == "GET"
        assert transport.requests[0].headers["User-Agent"] == browser.user_agent

    @pytest.mark.asyncio
    async def test_session_headers_sent(self, browser, transport):
        """Headers of the session bag go out with every request."""
        browser.add_request_header("X-Test", "1")
        browser.set_user_agent("test-agent/1.0")

        await browser.open(PAGE)

        sent = transport.requests[0].headers
        assert sent["X-Test"] == "1"
        assert sent["User-Agent"] == "test-agent/1.0"

    def test_header_bag(self, browser):
        """The header bag can be read, listed and emptied."""
        browser.add_request_header("Accept", "text/html")
        browser.add_request_header("X-Test", "1")

        assert browser.get_request_header("accept") == "text/html"
        assert browser.get_all_request_headers() == "Accept: text/html\nX-Test: 1\n"

        browser.del_request_header("X-Test")
        assert browser.get_request_header("X-Test") == ""

    @pytest.mark.asyncio
    async def test_click_sends_referrer(self, browser, transport):
        """Following a link resolves it and sends the current page as referrer."""
        transport.queue(html_reply(LINKS), titled("Next"))
        await browser.open(PAGE)

        await browser.click("a#next")

        assert browser.url == "http://example.com/next"
        assert transport.requests[1].headers["Referer"] == PAGE

    @pytest.mark.asyncio
    async def test_referrer_disabled(self, browser, transport):
        """No Referer is sent when the attribute is off."""
        transport.queue(html_reply(LINKS), titled("Next"))
        browser.set_attribute(Attribute.SEND_REFERER, False)
        await browser.open(PAGE)

        await browser.click("a#next")

        assert "Referer" not in transport.requests[1].headers

    @pytest.mark.asyncio
    async def test_click_errors(self, browser, transport):
        """Clicking needs a matching anchor with an href."""
        transport.queue(html_reply(LINKS))
        await browser.open(PAGE)

        with pytest.raises(ElementNotFoundError):
            await browser.click("a#missing")
        with pytest.raises(ElementNotFoundError):
            await browser.click("p#para")
        with pytest.raises(AttributeNotFoundError):
            await browser.click("a#bare")

        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_post_form(self, browser, transport):
        """Forms are posted urlencoded and sorted by key."""
        await browser.post_form("http://example.com/login", {"user": "bob", "pass": "x y"})

        sent = transport.requests[0]
        assert sent.method == "POST"
        assert sent.body == b"pass=x+y&user=bob"
        assert sent.headers["Content-Type"] == "application/x-www-form-urlencoded"

    @pytest.mark.asyncio
    async def test_open_form(self, browser, transport):
        """GET forms replace the query of the URL."""
        await browser.open_form("http://example.com/search?old=1", {"q": "cats"})

        assert transport.requests[0].url == "http://example.com/search?q=cats"

    @pytest.mark.asyncio
    async def test_head(self, browser, transport):
        """HEAD requests are supported."""
        transport.queue(html_reply(b""))

        await browser.head(PAGE)

        assert transport.requests[0].method == "HEAD"
        assert browser.status_code == 200

    @pytest.mark.asyncio
    async def test_reload(self, browser, transport):
        """Reload sends the current request again."""
        with pytest.raises(PageNotLoadedError):
            await browser.reload()

        await browser.open(PAGE)
        await browser.reload()

        assert [r.url for r in transport.requests] == [PAGE, PAGE]

    @pytest.mark.asyncio
    async def test_back(self, browser, transport):
        """Back returns to the previous page until the history runs out."""
        transport.queue(titled("One"), titled("Two"))
        await browser.open("http://example.com/1")
        await browser.open("http://example.com/2")

        assert browser.back() is True
        assert browser.title == "One"
        assert browser.back() is False
        assert browser.title == "One"

    @pytest.mark.asyncio
    async def test_history_bounded(self, browser, transport):
        """History never grows beyond its capacity."""
        browser.set_history_capacity(3)

        for i in range(6):
            await browser.open(f"http://example.com/{i}")

        assert len(browser.history) == 3
        assert browser.history.top().url == "http://example.com/4"

    @pytest.mark.asyncio
    async def test_bookmarks(self, browser, transport):
        """Bookmarks save the current URL and can be reopened."""
        with pytest.raises(PageNotLoadedError):
            browser.bookmark("home")

        await browser.open(PAGE)
        browser.bookmark("home")

        with pytest.raises(BookmarkError):
            browser.bookmark("home")

        await browser.open_bookmark("home")
        assert transport.requests[-1].url == PAGE

    @pytest.mark.asyncio
    async def test_find_and_download(self, browser, transport):
        """The current page can be queried and written out."""
        transport.queue(html_reply(LINKS))
        await browser.open(PAGE)

        assert len(browser.find("a")) == 2
        assert browser.find_one("p#para").get_text() == "text"

        buffer = io.BytesIO()
        written = browser.download(buffer)
        assert written == len(buffer.getvalue())
        assert b"<title>Links</title>" in buffer.getvalue()

    @pytest.mark.asyncio
    async def test_gzip_body(self, browser, transport):
        """Compressed bodies are decoded before parsing."""
        body = gzip.compress(b"<html><head><title>Zipped</title></head></html>")
        transport.queue(lambda request: make_response(
            request, 200, body, {"Content-Type": "text/html", "Content-Encoding": "gzip"}
        ))

        await browser.open(PAGE)

        assert browser.title == "Zipped"

    @pytest.mark.asyncio
    async def test_decode_error(self, browser, transport):
        """Undecodable bodies install an empty page and raise."""
        transport.queue(lambda request: make_response(
            request, 200, b"not gzip", {"Content-Type": "text/html", "Content-Encoding": "gzip"}
        ))

        with pytest.raises(DecodeError):
            await browser.open(PAGE)

        assert browser.status_code == 200
        assert is_empty_document(browser.document)

    @pytest.mark.asyncio
    async def test_converter(self, browser, transport):
        """Registered converters reshape bodies before parsing."""
        transport.queue(lambda request: make_response(
            request, 200, b'"hello"', {"Content-Type": "application/json"}
        ))
        browser.set_converter(
            "application/json",
            lambda body, content_type, url: b"<html><head><title>" + body.strip(b'"') + b"</title></head></html>",
        )

        await browser.open(PAGE)

        assert browser.title == "hello"

    @pytest.mark.asyncio
    async def test_forbidden(self, browser, transport):
        """403 responses with no body get an empty page."""
        transport.queue(html_reply(b"", status=403))

        await browser.open(PAGE)

        assert browser.status_code == 403
        assert is_empty_document(browser.document)

    @pytest.mark.asyncio
    async def test_site_cookies(self, browser, transport):
        """Cookies set by a page are reported for it and sent back."""
        transport.queue(html_reply("<p>x</p>", Set_Cookie="sid=42; Path=/"))

        await browser.open(PAGE)
        await browser.open(PAGE)

        assert [c.name for c in browser.site_cookies()] == ["sid"]
        assert transport.requests[1].headers["Cookie"] == "sid=42"

    @pytest.mark.asyncio
    async def test_cookies_disabled(self, browser, transport):
        """With cookies off nothing is stored or sent."""
        browser.set_use_cookies(False)
        transport.queue(html_reply("<p>x</p>", Set_Cookie="sid=42; Path=/"))

        await browser.open(PAGE)
        await browser.open(PAGE)

        assert "Cookie" not in transport.requests[1].headers
        assert len(transport.cookie_jar) == 0


@pytest.mark.integration
class TestFailures:
    """Test how failed navigations are recorded."""

    @pytest.mark.asyncio
    async def test_transport_error(self, browser, transport):
        """A failed round trip installs a placeholder state and raises."""
        transport.queue(TransportError("connection refused"))

        with pytest.raises(TransportError):
            await browser.open("http://unreachable.example.com/")

        assert browser.url == "http://unreachable.example.com/"
        assert browser.state.response is None
        assert browser.status_code == 503
        assert is_empty_document(browser.document)

    @pytest.mark.asyncio
    async def test_session_usable_after_failure(self, browser, transport):
        """The browser keeps working after a failed navigation."""
        transport.queue(titled("First"), TransportError("reset"), titled("Third"))
        await browser.open("http://example.com/1")

        with pytest.raises(TransportError):
            await browser.open("http://example.com/2")

        await browser.open("http://example.com/3")
        assert browser.title == "Third"
        assert browser.back() is True
        assert browser.url == "http://example.com/2"

    @pytest.mark.asyncio
    async def test_timeout(self, browser_config):
        """Round trips past the timeout fail as transport errors."""

        class SlowTransport(ScriptedTransport):
            async def _send(self, request):
                await asyncio.sleep(1)
                return await super()._send(request)

        browser = Browser(browser_config, transport=SlowTransport(browser_config))
        browser.set_timeout(0.05)

        with pytest.raises(TransportTimeoutError):
            await browser.open(PAGE)

        assert browser.status_code == 503
        assert browser.url == PAGE

    def test_timeout_settings(self, browser):
        """Timeouts must be non-negative and can be reset."""
        with pytest.raises(ConfigurationError):
            browser.set_timeout(-1)

        browser.set_timeout(None)
        assert browser.config.timeout is None

        browser.clear_timeout()
        assert browser.config.timeout == DEFAULT_CLEAR_TIMEOUT


@pytest.mark.integration
class TestRedirects:
    """Test redirect following."""

    @pytest.mark.asyncio
    async def test_chain_followed(self, browser, transport):
        """A chain of nine hops is followed to the end."""
        browser.add_request_header("X-Trace", "abc")
        transport.queue(*[redirect_reply(f"/hop/{i}") for i in range(1, 10)], titled("End"))

        await browser.open(PAGE)

        assert browser.title == "End"
        assert browser.url == "http://example.com/hop/9"
        assert len(transport.requests) == 10
        assert all(r.headers["X-Trace"] == "abc" for r in transport.requests)
        assert len(browser.history) == 1

    @pytest.mark.asyncio
    async def test_chain_too_long(self, browser, transport):
        """Chains past the hop limit fail without changing the page."""
        transport.queue(*[redirect_reply(f"/hop/{i}") for i in range(1, 12)])

        with pytest.raises(TooManyRedirectsError, match="too many redirects") as exc_info:
            await browser.open(PAGE)

        assert len(transport.requests) == 10
        assert exc_info.value.response.location == "/hop/10"
        assert browser.url is None

    @pytest.mark.asyncio
    async def test_redirects_disabled(self, browser, transport):
        """With redirects off the first redirect fails."""
        browser.set_attribute(Attribute.FOLLOW_REDIRECTS, False)
        transport.queue(redirect_reply("/elsewhere"))

        with pytest.raises(RedirectsDisabledError) as exc_info:
            await browser.open(PAGE)

        assert "http://example.com/elsewhere" in str(exc_info.value)
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_set_attributes_switches_off_missing(self, browser, transport):
        """Attributes left out of the map are switched off."""
        browser.set_attributes({Attribute.SEND_REFERER: True})
        transport.queue(redirect_reply("/elsewhere"))

        with pytest.raises(RedirectsDisabledError):
            await browser.open(PAGE)

        assert browser.attributes[Attribute.META_REFRESH_HANDLING] is False

    @pytest.mark.asyncio
    async def test_post_redirect_becomes_get(self, browser, transport):
        """A 303 after a POST is followed with a bodyless GET."""
        transport.queue(redirect_reply("/done", status=303), titled("Done"))

        await browser.post_form("http://example.com/form", {"a": "1"})

        follow = transport.requests[1]
        assert follow.method == "GET"
        assert follow.body is None
        assert "Content-Type" not in follow.headers

    @pytest.mark.asyncio
    async def test_credentials_stay_behind_after_host_change(self, browser, transport):
        """Credentials dropped at a host change are not restored on later hops."""
        browser.add_request_header("Authorization", "Basic Zm9vOmJhcg==")
        browser.add_request_header("X-Trace", "abc")
        transport.queue(redirect_reply("http://other.example.org/a"),
                        redirect_reply("/b"), titled("Other"))

        await browser.open(PAGE)

        assert browser.url == "http://other.example.org/b"
        first, second, third = transport.requests
        assert first.headers["Authorization"] == "Basic Zm9vOmJhcg=="
        assert "Authorization" not in second.headers
        assert "Authorization" not in third.headers
        assert third.headers["X-Trace"] == "abc"


@pytest.mark.integration
class TestMetaRefresh:
    """Test meta refresh handling."""

    REFRESH = '<meta http-equiv="Refresh" content="0">'

    @pytest.mark.asyncio
    async def test_refresh_bounded(self, browser, transport):
        """Meta refresh reloads stop at the reload limit."""
        browser.set_max_reloads(3)
        transport.fallback = titled("Loop", self.REFRESH)

        await browser.open(PAGE)

        assert len(transport.requests) == 4
        assert browser.refresh_count == 0

    @pytest.mark.asyncio
    async def test_refresh_disabled(self, browser, transport):
        """No reload happens with meta refresh handling off."""
        browser.set_max_reloads(3)
        browser.set_attribute(Attribute.META_REFRESH_HANDLING, False)
        transport.fallback = titled("Loop", self.REFRESH)

        await browser.open(PAGE)

        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_refresh_with_url_ignored(self, browser, transport):
        """Only a bare delay triggers a reload."""
        browser.set_max_reloads(3)
        transport.queue(titled("Redirecting", '<meta http-equiv="refresh" content="0; url=/x">'))

        await browser.open(PAGE)

        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_refresh_off_by_default(self, browser, transport):
        """A default session does not follow meta refresh."""
        transport.fallback = titled("Waiting", '<meta http-equiv="refresh" content="300">')

        await browser.open(PAGE)

        assert browser.config.max_reloads == 0
        assert len(transport.requests) == 1
        assert browser.refresh_count == 0
        assert browser.title == "Waiting"

    @pytest.mark.asyncio
    async def test_custom_reload_limit(self, browser, transport):
        """The reload limit follows max_reloads."""
        browser.set_max_reloads(1)
        transport.fallback = titled("Loop", self.REFRESH)

        await browser.open(PAGE)

        assert len(transport.requests) == 2


@pytest.mark.integration
class TestOpenAsync:
    """Test out-of-band fetches."""

    @staticmethod
    def echo(request):
        path = request.url.rsplit("/", 1)[-1]
        body = f"<html><head><title>{path}</title></head></html>".encode()
        return make_response(request, 200, body, {"Content-Type": "text/html"})

    @pytest.mark.asyncio
    async def test_current_page_untouched(self, browser, transport):
        """Async fetches leave the current page and history alone."""
        transport.queue(titled("Main"))
        await browser.open(PAGE)
        transport.fallback = self.echo

        document = await browser.open_async("http://example.com/side", "side")

        assert document.title.get_text() == "side"
        assert browser.async_store.get("side") is document
        assert browser.title == "Main"
        assert browser.url == PAGE
        assert len(browser.history) == 1

    @pytest.mark.asyncio
    async def test_concurrent_fetches(self, browser, transport):
        """Several fetches can run at once, each stored under its name."""
        transport.fallback = self.echo
        names = [f"page{i}" for i in range(5)]

        await asyncio.gather(*[
            browser.open_async(f"http://example.com/{name}", name) for name in names
        ])

        for name in names:
            assert browser.async_store.get(name).title.get_text() == name

    @pytest.mark.asyncio
    async def test_failure_stores_empty_document(self, browser, transport):
        """A failed fetch stores an empty document and raises."""
        transport.queue(TransportError("down"))

        with pytest.raises(TransportError):
            await browser.open_async("http://example.com/x", "x")

        assert "x" in browser.async_store
        assert is_empty_document(browser.async_store.get("x"))
        assert browser.url is None

    @pytest.mark.asyncio
    async def test_forbidden(self, browser, transport):
        """A 403 fetch stores an empty document."""
        transport.queue(html_reply("<p>denied</p>", status=403))

        await browser.open_async("http://example.com/x", "x")

        assert is_empty_document(browser.async_store.get("x"))
