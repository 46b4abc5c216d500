"""Stateful browsing session.

The Browser drives one logical navigation at a time: it builds the request,
follows redirects under its redirect policy, solves anti-bot challenges,
runs the decoder pipeline, records the result as the current State and
pushes the previous one onto the history. Its mutable fields (current
State, header bag, counters) are not synchronized; callers that share one
Browser between tasks must serialize navigations themselves.
"""

import asyncio
import logging
import math
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Tuple, Union
from urllib.parse import urlencode, urljoin, urlsplit, urlunsplit

from bs4 import BeautifulSoup
from bs4.element import ResultSet, Tag
from multidict import CIMultiDict, CIMultiDictProxy

from .. import diagnostics
from ..challenge.detector import is_challenge, is_solve_url
from ..challenge.parser import parse_challenge_page
from ..challenge.sandbox import ScriptSandbox
from ..challenge.solver import ChallengeSolver, ChallengeSubmission
from ..config import DEFAULT_CLEAR_TIMEOUT, BrowserConfig
from ..document import EMPTY_HTML, empty_document, parse_document
from ..errors import (
    AttributeNotFoundError,
    ChallengeLoopError,
    ChallengeUnsolvedError,
    ConfigurationError,
    DecodeError,
    DocumentParseError,
    ElementNotFoundError,
    MaxRetriesError,
    PageNotLoadedError,
    RedirectError,
    TransportError,
    TransportTimeoutError,
)
from ..http.decoder import ContentTransform, DecodedBody, DecoderPipeline, decompress
from ..http.messages import Request, Response
from ..http.transport import Transport, create_transport
from ..jar.async_store import AsyncStore
from ..jar.bookmarks import MemoryBookmarks
from ..jar.cookies import Cookie
from ..jar.history import History, MemoryHistory
from ..jar.state import State, new_history_state
from .attributes import Attribute, AttributeMap
from .headers import build_request_headers, format_headers
from .redirects import RedirectPolicy, build_redirect_request

logger = logging.getLogger(__name__)

FormData = Union[Mapping[str, Union[str, Sequence[str]]], Sequence[Tuple[str, str]]]

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def encode_form(data: FormData) -> str:
    """URL-encode form data, sorted by key."""
    items = data.items() if isinstance(data, Mapping) else data
    return urlencode(sorted(items, key=lambda item: item[0]), doseq=True)


class Browser:
    """
    Scriptable browsing session with anti-bot challenge solving.

    Usage::

        async with Browser() as bow:
            await bow.open("https://example.com/")
            print(bow.title)
    """

    def __init__(self, config: Optional[BrowserConfig] = None,
                 transport: Optional[Transport] = None,
                 history: Optional[History] = None,
                 bookmarks: Optional[MemoryBookmarks] = None,
                 solver: Optional[ChallengeSolver] = None,
                 decoder: Optional[DecoderPipeline] = None):
        self.config = config.copy() if config is not None else BrowserConfig()
        self.transport = transport if transport is not None else create_transport(self.config)
        self.history = history if history is not None else MemoryHistory(self.config.history_capacity)
        self.bookmarks = bookmarks if bookmarks is not None else MemoryBookmarks()
        self.solver = solver if solver is not None else ChallengeSolver(
            ScriptSandbox(self.config.script_timeout)
        )
        self.decoder = decoder if decoder is not None else DecoderPipeline()
        self.async_store = AsyncStore()

        self.headers = CIMultiDict()
        self.attributes: Dict[Attribute, bool] = {
            attr: bool(getattr(self.config, attr.value)) for attr in Attribute
        }

        self._state = State()

        # Challenge retries are bounded by config.reload_limit, meta-refresh
        # reloads by config.max_reloads as set (0 disables them).
        self.challenge_attempts = 0
        self.refresh_count = 0
        self._post_send_depth = 0

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        """Close the transport."""
        await self.transport.close()

    # -- Navigation --

    async def navigate(self, url: str, method: str = "GET",
                       body: Optional[Union[bytes, str]] = None,
                       content_type: Optional[str] = None,
                       referrer: Optional[str] = None) -> None:
        """Request url and make the result the current page.

        A new State is installed for every attempt that gets as far as the
        transport, including failed ones, which get an empty placeholder
        document. Errors are raised after the State is installed.

        Raises:
            TransportError: the round trip failed or timed out.
            RedirectError: the redirect policy refused a hop.
            ChallengeError: an anti-bot challenge could not be passed.
            DecodeError: the body could not be decompressed.
            DocumentParseError: the body could not be parsed.
        """
        request = self._build_request(method, url, body, content_type, referrer)
        await self._send(request)

    async def open(self, url: str) -> None:
        """Request url with GET."""
        await self.navigate(url)

    async def head(self, url: str) -> None:
        """Request url with HEAD."""
        await self.navigate(url, method="HEAD")

    async def open_form(self, url: str, data: FormData) -> None:
        """Request url with GET, replacing its query with the encoded data."""
        parts = urlsplit(url)
        await self.navigate(urlunsplit(parts._replace(query=encode_form(data))))

    async def open_bookmark(self, name: str) -> None:
        """Open the URL saved under name.

        Raises:
            BookmarkError: no bookmark has that name.
        """
        await self.navigate(self.bookmarks.read(name))

    async def post(self, url: str, content_type: str, body: Union[bytes, str],
                   ref: Optional[str] = None) -> None:
        """Request url with POST."""
        await self.navigate(url, method="POST", body=body,
                            content_type=content_type, referrer=ref)

    async def post_form(self, url: str, data: FormData, ref: Optional[str] = None) -> None:
        """POST data as an urlencoded form."""
        await self.post(url, FORM_CONTENT_TYPE, encode_form(data), ref)

    async def click(self, selector: str) -> None:
        """Follow the link matched by a CSS selector.

        Raises:
            ElementNotFoundError: nothing matches, or the match is not an anchor.
            AttributeNotFoundError: the anchor has no href.
        """
        elements = self.find(selector)
        if not elements:
            raise ElementNotFoundError(f"Element not found matching expr '{selector}'.")

        element = elements[0]
        if element.name != "a":
            raise ElementNotFoundError(f"Expr '{selector}' must match an anchor tag.")

        href = element.get("href")
        if href is None:
            raise AttributeNotFoundError("href")

        await self.navigate(self.resolve_url(href), referrer=self.url)

    async def reload(self) -> None:
        """Send the request of the current page again.

        Raises:
            PageNotLoadedError: no request has been made yet.
        """
        request = self._state.request
        if request is None:
            raise PageNotLoadedError("Cannot reload, no page has been loaded.")
        await self._send(request.copy())

    def back(self) -> bool:
        """Make the previous page current.

        Returns True when there was a previous page to go back to.
        """
        if len(self.history) > 1:
            self._state = self.history.pop()
            return True
        return False

    def bookmark(self, name: str) -> None:
        """Save the current page URL under name.

        Raises:
            PageNotLoadedError: no page has been loaded.
            BookmarkError: the name is already taken.
        """
        url = self.url
        if url is None:
            raise PageNotLoadedError("Cannot bookmark, no page has been loaded.")
        self.bookmarks.save(name, url)

    async def open_async(self, url: str, name: str) -> BeautifulSoup:
        """Fetch url out of band and store its document under name.

        The current page, the history and the counters are left alone, so
        several fetches may run concurrently. On failure an empty document
        is stored and the error is raised.
        """
        request = self._build_request("GET", url)
        try:
            response = await self._fetch(request)
            if response.status_code == 403:
                decoded = DecodedBody(EMPTY_HTML)
            else:
                decoded = self.decoder.decode(
                    response.content, response.content_encoding,
                    response.content_type, request.url,
                )
            document = parse_document(decoded.content, decoded.encoding)
        except (TransportError, RedirectError, DecodeError, DocumentParseError):
            self.async_store.set(name, empty_document())
            raise

        self.async_store.set(name, document)
        return document

    # -- Configuration --

    def set_user_agent(self, user_agent: str) -> None:
        self.config.user_agent = user_agent

    @property
    def user_agent(self) -> str:
        return self.config.user_agent

    def set_attribute(self, attribute: Attribute, value: bool) -> None:
        """Switch one attribute on or off."""
        self.attributes[attribute] = bool(value)

    def set_attributes(self, attributes: AttributeMap) -> None:
        """Replace every attribute. Attributes missing from the map are switched off."""
        self.attributes = {attr: bool(attributes.get(attr, False)) for attr in Attribute}

    def set_timeout(self, seconds: Optional[float]) -> None:
        """Bound every round trip, redirects included. None means unbounded."""
        if seconds is not None and seconds < 0:
            raise ConfigurationError("timeout must not be negative")
        self.config.timeout = seconds

    def clear_timeout(self) -> None:
        """Restore the default round-trip bound."""
        self.config.timeout = DEFAULT_CLEAR_TIMEOUT

    def set_max_reloads(self, max_reloads: int) -> None:
        """Set the bound of challenge retries and meta-refresh reloads.

        0 disables meta refresh and leaves challenge retries at the default.
        """
        if max_reloads < 0:
            raise ConfigurationError("max_reloads must not be negative")
        self.config.max_reloads = max_reloads

    def set_history_capacity(self, capacity: int) -> None:
        self.history.set_capacity(capacity)

    def set_use_cookies(self, enabled: bool) -> None:
        """Switch cookie sending and storing on or off."""
        self.config.use_cookies = bool(enabled)

    def set_converter(self, mime: str, transform: ContentTransform) -> None:
        """Reshape bodies of a MIME type before parsing.

        ``transform(body, content_type, url)`` returns the new body.
        """
        self.decoder.set_transform(mime, transform)

    def clear_converter(self, mime: str) -> None:
        self.decoder.clear_transform(mime)

    def set_content_fixer(self, mime: str) -> None:
        """Exempt a MIME type from charset correction."""
        self.decoder.set_exempt(mime)

    def clear_content_fixer(self, mime: str) -> None:
        self.decoder.clear_exempt(mime)

    # -- Header bag --

    def add_request_header(self, name: str, value: str) -> None:
        """Set a header sent with every request, replacing previous values."""
        self.headers[name] = value

    def get_request_header(self, name: str) -> str:
        return self.headers.get(name, "")

    def del_request_header(self, name: str) -> None:
        self.headers.popall(name, None)

    def get_all_request_headers(self) -> str:
        return format_headers(self.headers)

    # -- Accessors --

    @property
    def state(self) -> State:
        return self._state

    @property
    def url(self) -> Optional[str]:
        """Final URL of the current page, or the requested URL when no response arrived."""
        return self._state.url

    @property
    def status_code(self) -> int:
        """Status of the current page. 503 when no response arrived."""
        if self._state.response is None:
            return 503
        return self._state.response.status_code

    @property
    def title(self) -> str:
        title = self._state.document.title
        return title.get_text() if title is not None else ""

    @property
    def response_headers(self) -> CIMultiDictProxy:
        if self._state.response is not None:
            return self._state.response.headers
        return CIMultiDictProxy(CIMultiDict())

    @property
    def body(self) -> str:
        """The current page as HTML."""
        return str(self._state.document)

    @property
    def document(self) -> BeautifulSoup:
        return self._state.document

    def find(self, selector: str) -> ResultSet:
        """Select elements of the current page with a CSS selector."""
        return self._state.document.select(selector)

    def find_one(self, selector: str) -> Optional[Tag]:
        return self._state.document.select_one(selector)

    def download(self, writer: Any) -> int:
        """Write the current page as UTF-8 HTML to writer and return the byte count."""
        data = self.body.encode("utf-8")
        writer.write(data)
        return len(data)

    def resolve_url(self, ref: str) -> str:
        """Resolve a possibly relative reference against the current URL."""
        return urljoin(self.url or "", ref)

    def site_cookies(self) -> List[Cookie]:
        """Cookies the transport would send to the current URL."""
        if self.url is None:
            return []
        return self.transport.cookies_for(self.url)

    # -- Internals --

    def _build_request(self, method: str, url: str,
                       body: Optional[Union[bytes, str]] = None,
                       content_type: Optional[str] = None,
                       referrer: Optional[str] = None) -> Request:
        if not self.attributes[Attribute.SEND_REFERER]:
            referrer = None
        if isinstance(body, str):
            body = body.encode("utf-8")

        headers = build_request_headers(self.headers, self.config.user_agent,
                                        referrer, content_type)
        return Request(method, url, headers, body)

    async def _round_trip(self, request: Request) -> Response:
        """Send request and follow redirects under the redirect policy."""
        policy = RedirectPolicy(self.attributes[Attribute.FOLLOW_REDIRECTS],
                                self.config.max_redirects)
        via: List[Request] = []
        current = request
        withheld: Set[str] = set()

        while True:
            diagnostics.dump_request(current)
            response = await self.transport.send(current)
            diagnostics.dump_response(response)

            if not response.is_redirect:
                return response

            via.append(current)
            hop = build_redirect_request(current, response)
            withheld.update(hop.dropped)
            try:
                policy.check(hop.request, via, frozenset(withheld))
            except RedirectError as e:
                e.response = response
                raise

            logger.debug(f"Redirect {response.status_code} {current.url} -> {hop.request.url}")
            current = hop.request

    async def _fetch(self, request: Request) -> Response:
        """Run a bounded round trip."""
        timeout = self.config.timeout
        if not timeout:
            return await self._round_trip(request)

        try:
            return await asyncio.wait_for(self._round_trip(request), timeout)
        except asyncio.TimeoutError as e:
            raise TransportTimeoutError(
                f"Request to {request.url} exceeded {timeout:g}s"
            ) from e

    async def _send(self, request: Request) -> None:
        logger.debug(f"{request.method} {request.url}")

        try:
            response = await self._fetch(request)
        except TransportError as e:
            logger.warning(f"Request to {request.url} failed: {e}")
            await self._complete(new_history_state(request, None, empty_document()))
            raise

        if is_challenge(response):
            await self._handle_challenge(request, response)
            return

        try:
            if response.status_code == 403:
                content = decompress(response.content, response.content_encoding)
                decoded = DecodedBody(content or EMPTY_HTML)
            else:
                decoded = self.decoder.decode(
                    response.content, response.content_encoding,
                    response.content_type, request.url,
                )
        except DecodeError:
            await self._complete(new_history_state(request, response, empty_document()))
            raise

        try:
            document = parse_document(decoded.content, decoded.encoding)
        except DocumentParseError:
            await self._complete(new_history_state(request, response, empty_document()))
            raise

        await self._complete(new_history_state(request, response, document))

    async def _handle_challenge(self, request: Request, response: Response) -> None:
        """Solve a challenge response and send the answer."""
        url = response.url
        logger.info(f"Challenge detected for {url}")

        try:
            content = decompress(response.content, response.content_encoding)
            document = parse_document(content)
        except (DecodeError, DocumentParseError):
            await self._complete(new_history_state(request, response, empty_document()),
                                 challenge=True)
            raise

        challenge_state = new_history_state(request, response, document)

        if self.challenge_attempts >= self.config.reload_limit:
            attempts = self.challenge_attempts
            logger.warning(f"Giving up on challenge for {url} after {attempts} attempts")
            await self._complete(challenge_state, challenge=True)
            self.challenge_attempts = 0
            raise MaxRetriesError(attempts)

        try:
            if is_solve_url(request.url) or is_solve_url(url):
                raise ChallengeLoopError(f"Challenge served for the solving endpoint: {url}")

            self.challenge_attempts += 1
            page = parse_challenge_page(document, content.decode("utf-8", errors="replace"))
            delay = self.config.challenge_delay
            if delay is None:
                delay = page.delay
            await asyncio.sleep(delay)

            cookie_header = None
            if self.config.use_cookies:
                cookie_header = self.transport.cookie_jar.get_cookie_header(url)
            submission = await self.solver.solve_page(page, url, cookie_header)
        except Exception as e:
            logger.warning(f"Challenge for {url} not solved: {e}")
            await self._complete(challenge_state, challenge=True)
            raise

        await self._send(self._submission_request(submission))

        if self.status_code == 403:
            logger.warning(f"Challenge answer for {url} was rejected")
            raise ChallengeUnsolvedError(f"Challenge answer rejected by {url}")

    def _submission_request(self, submission: ChallengeSubmission) -> Request:
        request = self._build_request(submission.method, submission.url, submission.body,
                                      submission.content_type, submission.referrer)
        request.headers.update(submission.headers)
        return request

    async def _complete(self, state: State, challenge: bool = False) -> None:
        """Install state as the current page and run post-processing."""
        self.history.push(self._state)
        self._state = state

        self._post_send_depth += 1
        try:
            await self._post_send()
        finally:
            self._post_send_depth -= 1
            if self._post_send_depth == 0:
                self.refresh_count = 0

        if not challenge:
            self.challenge_attempts = 0

    async def _post_send(self) -> None:
        """Follow a meta refresh of the current page."""
        response = self._state.response
        if response is None or not self.attributes[Attribute.META_REFRESH_HANDLING]:
            return

        content_type = response.content_type
        if content_type and "text/html" not in content_type:
            return

        meta = self._state.document.find(
            "meta", attrs={"http-equiv": lambda value: value and value.lower() == "refresh"}
        )
        if meta is None or meta.get("content") is None:
            return

        try:
            delay = float(meta["content"])
        except ValueError:
            return

        if not math.isfinite(delay) or delay < 0 or self.refresh_count >= self.config.max_reloads:
            return

        await asyncio.sleep(delay)
        self.refresh_count += 1
        logger.info(f"Meta refresh of {self.url} ({self.refresh_count})")
        await self.reload()

    def __repr__(self) -> str:
        return f"<Browser [{self.status_code}] {self.url}>"


def create_browser(config: Optional[BrowserConfig] = None, **overrides: Any) -> Browser:
    """Create a browser, overriding configuration fields by keyword."""
    config = config or BrowserConfig()
    if overrides:
        config = config.copy(**overrides)
    return Browser(config)
