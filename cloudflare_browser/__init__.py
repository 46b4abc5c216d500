"""Stateful HTTP browsing sessions that pass the IUAM anti-bot challenge.

A Browser issues requests, follows redirects under its own policy, decodes
response bodies, keeps a bounded navigation history and, when an origin
answers with the "Checking your browser" interstitial, evaluates the
challenge script in a sandboxed V8 isolate and submits the answer the page
would have submitted.

Quick Start:
    >>> import cloudflare_browser as cfb
    >>>
    >>> async with cfb.create_browser() as bow:
    ...     await bow.open("https://example.com/")
    ...     print(bow.status_code, bow.title)
    >>>
    >>> # Out-of-band fetches
    >>> async with cfb.create_browser(timeout=30) as bow:
    ...     await asyncio.gather(
    ...         bow.open_async("https://example.com/a", "a"),
    ...         bow.open_async("https://example.com/b", "b"),
    ...     )
    ...     print(bow.async_store.get("a").title)
"""

from .config import (
    BrowserConfig,
    create_default_config,
    DEFAULT_USER_AGENT,
    DEFAULT_CHROME_VERSION,
)

from .errors import (
    BrowserError,
    ConfigurationError,
    TransportError,
    TransportTimeoutError,
    RedirectError,
    RedirectsDisabledError,
    TooManyRedirectsError,
    DecodeError,
    DocumentParseError,
    ChallengeError,
    ChallengeLoopError,
    UnsupportedChallengeError,
    ChallengeUnsolvedError,
    ScriptEvaluationError,
    MaxRetriesError,
    PageNotLoadedError,
    ElementNotFoundError,
    AttributeNotFoundError,
    BookmarkError,
)

from .browser import (
    Attribute,
    Browser,
    RedirectPolicy,
    create_browser,
)

from .challenge import (
    ChallengePage,
    ChallengeSolver,
    ChallengeSubmission,
    ScriptSandbox,
    is_challenge,
)

from .http import (
    AiohttpTransport,
    DecoderPipeline,
    DecodedBody,
    Request,
    Response,
    Transport,
    create_transport,
)

from .jar import (
    AsyncStore,
    Cookie,
    CookieJar,
    History,
    MemoryBookmarks,
    MemoryHistory,
    State,
)

# Version information
__version__ = "1.0.0"
__license__ = "MIT"

# Module metadata
__title__ = "cloudflare-browser"
__description__ = "Stateful async browsing sessions with IUAM challenge solving"

__all__ = [
    # Configuration
    "BrowserConfig",
    "create_default_config",
    "DEFAULT_USER_AGENT",
    "DEFAULT_CHROME_VERSION",

    # Errors
    "BrowserError",
    "ConfigurationError",
    "TransportError",
    "TransportTimeoutError",
    "RedirectError",
    "RedirectsDisabledError",
    "TooManyRedirectsError",
    "DecodeError",
    "DocumentParseError",
    "ChallengeError",
    "ChallengeLoopError",
    "UnsupportedChallengeError",
    "ChallengeUnsolvedError",
    "ScriptEvaluationError",
    "MaxRetriesError",
    "PageNotLoadedError",
    "ElementNotFoundError",
    "AttributeNotFoundError",
    "BookmarkError",

    # Session
    "Attribute",
    "Browser",
    "RedirectPolicy",
    "create_browser",

    # Challenge
    "ChallengePage",
    "ChallengeSolver",
    "ChallengeSubmission",
    "ScriptSandbox",
    "is_challenge",

    # HTTP
    "AiohttpTransport",
    "DecoderPipeline",
    "DecodedBody",
    "Request",
    "Response",
    "Transport",
    "create_transport",

    # Stores
    "AsyncStore",
    "Cookie",
    "CookieJar",
    "History",
    "MemoryBookmarks",
    "MemoryHistory",
    "State",

    # Metadata
    "__version__",
]


def _initialize_logging():
    """Initialize default logging configuration."""
    import logging

    logger = logging.getLogger(__name__)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(logging.WARNING)


# Initialize on import
_initialize_logging()
