"""Exception hierarchy for browsing sessions.

Every failure raised by the package derives from BrowserError. None of them
leaves the session unusable: after any single failed call the browser can
still navigate, go back or be inspected.
"""

from typing import Optional


class BrowserError(Exception):
    """Base exception for browsing session errors."""
    pass


class ConfigurationError(BrowserError):
    """Raised when a configuration value is invalid."""
    pass


class TransportError(BrowserError):
    """Raised when the HTTP round trip itself fails."""
    pass


class TransportTimeoutError(TransportError):
    """Raised when the round trip exceeds the configured timeout."""
    pass


class RedirectError(BrowserError):
    """Base exception for redirect policy violations.

    The response of the last hop that was actually received is kept on the
    exception so callers can still read its Location header.
    """

    def __init__(self, message: str, response=None):
        super().__init__(message)
        self.response = response


class RedirectsDisabledError(RedirectError):
    """Raised on the first redirect when following redirects is disabled."""
    pass


class TooManyRedirectsError(RedirectError):
    """Raised when a redirect chain exceeds the hop limit."""
    pass


class DecodeError(BrowserError):
    """Raised when a response body cannot be decompressed."""
    pass


class DocumentParseError(BrowserError):
    """Raised when a response body cannot be parsed into a document."""
    pass


class ChallengeError(BrowserError):
    """Base exception for anti-bot challenge failures."""
    pass


class ChallengeLoopError(ChallengeError):
    """Raised when the solving endpoint itself answers with a challenge."""
    pass


class UnsupportedChallengeError(ChallengeError):
    """Raised when the challenge script matches no known variant."""
    pass


class ChallengeUnsolvedError(ChallengeError):
    """Raised when a recognised challenge could not be solved."""
    pass


class ScriptEvaluationError(ChallengeUnsolvedError):
    """Raised when the sandboxed interpreter fails or times out."""
    pass


class MaxRetriesError(ChallengeError):
    """Raised when the challenge retry budget is exhausted."""

    def __init__(self, attempts: int):
        super().__init__(f"maximum retries ({attempts}) for cloudflare reached")
        self.attempts = attempts


class PageNotLoadedError(BrowserError):
    """Raised when an operation needs a page that was never loaded."""
    pass


class ElementNotFoundError(BrowserError):
    """Raised when a selector does not match the expected element."""
    pass


class AttributeNotFoundError(BrowserError):
    """Raised when an element lacks a required attribute."""

    def __init__(self, name: str, message: Optional[str] = None):
        super().__init__(message or f"Attribute '{name}' not found.")
        self.name = name


class BookmarkError(BrowserError):
    """Raised for unknown or duplicate bookmark names."""
    pass
