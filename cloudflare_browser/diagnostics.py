"""Environment-toggled diagnostic dumps.

CFB_DEBUG_HEADERS dumps request and response headers, CFB_DEBUG_CHALLENGE
dumps challenge scripts before and after rewriting. Both write to the
``cloudflare_browser.diagnostics`` logger, which gets its own stderr handler
the first time a toggle is found enabled.
"""

import logging
import os
import sys


DEBUG_HEADERS_ENV = "CFB_DEBUG_HEADERS"
DEBUG_CHALLENGE_ENV = "CFB_DEBUG_CHALLENGE"

logger = logging.getLogger("cloudflare_browser.diagnostics")


def _enabled(name: str) -> bool:
    if os.environ.get(name, "") == "":
        return False
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)
        logger.propagate = False
    return True


def headers_enabled() -> bool:
    return _enabled(DEBUG_HEADERS_ENV)


def challenge_enabled() -> bool:
    return _enabled(DEBUG_CHALLENGE_ENV)


def dump_request(request) -> None:
    """Dump an outgoing request line and its headers."""
    if not headers_enabled():
        return
    lines = [f"{request.method} {request.url}"]
    lines.extend(f"{name}: {value}" for name, value in request.headers.items())
    logger.debug("===== [DUMP Request] =====\n%s", "\n".join(lines))


def dump_response(response) -> None:
    """Dump a response status line and its headers."""
    if not headers_enabled():
        return
    lines = [f"{response.status_code} {response.url}"]
    lines.extend(f"{name}: {value}" for name, value in response.headers.items())
    logger.debug("===== [DUMP Response] =====\n%s", "\n".join(lines))


def dump_challenge(label: str, text: str) -> None:
    """Dump one stage of challenge solving."""
    if not challenge_enabled():
        return
    logger.debug("---------- %s -----------\n%s\n", label, text)
