"""JavaScript challenge solver for the IUAM interstitial.

The challenge page embeds a closure that computes an answer from obfuscated
arithmetic and the site hostname, then submits it through a hidden form.
Solving means cutting the arithmetic out of the closure with a fixed series
of textual rewrites, evaluating what remains in the sandbox and building the
follow-up request the page itself would have sent.

Two page generations are known:

* the legacy page submits by GET to the fixed solving endpoint;
* the current page reads part of its arithmetic from a hidden element and
  submits by POST to the action of the challenge form.

Each generation is handled by its own strategy. A page matching neither is
reported as unsupported.
"""

import json
import logging
import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional
from urllib.parse import urlencode, urlparse

from multidict import CIMultiDict

from .. import diagnostics
from ..errors import (
    ChallengeUnsolvedError,
    UnsupportedChallengeError,
)
from .detector import SOLVE_PATH
from .parser import ChallengePage
from .sandbox import ScriptSandbox

logger = logging.getLogger(__name__)

# Cuts the answer computation out of the setTimeout closure.
EXTRACT_PATTERN = re.compile(
    r"setTimeout\(function\(\)\{\s+(var s,t,o,p,b,r,e,a,k,i,n,g,f.+?\r?\n[\s\S]+?a\.value =.+?)\r?\n"
)

HOST_SLOT = "s,t,o,p,b,r,e,a,k,i,n,g,f,"

ANSWER_ASSIGNMENT = re.compile(r"a\.value\s*\=")

# Legacy rewrites
LEGACY_NOISE = re.compile(r"\s{3,}[a-z](?: = |\.).+")
LEGACY_STRIP = re.compile(r"[\n\\']")
LEGACY_TRAILER = re.compile(r";\s*\d+\s*$")

# Current rewrites
CURRENT_NOISE = re.compile(r"\s{3,}[atf](?: = |\.).+")
KEY_READER = re.compile(r"function\(p\)\{var p = eval\(eval\(e.*?; return \+\(p\)\}\(\)")
CHAR_CODE_READER = re.compile(r"function\(p\)\{return eval\(\(.*?\}")
CURRENT_TRAILER = re.compile(r"\s';\s121'$")

ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,image/apng,*/*;q=0.8"
ACCEPT_LANGUAGE = "en-US,en;q=0.9"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


@dataclass
class ChallengeSubmission:
    """The follow-up request that carries a challenge answer.

    ``headers`` apply to this request only and win over the session's
    own headers.
    """
    method: str
    url: str
    answer: str
    variant: str
    referrer: Optional[str] = None
    headers: CIMultiDict = field(default_factory=CIMultiDict)
    body: Optional[bytes] = None
    content_type: Optional[str] = None


def extract_computation(script: str) -> str:
    """Return the answer computation of a challenge closure.

    Raises:
        UnsupportedChallengeError: the closure has an unknown shape.
    """
    match = EXTRACT_PATTERN.search(script)
    if match is None:
        raise UnsupportedChallengeError("Unsupported challenge format: closure not found")
    return match.group(1)


def splice_host(js: str, host: str) -> str:
    """Bind the hostname literal to ``t`` in the closure's variable list."""
    return js.replace(HOST_SLOT, f"s,t = {json.dumps(host)},o,p,b,r,e,a,k,i,n,g,f,", 1)


def compute_answer(value: Any, host: str) -> str:
    """Turn an evaluated value into the submitted answer.

    Pages that format the answer themselves (``toFixed``) produce a string,
    which is submitted verbatim. Older pages produce a bare number, to which
    the hostname length is added.
    """
    if isinstance(value, str):
        if not value:
            raise ChallengeUnsolvedError("Challenge script produced an empty answer")
        return value

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ChallengeUnsolvedError(f"Challenge script produced a non-numeric answer: {value!r}")

    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        raise ChallengeUnsolvedError(f"Challenge script produced {value}")

    return str(int(value) + len(host))


def origin_of(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


class ChallengeStrategy(ABC):
    """Solving strategy for one generation of challenge pages."""

    name: str = ""

    @abstractmethod
    def matches(self, page: ChallengePage) -> bool:
        """Check whether this strategy handles the page."""
        pass

    @abstractmethod
    def rewrite(self, page: ChallengePage, host: str) -> str:
        """Rewrite the page script into an evaluable function body."""
        pass

    @abstractmethod
    def build_submission(self, page: ChallengePage, answer: str, url: str,
                         cookie_header: Optional[str] = None) -> ChallengeSubmission:
        """Build the follow-up request for the answer."""
        pass

    def _require_tokens(self, page: ChallengePage) -> None:
        if not page.jschl_vc or page.pass_value is None:
            raise ChallengeUnsolvedError("Challenge form is missing jschl_vc or pass")


class LegacyChallenge(ChallengeStrategy):
    """GET submission to the fixed solving endpoint."""

    name = "legacy"

    def matches(self, page: ChallengePage) -> bool:
        return not page.is_current_variant

    def rewrite(self, page: ChallengePage, host: str) -> str:
        js = extract_computation(page.script)
        js = splice_host(js, host)
        js = LEGACY_NOISE.sub("", js)
        js = LEGACY_STRIP.sub("", js)
        js = LEGACY_TRAILER.sub("", js)
        js = ANSWER_ASSIGNMENT.sub("return ", js)
        return js

    def build_submission(self, page: ChallengePage, answer: str, url: str,
                         cookie_header: Optional[str] = None) -> ChallengeSubmission:
        self._require_tokens(page)

        query = urlencode([("jschl_vc", page.jschl_vc), ("pass", page.pass_value)])
        query += "&jschl_answer=" + answer
        diagnostics.dump_challenge("query", query)

        headers = CIMultiDict()
        headers["Referer"] = url
        headers["Accept"] = ACCEPT
        headers["Accept-Language"] = ACCEPT_LANGUAGE
        headers["Upgrade-Insecure-Requests"] = "1"
        if cookie_header:
            headers["Cookie"] = cookie_header

        return ChallengeSubmission(
            method="GET",
            url=f"{origin_of(url)}{SOLVE_PATH}?{query}",
            answer=answer,
            variant=self.name,
            referrer=url,
            headers=headers,
        )


class CurrentChallenge(ChallengeStrategy):
    """POST submission of the challenge form, keyed by a hidden element."""

    name = "current"

    def matches(self, page: ChallengePage) -> bool:
        return page.is_current_variant

    def rewrite(self, page: ChallengePage, host: str) -> str:
        if page.key is None:
            raise ChallengeUnsolvedError("Challenge key element not found")

        key = page.key
        js = extract_computation(page.script)
        js = splice_host(js, host)
        js = CURRENT_NOISE.sub("", js)
        js = KEY_READER.sub(lambda m: key, js)
        js = CHAR_CODE_READER.sub("t.charCodeAt", js)
        js = CURRENT_TRAILER.sub("", js)
        js = ANSWER_ASSIGNMENT.sub("return ", js)
        return js.replace(";", ";\n")

    def build_submission(self, page: ChallengePage, answer: str, url: str,
                         cookie_header: Optional[str] = None) -> ChallengeSubmission:
        self._require_tokens(page)
        if not page.form_action:
            raise ChallengeUnsolvedError("Challenge form has no action")

        fields = {
            "jschl_vc": page.jschl_vc,
            "pass": page.pass_value,
            "r": page.r or "",
            "jschl_answer": answer,
        }
        body = urlencode(sorted(fields.items()))
        diagnostics.dump_challenge("query", body)

        origin = origin_of(url)
        headers = CIMultiDict()
        headers["Origin"] = origin
        headers["Accept"] = ACCEPT
        headers["Accept-Language"] = ACCEPT_LANGUAGE
        headers["Accept-Encoding"] = "gzip, deflate, br"
        headers["Connection"] = "keep-alive"
        headers["Upgrade-Insecure-Requests"] = "1"
        headers["DNT"] = "1"

        return ChallengeSubmission(
            method="POST",
            url=origin + page.form_action,
            answer=answer,
            variant=self.name,
            referrer=url,
            headers=headers,
            body=body.encode("utf-8"),
            content_type=FORM_CONTENT_TYPE,
        )


class ChallengeSolver:
    """
    Solves challenge pages with the first matching strategy.

    The solver sends nothing itself: it turns a challenge page into the
    submission the session engine sends next.
    """

    def __init__(self, sandbox: Optional[ScriptSandbox] = None,
                 strategies: Optional[List[ChallengeStrategy]] = None):
        self.sandbox = sandbox or ScriptSandbox()
        self.strategies = strategies or [CurrentChallenge(), LegacyChallenge()]

    def select(self, page: ChallengePage) -> ChallengeStrategy:
        """Pick the strategy for a page.

        Raises:
            UnsupportedChallengeError: no strategy handles the page.
        """
        if not page.script:
            raise UnsupportedChallengeError("Unsupported challenge format: no challenge script")

        for strategy in self.strategies:
            if strategy.matches(page):
                return strategy

        raise UnsupportedChallengeError("Unsupported challenge format")

    async def solve_page(self, page: ChallengePage, url: str,
                         cookie_header: Optional[str] = None) -> ChallengeSubmission:
        """Solve a parsed challenge page served for url.

        Args:
            page: The parsed challenge page.
            url: URL the challenge was served for.
            cookie_header: Cookies to replay on a legacy submission.

        Raises:
            UnsupportedChallengeError: the page matches no known variant.
            ChallengeUnsolvedError: extraction or evaluation failed.
        """
        strategy = self.select(page)
        logger.info(f"Solving {strategy.name} challenge for {url}")

        host = urlparse(url).netloc
        diagnostics.dump_challenge("js before", page.script.replace(";", ";\n"))
        js = strategy.rewrite(page, host)
        diagnostics.dump_challenge("js", js)

        value = await self.sandbox.evaluate_function_body(js)
        answer = compute_answer(value, host)

        return strategy.build_submission(page, answer, url, cookie_header)
