"""Challenge page parsing.

Extracts everything a solver needs from a parsed challenge page: the
obfuscated script, the hidden key element of the current variant, the
challenge form and its hidden inputs, and the submission delay.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Optional

from bs4 import BeautifulSoup

# Variable list declared by the challenge closure. Older pages put a space
# after "p,".
SCRIPT_SIGNATURE = "s,t,o,p,b,r,e,a,k,i,n,g"
LEGACY_SCRIPT_SIGNATURE = "s,t,o,p, b,r,e,a,k,i,n,g"

# Present only in the current variant, which decodes the key reader with a
# base64 helper.
CURRENT_VARIANT_MARKER = "e = function(s)"

HIDDEN_KEY_PATTERN = re.compile(
    r'<div style="display:none;visibility:hidden;" id=".*?">(.*?)<'
)

DELAY_PATTERN = re.compile(r"setTimeout\(function\(\)\{[\s\S]*?\},\s*(\d+)\)")

DEFAULT_DELAY = 4.0

FORM_FIELDS = ("jschl_vc", "pass", "r")


@dataclass
class ChallengePage:
    """Data extracted from a challenge page."""
    script: str = ""
    key: Optional[str] = None
    form_action: Optional[str] = None
    form_method: str = "GET"
    fields: Dict[str, str] = field(default_factory=dict)
    delay: float = DEFAULT_DELAY

    @property
    def is_current_variant(self) -> bool:
        return CURRENT_VARIANT_MARKER in self.script

    @property
    def jschl_vc(self) -> Optional[str]:
        return self.fields.get("jschl_vc")

    @property
    def pass_value(self) -> Optional[str]:
        return self.fields.get("pass")

    @property
    def r(self) -> Optional[str]:
        return self.fields.get("r")


def find_challenge_script(document: BeautifulSoup) -> str:
    """Return the text of the script carrying the challenge closure.

    Scripts using the older spaced signature are normalized to the
    compact one.
    """
    legacy = ""
    for script in document.find_all("script"):
        text = script.string or ""
        if SCRIPT_SIGNATURE in text:
            return str(text)
        if not legacy and LEGACY_SCRIPT_SIGNATURE in text:
            legacy = str(text)

    return legacy.replace(LEGACY_SCRIPT_SIGNATURE, SCRIPT_SIGNATURE)


def find_hidden_key(html: str) -> Optional[str]:
    """Return the content of the concealed key element, if present."""
    match = HIDDEN_KEY_PATTERN.search(html)
    return match.group(1) if match else None


def find_delay(script: str) -> float:
    """Return the setTimeout delay of the challenge in seconds."""
    match = DELAY_PATTERN.search(script)
    if match is None:
        return DEFAULT_DELAY
    return int(match.group(1)) / 1000.0


def parse_challenge_page(document: BeautifulSoup, html: str) -> ChallengePage:
    """Parse a challenge page.

    Args:
        document: The parsed challenge page.
        html: The decoded page source. The key element is matched against
            the source as served.
    """
    script = find_challenge_script(document)
    page = ChallengePage(script=script, delay=find_delay(script))

    if page.is_current_variant:
        page.key = find_hidden_key(html)

    form = document.select_one("form#challenge-form")
    if form is not None:
        # Attribute values come back entity-decoded from the parser.
        page.form_action = form.get("action")
        page.form_method = (form.get("method") or "GET").upper()

    for name in FORM_FIELDS:
        element = document.select_one(f'input[name="{name}"]')
        if element is not None:
            page.fields[name] = element.get("value", "")

    return page
