"""Detection of the IUAM ("I'm Under Attack Mode") interstitial.

The edge proxy answers 503 and identifies itself in the Server header. The
follow-up that carries the answer targets the solving endpoint, so a
challenge served for that endpoint means the previous answer was not
accepted and solving again would loop forever.
"""

from typing import Optional

from ..http.messages import Response

CHALLENGE_STATUS = 503

CHALLENGE_SERVERS = frozenset({"cloudflare-nginx", "cloudflare"})

# Path of the legacy solving endpoint.
SOLVE_PATH = "/cdn-cgi/l/chk_jschl"

# Marker of any URL that already carries a challenge answer.
SOLVE_MARKER = "chk_jschl"


def is_challenge(response: Optional[Response]) -> bool:
    """Check whether a response is an anti-bot challenge."""
    if response is None:
        return False

    if response.status_code != CHALLENGE_STATUS:
        return False

    server = response.headers.get("Server", "").strip().lower()
    return server in CHALLENGE_SERVERS


def is_solve_url(url: str) -> bool:
    """Check whether url targets the solving endpoint."""
    return SOLVE_MARKER in url
