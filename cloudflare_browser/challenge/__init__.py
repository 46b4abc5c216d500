"""Anti-bot challenge handling.

Detection of the IUAM interstitial, parsing of its page, sandboxed
evaluation of its script and construction of the answer submission.
"""

from .detector import (
    CHALLENGE_SERVERS,
    SOLVE_PATH,
    is_challenge,
    is_solve_url,
)

from .parser import (
    ChallengePage,
    parse_challenge_page,
)

from .sandbox import ScriptSandbox

from .solver import (
    ChallengeSolver,
    ChallengeStrategy,
    ChallengeSubmission,
    CurrentChallenge,
    LegacyChallenge,
    compute_answer,
)

__all__ = [
    "CHALLENGE_SERVERS",
    "SOLVE_PATH",
    "is_challenge",
    "is_solve_url",
    "ChallengePage",
    "parse_challenge_page",
    "ScriptSandbox",
    "ChallengeSolver",
    "ChallengeStrategy",
    "ChallengeSubmission",
    "CurrentChallenge",
    "LegacyChallenge",
    "compute_answer",
]
