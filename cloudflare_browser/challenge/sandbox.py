"""Sandboxed evaluation of untrusted challenge scripts.

Scripts run in a fresh V8 isolate provided by mini-racer. The isolate has
no DOM, no network, no filesystem and no bindings back into Python, and
every evaluation is bounded by a timeout. Evaluation is awaited on the
running event loop, so a slow script never blocks other tasks.
"""

import asyncio
import logging
from typing import Any, Optional

from py_mini_racer import JSEvalException, MiniRacer

from ..errors import ScriptEvaluationError

logger = logging.getLogger(__name__)

DEFAULT_SCRIPT_TIMEOUT = 5.0


class ScriptSandbox:
    """Time-bounded JavaScript evaluator."""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout if timeout is not None else DEFAULT_SCRIPT_TIMEOUT

    async def evaluate(self, script: str) -> Any:
        """Evaluate script and return its completion value.

        A new context is used for every call so nothing leaks between
        challenges.

        Raises:
            ScriptEvaluationError: the script failed, did not parse or ran
                past the timeout.
        """
        context = MiniRacer()
        try:
            return await asyncio.wait_for(context.eval_cancelable(script), self.timeout)
        except asyncio.TimeoutError as e:
            raise ScriptEvaluationError(
                f"Challenge script exceeded {self.timeout:g}s"
            ) from e
        except JSEvalException as e:
            logger.debug(f"Challenge script failed: {e}")
            raise ScriptEvaluationError(f"Challenge script failed: {e}") from e
        finally:
            context.close()

    async def evaluate_function_body(self, body: str) -> Any:
        """Evaluate body wrapped in an immediately invoked function."""
        return await self.evaluate("(function () {" + body + "})()")
