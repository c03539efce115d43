"""
Step dispatcher.

Resolves a step line through the registry and calls its handler with the
scenario context and the decoded captures. Handlers compose other steps by
text through ScenarioContext.step(), which re-enters invoke().

run() is the top-level entry: anything a handler raises is wrapped into
StepFailed with the chain of step texts that led to it. invoke() is the
re-entrant form and lets exceptions through unchanged, so a polling handler
can catch AssertionFailed from the step it wraps.
"""

import logging
from typing import TYPE_CHECKING, List

from .errors import HarnessError, StepFailed, StepRecursionError
from .registry import Payload, StepInvocation, StepRegistry

if TYPE_CHECKING:
    from .context import ScenarioContext

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 32


class StepDispatcher:
    """
    Runs steps for one scenario context.

    Example:
        dispatcher = StepDispatcher(registry, ctx)
        dispatcher.run("ramen must exit with status 0")
    """

    def __init__(
        self,
        registry: StepRegistry,
        context: "ScenarioContext",
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        self.registry = registry
        self.context = context
        self.max_depth = max_depth
        self._stack: List[str] = []
        # Step texts from the top-level step down to the one that raised.
        self._failure_trail: List[str] = []

    @property
    def depth(self) -> int:
        return len(self._stack)

    def run(self, step_text: str, payload: Payload = None) -> None:
        """
        Run a top-level step.

        Raises:
            NoMatchingStep: If no definition matches step_text
            AmbiguousStep: If several definitions match step_text
            StepFailed: If the handler, or a step it delegated to, raised
        """
        invocation = self.registry.resolve(step_text, payload)
        self._failure_trail = []
        try:
            self._call(invocation)
        except Exception as e:
            trail = self._failure_trail or [step_text]
            logger.warning("Step failed: %s (%s)", step_text, e)
            logger.debug("Failure details for %r", step_text, exc_info=True)
            raise StepFailed(step_text, e, trail) from e
        finally:
            self._stack = []

    def invoke(self, step_text: str, payload: Payload = None) -> None:
        """
        Run a step from inside another step's handler.

        Exceptions propagate unchanged.

        Raises:
            StepRecursionError: If delegation nests deeper than max_depth
        """
        # A step retried by a polling handler may have left a trail behind.
        self._failure_trail = []
        if self.depth >= self.max_depth:
            self._note_failure(step_text)
            raise StepRecursionError(step_text, self.max_depth)
        try:
            invocation = self.registry.resolve(step_text, payload)
        except HarnessError:
            self._note_failure(step_text)
            raise
        self._call(invocation)

    def _call(self, invocation: StepInvocation) -> None:
        step = invocation.step
        self._stack.append(invocation.text)
        logger.debug("%s%s", "  " * (self.depth - 1), invocation.text)
        try:
            args = invocation.arguments()
            if step.accepts_payload:
                step.handler(self.context, *args, invocation.payload)
            elif invocation.payload is not None:
                raise ValueError("this step does not take a doc string or table")
            else:
                step.handler(self.context, *args)
        except Exception:
            self._note_failure(invocation.text)
            raise
        finally:
            self._stack.pop()

    def _note_failure(self, step_text: str) -> None:
        # The innermost failing frame records the whole stack once; outer
        # frames unwinding through the same exception leave it alone.
        if not self._failure_trail:
            self._failure_trail = list(self._stack)
            if not self._failure_trail or self._failure_trail[-1] != step_text:
                self._failure_trail.append(step_text)
