"""
Error taxonomy for scenario-harness.

Every failure the engine reports derives from HarnessError so that callers
can catch harness failures without also catching programming errors.

- DuplicatePattern: the same pattern/phase pair was registered twice
- NoMatchingStep / AmbiguousStep: a step line resolves to zero or several patterns
- AssertionFailed: an expected-vs-actual mismatch (retried by the polling wrapper)
- StepFailed: wraps whatever a handler raised, with the step text attached
- StepRecursionError: step delegation nested deeper than the configured limit
- ProcessLaunchFailed: an external command could not be spawned
- ConfigurationError: a required setting or environment variable is missing
"""

from typing import Any, Iterable, List, Optional


class HarnessError(RuntimeError):
    """Base error for scenario-harness operations."""


class DuplicatePattern(HarnessError):
    """Raised when a pattern is registered twice for the same phase."""

    def __init__(self, pattern: str, phase: str):
        self.pattern = pattern
        self.phase = phase
        super().__init__(f"Pattern already registered for {phase}: {pattern!r}")


class NoMatchingStep(HarnessError):
    """Raised when no registered pattern matches a step line."""

    def __init__(self, text: str):
        self.text = text
        super().__init__(f"No step definition matches: {text!r}")


class AmbiguousStep(HarnessError):
    """Raised when more than one registered pattern matches a step line."""

    def __init__(self, text: str, patterns: Iterable[str]):
        self.text = text
        self.patterns = list(patterns)
        listing = ", ".join(repr(p) for p in self.patterns)
        super().__init__(f"Step {text!r} matches several definitions: {listing}")


class AssertionFailed(HarnessError):
    """
    An expected-vs-actual mismatch.

    Attributes:
        expected: What the predicate required (rendered with str())
        actual: What was observed
        context: Short description of the thing being checked
    """

    def __init__(self, expected: Any, actual: Any, context: str = ""):
        self.expected = expected
        self.actual = actual
        self.context = context
        prefix = f"{context}: " if context else ""
        super().__init__(f"{prefix}expected {expected}, got {actual}")


class StepFailed(HarnessError):
    """
    A step's handler raised.

    Attributes:
        text: The top-level step text that was run
        cause: The exception raised by the handler (or a delegated sub-step)
        trail: Step texts from the top-level step down to the failing one
    """

    def __init__(
        self,
        text: str,
        cause: BaseException,
        trail: Optional[List[str]] = None,
    ):
        self.text = text
        self.cause = cause
        self.trail = list(trail) if trail else [text]
        super().__init__(f"Step {text!r} failed: {cause}")

    @property
    def failing_step(self) -> str:
        """The innermost step text that raised."""
        return self.trail[-1]


class StepRecursionError(HarnessError):
    """Raised when step delegation exceeds the maximum depth."""

    def __init__(self, text: str, max_depth: int):
        self.text = text
        self.max_depth = max_depth
        super().__init__(
            f"Step delegation deeper than {max_depth} levels at {text!r}; "
            "check for a delegation cycle"
        )


class ProcessLaunchFailed(HarnessError):
    """Raised when an external command cannot be spawned."""

    def __init__(self, command: str, reason: str):
        self.command = command
        self.reason = reason
        super().__init__(f"Cannot launch {command!r}: {reason}")


class ConfigurationError(HarnessError):
    """Raised for invalid harness settings or underivable environment values."""
