"""
Step pattern registry and argument extraction.

Step definitions are regular expressions matched against the whole step text.
Each capture group is decoded by a converter attached at registration time,
so handlers receive typed arguments instead of raw strings.

Matching is exclusive: resolve() checks every registered pattern and raises
AmbiguousStep when more than one matches, NoMatchingStep when none does.
The scenario keyword (Given/When/Then/And) does not narrow the search; the
phase only classifies the definition.

Example usage:
    from scenario_harness.registry import StepRegistry, integer

    registry = StepRegistry()

    @registry.then(r"(\\S+) must exit with status (\\d+)", converters=(str, integer))
    def exit_status(ctx, executable, status):
        ...

    invocation = registry.resolve("ramen must exit with status 0")
    invocation.arguments()  # ("ramen", 0)
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Pattern, Sequence, Tuple, Union

from .errors import AmbiguousStep, DuplicatePattern, NoMatchingStep

Payload = Union[str, List[List[str]], None]
Converter = Callable[[Optional[str]], Any]
Handler = Callable[..., Any]


class Phase(Enum):
    """
    Classification of a step definition.

    - SETUP: Given steps describing a desired precondition
    - ACTION: When steps performing the action under test
    - ASSERTION: Then steps checking an outcome with the modal "must"
    """
    SETUP = "given"
    ACTION = "when"
    ASSERTION = "then"


# Converters. Each receives the raw capture, which is None when an optional
# group did not participate in the match.


def integer(value: Optional[str]) -> int:
    """Decode a mandatory integer capture."""
    if value is None:
        raise ValueError("missing integer")
    return int(value)


def optional(converter: Converter) -> Converter:
    """Wrap a converter so that an absent capture decodes to None."""
    def convert(value: Optional[str]) -> Any:
        if value is None:
            return None
        return converter(value)
    return convert


def flag(value: Optional[str]) -> bool:
    """True when an optional marker (e.g. 'not ') is present."""
    return bool(value)


_LIST_SEPARATOR = re.compile(r"\s*,\s*|\s+and\s+|\s+")


def word_list(value: Optional[str]) -> List[str]:
    """Split 'a, b and c' (commas, whitespace or 'and') into ['a', 'b', 'c']."""
    if not value:
        return []
    return [item for item in _LIST_SEPARATOR.split(value.strip()) if item]


# File lists use the same separators; resolution against the scenario root is
# left to the handler.
file_list = word_list


@dataclass
class StepPattern:
    """
    One registered step definition.

    Attributes:
        pattern: Regular expression source
        phase: Phase of the definition
        handler: Callable invoked as handler(context, *arguments[, payload])
        converters: One converter per capture group; missing entries are identity
        accepts_payload: If True, the handler receives the doc-string/table payload
    """
    pattern: str
    phase: Phase
    handler: Handler
    converters: Tuple[Converter, ...] = ()
    accepts_payload: bool = False
    regex: Pattern = field(init=False, repr=False)

    def __post_init__(self):
        if not self.pattern:
            raise ValueError("Step pattern is required")
        if not isinstance(self.phase, Phase):
            raise ValueError(f"phase must be a Phase enum, got {type(self.phase)}")
        self.regex = re.compile(self.pattern)
        if len(self.converters) > self.regex.groups:
            raise ValueError(
                f"{len(self.converters)} converters for {self.regex.groups} "
                f"capture groups in {self.pattern!r}"
            )

    def match(self, step_text: str) -> Optional[Tuple[Optional[str], ...]]:
        """Return the positional captures for a full match, or None."""
        m = self.regex.fullmatch(step_text)
        if m is None:
            return None
        return m.groups()

    def decode(self, captures: Sequence[Optional[str]]) -> Tuple[Any, ...]:
        """Apply the converters to raw captures."""
        decoded = []
        for index, value in enumerate(captures):
            if index < len(self.converters):
                decoded.append(self.converters[index](value))
            else:
                decoded.append(value)
        return tuple(decoded)


@dataclass
class StepInvocation:
    """
    A resolved step: the matched pattern, its raw captures and the payload.

    Created per step line and consumed once by the dispatcher.
    """
    text: str
    step: StepPattern
    captures: Tuple[Optional[str], ...]
    payload: Payload = None

    def arguments(self) -> Tuple[Any, ...]:
        """Captures decoded through the pattern's converters."""
        return self.step.decode(self.captures)


class StepRegistry:
    """
    Ordered collection of step definitions.

    Example:
        registry = StepRegistry()
        registry.register(r"I run (\\S+) with no argument", Phase.ACTION, run_bare)
        invocation = registry.resolve("I run ramen with no argument")
    """

    def __init__(self):
        self._steps: List[StepPattern] = []

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self):
        return iter(self._steps)

    def register(
        self,
        pattern: str,
        phase: Phase,
        handler: Handler,
        converters: Sequence[Converter] = (),
        payload: bool = False,
    ) -> StepPattern:
        """
        Add a step definition.

        Args:
            pattern: Regular expression matched against the whole step text
            phase: Phase of the definition
            handler: Function called with the scenario context and decoded captures
            converters: Per-group converters (identity for groups without one)
            payload: Whether the handler takes the doc-string/table payload

        Returns:
            The registered StepPattern

        Raises:
            DuplicatePattern: If the same pattern is already registered for phase
        """
        for existing in self._steps:
            if existing.pattern == pattern and existing.phase == phase:
                raise DuplicatePattern(pattern, phase.value)
        step = StepPattern(
            pattern=pattern,
            phase=phase,
            handler=handler,
            converters=tuple(converters),
            accepts_payload=payload,
        )
        self._steps.append(step)
        return step

    def _decorator(self, phase: Phase, pattern: str, converters, payload):
        def decorate(handler: Handler) -> Handler:
            self.register(pattern, phase, handler, converters=converters, payload=payload)
            return handler
        return decorate

    def given(self, pattern: str, converters: Sequence[Converter] = (), payload: bool = False):
        """Decorator registering a SETUP step."""
        return self._decorator(Phase.SETUP, pattern, converters, payload)

    def when(self, pattern: str, converters: Sequence[Converter] = (), payload: bool = False):
        """Decorator registering an ACTION step."""
        return self._decorator(Phase.ACTION, pattern, converters, payload)

    def then(self, pattern: str, converters: Sequence[Converter] = (), payload: bool = False):
        """Decorator registering an ASSERTION step."""
        return self._decorator(Phase.ASSERTION, pattern, converters, payload)

    def resolve(self, step_text: str, payload: Payload = None) -> StepInvocation:
        """
        Resolve a step line to exactly one definition.

        Raises:
            NoMatchingStep: If no pattern matches the whole text
            AmbiguousStep: If several patterns match
        """
        matches = []
        for step in self._steps:
            captures = step.match(step_text)
            if captures is not None:
                matches.append((step, captures))

        if not matches:
            raise NoMatchingStep(step_text)
        if len(matches) > 1:
            raise AmbiguousStep(step_text, [step.pattern for step, _ in matches])

        step, captures = matches[0]
        return StepInvocation(text=step_text, step=step, captures=captures, payload=payload)

    def by_phase(self, phase: Phase) -> List[StepPattern]:
        """Definitions of one phase, in registration order."""
        return [step for step in self._steps if step.phase == phase]
