"""
Coarse magnitudes used in line-count assertions.

A Quantity is a closed interval over a count. Tokens understood by
Quantity.parse:

    no                      -> {0}
    one, a, an, a single    -> {1}
    a few                   -> [1, FEW_MAX]
    some, many, several     -> [1, inf)
    <missing>               -> [1, inf)   ("must print lines on stdout")
    N                       -> {N}
    at least N              -> [N, inf)
    at most N               -> [0, N]
"""

import re
from dataclasses import dataclass
from typing import Optional

from .errors import AssertionFailed

# Upper bound of "a few".
FEW_MAX = 10

_AT_LEAST = re.compile(r"at least (\d+)")
_AT_MOST = re.compile(r"at most (\d+)")


@dataclass(frozen=True)
class Quantity:
    """
    Closed interval [low, high] over a count; high=None means unbounded.

    Attributes:
        low: Smallest accepted count
        high: Largest accepted count, or None
        label: The token the quantity was parsed from (for diagnostics)
    """
    low: int
    high: Optional[int]
    label: str = ""

    def __post_init__(self):
        if self.low < 0:
            raise ValueError(f"Quantity lower bound must be >= 0, got {self.low}")
        if self.high is not None and self.high < self.low:
            raise ValueError(f"Empty quantity range [{self.low}, {self.high}]")

    @classmethod
    def parse(cls, token: Optional[str]) -> "Quantity":
        """
        Parse a magnitude token.

        Args:
            token: Token from the step text, or None when the step omits it

        Returns:
            Quantity

        Raises:
            ValueError: If the token is not understood
        """
        if token is None:
            return cls(1, None, "some")

        label = " ".join(token.split()).lower()
        if label == "no":
            return cls(0, 0, label)
        if label in ("one", "a", "an", "a single"):
            return cls(1, 1, label)
        if label == "a few":
            return cls(1, FEW_MAX, label)
        if label in ("some", "many", "several"):
            return cls(1, None, label)
        if label.isdigit():
            n = int(label)
            return cls(n, n, label)

        match = _AT_LEAST.fullmatch(label)
        if match:
            return cls(int(match.group(1)), None, label)
        match = _AT_MOST.fullmatch(label)
        if match:
            return cls(0, int(match.group(1)), label)

        raise ValueError(f"Unknown quantity: {token!r}")

    def accepts(self, count: int) -> bool:
        """Return True if count lies within the interval."""
        if count < self.low:
            return False
        return self.high is None or count <= self.high

    def describe(self) -> str:
        """Human-readable interval, e.g. '0', '1..10' or '>= 1'."""
        if self.high is None:
            return f">= {self.low}"
        if self.low == self.high:
            return str(self.low)
        return f"{self.low}..{self.high}"

    def check(self, count: int, context: str = "") -> None:
        """Raise AssertionFailed unless count is accepted."""
        if not self.accepts(count):
            raise AssertionFailed(f"{self.describe()} ({self.label})", count, context)
