"""
Assertion predicates.

Each predicate raises AssertionFailed(expected, actual, context) on
violation and returns None otherwise. Composite checks are built by step
delegation in scenario_harness.steps, not here.
"""

import os
import re
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Sequence

from .errors import AssertionFailed
from .process import ProcessResult
from .quantity import Quantity

_ACCESS_MODES = {
    "executable": os.X_OK,
    "readable": os.R_OK,
    "writable": os.W_OK,
}


def check_line_count(
    result: ProcessResult,
    stream: str,
    quantity: Quantity,
    context: str = "",
) -> None:
    """Number of lines printed on stream must satisfy quantity."""
    count = len(result.lines(stream))
    quantity.check(count, context or f"lines on {stream} of {result.command}")


def check_exit_status(
    result: ProcessResult,
    expected: int,
    negate: bool = False,
    context: str = "",
) -> None:
    """Exit status must equal expected (or differ from it when negate is set)."""
    context = context or f"exit status of {result.command}"
    if negate:
        if result.exit_status == expected:
            raise AssertionFailed(f"status other than {expected}", result.exit_status, context)
    elif result.exit_status != expected:
        raise AssertionFailed(expected, result.exit_status, context)


def check_files_exist(paths: Iterable[Path], mode: Optional[str] = None) -> None:
    """
    Every path must exist and, when mode is given, grant that access.

    Args:
        paths: Paths to check
        mode: None, 'executable', 'readable' or 'writable'
    """
    if mode is not None and mode not in _ACCESS_MODES:
        raise ValueError(f"Unknown file mode: {mode!r}")
    for path in paths:
        if not path.exists():
            raise AssertionFailed("an existing file", "not found", str(path))
        if mode is not None and not os.access(path, _ACCESS_MODES[mode]):
            raise AssertionFailed(f"a {mode} file", f"not {mode}", str(path))


def check_files_absent(paths: Iterable[Path]) -> None:
    """No path may exist."""
    for path in paths:
        if path.exists():
            raise AssertionFailed("no such file", "file exists", str(path))


def listing_pattern(names: Sequence[str]) -> "re.Pattern[str]":
    """Union of '^<name>\\t' patterns, one per name."""
    if not names:
        raise ValueError("At least one name is required")
    return re.compile("|".join(f"^{re.escape(name)}\t" for name in names))


def count_listed(listing: str, names: Sequence[str]) -> int:
    """Count lines of a process listing that start with one of names and a tab."""
    pattern = listing_pattern(names)
    return sum(1 for line in listing.splitlines() if pattern.match(line))


def listed_names(listing: str) -> List[str]:
    """First tab-separated field of every listing line that has one."""
    names = []
    for line in listing.splitlines():
        name, tab, _ = line.partition("\t")
        if tab and name:
            names.append(name)
    return names


def check_running(count: int, running: bool, context: str = "") -> None:
    """A count of listed processes must be > 0 (running) or == 0 (not running)."""
    if running and count <= 0:
        raise AssertionFailed("> 0 running", count, context)
    if not running and count != 0:
        raise AssertionFailed("0 running", count, context)


def check_env(env: Mapping[str, str], name: str, must_be_set: bool = True) -> None:
    """Variable name must be set to a non-empty value, or must be unset/empty."""
    value = env.get(name)
    context = f"environment variable {name}"
    if must_be_set and not value:
        raise AssertionFailed("set", "unset", context)
    if not must_be_set and value:
        raise AssertionFailed("unset", f"set to {value!r}", context)
