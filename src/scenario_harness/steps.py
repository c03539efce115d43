"""
Standard step library for the program under test.

Steps that perform a change are descriptions of the desired state ("ramen is
started", "no program is running"); steps that check use the modal "must"
("ramen must exit with status 0").

register_standard_steps() adds every definition below to a registry. Handler
functions receive the ScenarioContext first, then the decoded captures.

Example usage:
    from scenario_harness import ScenarioContext, StepRegistry, load_config
    from scenario_harness.steps import register_standard_steps

    config = load_config()
    registry = register_standard_steps(StepRegistry(), config)
    with ScenarioContext(registry, config) as ctx:
        ctx.run("I run ramen with argument --version")
        ctx.run("ramen must exit gracefully")
"""

import logging
import re
import shutil
from pathlib import Path
from typing import List, Optional

from .assertions import (
    check_env,
    check_exit_status,
    check_files_absent,
    check_files_exist,
    check_line_count,
    check_running,
    count_listed,
    listed_names,
)
from .config import HarnessConfig
from .context import ScenarioContext
from .errors import AssertionFailed
from .polling import poll_step
from .quantity import Quantity
from .registry import Phase, StepRegistry, file_list, flag, integer, word_list

logger = logging.getLogger(__name__)


def _strip(value: Optional[str]) -> Optional[str]:
    return value.strip() if value else None


def _seconds(value: Optional[str]) -> float:
    if value is None:
        raise ValueError("missing number of seconds")
    return float(value)


def _listing(ctx: ScenarioContext, role: str) -> str:
    program = ctx.config.program
    return ctx.gateway.execute(program, ctx.config.subcommand(role)).stdout


# ============================================================================
# Given: environment and files
# ============================================================================


def executable_in_path(ctx: ScenarioContext, executable: str) -> None:
    """An executable of that name must be reachable through the scenario PATH."""
    found = shutil.which(executable, path=ctx.env.get("PATH", ""))
    if found is None:
        raise AssertionFailed("an executable on PATH", "not found", executable)
    logger.debug("%s found at %s", executable, found)


def env_is_set(ctx: ScenarioContext, name: str, value: Optional[str]) -> None:
    """Set a variable unless it already is; without a value, use the configured default."""
    if name in ctx.env:
        return
    if value is None:
        value = ctx.config.env_default(name, ctx.env, ctx.root)
    logger.info("Setting %s=%s", name, value)
    ctx.env[name] = value


def env_is_not_set(ctx: ScenarioContext, name: str) -> None:
    ctx.env.pop(name, None)


def env_must_be_set(ctx: ScenarioContext, name: str, negated: bool) -> None:
    check_env(ctx.env, name, must_be_set=not negated)


def file_with_content(ctx: ScenarioContext, name: str, content: Optional[str]) -> None:
    """Write the doc-string payload to a file under the scenario root."""
    if not isinstance(content, (str, type(None))):
        raise ValueError("a file's content must be a doc string, not a table")
    path = ctx.path(name)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content or "")


def no_files_present(ctx: ScenarioContext, condition: str, like: str, directory: str) -> None:
    """Delete the files of a directory that end with, start with or are named like."""
    folder = ctx.path(directory)
    if not folder.is_dir():
        return
    for path in folder.iterdir():
        if not path.is_file():
            continue
        if condition == "ending with":
            doomed = path.name.endswith(like)
        elif condition == "starting with":
            doomed = path.name.startswith(like)
        else:
            doomed = path.name == like
        if doomed:
            logger.debug("Removing %s", path)
            path.unlink()


def source_is_compiled(ctx: ScenarioContext, source: str, binary: Optional[str]) -> None:
    """Compile a source file unless its binary is already there."""
    default_binary = str(Path(source).with_suffix(".x"))
    binary = binary or default_binary
    if ctx.path(binary).exists():
        return

    program = ctx.config.program
    result = ctx.gateway.execute(program, ctx.config.subcommand("compile") + [source])
    check_exit_status(result, 0, context=f"compiling {source}")
    if binary != default_binary:
        target = ctx.path(binary)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(ctx.path(default_binary)), str(target))


def program_is_started(ctx: ScenarioContext) -> None:
    """Start the program's daemon as a tracked background process."""
    program = ctx.config.program
    existing = ctx.gateway.get_background(program)
    if existing is not None and existing.is_running():
        return
    ctx.step(f"the environment variable {ctx.config.persist_dir_var} is set")
    # Cannot daemonize or the tracked pid would not be the daemon's.
    ctx.gateway.spawn_background(program, [program] + ctx.config.subcommand("start"))


def no_program_running(ctx: ScenarioContext) -> None:
    """Kill every program the daemon reports."""
    _kill(ctx, listed_names(_listing(ctx, "ps_short")))


def programs_not_running(ctx: ScenarioContext, programs: List[str]) -> None:
    running = listed_names(_listing(ctx, "ps_short"))
    _kill(ctx, [name for name in running if name in programs])


def programs_running(ctx: ScenarioContext, programs: List[str]) -> None:
    """Run each listed program that the daemon does not report yet."""
    program = ctx.config.program
    running = set(listed_names(_listing(ctx, "ps_short")))
    for name in programs:
        if name not in running:
            ctx.gateway.execute(program, ctx.config.subcommand("run") + [f"{name}.x"])


def _kill(ctx: ScenarioContext, names: List[str]) -> None:
    program = ctx.config.program
    for name in names:
        ctx.gateway.execute(program, ctx.config.subcommand("kill") + [name])


# ============================================================================
# When: running executables
# ============================================================================


def run_without_arguments(ctx: ScenarioContext, executable: str) -> None:
    ctx.execute(executable, [])


def run_with_arguments(ctx: ScenarioContext, executable: str, arguments: str) -> None:
    """Run executable with shell-quoted arguments; the result is kept under its name."""
    ctx.execute(executable, arguments)


# ============================================================================
# Then: outcomes
# ============================================================================


def must_print(ctx: ScenarioContext, executable: str, quantity: Quantity, stream: str) -> None:
    result = ctx.last_result(executable)
    check_line_count(result, stream, quantity, context=f"{executable} lines on {stream}")


def must_exit_with(ctx: ScenarioContext, executable: str, negated: bool, status: int) -> None:
    result = ctx.last_result(executable)
    check_exit_status(result, status, negate=negated, context=f"{executable} exit status")


def files_must_exist(ctx: ScenarioContext, mode: Optional[str], files: List[str]) -> None:
    check_files_exist([ctx.path(name) for name in files], mode)


def files_must_not_exist(ctx: ScenarioContext, files: List[str]) -> None:
    check_files_absent([ctx.path(name) for name in files])


def must_produce(ctx: ScenarioContext, executable: str, executables: bool, files: List[str]) -> None:
    """Successful, quiet on stderr, chatty on stdout, and every file is there."""
    ctx.step(f"{executable} must print a few lines on stdout")
    ctx.step(f"{executable} must print no line on stderr")
    ctx.step(f"{executable} must exit with status 0")
    article = "an executable" if executables else "a"
    for name in files:
        ctx.step(f"{article} file {name} must exist")


def must_fail_gracefully(ctx: ScenarioContext, executable: str) -> None:
    ctx.step(f"{executable} must exit with status not 0")
    ctx.step(f"{executable} must print a few lines on stderr")


def must_exit_gracefully(ctx: ScenarioContext, executable: str) -> None:
    ctx.step(f"{executable} must exit with status 0")
    ctx.step(f"{executable} must print no line on stderr")


def no_worker_must_run(ctx: ScenarioContext) -> None:
    lines = [line for line in _listing(ctx, "ps").splitlines() if line.strip()]
    check_running(len(lines), running=False, context="workers")


def workers_must_run(ctx: ScenarioContext, workers: List[str], negated: bool) -> None:
    count = count_listed(_listing(ctx, "ps"), workers)
    check_running(count, running=not negated, context=f"workers {', '.join(workers)}")


def programs_must_run(ctx: ScenarioContext, programs: List[str], negated: bool) -> None:
    count = count_listed(_listing(ctx, "ps_short"), programs)
    check_running(count, running=not negated, context=f"programs {', '.join(programs)}")


def eventually(ctx: ScenarioContext, max_seconds: float, step_text: str) -> None:
    """Retry step_text until it passes or max_seconds elapse."""
    poll_step(ctx.step, max_seconds, step_text, interval=ctx.config.poll_interval)


def register_standard_steps(
    registry: Optional[StepRegistry] = None,
    config: Optional[HarnessConfig] = None,
) -> StepRegistry:
    """
    Register the standard step definitions.

    Executable names in steps are single words; lists of files, programs or
    workers are separated by commas, whitespace or "and".

    Args:
        registry: Registry to extend (a new one if None)
        config: Settings providing the program name (defaults if None)

    Returns:
        The registry
    """
    registry = registry if registry is not None else StepRegistry()
    config = config or HarnessConfig()
    program = re.escape(config.program)
    given, when, then = Phase.SETUP, Phase.ACTION, Phase.ASSERTION

    definitions = [
        # Given
        (given, r"(\S+) must be in the path", executable_in_path, ()),
        (given, r"the environment variable (\S+) is set(?: to (.*))?", env_is_set, ()),
        (given, r"the environment variable (\S+) is not (?:set|defined)", env_is_not_set, ()),
        (given, r"no files? (ending with|starting with|named) (.+) (?:is|are) present in (.+)",
         no_files_present, ()),
        (given, r"(\S+\.\w+) is compiled(?: as (\S+))?", source_is_compiled, ()),
        (given, rf"{program} is started", program_is_started, ()),
        (given, r"no (?:program|worker)s? (?:is|are) running", no_program_running, ()),
        (given, r"(?:the )?programs? (.+) (?:is|are) not running", programs_not_running,
         (word_list,)),
        (given, r"(?:the )?programs? (.+) (?:is|are) running", programs_running, (word_list,)),
        # When
        (when, r"I run (\S+) with no arguments?", run_without_arguments, ()),
        (when, r"I run (\S+) with arguments? (.+)", run_with_arguments, ()),
        # Then
        (then, r"the environment variable (\S+) must (not )?be (?:set|defined)", env_must_be_set,
         (str, flag)),
        (then, r"(\S+) must print (?:(.+) )?lines? on (stdout|stderr)", must_print,
         (str, Quantity.parse)),
        (then, r"(\S+) must exit with status (not |different from )?(-?\d+)", must_exit_with,
         (str, flag, integer)),
        (then, r"(?:an? )?(executable |readable |writable )?files? (.+) must exist",
         files_must_exist, (_strip, file_list)),
        (then, r"no files? (.+) must exist", files_must_not_exist, (file_list,)),
        (then, r"(\S+) must produce (executable )?files? (.+)", must_produce,
         (str, flag, file_list)),
        (then, r"(\S+) must fail gracefully", must_fail_gracefully, ()),
        (then, r"(\S+) must (?:exit|terminate) gracefully", must_exit_gracefully, ()),
        (then, r"no worker must be running", no_worker_must_run, ()),
        (then, r"(?:the )?workers? (.+) must (not )?be running", workers_must_run,
         (word_list, flag)),
        (then, r"(?:the )?programs? (.+) must (not )?be running", programs_must_run,
         (word_list, flag)),
        (then, r"after max (\d+(?:\.\d+)?) seconds? (.+)", eventually, (_seconds,)),
    ]
    for phase, pattern, handler, converters in definitions:
        registry.register(pattern, phase, handler, converters=converters)

    registry.register(r"an? file (.+) with content", given, file_with_content, payload=True)
    return registry


