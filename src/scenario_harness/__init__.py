"""
scenario-harness: Given/When/Then scenarios against an external program.

This package matches natural-language scenario steps to registered patterns
and runs them against a program under test and the processes it spawns. It
supports:

- Pattern registry: regex step definitions with typed capture decoding
- Step composition: a step can run other steps by text
- Process gateway: synchronous commands and named background processes
- Assertions: line counts, exit status, files, environment, process liveness
- Polling: "after max N seconds ..." retries eventually-consistent checks

Quick Start:
    from scenario_harness import ScenarioContext, StepRegistry, check_exit_status

    registry = StepRegistry()

    @registry.when(r"I run (\\S+)")
    def run(ctx, executable):
        ctx.execute(executable)

    @registry.then(r"(\\S+) must exit with status (\\d+)", converters=(str, int))
    def exit_status(ctx, executable, status):
        check_exit_status(ctx.last_result(executable), status)

    with ScenarioContext(registry) as ctx:
        ctx.run("I run true")
        ctx.run("true must exit with status 0")

Standard steps and YAML scenarios:
    from scenario_harness import ScenarioRunner, load_config, load_scenarios_from_yaml
    from scenario_harness.steps import register_standard_steps

    config = load_config("harness.yaml")
    runner = ScenarioRunner(register_standard_steps(config=config), config)
    result = runner.run(load_scenarios_from_yaml("scenarios.yaml"))
"""

__version__ = "0.1.0"

# Errors
from .errors import (
    AmbiguousStep,
    AssertionFailed,
    ConfigurationError,
    DuplicatePattern,
    HarnessError,
    NoMatchingStep,
    ProcessLaunchFailed,
    StepFailed,
    StepRecursionError,
)

# Engine
from .registry import Phase, StepInvocation, StepPattern, StepRegistry
from .dispatcher import StepDispatcher
from .process import BackgroundProcess, ProcessGateway, ProcessResult
from .quantity import Quantity
from .assertions import (
    check_env,
    check_exit_status,
    check_files_absent,
    check_files_exist,
    check_line_count,
    check_running,
)
from .polling import poll_step
from .context import ScenarioContext

# Configuration, scenarios and running
from .config import HarnessConfig, load_config
from .scenarios import Scenario, ScenarioStep, load_scenarios_from_yaml
from .runner import ScenarioResult, ScenarioRunner, StepResult

__all__ = [
    "__version__",
    # Errors
    "HarnessError",
    "DuplicatePattern",
    "NoMatchingStep",
    "AmbiguousStep",
    "AssertionFailed",
    "StepFailed",
    "StepRecursionError",
    "ProcessLaunchFailed",
    "ConfigurationError",
    # Engine
    "Phase",
    "StepPattern",
    "StepInvocation",
    "StepRegistry",
    "StepDispatcher",
    "ProcessGateway",
    "ProcessResult",
    "BackgroundProcess",
    "Quantity",
    "check_line_count",
    "check_exit_status",
    "check_files_exist",
    "check_files_absent",
    "check_running",
    "check_env",
    "poll_step",
    "ScenarioContext",
    # Configuration and running
    "HarnessConfig",
    "load_config",
    "Scenario",
    "ScenarioStep",
    "load_scenarios_from_yaml",
    "ScenarioRunner",
    "ScenarioResult",
    "StepResult",
]
