"""
Scenario runner.

Runs scenarios step by step, each in a fresh ScenarioContext. The first
failing step fails the scenario; its remaining steps are reported as SKIP.
Background processes started by a scenario are terminated when it ends,
whatever its outcome.

Example usage:
    from scenario_harness import ScenarioRunner, load_config, load_scenarios_from_yaml
    from scenario_harness.steps import register_standard_steps

    config = load_config()
    registry = register_standard_steps(config=config)
    runner = ScenarioRunner(registry, config)
    result = runner.run(load_scenarios_from_yaml("scenarios.yaml"))
    print(f"Status: {result['status']}")
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from .config import HarnessConfig
from .context import ScenarioContext
from .errors import AssertionFailed, HarnessError, StepFailed
from .registry import StepRegistry
from .scenarios import Scenario, ScenarioStep

logger = logging.getLogger(__name__)


@dataclass
class StepResult:
    """
    Result of running one scenario step.

    Attributes:
        step: Step text as written (keyword included)
        status: PASS, FAIL or SKIP
        duration_ms: Execution time in milliseconds
        error: One-line diagnostic for a failure
        error_type: Class name of the underlying error
        trail: Delegated step texts leading to the failure
        expected: Expected value of a failed assertion
        actual: Observed value of a failed assertion
    """
    step: str
    status: str  # PASS, FAIL, SKIP
    duration_ms: int = 0
    error: str = ""
    error_type: str = ""
    trail: List[str] = field(default_factory=list)
    expected: str = ""
    actual: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "step": self.step,
            "status": self.status,
            "duration_ms": self.duration_ms,
            "error": self.error,
            "error_type": self.error_type,
            "trail": list(self.trail),
            "expected": self.expected,
            "actual": self.actual,
        }


@dataclass
class ScenarioResult:
    """Outcome of one scenario."""
    name: str
    status: str  # PASS, FAIL
    steps: List[StepResult] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def failed_step(self) -> Optional[StepResult]:
        return next((s for s in self.steps if s.status == "FAIL"), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "duration_ms": self.duration_ms,
            "steps": [s.to_dict() for s in self.steps],
        }


def describe_failure(step: str, error: HarnessError, duration_ms: int) -> StepResult:
    """Build a FAIL StepResult carrying the predicate that failed."""
    cause: BaseException = error
    trail: List[str] = []
    if isinstance(error, StepFailed):
        cause = error.cause
        trail = error.trail

    result = StepResult(
        step=step,
        status="FAIL",
        duration_ms=duration_ms,
        error=str(cause),
        error_type=type(cause).__name__,
        trail=trail,
    )
    if isinstance(cause, AssertionFailed):
        result.expected = str(cause.expected)
        result.actual = str(cause.actual)
    return result


class ScenarioRunner:
    """
    Runs scenarios against a step registry.

    Example:
        runner = ScenarioRunner(registry, config)
        result = runner.run(scenarios)

        if result["status"] == "PASS":
            print("All scenarios passed!")
        else:
            for name in result["failed_scenarios"]:
                print(f"Failed: {name}")
    """

    def __init__(
        self,
        registry: StepRegistry,
        config: Optional[HarnessConfig] = None,
        env: Optional[Mapping[str, str]] = None,
        on_step_start: Optional[Callable[[ScenarioStep], None]] = None,
        on_step_complete: Optional[Callable[[ScenarioStep, StepResult], None]] = None,
    ):
        """
        Initialize the runner.

        Args:
            registry: Step definitions
            config: Harness settings (defaults if None)
            env: Base environment of every scenario (os.environ if None)
            on_step_start: Optional callback invoked before each step
            on_step_complete: Optional callback invoked after each step
        """
        self.registry = registry
        self.config = config or HarnessConfig()
        self.env = env
        self.on_step_start = on_step_start
        self.on_step_complete = on_step_complete

    def run_step(self, ctx: ScenarioContext, step: ScenarioStep) -> StepResult:
        """Run a single step in ctx."""
        if self.on_step_start:
            self.on_step_start(step)

        start = time.time()
        try:
            ctx.run(step.text, step.payload)
        except HarnessError as e:
            result = describe_failure(step.display(), e, int((time.time() - start) * 1000))
        else:
            result = StepResult(
                step=step.display(),
                status="PASS",
                duration_ms=int((time.time() - start) * 1000),
            )

        if self.on_step_complete:
            self.on_step_complete(step, result)
        return result

    def run_scenario(self, scenario: Scenario) -> ScenarioResult:
        """Run every step of a scenario in a fresh context."""
        logger.info("Scenario: %s", scenario.name)
        start = time.time()
        results: List[StepResult] = []
        failed = False

        with ScenarioContext(self.registry, self.config, env=self.env) as ctx:
            for step in scenario.steps:
                if failed:
                    results.append(StepResult(step=step.display(), status="SKIP"))
                    continue
                result = self.run_step(ctx, step)
                results.append(result)
                failed = result.status == "FAIL"

        return ScenarioResult(
            name=scenario.name,
            status="FAIL" if failed else "PASS",
            steps=results,
            duration_ms=int((time.time() - start) * 1000),
        )

    def run(self, scenarios: List[Scenario]) -> Dict[str, Any]:
        """
        Run all scenarios and return a summary.

        Returns:
            Dictionary containing:
            - status: Overall status (PASS or FAIL)
            - passed / failed: Scenario counts
            - total: Scenario count
            - steps: Step counts by status (passed, failed, skipped)
            - total_duration_ms: Total execution time
            - failed_scenarios: Names of failed scenarios
            - scenarios: List of ScenarioResult dictionaries
        """
        results = [self.run_scenario(scenario) for scenario in scenarios]
        step_results = [s for r in results for s in r.steps]
        failed = [r.name for r in results if r.status == "FAIL"]

        return {
            "status": "FAIL" if failed else "PASS",
            "passed": sum(1 for r in results if r.status == "PASS"),
            "failed": len(failed),
            "total": len(results),
            "steps": {
                "passed": sum(1 for s in step_results if s.status == "PASS"),
                "failed": sum(1 for s in step_results if s.status == "FAIL"),
                "skipped": sum(1 for s in step_results if s.status == "SKIP"),
                "total": len(step_results),
            },
            "total_duration_ms": sum(r.duration_ms for r in results),
            "failed_scenarios": failed,
            "scenarios": [r.to_dict() for r in results],
        }
