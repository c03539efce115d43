"""
Report generation for scenario runs.

ReportGenerator turns the runner summary into JSON with run metadata;
ConsoleReporter prints it for humans. Failures are shown as the failing step
text, the delegated sub-steps that led to it and the expected vs actual
values, never as a traceback.

Example usage:
    result = runner.run(scenarios)

    ReportGenerator(result).write_json("harness_report.json")
    ConsoleReporter(result).print_full_report()
"""

import json
import os
import socket
import sys
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, TextIO

REPORT_VERSION = "1.0"


@dataclass
class ReportMetadata:
    """
    Metadata about the environment a run happened in.

    Attributes:
        run_id: Unique identifier for this run
        timestamp: ISO 8601 timestamp
        hostname: Machine hostname
        platform: Operating system platform
        user: Username from environment
        program: Program under test
    """
    run_id: str
    timestamp: str
    hostname: str
    platform: str
    user: str
    program: str


class ReportGenerator:
    """Builds JSON reports from a ScenarioRunner.run() summary."""

    def __init__(
        self,
        result: Dict[str, Any],
        program: str = "",
        run_id: Optional[str] = None,
    ):
        self.result = result
        self.program = program
        self.run_id = run_id or f"harness-{int(datetime.now().timestamp())}"

    def build_metadata(self) -> ReportMetadata:
        return ReportMetadata(
            run_id=self.run_id,
            timestamp=datetime.now(timezone.utc).isoformat(),
            hostname=socket.gethostname(),
            platform=sys.platform,
            user=os.environ.get("USER", os.environ.get("USERNAME", "unknown")),
            program=self.program,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": REPORT_VERSION,
            "metadata": asdict(self.build_metadata()),
            "summary": {
                "status": self.result.get("status", "UNKNOWN"),
                "passed": self.result.get("passed", 0),
                "failed": self.result.get("failed", 0),
                "total": self.result.get("total", 0),
                "steps": self.result.get("steps", {}),
                "total_duration_ms": self.result.get("total_duration_ms", 0),
            },
            "scenarios": self.result.get("scenarios", []),
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=str)

    def write_json(self, path: str, indent: int = 2) -> Path:
        """
        Write the JSON report to a file, creating parent directories.

        Returns:
            Path to written file
        """
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, "w") as f:
            f.write(self.to_json(indent=indent))

        return output_path


class ConsoleReporter:
    """
    Reports scenario results to a console stream.

    Provides one line per step, failure diagnostics and a summary.
    """

    def __init__(
        self,
        result: Dict[str, Any],
        verbose: bool = False,
        output: Optional[TextIO] = None,
    ):
        """
        Initialize the console reporter.

        Args:
            result: Runner summary dictionary
            verbose: Also list passing and skipped steps
            output: Output stream (default: sys.stdout)
        """
        self.result = result
        self.verbose = verbose
        self.output = output or sys.stdout

    def _print(self, *args, **kwargs):
        print(*args, file=self.output, **kwargs)

    def print_header(self):
        self._print("=" * 70)
        self._print("SCENARIO HARNESS")
        self._print("=" * 70)

    def print_scenario(self, scenario: Dict[str, Any]):
        """Print one scenario with its steps."""
        self._print(f"\n[{scenario['status']}] {scenario['name']} ({scenario['duration_ms']}ms)")
        for step in scenario.get("steps", []):
            if self.verbose or step["status"] == "FAIL":
                self._print(f"  [{step['status']}] {step['step']}")
            if step["status"] == "FAIL":
                self.print_failure(step)

    def print_failure(self, step: Dict[str, Any]):
        """Print the diagnostic of a failed step."""
        trail = step.get("trail") or []
        for depth, sub_step in enumerate(trail[1:], 1):
            self._print(f"  {'  ' * depth}-> {sub_step}")
        if step.get("expected") or step.get("actual"):
            self._print(f"        Expected: {step['expected']}")
            self._print(f"        Actual:   {step['actual']}")
        self._print(f"        Error ({step.get('error_type', 'Error')}): {step['error']}")

    def print_summary(self):
        self._print()
        self._print("=" * 70)
        self._print("SUMMARY")
        self._print("=" * 70)

        total = self.result.get("total", 0)
        self._print(f"Scenarios passed: {self.result.get('passed', 0)}/{total}")
        self._print(f"Scenarios failed: {self.result.get('failed', 0)}/{total}")

        steps = self.result.get("steps", {})
        self._print(
            f"Steps: {steps.get('passed', 0)} passed, {steps.get('failed', 0)} failed, "
            f"{steps.get('skipped', 0)} skipped"
        )

        failed = self.result.get("failed_scenarios", [])
        if failed:
            self._print("\nFailed scenarios:")
            for name in failed:
                self._print(f"  - {name}")

        total_ms = self.result.get("total_duration_ms", 0)
        self._print(f"\nTotal time: {total_ms / 1000:.2f}s")
        self._print(f"\nStatus: {self.result.get('status', 'UNKNOWN')}")

    def print_full_report(self):
        self.print_header()
        for scenario in self.result.get("scenarios", []):
            self.print_scenario(scenario)
        self.print_summary()
