"""
Diagnostic tool for the harness environment.

Before blaming the program under test, check that the harness can work at
all: the program is on PATH, the environment defaults can be derived, a
scratch directory can be created and the process listing answers.

The doctor distinguishes between:
- HARNESS_ISSUE: The environment the harness needs is broken
- SERVICE_ISSUE: The program under test is reachable but misbehaves
- HEALTHY: Everything is working normally

Example usage:
    from scenario_harness.doctor import HarnessDoctor

    doctor = HarnessDoctor(config)
    diagnosis = doctor.diagnose()
    doctor.print_diagnosis(diagnosis)
"""

import os
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .config import HarnessConfig
from .errors import ConfigurationError


@dataclass
class DiagnosticCheck:
    """
    Definition of a diagnostic check.

    Attributes:
        name: Human-readable check name
        category: 'harness' or 'service'
        check_fn: Function that returns (status, recommendation)
    """
    name: str
    category: str  # 'harness' or 'service'
    check_fn: Callable[[], tuple]


class HarnessDoctor:
    """
    Diagnoses whether scenario failures come from the harness environment.

    Example:
        doctor = HarnessDoctor(config)
        doctor.add_check(make_command_check("stats", ["ramen", "stats"], category="service"))
        diagnosis = doctor.diagnose()
    """

    def __init__(
        self,
        config: Optional[HarnessConfig] = None,
        checks: Optional[List[DiagnosticCheck]] = None,
    ):
        self.config = config or HarnessConfig()
        self.checks = checks if checks is not None else self._default_checks()

    def _default_checks(self) -> List[DiagnosticCheck]:
        program = self.config.program
        listing = " ".join([program] + self.config.subcommand("ps_short"))
        return [
            DiagnosticCheck("program_on_path", "harness", self._check_program_on_path),
            DiagnosticCheck("env_defaults", "harness", self._check_env_defaults),
            DiagnosticCheck("scratch_dir", "harness", self._check_scratch_dir),
            make_command_check(
                "process_listing",
                [program] + self.config.subcommand("ps_short"),
                category="service",
                timeout=self.config.command_timeout,
                error_message=f"'{listing}' failed; is the daemon started?",
            ),
        ]

    def add_check(self, check: DiagnosticCheck):
        self.checks.append(check)

    def _check_program_on_path(self) -> tuple:
        if shutil.which(self.config.program):
            return ("OK", None)
        return ("ERROR", f"Put {self.config.program} on PATH")

    def _check_env_defaults(self) -> tuple:
        root = Path(tempfile.gettempdir())
        problems = []
        for name in self.config.env_defaults:
            if name in os.environ:
                continue
            try:
                self.config.env_default(name, os.environ, root)
            except ConfigurationError as e:
                problems.append(str(e))
        if problems:
            return ("ERROR", "; ".join(problems))
        return ("OK", None)

    def _check_scratch_dir(self) -> tuple:
        try:
            path = tempfile.mkdtemp(prefix="scenario-doctor-", dir=self.config.tmp_parent)
        except OSError as e:
            return ("ERROR", f"Cannot create scenario directories: {e}")
        shutil.rmtree(path, ignore_errors=True)
        return ("OK", None)

    def diagnose(self) -> Dict[str, Any]:
        """
        Run all diagnostic checks.

        Returns:
            Dictionary containing:
            - harness: Dict of harness check results
            - service: Dict of service check results
            - summary: Overall status (HEALTHY, HARNESS_ISSUE, SERVICE_ISSUE)
            - recommendations: List of recommended actions
        """
        results: Dict[str, Any] = {
            "harness": {},
            "service": {},
            "recommendations": [],
        }

        for check in self.checks:
            status, recommendation = check.check_fn()
            results[check.category][check.name] = status
            if recommendation:
                results["recommendations"].append(recommendation)

        harness_ok = all(v in ("OK", "WARNING") for v in results["harness"].values())
        service_ok = all(v in ("OK", "WARNING") for v in results["service"].values())

        if not harness_ok:
            results["summary"] = "HARNESS_ISSUE"
        elif not service_ok:
            results["summary"] = "SERVICE_ISSUE"
        else:
            results["summary"] = "HEALTHY"

        return results

    def print_diagnosis(self, diagnosis: Optional[Dict[str, Any]] = None):
        if diagnosis is None:
            diagnosis = self.diagnose()

        print("=" * 70)
        print("HARNESS DOCTOR DIAGNOSTICS")
        print("=" * 70)
        print()

        for title, category in (("Harness Checks:", "harness"), ("\nService Checks:", "service")):
            print(title)
            for check, status in diagnosis[category].items():
                icon = "OK" if status == "OK" else "WA" if status == "WARNING" else "ER"
                print(f"  [{icon}] {check:20s}: {status}")

        print(f"\n{'=' * 70}")
        print(f"Summary: {diagnosis['summary']}")
        print(f"{'=' * 70}")

        if diagnosis["recommendations"]:
            print("\nRecommendations:")
            for i, rec in enumerate(diagnosis["recommendations"], 1):
                print(f"  {i}. {rec}")
        else:
            print("\nNo issues detected")


def make_command_check(
    name: str,
    argv: List[str],
    category: str = "harness",
    timeout: float = 5,
    error_message: Optional[str] = None,
) -> DiagnosticCheck:
    """
    Create a diagnostic check that runs a command.

    Args:
        name: Check name
        argv: Command and arguments
        category: 'harness' or 'service'
        timeout: Command timeout in seconds
        error_message: Custom error message on failure
    """
    def check_fn() -> tuple:
        try:
            result = subprocess.run(argv, capture_output=True, timeout=timeout)
        except subprocess.TimeoutExpired:
            return ("ERROR", f"Command '{' '.join(argv)}' timed out")
        except OSError as e:
            return ("ERROR", f"Command failed: {e}")
        if result.returncode == 0:
            return ("OK", None)
        return ("ERROR", error_message or f"Command '{' '.join(argv)}' failed")

    return DiagnosticCheck(name=name, category=category, check_fn=check_fn)
