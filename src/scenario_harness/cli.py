"""
Command-line interface for scenario-harness.

Usage:
    scenario-harness run scenarios.yaml            # Run every scenario
    scenario-harness run scenarios.yaml -s NAME    # Run one scenario
    scenario-harness run scenarios.yaml --json     # JSON report on stdout
    scenario-harness list                          # List step definitions
    scenario-harness doctor                        # Run diagnostics
    scenario-harness --version                     # Show version
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

import yaml

from . import __version__
from .config import HarnessConfig, load_config
from .doctor import HarnessDoctor
from .errors import ConfigurationError
from .registry import Phase, StepRegistry
from .reporter import ConsoleReporter, ReportGenerator
from .runner import ScenarioRunner, StepResult
from .scenarios import ScenarioStep, load_scenarios_from_yaml
from .steps import register_standard_steps

LOAD_ERRORS = (ConfigurationError, FileNotFoundError, ValueError, yaml.YAMLError)


def _load_config(args: argparse.Namespace) -> HarnessConfig:
    return load_config(args.config) if args.config else load_config()


def _build_registry(config: HarnessConfig) -> StepRegistry:
    return register_standard_steps(StepRegistry(), config)


def cmd_run(args: argparse.Namespace) -> int:
    """Run scenarios from a YAML file."""
    try:
        config = _load_config(args)
        scenarios = load_scenarios_from_yaml(args.scenarios)
    except LOAD_ERRORS as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if args.scenario:
        names = [s.name for s in scenarios]
        if args.scenario not in names:
            print(f"Error: Unknown scenario '{args.scenario}'", file=sys.stderr)
            print(f"Available scenarios: {', '.join(names)}", file=sys.stderr)
            return 2
        scenarios = [s for s in scenarios if s.name == args.scenario]

    if not scenarios:
        print("Error: No scenarios found.", file=sys.stderr)
        return 2

    def on_step_start(step: ScenarioStep):
        if not args.json:
            print(f"RUN  {step.display()[:60]:60s} ... ", end="", flush=True)

    def on_step_complete(step: ScenarioStep, result: StepResult):
        if not args.json:
            print(f"{result.status} ({result.duration_ms}ms)")

    runner = ScenarioRunner(
        _build_registry(config),
        config,
        on_step_start=on_step_start,
        on_step_complete=on_step_complete,
    )
    result = runner.run(scenarios)

    generator = ReportGenerator(result, program=config.program)
    if args.json:
        print(generator.to_json())
    else:
        ConsoleReporter(result, verbose=args.verbose).print_full_report()

    if args.report:
        generator.write_json(args.report)
        if not args.json:
            print(f"\nReport written to: {args.report}")

    return 0 if result["status"] == "PASS" else 1


def cmd_list(args: argparse.Namespace) -> int:
    """List step definitions by phase."""
    try:
        config = _load_config(args)
    except LOAD_ERRORS as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    registry = _build_registry(config)
    for phase in Phase:
        print(f"{phase.value.capitalize()}:")
        for step in registry.by_phase(phase):
            print(f"  {step.pattern}")
    return 0


def cmd_doctor(args: argparse.Namespace) -> int:
    """Run diagnostics."""
    try:
        config = _load_config(args)
    except LOAD_ERRORS as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    doctor = HarnessDoctor(config)
    diagnosis = doctor.diagnose()

    if args.json:
        print(json.dumps(diagnosis, indent=2))
    else:
        doctor.print_diagnosis(diagnosis)

    return 0 if diagnosis["summary"] == "HEALTHY" else 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        prog="scenario-harness",
        description="Run Given/When/Then scenarios against an external program",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"scenario-harness {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    run_parser = subparsers.add_parser("run", help="Run scenarios")
    run_parser.add_argument("scenarios", help="YAML file with a 'scenarios' list")
    run_parser.add_argument("--config", "-c", type=str, help="Path to configuration file")
    run_parser.add_argument("--scenario", "-s", type=str, help="Run only the named scenario")
    run_parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    run_parser.add_argument("--json", action="store_true", help="Output JSON report")
    run_parser.add_argument("--report", type=str, help="Write JSON report to file")

    list_parser = subparsers.add_parser("list", help="List step definitions")
    list_parser.add_argument("--config", "-c", type=str, help="Path to configuration file")

    doctor_parser = subparsers.add_parser("doctor", help="Run diagnostics")
    doctor_parser.add_argument("--config", "-c", type=str, help="Path to configuration file")
    doctor_parser.add_argument("--json", action="store_true", help="Output JSON diagnostics")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if getattr(args, "verbose", False) else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "run":
        return cmd_run(args)
    elif args.command == "list":
        return cmd_list(args)
    elif args.command == "doctor":
        return cmd_doctor(args)
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
