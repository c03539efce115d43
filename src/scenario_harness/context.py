"""
Scenario-scoped state.

A ScenarioContext owns everything one scenario mutates: its temporary root
directory, its copy of the environment, the results of the commands it ran
and the process gateway tracking its background processes. Nothing is kept
in module globals, so independent contexts can run side by side.

Example usage:
    with ScenarioContext(registry, config) as ctx:
        ctx.run("I run ramen with no argument")
        ctx.run("ramen must exit with status 1")
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

from .config import HarnessConfig
from .dispatcher import StepDispatcher
from .errors import AssertionFailed
from .process import Arguments, ProcessGateway, ProcessResult
from .registry import Payload, StepRegistry

logger = logging.getLogger(__name__)


class ScenarioContext:
    """
    State and services for one scenario run.

    Attributes:
        config: Harness settings
        registry: Step definitions available to this scenario
        env: Environment passed to every command; steps mutate it directly
        root: Temporary directory; relative paths in steps resolve against it
        results: Most recent ProcessResult per executable name
        gateway: ProcessGateway running commands in root with env
        dispatcher: StepDispatcher bound to this context
    """

    def __init__(
        self,
        registry: StepRegistry,
        config: Optional[HarnessConfig] = None,
        env: Optional[Mapping[str, str]] = None,
        root: Optional[Union[str, Path]] = None,
    ):
        self.config = config or HarnessConfig()
        self.registry = registry
        self.env: Dict[str, str] = dict(os.environ if env is None else env)

        self._owns_root = root is None
        if root is None:
            root = tempfile.mkdtemp(prefix="scenario-", dir=self.config.tmp_parent)
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

        self.results: Dict[str, ProcessResult] = {}
        self.gateway = ProcessGateway(
            cwd=self.root,
            env=self.env,
            command_timeout=self.config.command_timeout,
            terminate_timeout=self.config.terminate_timeout,
        )
        self.dispatcher = StepDispatcher(registry, self, max_depth=self.config.max_depth)
        self._closed = False

    def __enter__(self) -> "ScenarioContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def path(self, name: Union[str, Path]) -> Path:
        """Resolve a step path against the scenario root."""
        return self.root / name

    def run(self, step_text: str, payload: Payload = None) -> None:
        """Run a top-level step (failures are wrapped in StepFailed)."""
        self.dispatcher.run(step_text, payload)

    def step(self, step_text: str, payload: Payload = None) -> None:
        """Run another step from inside a handler."""
        self.dispatcher.invoke(step_text, payload)

    def execute(
        self,
        command: str,
        args: Optional[Arguments] = None,
        key: Optional[str] = None,
    ) -> ProcessResult:
        """Run a command and remember its result under key (default: command)."""
        result = self.gateway.execute(command, args)
        self.results[key or command] = result
        return result

    def last_result(self, executable: str) -> ProcessResult:
        """
        Most recent result of an executable.

        Raises:
            AssertionFailed: If the executable has not been run in this scenario
        """
        try:
            return self.results[executable]
        except KeyError:
            raise AssertionFailed("a recorded run", "no recorded run", executable) from None

    def close(self) -> None:
        """Terminate background processes and remove the temporary root."""
        if self._closed:
            return
        self._closed = True
        self.gateway.terminate_all()
        if self._owns_root and not self.config.keep_tmp:
            shutil.rmtree(self.root, ignore_errors=True)
        elif self._owns_root:
            logger.info("Keeping scenario directory %s", self.root)
