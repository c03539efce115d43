"""
Shared fixtures for scenario-harness tests.

The program under test is replaced by a small shell script named `ramen`
that keeps its state (listed programs and workers) in plain files.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict

import pytest

from scenario_harness import HarnessConfig, ScenarioContext, StepRegistry
from scenario_harness.steps import register_standard_steps

FAKE_RAMEN = r"""#!/bin/sh
state="${FAKE_RAMEN_STATE:?}"
tab=$(printf '\t')
case "$1" in
  ps)
    if [ "$2" = "--short" ]; then
      cat "$state/programs" 2>/dev/null
    else
      cat "$state/workers" 2>/dev/null
    fi
    ;;
  kill)
    grep -v "^$2$tab" "$state/programs" > "$state/programs.new"
    mv "$state/programs.new" "$state/programs"
    echo "$2" >> "$state/killed"
    ;;
  run)
    name=$(basename "$2" .x)
    printf '%s\trunning\n' "$name" >> "$state/programs"
    ;;
  compile)
    out="${2%.*}.x"
    echo "Parsing $2"
    echo "Writing $out"
    printf '#!/bin/sh\necho ok\n' > "$out"
    chmod +x "$out"
    ;;
  start)
    echo "$RAMEN_PERSIST_DIR" > "$state/persist_dir"
    echo started >> "$state/starts"
    exec sleep 60
    ;;
  *)
    echo "Unknown command $1" >&2
    exit 1
    ;;
esac
"""


@dataclass
class FakeProgram:
    """The fake `ramen` and its state directory."""
    env: Dict[str, str]
    state: Path
    path: Path

    def set_programs(self, *names: str) -> None:
        self.state.joinpath("programs").write_text("".join(f"{n}\trunning\n" for n in names))

    def set_workers(self, *names: str) -> None:
        self.state.joinpath("workers").write_text("".join(f"{n}\t42\tup\n" for n in names))

    def read(self, name: str) -> str:
        path = self.state / name
        return path.read_text() if path.exists() else ""


@pytest.fixture
def fake_program(tmp_path) -> FakeProgram:
    """A fake `ramen` on PATH, with its own state directory."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    state = tmp_path / "state"
    state.mkdir()

    script = bin_dir / "ramen"
    script.write_text(FAKE_RAMEN)
    script.chmod(0o755)

    env = dict(os.environ)
    env["PATH"] = f"{bin_dir}{os.pathsep}{env.get('PATH', '')}"
    env["FAKE_RAMEN_STATE"] = str(state)
    env.pop("RAMEN_PERSIST_DIR", None)
    return FakeProgram(env=env, state=state, path=script)


@pytest.fixture
def config() -> HarnessConfig:
    return HarnessConfig(poll_interval=0.05, command_timeout=10, terminate_timeout=2)


@pytest.fixture
def registry(config) -> StepRegistry:
    return register_standard_steps(StepRegistry(), config)


@pytest.fixture
def ctx(registry, config, fake_program, tmp_path):
    """A scenario context wired to the fake program."""
    context = ScenarioContext(registry, config, env=fake_program.env, root=tmp_path / "root")
    yield context
    context.close()
