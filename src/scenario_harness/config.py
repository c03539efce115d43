"""
Configuration handling for scenario-harness.

Settings describe the program under test and the knobs of the engine. They
are loaded from YAML, from a dictionary, or left at their defaults.

Example YAML configuration:
    program: ramen
    subcommands:
      ps_short: ps --short
    env_defaults:
      RAMEN_BUNDLE_DIR: "{home}/share/src/ramen/bundle"
    poll_interval: 0.5
    command_timeout: 60

Environment defaults are templates over {home} (the HOME variable) and
{root} (the scenario temporary directory).

Example usage:
    from scenario_harness.config import load_config

    config = load_config("harness.yaml")
    config = load_config({"program": "ramen", "poll_interval": 0.1})
"""

import shlex
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from .errors import ConfigurationError

DEFAULT_PROGRAM = "ramen"

DEFAULT_SUBCOMMANDS: Dict[str, str] = {
    "ps": "ps",
    "ps_short": "ps --short",
    "kill": "kill",
    "run": "run",
    "start": "start",
    "compile": "compile",
}

DEFAULT_PERSIST_DIR_VAR = "RAMEN_PERSIST_DIR"

DEFAULT_ENV_DEFAULTS: Dict[str, str] = {
    "RAMEN_BUNDLE_DIR": "{home}/share/src/ramen/bundle",
    DEFAULT_PERSIST_DIR_VAR: "{root}/persist",
}

CONFIG_CANDIDATES = [
    Path("harness.yaml"),
    Path("harness.yml"),
    Path(".harness.yaml"),
    Path(".harness.yml"),
]


def _positive(key: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ConfigurationError(f"{key} must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{key} must be a number, got {value!r}") from None
    if number <= 0:
        raise ConfigurationError(f"{key} must be positive, got {value!r}")
    return number


def _mapping(key: str, value: Any) -> Dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"{key} must be a mapping, got {value!r}")
    for name, item in value.items():
        if not isinstance(name, str) or not isinstance(item, (str, int, float)) or isinstance(item, bool):
            raise ConfigurationError(f"{key} entries must map names to strings, got {name!r}: {item!r}")
    return {name: str(item) for name, item in value.items()}


def _word(key: str, value: Any) -> str:
    if not isinstance(value, str) or not value or any(c.isspace() for c in value):
        raise ConfigurationError(f"{key} must be a single word, got {value!r}")
    return value


class HarnessConfig:
    """
    Settings for one harness run.

    Attributes:
        program: Executable name of the system under test
        subcommands: Subcommand strings keyed by role (ps, ps_short, kill, run, start, compile)
        env_defaults: Default values for environment variables, as templates
        persist_dir_var: Variable that must be set before the program is started
        poll_interval: Seconds between attempts of "after max N seconds" steps
        command_timeout: Seconds before a synchronous command is killed
        terminate_timeout: Seconds between SIGTERM and SIGKILL on teardown
        max_depth: Maximum step delegation depth
        keep_tmp: Keep each scenario's temporary directory after the run
        tmp_parent: Directory in which scenario temporary directories are created
    """

    def __init__(
        self,
        program: str = DEFAULT_PROGRAM,
        subcommands: Optional[Mapping[str, str]] = None,
        env_defaults: Optional[Mapping[str, str]] = None,
        persist_dir_var: str = DEFAULT_PERSIST_DIR_VAR,
        poll_interval: float = 0.5,
        command_timeout: float = 60,
        terminate_timeout: float = 5,
        max_depth: int = 32,
        keep_tmp: bool = False,
        tmp_parent: Optional[str] = None,
    ):
        self.program = _word("program", program)

        self.subcommands = dict(DEFAULT_SUBCOMMANDS)
        overrides = _mapping("subcommands", subcommands)
        unknown = set(overrides) - set(DEFAULT_SUBCOMMANDS)
        if unknown:
            raise ConfigurationError(
                f"Unknown subcommands: {', '.join(sorted(unknown))}. "
                f"Must be among {', '.join(DEFAULT_SUBCOMMANDS)}."
            )
        self.subcommands.update(overrides)

        self.env_defaults = dict(DEFAULT_ENV_DEFAULTS)
        self.env_defaults.update(_mapping("env_defaults", env_defaults))

        self.persist_dir_var = _word("persist_dir_var", persist_dir_var)
        self.poll_interval = _positive("poll_interval", poll_interval)
        self.command_timeout = _positive("command_timeout", command_timeout)
        self.terminate_timeout = _positive("terminate_timeout", terminate_timeout)
        if isinstance(max_depth, bool) or not isinstance(max_depth, int) or max_depth < 1:
            raise ConfigurationError(f"max_depth must be a positive integer, got {max_depth!r}")
        self.max_depth = max_depth
        if not isinstance(keep_tmp, bool):
            raise ConfigurationError(f"keep_tmp must be true or false, got {keep_tmp!r}")
        self.keep_tmp = keep_tmp
        if tmp_parent is not None and not isinstance(tmp_parent, str):
            raise ConfigurationError(f"tmp_parent must be a path, got {tmp_parent!r}")
        self.tmp_parent = tmp_parent

    def subcommand(self, role: str) -> List[str]:
        """Argument list for a subcommand role, e.g. ['ps', '--short']."""
        try:
            return shlex.split(self.subcommands[role])
        except KeyError:
            raise ConfigurationError(f"Unknown subcommand role: {role!r}") from None

    def env_default(self, name: str, env: Mapping[str, str], root: Path) -> str:
        """
        Derive the default value of an environment variable.

        Raises:
            ConfigurationError: If there is no default, or it needs HOME and HOME is unset
        """
        template = self.env_defaults.get(name)
        if template is None:
            raise ConfigurationError(f"No idea what to set {name} to")
        home = env.get("HOME")
        if "{home}" in template and not home:
            raise ConfigurationError(f"Cannot derive {name}: HOME is not set")
        try:
            return template.format(home=home or "", root=str(root))
        except (KeyError, IndexError) as e:
            raise ConfigurationError(f"Bad default for {name}: {template!r}") from e

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HarnessConfig":
        """
        Create configuration from a dictionary.

        Raises:
            ConfigurationError: If a key is unknown or a value invalid
        """
        known = {
            "program", "subcommands", "env_defaults", "persist_dir_var",
            "poll_interval", "command_timeout", "terminate_timeout",
            "max_depth", "keep_tmp", "tmp_parent",
        }
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "HarnessConfig":
        """
        Load configuration from a YAML file.

        An empty file yields the defaults.
        """
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {path}")
        with open(path) as f:
            data = yaml.safe_load(f)

        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file must contain a mapping: {path}")
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "program": self.program,
            "subcommands": dict(self.subcommands),
            "env_defaults": dict(self.env_defaults),
            "persist_dir_var": self.persist_dir_var,
            "poll_interval": self.poll_interval,
            "command_timeout": self.command_timeout,
            "terminate_timeout": self.terminate_timeout,
            "max_depth": self.max_depth,
            "keep_tmp": self.keep_tmp,
            "tmp_parent": self.tmp_parent,
        }


def find_config_file() -> Optional[Path]:
    """Find a harness configuration file in the current directory."""
    for candidate in CONFIG_CANDIDATES:
        if candidate.exists():
            return candidate
    return None


def load_config(source: Union[str, Path, Dict[str, Any], None] = None) -> HarnessConfig:
    """
    Load configuration from a YAML path, a dictionary, or the default locations.

    With source=None the first of CONFIG_CANDIDATES that exists is used;
    if none exists the defaults apply.
    """
    if isinstance(source, dict):
        return HarnessConfig.from_dict(source)
    if source is None:
        found = find_config_file()
        return HarnessConfig.from_yaml(found) if found else HarnessConfig()
    return HarnessConfig.from_yaml(source)
