"""
Scenario containers.

The engine only needs an ordered list of steps, each a line of text with an
optional doc string or table. Scenarios can be built in code or loaded from
a small YAML container:

    scenarios:
      - name: compiling a program
        steps:
          - step: Given a file foo.ramen with content
            doc_string: |
              DEFINE bar AS SELECT 1 AS one EVERY 1 SECOND;
          - When I run ramen with arguments compile foo.ramen
          - Then ramen must produce files foo.x

A leading Gherkin keyword (Given, When, Then, And, But, *) is kept for
reporting and stripped from the text handed to the dispatcher.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from .registry import Payload

KEYWORDS = ("Given", "When", "Then", "And", "But", "*")


def split_keyword(line: str) -> Tuple[str, str]:
    """Split 'Given foo' into ('Given', 'foo'); lines without a keyword get ''."""
    stripped = line.strip()
    head, _, rest = stripped.partition(" ")
    if head in KEYWORDS and rest.strip():
        return head, rest.strip()
    return "", stripped


@dataclass
class ScenarioStep:
    """
    One scenario line.

    Attributes:
        text: Step text without its keyword
        keyword: Gherkin keyword the line started with, or ''
        doc_string: Literal text block attached to the step
        table: Rows of cells attached to the step
    """
    text: str
    keyword: str = ""
    doc_string: Optional[str] = None
    table: Optional[List[List[str]]] = None

    def __post_init__(self):
        if not self.text:
            raise ValueError("Step text is required")
        if self.doc_string is not None and self.table is not None:
            raise ValueError("A step takes a doc string or a table, not both")

    @property
    def payload(self) -> Payload:
        return self.doc_string if self.doc_string is not None else self.table

    def display(self) -> str:
        return f"{self.keyword} {self.text}" if self.keyword else self.text

    @classmethod
    def parse(cls, line: str, **payload: Any) -> "ScenarioStep":
        keyword, text = split_keyword(line)
        return cls(text=text, keyword=keyword, **payload)


@dataclass
class Scenario:
    """A named, ordered list of steps."""
    name: str
    steps: List[ScenarioStep] = field(default_factory=list)

    def __post_init__(self):
        if not self.name:
            raise ValueError("Scenario name is required")


def step_from_value(value: Union[str, Dict[str, Any]]) -> ScenarioStep:
    """
    Create a ScenarioStep from a YAML value.

    Args:
        value: A step line, or a mapping with 'step' and optionally
               'doc_string' or 'table'

    Raises:
        ValueError: If the value has the wrong shape
    """
    if isinstance(value, str):
        return ScenarioStep.parse(value)
    if not isinstance(value, dict):
        raise ValueError(f"Step must be a string or a mapping, got {type(value).__name__}")
    if "step" not in value:
        raise ValueError("Step mapping must have a 'step' field")

    unknown = set(value) - {"step", "doc_string", "table"}
    if unknown:
        raise ValueError(f"Unknown step fields: {', '.join(sorted(unknown))}")

    table = value.get("table")
    if table is not None:
        if not isinstance(table, list) or not all(isinstance(row, list) for row in table):
            raise ValueError("'table' must be a list of rows")
        table = [[str(cell) for cell in row] for row in table]

    doc_string = value.get("doc_string")
    if doc_string is not None:
        doc_string = str(doc_string)

    return ScenarioStep.parse(str(value["step"]), doc_string=doc_string, table=table)


def scenario_from_dict(data: Dict[str, Any]) -> Scenario:
    """Create a Scenario from a mapping with 'name' and 'steps'."""
    if "name" not in data:
        raise ValueError("Scenario must have a 'name' field")
    steps = []
    for i, value in enumerate(data.get("steps") or []):
        try:
            steps.append(step_from_value(value))
        except ValueError as e:
            raise ValueError(f"Invalid step at index {i}: {e}") from e
    return Scenario(name=str(data["name"]), steps=steps)


def load_scenarios_from_list(data: List[Dict[str, Any]]) -> List[Scenario]:
    scenarios = []
    for i, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise ValueError(f"Invalid scenario at index {i}: must be a mapping")
        try:
            scenarios.append(scenario_from_dict(entry))
        except ValueError as e:
            raise ValueError(f"Invalid scenario at index {i}: {e}") from e
    return scenarios


def load_scenarios_from_yaml(path: Union[str, Path]) -> List[Scenario]:
    """
    Load scenarios from a YAML file with a top-level 'scenarios' key.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the YAML is empty, malformed or has invalid entries
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Scenario file not found: {path}")

    with open(path) as f:
        data = yaml.safe_load(f)

    if data is None:
        raise ValueError(f"Empty or invalid YAML file: {path}")
    if not isinstance(data, dict) or "scenarios" not in data:
        raise ValueError(f"YAML file must have a 'scenarios' key: {path}")

    return load_scenarios_from_list(data["scenarios"] or [])
