from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Mapping, Tuple

import yaml
from pydantic import ValidationError

from forge.schemas import Blueprint, PromptTest
from forge.template import template_placeholders

BLUEPRINT_SUFFIXES = (".yaml", ".yml", ".json")


def load_blueprint_file(path: Path) -> Blueprint:
    """Parse one blueprint file (YAML or JSON) into a validated Blueprint."""

    with path.open("r", encoding="utf-8") as f:
        if path.suffix == ".json":
            data = json.load(f)
        else:
            data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Invalid blueprint shape in {path}: expected object at root")
    try:
        blueprint = Blueprint.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid blueprint in {path}: {exc}") from exc
    # Nested tests always run against the blueprint that contains them.
    tests = [test.model_copy(update={"blueprint_id": blueprint.id}) for test in blueprint.tests]
    return blueprint.model_copy(update={"tests": tests})


class BlueprintLibrary:
    """Read-only blueprint/test store over a directory of blueprint files."""

    def __init__(self, root: Path) -> None:
        """Load every blueprint under `root` and index blueprints and tests by id."""

        self.root = root
        self._blueprints: Dict[str, Blueprint] = {}
        self._tests: Dict[str, PromptTest] = {}
        self._load()

    def _load(self) -> None:
        if not self.root.exists():
            raise FileNotFoundError(f"Blueprint directory not found: {self.root}")
        for path in sorted(self.root.iterdir()):
            if path.suffix not in BLUEPRINT_SUFFIXES or not path.is_file():
                continue
            blueprint = load_blueprint_file(path)
            if blueprint.id in self._blueprints:
                raise ValueError(f"Duplicate blueprint id '{blueprint.id}' in {path}")
            self._blueprints[blueprint.id] = blueprint
            for test in blueprint.tests:
                if test.id in self._tests:
                    raise ValueError(f"Duplicate test id '{test.id}' in {path}")
                self._tests[test.id] = test

    def list_blueprints(self) -> List[Blueprint]:
        """List blueprints in stable name order."""

        return sorted(self._blueprints.values(), key=lambda bp: (bp.name, bp.id))

    def get_blueprint(self, key: str) -> Blueprint:
        """Return a blueprint by id, falling back to an exact name match."""

        if key in self._blueprints:
            return self._blueprints[key]
        for blueprint in self._blueprints.values():
            if blueprint.name == key:
                return blueprint
        known = ", ".join(sorted(self._blueprints.keys()))
        raise KeyError(f"Unknown blueprint '{key}'. Known blueprints: {known}")

    def list_tests(self, blueprint_key: str) -> List[PromptTest]:
        return list(self.get_blueprint(blueprint_key).tests)

    def get_test(self, test_id: str) -> Tuple[PromptTest, Blueprint]:
        """Return a stored test together with the blueprint it runs against."""

        test = self._tests.get(test_id)
        if test is None:
            known = ", ".join(sorted(self._tests.keys()))
            raise KeyError(f"Unknown test '{test_id}'. Known tests: {known}")
        return test, self._blueprints[test.blueprint_id]


def _coerce_number(name: str, raw: str) -> Any:
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"Input '{name}' must be a number; got {raw!r}") from None


def coerce_inputs(blueprint: Blueprint, raw_inputs: Mapping[str, Any]) -> Dict[str, Any]:
    """Convert textual inputs according to the blueprint's declared slot types."""

    coerced: Dict[str, Any] = {}
    for name, value in raw_inputs.items():
        slot = blueprint.input_slots.get(name)
        if isinstance(value, date):
            coerced[name] = value.isoformat()
        elif slot is None or not isinstance(value, str):
            coerced[name] = value
        elif slot.type == "number":
            coerced[name] = _coerce_number(name, value.strip())
        elif slot.type == "date":
            try:
                coerced[name] = date.fromisoformat(value.strip()).isoformat()
            except ValueError:
                raise ValueError(f"Input '{name}' must be an ISO date (YYYY-MM-DD); got {value!r}") from None
        else:
            coerced[name] = value
    return coerced


def missing_inputs(blueprint: Blueprint, inputs: Mapping[str, Any]) -> List[str]:
    """Template placeholders that the given inputs leave unfilled."""

    return [name for name in template_placeholders(blueprint.task_template) if name not in inputs]
