from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _new_id() -> str:
    return str(uuid.uuid4())


class _Record(BaseModel):
    """Base for library records; accepts camelCase or snake_case keys."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class Rule(_Record):
    """Behavioral rule attached to a blueprint. Only HARD rules are enforced."""

    id: str = Field(default_factory=_new_id)
    type: Literal["HARD", "SOFT"]
    value: str


class InputSlot(_Record):
    """Declared input placeholder of a task template."""

    name: str
    type: Literal["string", "number", "date"] = "string"


class Assertion(_Record):
    """Field-level predicate evaluated against a finished result.

    `type` stays a free string: unknown types are graded as failures rather
    than rejected at load time.
    """

    id: str = Field(default_factory=_new_id)
    type: str
    field: str
    expected_value: Any = None


class PromptTest(_Record):
    """Stored regression case: concrete inputs plus assertions to grade."""

    id: str = Field(default_factory=_new_id)
    name: str = ""
    blueprint_id: Optional[str] = None
    inputs: Dict[str, Any] = Field(default_factory=dict)
    assertions: Optional[List[Assertion]] = None


class Blueprint(_Record):
    """Named LLM task: role, template, rules, input slots and output shape."""

    id: str = Field(default_factory=_new_id)
    name: str
    role: str
    task_template: str
    rules: List[Rule] = Field(default_factory=list)
    input_slots: Dict[str, InputSlot] = Field(default_factory=dict)
    output_schema: Dict[str, Any] = Field(default_factory=dict)
    tests: List[PromptTest] = Field(default_factory=list)

    @property
    def hard_rules(self) -> List[Rule]:
        return [rule for rule in self.rules if rule.type == "HARD"]


@dataclass
class ExecutionResult:
    """Validated model output returned by a successful execution."""

    data: Dict[str, Any]
    duration_ms: float
    attempts: int = 1


@dataclass
class AssertionResult:
    """Outcome of one assertion; `actual_value` is None for missing paths."""

    id: str
    passed: bool
    message: str
    actual_value: Any = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "passed": self.passed,
            "message": self.message,
            "actualValue": self.actual_value,
        }


@dataclass
class SchemaIssue:
    """One structural mismatch reported by an output schema."""

    path: str
    message: str

    def describe(self) -> str:
        return f"{self.path} - {self.message}"

