from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from forge.errors import AttemptFailure, RetriesExhausted, TransportFailure
from forge.model_backend import ModelBackend
from forge.output_schema import OutputSchema, build_output_schema
from forge.rule_checker import check_rules
from forge.schemas import Blueprint, ExecutionResult
from forge.template import substitute_inputs

MAX_ATTEMPTS = 3
TEMPERATURE = 0.0
INVALID_JSON_VIOLATION = "Response was not valid JSON."


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-JSON constant {name}")


def parse_model_json(content: str) -> Any:
    """Strict JSON parse: `NaN`, `Infinity` and `-Infinity` are rejected."""

    return json.loads(content, parse_constant=_reject_constant)


class ExecutionState(str, Enum):
    """States of one `execute` call. SUCCESS and EXHAUSTED are terminal."""

    BUILDING = "building"
    CALLING = "calling"
    PARSING = "parsing"
    VALIDATING = "validating"
    RULE_CHECKING = "rule_checking"
    RETRYING = "retrying"
    SUCCESS = "success"
    EXHAUSTED = "exhausted"


@dataclass
class _Attempt:
    """Mutable state local to one `execute` call."""

    number: int = 0
    violations: List[str] = field(default_factory=list)
    failure: Optional[AttemptFailure] = None
    system_prompt: str = ""
    content: Optional[str] = None
    parsed: Any = None
    duration_ms: float = 0.0


def build_system_prompt(blueprint: Blueprint, violations: Sequence[str] = ()) -> str:
    """Render role, every rule, the output shape and any previous violations."""

    rules_text = "\n".join(f"- {rule.value}" for rule in blueprint.rules)
    prompt = "\n".join(
        [
            f"ROLE: You are a {blueprint.role}.",
            "=== STRICT RULES ===",
            rules_text,
            "=== OUTPUT FORMAT ===",
            "You must respond with a JSON object that strictly adheres to the following schema:",
            json.dumps(blueprint.output_schema, indent=2),
        ]
    )
    if violations:
        prompt += (
            "\n\n=== PREVIOUS VIOLATIONS ===\n- "
            + "\n- ".join(violations)
            + "\nFIX THESE ERRORS IMMEDIATELY."
        )
    return prompt


def build_user_prompt(task: str) -> str:
    return f"TASK: {task}"


class PromptExecutor:
    """Bounded self-correcting generation loop over an injected model backend.

    Holds no per-call state, so one instance may serve concurrent callers.
    The loop enforces an attempt budget only; wall-clock deadlines belong to
    the caller.
    """

    def __init__(
        self,
        backend: ModelBackend,
        max_attempts: int = MAX_ATTEMPTS,
        event_logger: Optional[Callable[[str], None]] = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.backend = backend
        self.max_attempts = max_attempts
        self.event_logger = event_logger
        self.clock = clock

    def execute(self, blueprint: Blueprint, inputs: Mapping[str, Any]) -> ExecutionResult:
        """Drive the state machine until a compliant result or a terminal failure.

        Raises TransportFailure as soon as the model returns no content and
        RetriesExhausted once every attempt produced violations.
        """

        task = substitute_inputs(blueprint.task_template, inputs)
        user_prompt = build_user_prompt(task)
        schema = build_output_schema(blueprint.output_schema)
        attempt = _Attempt()
        state = ExecutionState.BUILDING

        while True:
            if state is ExecutionState.BUILDING:
                attempt.system_prompt = build_system_prompt(blueprint, attempt.violations)
                state = ExecutionState.CALLING
            elif state is ExecutionState.CALLING:
                self._call(attempt, user_prompt)
                state = ExecutionState.PARSING
            elif state is ExecutionState.PARSING:
                state = self._parse(attempt)
            elif state is ExecutionState.VALIDATING:
                state = self._validate(attempt, schema)
            elif state is ExecutionState.RULE_CHECKING:
                state = self._check_rules(attempt, blueprint)
            elif state is ExecutionState.RETRYING:
                attempt.number += 1
                self._log(
                    f"attempt={attempt.number} outcome={attempt.failure.value} "
                    f"duration_ms={attempt.duration_ms:.1f} violations={len(attempt.violations)}"
                )
                if attempt.number >= self.max_attempts:
                    state = ExecutionState.EXHAUSTED
                else:
                    state = ExecutionState.BUILDING
            elif state is ExecutionState.SUCCESS:
                attempt.number += 1
                self._log(
                    f"attempt={attempt.number} outcome=success duration_ms={attempt.duration_ms:.1f}"
                )
                return ExecutionResult(
                    data=attempt.parsed,
                    duration_ms=attempt.duration_ms,
                    attempts=attempt.number,
                )
            else:
                self._log(f"exhausted attempts={attempt.number} blueprint={blueprint.name}")
                raise RetriesExhausted(attempt.number, attempt.violations)

    def _call(self, attempt: _Attempt, user_prompt: str) -> None:
        messages: List[Dict[str, Any]] = [
            {"role": "system", "content": attempt.system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        decoding = {
            "temperature": TEMPERATURE,
            "response_format": {"type": "json_object"},
        }
        started = self.clock()
        result = self.backend.generate(messages, decoding=decoding)
        attempt.duration_ms = (self.clock() - started) * 1000.0
        attempt.content = result.content

    def _parse(self, attempt: _Attempt) -> ExecutionState:
        if not isinstance(attempt.content, str) or not attempt.content:
            self._log(f"attempt={attempt.number + 1} outcome=transport_failure")
            raise TransportFailure("No response from LLM")
        try:
            attempt.parsed = parse_model_json(attempt.content)
        except ValueError:
            return self._reject(attempt, AttemptFailure.PARSE, [INVALID_JSON_VIOLATION])
        return ExecutionState.VALIDATING

    def _validate(self, attempt: _Attempt, schema: OutputSchema) -> ExecutionState:
        issues = schema.validate(attempt.parsed)
        if issues:
            return self._reject(attempt, AttemptFailure.SCHEMA, [issue.describe() for issue in issues])
        return ExecutionState.RULE_CHECKING

    def _check_rules(self, attempt: _Attempt, blueprint: Blueprint) -> ExecutionState:
        violations = check_rules(attempt.parsed, blueprint.rules)
        if violations:
            return self._reject(attempt, AttemptFailure.RULE, violations)
        attempt.violations = []
        attempt.failure = None
        return ExecutionState.SUCCESS

    @staticmethod
    def _reject(attempt: _Attempt, failure: AttemptFailure, violations: List[str]) -> ExecutionState:
        attempt.failure = failure
        attempt.violations = violations
        return ExecutionState.RETRYING

    def _log(self, message: str) -> None:
        if self.event_logger is not None:
            self.event_logger(message)
