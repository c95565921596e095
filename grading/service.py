from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

import httpx

from forge.errors import ForgeError
from forge.prompt_executor import PromptExecutor
from forge.schemas import AssertionResult, Blueprint, ExecutionResult, PromptTest
from grading.assertion_engine import run_assertions


@dataclass
class TestRunOutcome:
    """Structured result of running one stored test."""

    __test__ = False

    test_id: str
    blueprint_id: str
    ok: bool
    passed: bool
    result: Optional[Dict[str, Any]] = None
    duration_ms: Optional[float] = None
    attempts: int = 0
    assertion_results: List[AssertionResult] = field(default_factory=list)
    error: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        """Render the response envelope used by callers of the test runner."""

        if not self.ok:
            return {"ok": False, "message": "Test execution failed", "error": self.error}
        return {
            "ok": True,
            "passed": self.passed,
            "result": self.result,
            "duration": self.duration_ms,
            "assertionResults": [r.to_payload() for r in self.assertion_results],
        }


def execute_blueprint(
    executor: PromptExecutor,
    blueprint: Blueprint,
    inputs: Mapping[str, Any],
) -> Dict[str, Any]:
    """Run one execution and wrap it in the `{ok, result, duration}` envelope."""

    try:
        execution: ExecutionResult = executor.execute(blueprint, inputs)
    except (ForgeError, httpx.HTTPError) as exc:
        return {"ok": False, "message": "Failed to execute", "error": str(exc)}
    return {
        "ok": True,
        "result": execution.data,
        "duration": execution.duration_ms,
        "attempts": execution.attempts,
    }


def run_prompt_test(
    executor: PromptExecutor,
    test: PromptTest,
    blueprint: Blueprint,
) -> TestRunOutcome:
    """Execute a stored test's inputs and grade the result against its assertions."""

    try:
        execution = executor.execute(blueprint, test.inputs)
    except (ForgeError, httpx.HTTPError) as exc:
        return TestRunOutcome(
            test_id=test.id,
            blueprint_id=blueprint.id,
            ok=False,
            passed=False,
            error=str(exc),
        )

    assertion_results = run_assertions(execution.data, test.assertions)
    return TestRunOutcome(
        test_id=test.id,
        blueprint_id=blueprint.id,
        ok=True,
        passed=all(r.passed for r in assertion_results),
        result=execution.data,
        duration_ms=execution.duration_ms,
        attempts=execution.attempts,
        assertion_results=assertion_results,
    )


def summarize_test_runs(outcomes: Iterable[TestRunOutcome]) -> Dict[str, int]:
    """Count passed, failed (assertion mismatch) and errored (execution failure) runs."""

    summary = {"total": 0, "passed": 0, "failed": 0, "errored": 0}
    for outcome in outcomes:
        summary["total"] += 1
        if not outcome.ok:
            summary["errored"] += 1
        elif outcome.passed:
            summary["passed"] += 1
        else:
            summary["failed"] += 1
    return summary
