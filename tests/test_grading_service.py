from __future__ import annotations

from typing import List, Optional

import httpx

from forge.model_backend import GenerationResult
from forge.prompt_executor import PromptExecutor
from forge.schemas import Blueprint, PromptTest
from grading.service import execute_blueprint, run_prompt_test, summarize_test_runs


class _SequenceBackend:
    def __init__(self, contents: List[Optional[str]]) -> None:
        self._contents = list(contents)

    def generate(self, messages, decoding=None) -> GenerationResult:  # noqa: ANN001
        return GenerationResult(content=self._contents.pop(0))


class _FailingBackend:
    def generate(self, messages, decoding=None) -> GenerationResult:  # noqa: ANN001
        request = httpx.Request("POST", "https://groq.test/chat/completions")
        raise httpx.ConnectError("connection refused", request=request)


def _blueprint() -> Blueprint:
    return Blueprint.model_validate(
        {
            "id": "bp-1",
            "name": "scorer",
            "role": "analyst",
            "taskTemplate": "Score {thing}",
            "outputSchema": {"score": "number", "label": "string"},
        }
    )


def _test(assertions) -> PromptTest:
    return PromptTest.model_validate({"id": "t-1", "inputs": {"thing": "x"}, "assertions": assertions})


def _executor(backend) -> PromptExecutor:  # noqa: ANN001
    return PromptExecutor(backend=backend)


def test_execute_envelope_on_success():
    payload = execute_blueprint(_executor(_SequenceBackend(['{"score": 5, "label": "ok"}'])), _blueprint(), {})
    assert payload["ok"] is True
    assert payload["result"] == {"score": 5, "label": "ok"}
    assert payload["attempts"] == 1
    assert isinstance(payload["duration"], float)


def test_execute_envelope_on_exhaustion():
    payload = execute_blueprint(_executor(_SequenceBackend(["x", "y", "z"])), _blueprint(), {})
    assert payload == {
        "ok": False,
        "message": "Failed to execute",
        "error": payload["error"],
    }
    assert "after 3 attempts" in payload["error"]


def test_execute_envelope_on_transport_error():
    payload = execute_blueprint(_executor(_FailingBackend()), _blueprint(), {})
    assert payload["ok"] is False
    assert "connection refused" in payload["error"]


def test_run_prompt_test_grades_assertions():
    test = _test(
        [
            {"id": "a-1", "type": "equalTo", "field": "score", "expectedValue": 5},
            {"id": "a-2", "type": "contains", "field": "label", "expectedValue": "nope"},
        ]
    )
    outcome = run_prompt_test(_executor(_SequenceBackend(['{"score": 5, "label": "ok"}'])), test, _blueprint())
    assert outcome.ok is True
    assert outcome.passed is False
    assert [r.passed for r in outcome.assertion_results] == [True, False]

    payload = outcome.to_payload()
    assert payload["ok"] is True
    assert payload["passed"] is False
    assert payload["result"] == {"score": 5, "label": "ok"}
    assert [r["id"] for r in payload["assertionResults"]] == ["a-1", "a-2"]


def test_test_without_assertions_passes():
    outcome = run_prompt_test(_executor(_SequenceBackend(['{"score": 1, "label": "a"}'])), _test(None), _blueprint())
    assert outcome.passed is True
    assert outcome.assertion_results == []


def test_execution_failure_becomes_error_outcome():
    outcome = run_prompt_test(_executor(_SequenceBackend([None])), _test([]), _blueprint())
    assert outcome.ok is False
    assert outcome.passed is False
    assert outcome.to_payload() == {
        "ok": False,
        "message": "Test execution failed",
        "error": "No response from LLM",
    }


def test_summary_counts():
    passing = run_prompt_test(_executor(_SequenceBackend(['{"score": 1, "label": "a"}'])), _test(None), _blueprint())
    failing = run_prompt_test(
        _executor(_SequenceBackend(['{"score": 1, "label": "a"}'])),
        _test([{"id": "a", "type": "equalTo", "field": "score", "expectedValue": 2}]),
        _blueprint(),
    )
    errored = run_prompt_test(_executor(_SequenceBackend([None])), _test(None), _blueprint())
    assert summarize_test_runs([passing, failing, errored]) == {
        "total": 3,
        "passed": 1,
        "failed": 1,
        "errored": 1,
    }
