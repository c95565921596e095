from __future__ import annotations

import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from forge.schemas import Assertion, AssertionResult

_MISSING = object()
_PATH_TOKEN = re.compile(r"[^.\[\]]+")


def resolve_path(output: Any, path: str) -> Any:
    """Look up a dotted path (`a.b.0`, `a.b[0]`); returns the missing sentinel on any miss."""

    current = output
    for token in _PATH_TOKEN.findall(path or ""):
        if isinstance(current, Mapping):
            if token not in current:
                return _MISSING
            current = current[token]
        elif isinstance(current, list) and token.isdigit():
            index = int(token)
            if index >= len(current):
                return _MISSING
            current = current[index]
        else:
            return _MISSING
    return current


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def strict_equals(actual: Any, expected: Any) -> bool:
    """Equality that never equates booleans with numbers or a missing field with null."""

    if actual is _MISSING or expected is _MISSING:
        return actual is expected
    if isinstance(actual, bool) or isinstance(expected, bool):
        return isinstance(actual, bool) and isinstance(expected, bool) and actual == expected
    if _is_number(actual) and _is_number(expected):
        return actual == expected
    if type(actual) is not type(expected):
        return False
    return actual == expected


def _show(value: Any) -> str:
    if value is _MISSING:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _equal_to(field: str, actual: Any, expected: Any) -> Tuple[bool, str]:
    passed = strict_equals(actual, expected)
    if passed:
        return True, f'Field "{field}" correctly equals "{_show(expected)}".'
    return False, f'Expected field "{field}" to equal "{_show(expected)}", but got "{_show(actual)}".'


def _not_equal_to(field: str, actual: Any, expected: Any) -> Tuple[bool, str]:
    passed = not strict_equals(actual, expected)
    if passed:
        return True, f'Field "{field}" correctly does not equal "{_show(expected)}".'
    return False, f'Expected field "{field}" not to equal "{_show(expected)}", but it did.'


def _contains(field: str, actual: Any, expected: Any) -> Tuple[bool, str]:
    passed = isinstance(actual, str) and _show(expected) in actual
    if passed:
        return True, f'Field "{field}" correctly contains "{_show(expected)}".'
    return False, f'Expected field "{field}" to contain "{_show(expected)}", but it did not.'


def _greater_than(field: str, actual: Any, expected: Any) -> Tuple[bool, str]:
    passed = _is_number(actual) and _is_number(expected) and actual > expected
    if passed:
        return True, f'Field "{field}" ({_show(actual)}) is correctly greater than "{_show(expected)}".'
    return (
        False,
        f'Expected field "{field}" ({_show(actual)}) to be greater than "{_show(expected)}", but it was not.',
    )


def _less_than(field: str, actual: Any, expected: Any) -> Tuple[bool, str]:
    passed = _is_number(actual) and _is_number(expected) and actual < expected
    if passed:
        return True, f'Field "{field}" ({_show(actual)}) is correctly less than "{_show(expected)}".'
    return (
        False,
        f'Expected field "{field}" ({_show(actual)}) to be less than "{_show(expected)}", but it was not.',
    )


_PREDICATES: Dict[str, Callable[[str, Any, Any], Tuple[bool, str]]] = {
    "equalTo": _equal_to,
    "notEqualTo": _not_equal_to,
    "contains": _contains,
    "greaterThan": _greater_than,
    "lessThan": _less_than,
}


def evaluate_assertion(output: Mapping[str, Any], assertion: Assertion) -> AssertionResult:
    """Grade one assertion. Never raises; unknown types fail with a message."""

    actual = resolve_path(output, assertion.field)
    predicate = _PREDICATES.get(assertion.type)
    if predicate is None:
        passed, message = False, f'Unknown assertion type: "{assertion.type}".'
    else:
        passed, message = predicate(assertion.field, actual, assertion.expected_value)
    return AssertionResult(
        id=assertion.id,
        passed=passed,
        message=message,
        actual_value=None if actual is _MISSING else actual,
    )


def run_assertions(
    output: Mapping[str, Any],
    assertions: Optional[Sequence[Assertion]],
) -> List[AssertionResult]:
    """Grade every assertion independently, preserving input order."""

    return [evaluate_assertion(output, assertion) for assertion in assertions or ()]
