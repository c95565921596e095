from forge.schemas import Assertion
from grading.assertion_engine import evaluate_assertion, resolve_path, run_assertions, strict_equals


def _assertion(kind: str, field: str, expected, assertion_id: str = "a1") -> Assertion:
    return Assertion(id=assertion_id, type=kind, field=field, expected_value=expected)


def test_equal_to_pass_and_fail_message_names_both_values():
    passed = evaluate_assertion({"score": 5}, _assertion("equalTo", "score", 5))
    assert passed.passed is True
    assert passed.actual_value == 5

    failed = evaluate_assertion({"score": 4}, _assertion("equalTo", "score", 5))
    assert failed.passed is False
    assert '"5"' in failed.message
    assert '"4"' in failed.message


def test_equality_is_strict_about_types():
    assert strict_equals(5, 5.0) is True
    assert strict_equals(1, True) is False
    assert strict_equals("5", 5) is False
    assert strict_equals(None, None) is True


def test_not_equal_to():
    assert evaluate_assertion({"label": "a"}, _assertion("notEqualTo", "label", "b")).passed is True
    result = evaluate_assertion({"label": "a"}, _assertion("notEqualTo", "label", "a"))
    assert result.passed is False
    assert "not to equal" in result.message


def test_contains_requires_text_actual():
    assert evaluate_assertion({"s": "seven years"}, _assertion("contains", "s", "seven")).passed is True
    assert evaluate_assertion({"s": "abc 12"}, _assertion("contains", "s", 12)).passed is True
    assert evaluate_assertion({"s": ["seven"]}, _assertion("contains", "s", "seven")).passed is False
    assert evaluate_assertion({"s": 7}, _assertion("contains", "s", 7)).passed is False


def test_numeric_comparisons_require_numbers():
    assert evaluate_assertion({"c": 0.9}, _assertion("greaterThan", "c", 0.5)).passed is True
    assert evaluate_assertion({"c": 0.5}, _assertion("greaterThan", "c", 0.5)).passed is False
    assert evaluate_assertion({"c": 0.1}, _assertion("lessThan", "c", 0.5)).passed is True
    assert evaluate_assertion({"c": "0.1"}, _assertion("lessThan", "c", 0.5)).passed is False
    assert evaluate_assertion({"c": 0.1}, _assertion("lessThan", "c", "0.5")).passed is False
    assert evaluate_assertion({"c": True}, _assertion("greaterThan", "c", 0)).passed is False


def test_missing_path_is_a_failed_result_not_an_error():
    result = evaluate_assertion({"a": {}}, _assertion("equalTo", "a.b.c", 1))
    assert result.passed is False
    assert result.actual_value is None
    assert "undefined" in result.message


def test_missing_field_does_not_equal_null():
    assert evaluate_assertion({}, _assertion("equalTo", "x", None)).passed is False
    assert evaluate_assertion({"x": None}, _assertion("equalTo", "x", None)).passed is True


def test_dotted_and_indexed_paths():
    output = {"items": [{"name": "first"}, {"name": "second"}], "meta": {"count": 2}}
    assert resolve_path(output, "meta.count") == 2
    assert resolve_path(output, "items.1.name") == "second"
    assert resolve_path(output, "items[0].name") == "first"


def test_unknown_type_fails_without_halting_others():
    assertions = [
        _assertion("matches", "score", 5, "first"),
        _assertion("equalTo", "score", 5, "second"),
    ]
    results = run_assertions({"score": 5}, assertions)
    assert [r.id for r in results] == ["first", "second"]
    assert results[0].passed is False
    assert results[0].message == 'Unknown assertion type: "matches".'
    assert results[1].passed is True


def test_result_count_matches_assertions_and_order_is_preserved():
    assertions = [_assertion("equalTo", "k", i, f"id-{i}") for i in range(5)]
    results = run_assertions({"k": 2}, assertions)
    assert len(results) == len(assertions)
    assert [r.id for r in results] == [a.id for a in assertions]
    assert [r.passed for r in results] == [False, False, True, False, False]


def test_no_assertions_yields_no_results():
    assert run_assertions({"k": 1}, None) == []
    assert run_assertions({"k": 1}, []) == []


def test_payload_uses_camel_case_actual_value():
    payload = evaluate_assertion({"k": 1}, _assertion("equalTo", "k", 1)).to_payload()
    assert payload == {"id": "a1", "passed": True, "message": 'Field "k" correctly equals "1".', "actualValue": 1}
