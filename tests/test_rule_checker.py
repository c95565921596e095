from forge.rule_checker import check_rules, extract_forbidden_word
from forge.schemas import Rule


def _hard(value: str) -> Rule:
    return Rule(type="HARD", value=value)


def test_forbidden_word_extraction():
    assert extract_forbidden_word("NEVER mention GDPR") == "GDPR"
    assert extract_forbidden_word("Please NEVER mention Acme in output") == "Acme"
    assert extract_forbidden_word("Do not mention GDPR") is None


def test_hard_rule_violation_names_word_and_rule():
    violations = check_rules({"text": "This complies with GDPR."}, [_hard("NEVER mention GDPR")])
    assert len(violations) == 1
    assert "GDPR" in violations[0]
    assert "NEVER mention GDPR" in violations[0]


def test_match_is_case_sensitive():
    assert check_rules({"text": "gdpr is fine"}, [_hard("NEVER mention GDPR")]) == []


def test_keys_are_part_of_serialized_output():
    assert check_rules({"GDPR_ok": True}, [_hard("NEVER mention GDPR")]) != []


def test_soft_rules_never_checked():
    rules = [Rule(type="SOFT", value="NEVER mention GDPR")]
    assert check_rules({"text": "GDPR"}, rules) == []


def test_other_rule_shapes_are_skipped():
    rules = [_hard("Always answer in French"), _hard("Keep it short")]
    assert check_rules({"text": "anything at all"}, rules) == []


def test_one_violation_per_matching_rule_and_repeatable():
    rules = [_hard("NEVER mention GDPR"), _hard("NEVER mention HIPAA"), _hard("NEVER mention SOX")]
    output = {"text": "GDPR and HIPAA"}
    first = check_rules(output, rules)
    assert len(first) == 2
    assert check_rules(output, rules) == first


def test_forbidden_word_stops_at_first_non_ascii_letter():
    assert extract_forbidden_word("NEVER mention Müller") == "M"
    assert check_rules({"text": "Mayer"}, [_hard("NEVER mention Müller")]) != []
