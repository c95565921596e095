import json
import re
from typing import Any, Iterable, List, Optional

from forge.schemas import Rule

# The only rule shape enforced mechanically. Anything else is prompt text only.
FORBIDDEN_WORD_PATTERN = re.compile(r"NEVER mention (\w+)", re.ASCII)


def extract_forbidden_word(rule_value: str) -> Optional[str]:
    """Return the word a `NEVER mention <word>` rule forbids, if the rule has that shape."""

    match = FORBIDDEN_WORD_PATTERN.search(rule_value)
    return match.group(1) if match else None


def serialize_output(output: Any) -> str:
    """Flatten an output into compact JSON text for substring checks."""

    return json.dumps(output, ensure_ascii=False, separators=(",", ":"), default=str)


def check_rules(output: Any, rules: Iterable[Rule]) -> List[str]:
    """Report HARD-rule violations found in an output; SOFT rules are skipped."""

    violations: List[str] = []
    flattened: Optional[str] = None
    for rule in rules:
        if rule.type != "HARD":
            continue
        forbidden_word = extract_forbidden_word(rule.value)
        if forbidden_word is None:
            continue
        if flattened is None:
            flattened = serialize_output(output)
        if forbidden_word in flattened:
            violations.append(
                f'Violation: Mentioned forbidden word "{forbidden_word}" (rule: {rule.value}).'
            )
    return violations
