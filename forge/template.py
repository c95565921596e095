import re
from typing import Any, Mapping

PLACEHOLDER_PATTERN = re.compile(r"\{(\w+)\}", re.ASCII)


def substitute_inputs(template: str, inputs: Mapping[str, Any]) -> str:
    """Replace `{name}` placeholders with input values; unknown names stay verbatim."""

    def _replace(match: "re.Match[str]") -> str:
        key = match.group(1)
        if key not in inputs:
            return match.group(0)
        return str(inputs[key])

    return PLACEHOLDER_PATTERN.sub(_replace, template)


def template_placeholders(template: str) -> list:
    """List placeholder names in order of first appearance."""

    seen = []
    for name in PLACEHOLDER_PATTERN.findall(template):
        if name not in seen:
            seen.append(name)
    return seen
