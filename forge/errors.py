from __future__ import annotations

from enum import Enum
from typing import List, Sequence


class AttemptFailure(str, Enum):
    """Retryable outcomes of one attempt. Logged, never raised."""

    PARSE = "parse_failure"
    SCHEMA = "schema_violation"
    RULE = "rule_violation"


class ForgeError(RuntimeError):
    """Root of errors that cross the executor boundary."""


class TransportFailure(ForgeError):
    """The model provider returned no usable content. Not retried."""


class RetriesExhausted(ForgeError):
    """Attempt budget consumed without a compliant result."""

    def __init__(self, attempts: int, violations: Sequence[str]) -> None:
        self.attempts = attempts
        self.violations: List[str] = list(violations)
        super().__init__(
            f"Failed to produce a valid response after {attempts} attempts. "
            f"Last violations: {', '.join(self.violations)}"
        )
