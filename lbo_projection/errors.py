"""
errors.py
---------
Error taxonomy for the projection engine.

  InputValidationError : bad or missing caller input; aborts the run before
                         any statement is computed.
  ComputationWarning   : noteworthy but non-fatal condition, accumulated on
                         the result (low coverage, covenant breach, ...).
  ConsistencyError     : the engine produced statements that do not tie out.
                         An engine defect, never a user-input problem.
"""

from dataclasses import dataclass
from typing import Optional


class InputValidationError(ValueError):
    def __init__(self, messages: list[str]):
        self.messages = list(messages)
        super().__init__("; ".join(self.messages) or "invalid input")


class ConsistencyError(AssertionError):
    def __init__(self, issues: list[str]):
        self.issues = list(issues)
        super().__init__("; ".join(self.issues))


@dataclass(frozen=True)
class ComputationWarning:
    code: str
    message: str
    year: Optional[int] = None

    def __str__(self) -> str:
        prefix = f"Year {self.year}: " if self.year is not None else ""
        return f"{prefix}{self.message}"
