"""Input and output validation errors."""

from __future__ import annotations

from typing import Any, List


class InputValidationError(ValueError):
    """Client input is missing or malformed."""


class OutputValidationError(ValueError):
    """Provider output was produced but rejected."""


class TruncatedOutputError(OutputValidationError):
    """Free text had no complete sentence left after truncation repair."""


class RepairError(OutputValidationError):
    """Structured text could not be coerced into the target schema."""

    def __init__(self, message: str, raw_text: str, attempts: List[Any] | None = None) -> None:
        super().__init__(message)
        self.raw_text = raw_text
        self.attempts = list(attempts or [])
