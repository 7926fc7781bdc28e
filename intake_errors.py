"""Structured failures raised by the series intake pipeline."""

from typing import Dict, Optional


class IntakeError(ValueError):
    """Base class for intake failures.

    ``kind`` is a stable identifier the UI can switch on and ``context`` holds
    the values (threshold, column count, ...) needed to explain the failure.
    """

    kind = "IntakeError"

    def __init__(self, message: str, context: Optional[Dict[str, object]] = None):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, object] = dict(context or {})

    def __str__(self) -> str:
        return self.message


class EmptyDatasetError(IntakeError):
    kind = "EmptyDataset"


class NoDateColumnError(IntakeError):
    kind = "NoDateColumn"


class NoMetricColumnError(IntakeError):
    kind = "NoMetricColumn"


class InvalidOverrideError(IntakeError):
    kind = "InvalidOverride"


class EmptyResultError(IntakeError):
    kind = "EmptyResult"


__all__ = [
    "IntakeError",
    "EmptyDatasetError",
    "NoDateColumnError",
    "NoMetricColumnError",
    "InvalidOverrideError",
    "EmptyResultError",
]
