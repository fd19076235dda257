"""
Exception types shared across the engine and the trainer.
"""
from __future__ import annotations


class EvoCheckersError(Exception):
    """Base class for all evocheckers errors."""


class EvaluatorFormatError(EvoCheckersError, ValueError):
    """A persisted evaluator record is truncated or malformed."""


class ArchitectureMismatchError(EvaluatorFormatError):
    """
    Stored or supplied layer sizes, or parameter array shapes, disagree with
    the expected architecture.
    """

    def __init__(self, expected, found) -> None:
        self.expected = list(expected)
        self.found = list(found)
        super().__init__(
            f"architecture mismatch: expected {self.expected}, found {self.found}"
        )
