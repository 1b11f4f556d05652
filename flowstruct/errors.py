"""Exception hierarchy shared by every structuring stage."""

from __future__ import annotations

from typing import Optional


class StructuringError(Exception):
    """Base class for failures raised while structuring a function."""

    def __init__(self, message: str, *, function: Optional[str] = None) -> None:
        super().__init__(message)
        self.function = function

    def __str__(self) -> str:
        text = super().__str__()
        if self.function:
            return f"{self.function}: {text}"
        return text


class MalformedFunctionError(StructuringError, ValueError):
    """The input function violates a structural precondition."""


class UnsupportedTerminatorError(MalformedFunctionError):
    """A block ends in a terminator whose edge shape is unknown."""


class UnreachableEntryError(MalformedFunctionError):
    """The entry block cannot reach any other block of the function."""


class InternalInvariantError(StructuringError, RuntimeError):
    """An analysis invariant failed; indicates a bug rather than bad input."""


class AmbiguousMergeError(InternalInvariantError):
    """Two distinct merge candidates share the same reverse postorder index."""


class OverlapConflictError(InternalInvariantError):
    """Two primitives cover partially overlapping sets of blocks."""


class IncompleteCoverageError(InternalInvariantError):
    """The group tree does not cover every block exactly once."""


__all__ = [
    "StructuringError",
    "MalformedFunctionError",
    "UnsupportedTerminatorError",
    "UnreachableEntryError",
    "InternalInvariantError",
    "AmbiguousMergeError",
    "OverlapConflictError",
    "IncompleteCoverageError",
]
