"""Structured error types for dispatch and comparison failures."""

from typing import Any, Optional


class OpTreeError(Exception):
    """Base class for optree errors."""


class InvalidKeyError(OpTreeError, ValueError):
    """A table key that can never be stored (nil, NaN, unhashable)."""

    def __init__(self, key: Any, reason: str):
        super().__init__(f"invalid table key {key!r}: {reason}")
        self.key = key
        self.reason = reason


class UnknownOperationError(OpTreeError, ValueError):
    """A handler was registered under a name outside the operation vocabulary."""

    def __init__(self, name: str):
        super().__init__(f"unknown operation {name!r}")
        self.name = name


class DispatchError(OpTreeError, TypeError):
    """
    No handler (and no built-in operator) could carry out an operation.

    Messages follow the runtime's sentence form:
        unary:  "could not {verb} a {type} value"
        binary: "could not {verb} values of type {lhs} and {rhs}"
        call:   "could not call a {type} value"
    """

    def __init__(self, message: str, operation: str):
        super().__init__(message)
        self.operation = operation

    @classmethod
    def unary(cls, operation: str, verb: str, value: Any) -> "DispatchError":
        return cls(f"could not {verb} a {type_name(value)} value", operation)

    @classmethod
    def binary(cls, operation: str, verb: str, lhs: Any, rhs: Any) -> "DispatchError":
        return cls(
            f"could not {verb} values of type {type_name(lhs)} and {type_name(rhs)}",
            operation,
        )

    @classmethod
    def call(cls, value: Any) -> "DispatchError":
        return cls(f"could not call a {type_name(value)} value", "call")


class TreeMismatchError(OpTreeError, AssertionError):
    """
    A fixture comparison failed.

    Carries both sides already rendered, plus the first mismatch found,
    so the failure report needs no further access to the values.
    """

    def __init__(self, label: Optional[str], actual: str, expected: str, mismatch: Any):
        self.label = label
        self.actual = actual
        self.expected = expected
        self.mismatch = mismatch
        super().__init__(str(self))

    def __str__(self) -> str:
        head = f"{self.label}: trees differ" if self.label else "trees differ"
        return (
            f"{head} ({self.mismatch!r})\n"
            f"  actual:   {self.actual}\n"
            f"  expected: {self.expected}"
        )


def type_name(value: Any) -> str:
    return type(value).__name__
