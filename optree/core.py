"""
optree.core — Value classification and structural comparison
============================================================

§1  THE PROBLEM
───────────────

An operator-dispatch fixture produces a tree: every handler returns a
node `[tag, operand, ...]` whose operands may themselves be nodes.  To
grade the runtime that built it we need an oracle that says whether the
tree it produced has the shape we expected, regardless of which
container objects happen to hold it.

Object identity is useless for this (every node is a fresh Table) and
Python's `==` is worse: Tables may carry an eq handler that answers
whatever the fixture likes.  The oracle therefore compares STRUCTURE.


§2  THREE KINDS OF VALUE
────────────────────────

Every value is exactly one of:

    PRIMITIVE   nil, booleans, numbers, text, bytes, callable references,
                execution contexts (generators, coroutines), and any
                host object that is not a container
    SEQUENCE    a composite whose keys are exactly 1..N
    MAPPING     any other composite

A composite is a Table, a collections.abc.Mapping, or a non-text
collections.abc.Sequence (list, tuple, range).

DEFINITION (Classification):
    dense_len(v)  = greatest N such that keys 1..N are all present
    total_keys(v) = number of distinct keys

    classify(v) = SEQUENCE   iff   dense_len(v) == total_keys(v)

So a sequence with one extra named field is a MAPPING, not a
sequence-with-a-field.  The serializer in optree.formats uses this same
function, so the two can never disagree on a borderline shape.


§3  EQUALITY
────────────

    equal(a, b) = false                     if classify(a) ≠ classify(b)
    equal(a, b) = a == b                    for primitives
                                            (bool never equals a number)
    equal(a, b) = |a| = |b|  ∧  ∀i equal(a[i], b[i])      for sequences
    equal(a, b) = keys(a) = keys(b)  ∧  ∀k equal(a[k], b[k])  for mappings

Identical objects are always equal, which keeps NaN reflexive.

The walk is depth-first and left-to-right with an explicit stack, so
the first mismatch is well defined and there is no recursion limit:
chains of thousands of operations compare like any other tree.
"""

from collections.abc import Mapping as MappingABC
from collections.abc import Sequence as SequenceABC
from dataclasses import dataclass
from enum import Enum, auto
from functools import partial
from types import (
    AsyncGeneratorType,
    BuiltinFunctionType,
    BuiltinMethodType,
    CoroutineType,
    FunctionType,
    GeneratorType,
    MethodType,
)
from typing import Any, Iterator, Optional, Union

from .runtime import Table, key_token, rawcount, rawget, rawlen, rawpairs


# ═══════════════════════════════════════════════════════════════════
#  CLASSIFICATION
# ═══════════════════════════════════════════════════════════════════

class Kind(Enum):
    PRIMITIVE = auto()
    SEQUENCE = auto()
    MAPPING = auto()


PRIMITIVE_TYPES = frozenset({
    type(None),
    bool,
    int,
    float,
    complex,
    str,
    bytes,
    # callable references
    FunctionType,
    BuiltinFunctionType,
    BuiltinMethodType,
    MethodType,
    partial,
    # execution contexts
    GeneratorType,
    CoroutineType,
    AsyncGeneratorType,
})

_TEXT_TYPES = (str, bytes, bytearray, memoryview)


def _dense_run(tokens: set) -> int:
    dense = 0
    while (False, dense + 1) in tokens:
        dense += 1
    return dense


def shape(value: Any) -> Optional[tuple[int, int]]:
    """
    (dense_len, total_keys) of a composite, or None for a primitive.
    """
    if type(value) in PRIMITIVE_TYPES:
        return None
    if isinstance(value, Table):
        return rawlen(value), rawcount(value)
    if isinstance(value, MappingABC):
        # Python's own `in` would fold True onto 1 and may reject int keys.
        tokens = {key_token(k) for k in value}
        return _dense_run(tokens), len(tokens)
    if isinstance(value, SequenceABC) and not isinstance(value, _TEXT_TYPES):
        return len(value), len(value)
    return None


def classify(value: Any) -> Kind:
    dims = shape(value)
    if dims is None:
        return Kind.PRIMITIVE
    dense, total = dims
    return Kind.SEQUENCE if dense == total else Kind.MAPPING


def sequence_items(value: Any) -> list:
    """Elements of a sequence in index order."""
    if isinstance(value, Table):
        return [rawget(value, i) for i in range(1, rawlen(value) + 1)]
    if isinstance(value, MappingABC):
        entries = mapping_entries(value)
        return [entries[(False, i)][1] for i in range(1, len(entries) + 1)]
    return list(value)


def mapping_entries(value: Any) -> dict[tuple, tuple[Any, Any]]:
    """
    Entries of a composite keyed by normalized key: token → (key, value).

    Works for any composite; a sequence yields its 1-based positions.
    """
    if isinstance(value, Table):
        pairs: Any = rawpairs(value)
    elif isinstance(value, MappingABC):
        pairs = value.items()
    else:
        pairs = enumerate(value, 1)
    return {key_token(k): (k, v) for k, v in pairs}


def primitive_equal(a: Any, b: Any) -> bool:
    """
    Host value equality between two primitives.

    bool is a subclass of int in Python (True == 1), so the bool check
    comes first or booleans and numbers would be conflated.  A host
    object whose == raises, or answers something without a truth value
    (an elementwise array, say), is unequal.
    """
    if a is b:
        return True
    if (type(a) is bool) != (type(b) is bool):
        return False
    try:
        return bool(a == b)
    except (TypeError, ValueError):
        return False


# ═══════════════════════════════════════════════════════════════════
#  STRUCTURAL COMPARISON
# ═══════════════════════════════════════════════════════════════════

class MismatchReason(Enum):
    KIND = auto()       # primitive vs sequence vs mapping
    VALUE = auto()      # primitives differ
    LENGTH = auto()     # sequences of different length
    KEYS = auto()       # mappings with different key sets


@dataclass(frozen=True)
class Mismatch:
    """The first point where two trees disagree."""
    path: tuple[Union[int, Any], ...]   # 1-based indices / mapping keys
    reason: MismatchReason
    actual: Any
    expected: Any

    def __repr__(self) -> str:
        path_str = "/".join(str(p) for p in self.path) or "(root)"
        return f"{self.reason.name} mismatch at {path_str}"


def _walk(actual: Any, expected: Any) -> Iterator[Mismatch]:
    stack: list[tuple[tuple, Any, Any]] = [((), actual, expected)]
    while stack:
        path, a, b = stack.pop()
        if a is b:
            continue

        kind = classify(a)
        if kind is not classify(b):
            yield Mismatch(path, MismatchReason.KIND, a, b)
            return

        if kind is Kind.PRIMITIVE:
            if not primitive_equal(a, b):
                yield Mismatch(path, MismatchReason.VALUE, a, b)
                return
            continue

        if kind is Kind.SEQUENCE:
            items_a = sequence_items(a)
            items_b = sequence_items(b)
            if len(items_a) != len(items_b):
                yield Mismatch(path, MismatchReason.LENGTH, a, b)
                return
            # Reversed so that index 1 is popped first.
            for i in range(len(items_a), 0, -1):
                stack.append((path + (i,), items_a[i - 1], items_b[i - 1]))
            continue

        entries_a = mapping_entries(a)
        entries_b = mapping_entries(b)
        if entries_a.keys() != entries_b.keys():
            yield Mismatch(path, MismatchReason.KEYS, a, b)
            return
        pending = [
            (path + (key,), value, entries_b[token][1])
            for token, (key, value) in entries_a.items()
        ]
        stack.extend(reversed(pending))


def first_mismatch(actual: Any, expected: Any) -> Optional[Mismatch]:
    """
    Locate the first disagreement between two trees, depth-first and
    left-to-right, or None when they are structurally equal.
    """
    return next(_walk(actual, expected), None)


def equal(a: Any, b: Any) -> bool:
    """
    Structural equality.

    Never raises and never mutates its inputs; a mismatch is an ordinary
    False.  Two distinct containers with the same structure are equal,
    and a Table equals a plain list holding the same elements.
    """
    return first_mismatch(a, b) is None
