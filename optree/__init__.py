"""
optree — Operator-dispatch trees and their structural oracle
============================================================

A Table can carry a handler table; applying a Python operator to it
calls the matching handler instead of a built-in operation.  With
tree-building handlers attached, an expression records itself:

    >>> from optree import Table, propagating_handlers, equal
    >>> h = propagating_handlers()
    >>> a, b = Table(["a"], metatable=h), Table(["b"], metatable=h)
    >>> equal(-(a + b), ["unm", ["add", ["a"], ["b"]]])
    True

The package provides:
  • classify / equal / first_mismatch — shape-aware structural equality
    over primitives, sequences (dense 1..N keys) and mappings
  • render — human-readable rendering for diagnostics
  • flat_handlers / propagating_handlers — tree-building handler tables
  • the fixture catalogue and the checks that grade it
"""

from optree.core import (
    Kind,
    Mismatch,
    MismatchReason,
    PRIMITIVE_TYPES,
    classify,
    equal,
    first_mismatch,
)
from optree.errors import (
    DispatchError,
    InvalidKeyError,
    OpTreeError,
    TreeMismatchError,
    UnknownOperationError,
)
from optree.runtime import (
    OPERATIONS,
    VOCABULARY,
    HandlerTable,
    Results,
    Table,
    call,
    getmetatable,
    index,
    invoke,
    length,
    length_results,
    rawget,
    rawlen,
    with_metatable,
)
from optree.formats import from_json, from_python, render, to_json, to_python
from optree.builders import (
    BuilderMode,
    build_handlers,
    flat_handlers,
    node,
    propagating_handlers,
)
from optree.fixtures import Case, TruncationCase, all_cases, truncation_cases
from optree.oracle import check, check_truncation, run_cases

__version__ = "0.1.0"
__all__ = [
    "Kind", "Mismatch", "MismatchReason", "PRIMITIVE_TYPES",
    "classify", "equal", "first_mismatch",
    "OpTreeError", "DispatchError", "InvalidKeyError",
    "TreeMismatchError", "UnknownOperationError",
    "OPERATIONS", "VOCABULARY", "HandlerTable", "Results", "Table",
    "call", "getmetatable", "index", "invoke", "length", "length_results",
    "rawget", "rawlen", "with_metatable",
    "render", "from_python", "to_python", "from_json", "to_json",
    "BuilderMode", "node", "build_handlers", "flat_handlers", "propagating_handlers",
    "Case", "TruncationCase", "all_cases", "truncation_cases",
    "check", "check_truncation", "run_cases",
]
