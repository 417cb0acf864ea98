"""
optree.fixtures — The catalogue of dispatch fixtures.

Each fixture names its leaves, the handler table to attach to them, the
expression to apply, and the tree that expression must produce.  Leaves
and handler tables are created fresh on every evaluation, so no case
can observe another's values.

The harness only builds values; checking them is the driver's job
(optree.oracle or a test).
"""

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from .builders import BuilderMode, build_handlers
from .runtime import VOCABULARY, HandlerTable, Results, Table, length


def leaf(name: str, handlers: Optional[HandlerTable] = None) -> Table:
    """A symbolic leaf: the single-element sequence [name]."""
    return Table([name], metatable=handlers)


def leaves(names: Iterable[str], handlers: Optional[HandlerTable] = None) -> tuple[Table, ...]:
    return tuple(leaf(name, handlers) for name in names)


def operation_surface() -> tuple[str, ...]:
    """Every operation a complete fixture run must exercise."""
    return VOCABULARY


@dataclass(frozen=True)
class Case:
    """
    One expression and the operation tree it must build.

    `expression` receives the leaves named by `names`, in order.
    `exercises` names the vocabulary operation the case is about, when
    there is a single one.
    """
    name: str
    expression: Callable[..., Any]
    expected: Any
    mode: BuilderMode = BuilderMode.PROPAGATING
    operations: tuple[str, ...] = VOCABULARY
    names: tuple[str, ...] = ("a", "b")
    exercises: Optional[str] = None

    def handlers(self) -> HandlerTable:
        return build_handlers(self.mode, self.operations)

    def evaluate(self) -> Any:
        return self.expression(*leaves(self.names, self.handlers()))


@dataclass(frozen=True)
class TruncationCase:
    """
    A leaf whose length handler returns several results.

    A single-value context must see only the first of them, and counting
    the results of that context must give exactly one.
    """
    name: str
    results: tuple

    @property
    def expected_first(self) -> Any:
        return self.results[0] if self.results else None

    @property
    def expected_count(self) -> int:
        return 1

    def expected_unpack(self, count: int) -> tuple:
        return (self.expected_first,) + (None,) * (count - 1)

    def build(self) -> Table:
        results = self.results
        return leaf("a", HandlerTable(len=lambda value: Results(*results)))


# ═══════════════════════════════════════════════════════════════════
#  CATALOGUE
# ═══════════════════════════════════════════════════════════════════

_ARITHMETIC = ("add", "sub", "mul", "div")

A = ("a",)
B = ("b",)


def arithmetic_cases() -> list[Case]:
    """Flat add/sub/mul/div, relying on Python's operator precedence."""
    flat = dict(mode=BuilderMode.FLAT, operations=_ARITHMETIC, names=("a", "b", "c"))
    return [
        Case(
            "mixed precedence",
            lambda a, b, c: a + b * c - a,
            ["sub", ["add", ["a"], ["mul", ["b"], ["c"]]], ["a"]],
            **flat,
        ),
        Case("division", lambda a, b, c: c / a, ["div", ["c"], ["a"]], exercises="div", **flat),
        Case("self product", lambda a, b, c: a * a, ["mul", ["a"], ["a"]], exercises="mul", **flat),
    ]


def propagating_cases() -> list[Case]:
    """Every vocabulary operation, applied once."""
    return [
        Case("add", lambda a, b: a + b, ["add", A, B], exercises="add"),
        Case("sub", lambda a, b: a - b, ["sub", A, B], exercises="sub"),
        Case("mul", lambda a, b: a * b, ["mul", A, B], exercises="mul"),
        Case("div", lambda a, b: a / b, ["div", A, B], exercises="div"),
        Case("mod", lambda a, b: a % b, ["mod", A, B], exercises="mod"),
        Case("pow", lambda a, b: a ** b, ["pow", A, B], exercises="pow"),
        Case("unm", lambda a, b: -a, ["unm", A], exercises="unm"),
        Case("idiv", lambda a, b: a // b, ["idiv", A, B], exercises="idiv"),
        Case("band", lambda a, b: a & b, ["band", A, B], exercises="band"),
        Case("bor", lambda a, b: a | b, ["bor", A, B], exercises="bor"),
        Case("bxor", lambda a, b: a ^ b, ["bxor", A, B], exercises="bxor"),
        Case("bnot", lambda a, b: ~a, ["bnot", A], exercises="bnot"),
        Case("shl", lambda a, b: a << b, ["shl", A, B], exercises="shl"),
        Case("shr", lambda a, b: a >> b, ["shr", A, B], exercises="shr"),
        Case("len", lambda a, b: length(a), ["len", A], exercises="len"),
        Case("index", lambda a, b: a.b, ["index", A, "b"], exercises="index"),
        Case("call", lambda a, b: a(), ["call", A], exercises="call"),
        Case("call with arguments", lambda a, b: a(1, 2, 3), ["call", A, 1, 2, 3], exercises="call"),
    ]


def chained_cases() -> list[Case]:
    """Propagating compositions; every result must stay dispatchable."""
    return [
        Case("negated sum", lambda a, b: -(a + b), ["unm", ["add", A, B]]),
        Case(
            "product of sum and difference",
            lambda a, b: (a + b) * (a - b),
            ["mul", ["add", A, B], ["sub", A, B]],
        ),
        Case(
            "length of indexed call",
            lambda a, b: length(a(1).x),
            ["len", ["index", ["call", A, 1], "x"]],
        ),
        Case(
            "power of floor quotient",
            lambda a, b: (a // b) ** -a,
            ["pow", ["idiv", A, B], ["unm", A]],
        ),
        Case(
            "shifted masks",
            lambda a, b: (a & b) << (~a | b),
            ["shl", ["band", A, B], ["bor", ["bnot", A], B]],
        ),
        Case("numbers on either side", lambda a, b: 2 * a + 1, ["add", ["mul", 2, A], 1]),
        Case("calling a node", lambda a, b: (a + b)(b), ["call", ["add", A, B], B]),
    ]


def truncation_cases() -> list[TruncationCase]:
    return [
        TruncationCase("three results", (5, 6, 7)),
        TruncationCase("one result", (5,)),
        TruncationCase("no results", ()),
    ]


def all_cases() -> list[Case]:
    return arithmetic_cases() + propagating_cases() + chained_cases()
