"""
optree.builders — Handlers that build tagged operation nodes.

Each handler records the operation it was asked to perform instead of
performing it:

    add(a, b)          → ["add", a, b]
    unm(a)             → ["unm", a]
    index(a, "b")      → ["index", a, "b"]
    call(a, 1, 2, 3)   → ["call", a, 1, 2, 3]

In FLAT mode the node is a bare Table: applying another operation to it
falls back to the other operand's handlers or fails.  In PROPAGATING
mode the node carries the very HandlerTable that built it, so chained
expressions keep dispatching and build arbitrarily deep trees.
"""

from enum import Enum, auto
from typing import Any, Callable, Iterable, Optional

from .runtime import VOCABULARY, HandlerTable, Table, operation


class BuilderMode(Enum):
    FLAT = auto()
    PROPAGATING = auto()


def node(tag: str, *operands: Any, metatable: Optional[HandlerTable] = None) -> Table:
    """
    An operation node: a sequence whose first element is the tag.

    A None operand is an absent key, so it leaves a hole and the node
    becomes a mapping: node("call", a, 1, None, 3) has keys 1, 2, 3, 5.
    """
    return Table((tag,) + operands, metatable=metatable)


def make_handler(name: str, wrap: Callable[[tuple], Any]) -> Callable[..., Any]:
    """
    Handler for one operation.  Its signature matches the operation's
    arity, so the node it builds always has 1 + arity elements (call
    adds one per argument).
    """
    op = operation(name)

    if op.variadic:
        def handler(callee, *args):
            return wrap((name, callee) + args)
    elif op.arity == 1:
        def handler(operand):
            return wrap((name, operand))
    else:
        def handler(lhs, rhs):
            return wrap((name, lhs, rhs))

    handler.__name__ = handler.__qualname__ = f"build_{name}"
    return handler


def flat_handlers(names: Iterable[str] = VOCABULARY) -> HandlerTable:
    return HandlerTable({name: make_handler(name, _flat) for name in names})


def propagating_handlers(names: Iterable[str] = VOCABULARY) -> HandlerTable:
    def wrap(parts: tuple) -> Table:
        # `handlers` is bound below, before any handler can run.
        return node(*parts, metatable=handlers)

    handlers = HandlerTable({name: make_handler(name, wrap) for name in names})
    return handlers


def build_handlers(mode: BuilderMode, names: Iterable[str] = VOCABULARY) -> HandlerTable:
    if mode is BuilderMode.PROPAGATING:
        return propagating_handlers(names)
    return flat_handlers(names)


def _flat(parts: tuple) -> Table:
    return node(*parts)
