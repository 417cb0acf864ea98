"""
optree.runtime — Tables, handler tables and operator dispatch
=============================================================

This module is the host-runtime side of the picture: the opaque container
value (`Table`), the per-operation handler table it may carry, and the
adapter that maps Python's operator protocol onto those handlers.

    >>> from optree.builders import propagating_handlers
    >>> a = Table(["a"], metatable=propagating_handlers())
    >>> b = Table(["b"], metatable=propagating_handlers())
    >>> a + b            # handled by the "add" entry of a's handler table
    Table(['add', Table(['a']), Table(['b'])])

BINDING RULE
────────────
    binary   the left operand's handler wins, else the right operand's;
             the handler always receives (lhs, rhs) in source order, even
             when Python reached it through a reflected dunder (1 + t)
    unary    the operand's own handler receives the operand
    call     the callee's handler receives (callee, *args)
    index    raw hit first, then the handler with (table, key)

Every handler result is adjusted to exactly one value.  A handler that
wants to return several values returns a `Results`; `invoke` exposes the
unadjusted results, `length_results` the adjusted ones.

Raw access (`rawget`, `rawlen`, `rawpairs`, `rawequal`, `getmetatable`) is
provided as module functions rather than Table methods: every attribute
name on a Table is an index operation.
"""

import logging
import math
import operator
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Iterable, Iterator, Optional

from .errors import DispatchError, InvalidKeyError, UnknownOperationError


log = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
#  OPERATION VOCABULARY
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class Operation:
    """
    One dispatchable operation.

    `arity` counts the operands every handler receives; a variadic
    operation (call) receives `arity` operands plus any extra arguments.
    `builtin` is the Python operator used when no Table is involved.
    """
    name: str
    arity: int
    verb: str
    form: str
    variadic: bool = False
    builtin: Optional[Callable[..., Any]] = None


_CORE_OPERATIONS = (
    Operation("add", 2, "add", "a + b", builtin=operator.add),
    Operation("sub", 2, "subtract", "a - b", builtin=operator.sub),
    Operation("mul", 2, "multiply", "a * b", builtin=operator.mul),
    Operation("div", 2, "divide", "a / b", builtin=operator.truediv),
    Operation("mod", 2, "take modulus of", "a % b", builtin=operator.mod),
    Operation("pow", 2, "exponentiate", "a ** b", builtin=operator.pow),
    Operation("unm", 1, "negate", "-a", builtin=operator.neg),
    Operation("idiv", 2, "flooring divide", "a // b", builtin=operator.floordiv),
    Operation("band", 2, "binary and", "a & b", builtin=operator.and_),
    Operation("bor", 2, "binary or", "a | b", builtin=operator.or_),
    Operation("bxor", 2, "binary xor", "a ^ b", builtin=operator.xor),
    Operation("bnot", 1, "binary negate", "~a", builtin=operator.invert),
    Operation("shl", 2, "left shift", "a << b", builtin=operator.lshift),
    Operation("shr", 2, "right shift", "a >> b", builtin=operator.rshift),
    Operation("len", 1, "determine length of", "length(a)"),
    Operation("index", 2, "index into", "a.key"),
    Operation("call", 1, "call", "a(*args)", variadic=True),
)

_EXTENDED_OPERATIONS = (
    Operation("eq", 2, "compare equality of", "a == b"),
    Operation("tostring", 1, "convert to string", "str(a)"),
)

OPERATIONS: Mapping[str, Operation] = MappingProxyType(
    {op.name: op for op in _CORE_OPERATIONS + _EXTENDED_OPERATIONS}
)

# The operations every fixture exercises, in canonical order.
VOCABULARY: tuple[str, ...] = tuple(op.name for op in _CORE_OPERATIONS)
EXTENDED: tuple[str, ...] = tuple(op.name for op in _EXTENDED_OPERATIONS)

BINARY: tuple[str, ...] = tuple(
    op.name for op in _CORE_OPERATIONS if op.arity == 2 and op.builtin is not None
)
UNARY: tuple[str, ...] = tuple(
    op.name for op in _CORE_OPERATIONS if op.arity == 1 and op.builtin is not None
)


def operation(name: str) -> Operation:
    try:
        return OPERATIONS[name]
    except KeyError:
        raise UnknownOperationError(name) from None


# ═══════════════════════════════════════════════════════════════════
#  MULTIPLE RESULTS
# ═══════════════════════════════════════════════════════════════════

class Results(tuple):
    """
    The ordered results of one handler call.

    Python functions return one value; a handler returns `Results(5, 6, 7)`
    to produce three.  Every expression context takes exactly one of
    them, so the truncation is an explicit projection:

        Results(5, 6, 7).first()      → 5
        Results(5, 6, 7).adjust(1)    → Results(5)
        Results(5).unpack(3)          → (5, None, None)
    """

    def __new__(cls, *values: Any) -> "Results":
        return super().__new__(cls, values)

    def __getnewargs__(self) -> tuple:
        return tuple(self)

    @property
    def count(self) -> int:
        return len(self)

    def first(self) -> Any:
        return self[0] if self else None

    def adjust(self, count: int) -> "Results":
        """Truncate to `count` values, padding with None when short."""
        kept = tuple(self)[:count]
        return Results(*kept, *([None] * (count - len(kept))))

    def unpack(self, count: int) -> tuple:
        return tuple(self.adjust(count))

    def __repr__(self) -> str:
        return f"Results({', '.join(repr(v) for v in self)})"


def single(result: Any) -> Any:
    """Adjust a handler result to one value."""
    if isinstance(result, Results):
        return result.first()
    return result


def results_of(result: Any) -> Results:
    if isinstance(result, Results):
        return result
    return Results(result)


# ═══════════════════════════════════════════════════════════════════
#  HANDLER TABLE
# ═══════════════════════════════════════════════════════════════════

class HandlerTable(Mapping):
    """
    Immutable mapping from operation name to handler.

    A handler is any callable, or a Table (index chains into it, call
    dispatches through its own call handler).  None entries are dropped,
    so HandlerTable(add=None) handles nothing.
    """
    __slots__ = ("_handlers",)

    def __init__(self, handlers: Optional[Mapping[str, Any]] = None, **named: Any):
        merged: dict[str, Any] = {}
        for source in (handlers or {}, named):
            for name, handler in source.items():
                if name not in OPERATIONS:
                    raise UnknownOperationError(name)
                if handler is not None:
                    merged[name] = handler
        self._handlers = merged

    def __getitem__(self, name: str) -> Any:
        return self._handlers[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)

    def __repr__(self) -> str:
        return f"HandlerTable({sorted(self._handlers)})"


def _as_handlers(metatable: Any) -> Optional[HandlerTable]:
    if metatable is None or isinstance(metatable, HandlerTable):
        return metatable
    return HandlerTable(metatable)


# ═══════════════════════════════════════════════════════════════════
#  TABLE KEYS
# ═══════════════════════════════════════════════════════════════════

def key_token(key: Any) -> tuple:
    """
    Normalized identity of a key.

    Integral floats collapse onto ints (2.0 and 2 are one key) while
    booleans stay apart from 0 and 1, which Python's own hashing merges.
    """
    if type(key) is float and key.is_integer():
        key = int(key)
    return (type(key) is bool, key)


def _checked_key(key: Any) -> Any:
    if key is None:
        raise InvalidKeyError(key, "key is nil")
    if isinstance(key, float) and math.isnan(key):
        raise InvalidKeyError(key, "key is NaN")
    try:
        hash(key)
    except TypeError:
        raise InvalidKeyError(key, "key is unhashable") from None
    if type(key) is float and key.is_integer():
        return int(key)
    return key


# ═══════════════════════════════════════════════════════════════════
#  TABLE
# ═══════════════════════════════════════════════════════════════════

def _binary(name: str):
    def forward(self, other):
        return arith(name, self, other)

    def reflected(self, other):
        return arith(name, other, self)

    return forward, reflected


def _unary(name: str):
    def method(self):
        return unary(name, self)

    return method


class Table:
    """
    The opaque container value.

    Positional items occupy keys 1..n; `fields` adds any other keys.  A
    None item or value means "no such key", so Table([1, None, 3]) has
    keys 1 and 3 only.  The table never changes after construction.

    With a handler table attached, Python operators on the table go
    through `arith`/`unary`/`index`/`call`.  `len()` and iteration stay
    raw (border length and dense values); `length()` dispatches.
    """
    __slots__ = ("_slots", "_border", "_metatable")

    def __init__(self, items: Iterable[Any] = (), fields: Any = None,
                 metatable: Any = None):
        slots: dict[tuple, tuple[Any, Any]] = {}
        for position, value in enumerate(items, 1):
            if value is not None:
                slots[(False, position)] = (position, value)
        if fields:
            pairs = fields.items() if isinstance(fields, Mapping) else fields
            for key, value in pairs:
                key = _checked_key(key)
                token = key_token(key)
                if value is None:
                    slots.pop(token, None)
                else:
                    slots[token] = (key, value)

        border = 0
        while (False, border + 1) in slots:
            border += 1

        self._slots = slots
        self._border = border
        self._metatable = _as_handlers(metatable)

    __add__, __radd__ = _binary("add")
    __sub__, __rsub__ = _binary("sub")
    __mul__, __rmul__ = _binary("mul")
    __truediv__, __rtruediv__ = _binary("div")
    __mod__, __rmod__ = _binary("mod")
    __pow__, __rpow__ = _binary("pow")
    __floordiv__, __rfloordiv__ = _binary("idiv")
    __and__, __rand__ = _binary("band")
    __or__, __ror__ = _binary("bor")
    __xor__, __rxor__ = _binary("bxor")
    __lshift__, __rlshift__ = _binary("shl")
    __rshift__, __rrshift__ = _binary("shr")
    __neg__ = _unary("unm")
    __invert__ = _unary("bnot")

    def __getitem__(self, key: Any) -> Any:
        return index(self, key)

    def __getattr__(self, name: str) -> Any:
        # Only reached for names that are not real attributes.
        if name.startswith("_"):
            raise AttributeError(name)
        return index(self, name)

    def __call__(self, *args: Any) -> Any:
        return call(self, *args)

    def __eq__(self, other: Any) -> Any:
        if not isinstance(other, Table):
            return NotImplemented
        return equals(self, other)

    __hash__ = object.__hash__

    def __len__(self) -> int:
        return self._border

    def __iter__(self) -> Iterator[Any]:
        for position in range(1, self._border + 1):
            yield self._slots[(False, position)][1]

    def __bool__(self) -> bool:
        return True

    def __str__(self) -> str:
        text = tostring(self)
        return text if isinstance(text, str) else str(text)

    def __repr__(self) -> str:
        items = list(self)
        fields = {
            key: value for token, (key, value) in self._slots.items()
            if not _in_border(token, self._border)
        }
        if fields:
            return f"Table({items!r}, fields={fields!r})"
        return f"Table({items!r})"


def _in_border(token: tuple, border: int) -> bool:
    is_bool, key = token
    return not is_bool and type(key) is int and 1 <= key <= border


# ═══════════════════════════════════════════════════════════════════
#  RAW ACCESS
# ═══════════════════════════════════════════════════════════════════

def rawget(table: Table, key: Any) -> Any:
    """Read a key without consulting handlers.  Missing → None."""
    try:
        entry = table._slots.get(key_token(key))
    except TypeError:
        return None
    return None if entry is None else entry[1]


def rawlen(table: Table) -> int:
    """Greatest N such that keys 1..N are all present."""
    return table._border


def rawpairs(table: Table) -> Iterator[tuple[Any, Any]]:
    """All (key, value) pairs in insertion order."""
    for key, value in table._slots.values():
        yield key, value


def rawcount(table: Table) -> int:
    """Total number of keys."""
    return len(table._slots)


def rawequal(a: Any, b: Any) -> bool:
    return a is b


def getmetatable(value: Any) -> Optional[HandlerTable]:
    if isinstance(value, Table):
        return value._metatable
    return None


def with_metatable(table: Table, metatable: Any) -> Table:
    """A new Table with the same raw contents and a different handler table."""
    return Table(fields=rawpairs(table), metatable=metatable)


# ═══════════════════════════════════════════════════════════════════
#  DISPATCH
# ═══════════════════════════════════════════════════════════════════

def handler_for(value: Any, name: str) -> Any:
    handlers = getmetatable(value)
    if handlers is None:
        return None
    return handlers.get(name)


def _raw_call(value: Any, args: tuple) -> Any:
    if isinstance(value, Table):
        handler = handler_for(value, "call")
        if handler is None:
            raise DispatchError.call(value)
        # The callee is always the handler's first argument.
        return _raw_call(handler, (value,) + args)
    if callable(value):
        return value(*args)
    raise DispatchError.call(value)


def _dispatch(name: str, handler: Any, operands: tuple) -> Any:
    log.debug("%s dispatched to %r", name, handler)
    return _raw_call(handler, operands)


def _find_handler(op: Operation, operands: tuple) -> Any:
    if not operands:
        return None
    handler = handler_for(operands[0], op.name)
    if handler is None and op.name in BINARY + ("eq",) and len(operands) > 1:
        handler = handler_for(operands[1], op.name)
    return handler


def invoke(name: str, *operands: Any) -> Any:
    """
    Call the handler bound to `name` for these operands and return its
    raw, unadjusted result (possibly a multi-value Results).
    """
    op = operation(name)
    handler = _find_handler(op, operands)
    if handler is None:
        if op.name == "call":
            raise DispatchError.call(operands[0] if operands else None)
        if op.arity == 2 and op.name != "index" and len(operands) > 1:
            raise DispatchError.binary(op.name, op.verb, operands[0], operands[1])
        raise DispatchError.unary(op.name, op.verb, operands[0] if operands else None)
    return _dispatch(op.name, handler, operands)


def arith(name: str, lhs: Any, rhs: Any) -> Any:
    """Apply a binary arithmetic or bitwise operation."""
    if name not in BINARY:
        raise UnknownOperationError(name)
    op = OPERATIONS[name]

    handler = handler_for(lhs, name)
    if handler is None:
        handler = handler_for(rhs, name)
    if handler is not None:
        return single(_dispatch(name, handler, (lhs, rhs)))

    if isinstance(lhs, Table) or isinstance(rhs, Table):
        raise DispatchError.binary(name, op.verb, lhs, rhs)
    try:
        return op.builtin(lhs, rhs)
    except TypeError as exc:
        raise DispatchError.binary(name, op.verb, lhs, rhs) from exc


def unary(name: str, operand: Any) -> Any:
    """Apply unm or bnot."""
    if name not in UNARY:
        raise UnknownOperationError(name)
    op = OPERATIONS[name]

    handler = handler_for(operand, name)
    if handler is not None:
        return single(_dispatch(name, handler, (operand,)))

    if isinstance(operand, Table):
        raise DispatchError.unary(name, op.verb, operand)
    try:
        return op.builtin(operand)
    except TypeError as exc:
        raise DispatchError.unary(name, op.verb, operand) from exc


def _raw_length(value: Any) -> int:
    if isinstance(value, Table):
        return rawlen(value)
    if isinstance(value, str):
        return len(value.encode("utf-8"))
    if isinstance(value, (bytes, list, tuple)):
        return len(value)
    raise DispatchError.unary("len", OPERATIONS["len"].verb, value)


def length_results(value: Any) -> Results:
    """
    The length operation as seen by a single-value context: the handler's
    results adjusted to exactly one.
    """
    handler = handler_for(value, "len")
    if handler is not None:
        return results_of(_dispatch("len", handler, (value,))).adjust(1)
    return Results(_raw_length(value))


def length(value: Any) -> Any:
    return length_results(value).first()


def index(value: Any, key: Any) -> Any:
    if not isinstance(value, Table):
        raise DispatchError.unary("index", OPERATIONS["index"].verb, value)

    hit = rawget(value, key)
    if hit is not None:
        return hit

    handler = handler_for(value, "index")
    if handler is None:
        return None
    if isinstance(handler, Table):
        return index(handler, key)
    return single(_dispatch("index", handler, (value, key)))


def call(value: Any, *args: Any) -> Any:
    return single(_raw_call(value, args))


def equals(lhs: Any, rhs: Any) -> bool:
    """
    Equality as the runtime sees it: identity, else the eq handler of
    either Table operand.  Two Tables without a handler are unequal.
    """
    if lhs is rhs:
        return True
    if isinstance(lhs, Table) and isinstance(rhs, Table):
        handler = handler_for(lhs, "eq")
        if handler is None:
            handler = handler_for(rhs, "eq")
        if handler is None:
            return False
        return bool(single(_dispatch("eq", handler, (lhs, rhs))))
    return lhs == rhs


def tostring(value: Any) -> Any:
    handler = handler_for(value, "tostring")
    if handler is not None:
        return single(_dispatch("tostring", handler, (value,)))
    if isinstance(value, Table):
        return f"table: 0x{id(value):x}"
    return str(value)
