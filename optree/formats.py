"""
optree.formats — Rendering values and converting literals.

    • render(value)         → human-readable text, for diagnostics only
    • Python objects ↔ Tables (from_python / to_python)
    • JSON strings ↔ Tables  (from_json / to_json)

render() is NOT an encoding: text is quoted without escaping and mapping
pairs come out in whatever order the container iterates them.  Never
compare rendered strings to decide correctness; use optree.core.equal.
"""

import json
from types import AsyncGeneratorType, CoroutineType, GeneratorType
from typing import Any, Optional

from .core import Kind, classify, mapping_entries, sequence_items
from .runtime import Table


QUOTE = '"'
SEPARATOR = ", "
OPEN = "{"
CLOSE = " }"

_THREAD_TYPES = (GeneratorType, CoroutineType, AsyncGeneratorType)


# ═══════════════════════════════════════════════════════════════════
#  RENDERING
# ═══════════════════════════════════════════════════════════════════

def primitive_text(value: Any) -> str:
    """Natural text form of a primitive (no quoting)."""
    if value is None:
        return "nil"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, (str, int)):
        return str(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    if isinstance(value, _THREAD_TYPES):
        return f"thread: 0x{id(value):x}"
    if isinstance(value, Table):
        return f"table: 0x{id(value):x}"
    if callable(value):
        return f"function: 0x{id(value):x}"
    return str(value)


def _render_primitive(value: Any) -> str:
    if isinstance(value, (str, bytes)):
        # note: no escaping of embedded quotes or control characters
        return QUOTE + primitive_text(value) + QUOTE
    return primitive_text(value)


def _render_key(key: Any) -> str:
    if isinstance(key, str):
        return key
    return "[" + primitive_text(key) + "]"


def render(value: Any) -> str:
    """
    Render a value for a human reader.

        ["sub", ["a"], 1]     → { "sub", { "a" }, 1 }
        {"x": 1, "y": 2}      → { x = 1, y = 2 }
        {1: "a", "n": True}   → { [1] = "a", n = true }
        []                    → { }

    Uses the same classification as the comparator: a composite with any
    key outside its dense 1..N run renders as a mapping.
    """
    out: list[str] = []
    # Work items are (is_text, payload); text is emitted verbatim.
    stack: list[tuple[bool, Any]] = [(False, value)]

    while stack:
        is_text, item = stack.pop()
        if is_text:
            out.append(item)
            continue

        kind = classify(item)
        if kind is Kind.PRIMITIVE:
            out.append(_render_primitive(item))
            continue

        work: list[tuple[bool, Any]] = [(True, OPEN)]
        sep = " "
        if kind is Kind.SEQUENCE:
            for element in sequence_items(item):
                work.append((True, sep))
                work.append((False, element))
                sep = SEPARATOR
        else:
            for key, element in mapping_entries(item).values():
                work.append((True, sep + _render_key(key) + " = "))
                work.append((False, element))
                sep = SEPARATOR
        work.append((True, CLOSE))
        stack.extend(reversed(work))

    return "".join(out)


# ═══════════════════════════════════════════════════════════════════
#  PYTHON OBJECTS ↔ TABLES
# ═══════════════════════════════════════════════════════════════════

def from_python(obj: Any, handlers: Optional[Any] = None) -> Any:
    """
    Convert plain Python data to Tables.

    Mapping:
        list/tuple  → Table with keys 1..n
        dict        → Table with the dict's keys
        other       → unchanged

    Nested structures are converted recursively.  When `handlers` is
    given, every Table produced carries it.
    """
    if isinstance(obj, (list, tuple)):
        return Table([from_python(item, handlers) for item in obj], metatable=handlers)
    if isinstance(obj, dict):
        return Table(
            fields={k: from_python(v, handlers) for k, v in obj.items()},
            metatable=handlers,
        )
    return obj


def to_python(value: Any) -> Any:
    """
    Convert any value back to plain Python data.

        sequence  → list
        mapping   → dict
        primitive → unchanged

    Inverse of from_python for dense lists and dicts without None values.
    """
    kind = classify(value)
    if kind is Kind.SEQUENCE:
        return [to_python(item) for item in sequence_items(value)]
    if kind is Kind.MAPPING:
        return {k: to_python(v) for k, v in mapping_entries(value).values()}
    return value


# ═══════════════════════════════════════════════════════════════════
#  JSON STRINGS ↔ TABLES
# ═══════════════════════════════════════════════════════════════════

def from_json(text: str, handlers: Optional[Any] = None) -> Any:
    """Parse a JSON string into Tables."""
    return from_python(json.loads(text), handlers)


def to_json(value: Any, **kwargs: Any) -> str:
    """Convert a value to a JSON string; non-JSON primitives use their text form."""
    kwargs.setdefault("default", primitive_text)
    return json.dumps(to_python(value), **kwargs)
