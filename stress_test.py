"""
Stress tests / adversarial evaluation of optree.

This script attempts to BREAK the claimed properties:
  1. Reflexivity and symmetry of structural equality
  2. Shape discrimination (sequence vs mapping vs primitive)
  3. Length sensitivity of sequences
  4. first_mismatch pointing at the place that actually changed
  5. Builder arity fidelity and propagation closure
  6. Deep chains (no recursion limit in compare or render)
"""

import sys, os, random, time, copy
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from optree.core import Kind, MismatchReason, classify, equal, first_mismatch
from optree.formats import from_python, render, to_python
from optree.builders import make_handler, propagating_handlers
from optree.runtime import BINARY, VOCABULARY, Table, operation, rawlen, rawget, invoke


def test(name, condition, detail=""):
    status = "PASS" if condition else "FAIL"
    print(f"  [{status}] {name}" + (f"  ({detail})" if detail else ""))
    return condition


def random_value(depth=0, max_depth=3):
    """Generate random plain data: primitives, lists and dicts."""
    if depth >= max_depth:
        return random.choice([1, 2, 3, "a", "b", True, False, 2.5])

    kind = random.choice(["primitive", "list", "dict"])
    if kind == "primitive":
        return random.choice([42, "hello", "world", 3.14, True, 0])
    elif kind == "list":
        n = random.randint(0, 4)
        return [random_value(depth+1, max_depth) for _ in range(n)]
    else:
        n = random.randint(1, 3)
        keys = random.sample(["x", "y", "z", 1, 2, 3], n)
        return {k: random_value(depth+1, max_depth) for k in keys}


def leaf_paths(value, path=()):
    """Paths (1-based for lists) to every primitive inside a plain value."""
    if isinstance(value, list):
        out = []
        for i, item in enumerate(value, 1):
            out.extend(leaf_paths(item, path + (i,)))
        return out
    if isinstance(value, dict):
        out = []
        for k, item in value.items():
            out.extend(leaf_paths(item, path + (k,)))
        return out
    return [path]


def plant(value, path, replacement):
    """Replace the leaf at `path` in place; returns the (possibly new) root."""
    if not path:
        return replacement
    parent = value
    for step in path[:-1]:
        parent = parent[step - 1] if isinstance(parent, list) else parent[step]
    last = path[-1]
    if isinstance(parent, list):
        parent[last - 1] = replacement
    else:
        parent[last] = replacement
    return value


random.seed(123)
values = [random_value() for _ in range(200)]


# ═══════════════════════════════════════════════════════════════
#  §1  REFLEXIVITY AND SYMMETRY — random structures
# ═══════════════════════════════════════════════════════════════

print("=" * 70)
print("  §1  REFLEXIVITY AND SYMMETRY")
print("=" * 70)

refl_failures = sum(1 for v in values if not equal(v, v))
test(f"equal(v, v) ({len(values)} values)", refl_failures == 0,
     f"{refl_failures} failures")

copy_failures = sum(1 for v in values if not equal(v, copy.deepcopy(v)))
test(f"equal(v, deepcopy(v)) ({len(values)} values)", copy_failures == 0,
     f"{copy_failures} failures")

table_failures = 0
for v in values:
    t = from_python(v)
    if not (equal(t, v) and equal(v, t) and classify(t) is classify(v)):
        table_failures += 1
        if table_failures <= 3:
            print(f"    TABLE MISMATCH: {render(v)} vs {render(t)}")
test("Table converted from plain data equals its source", table_failures == 0,
     f"{table_failures} failures")

back_failures = sum(1 for v in values if not equal(to_python(from_python(v)), v))
test("to_python(from_python(v)) equals v", back_failures == 0,
     f"{back_failures} failures")

sym_violations = 0
sym_checks = 0
for i in range(0, len(values), 4):
    for j in range(len(values)):
        sym_checks += 1
        if equal(values[i], values[j]) != equal(values[j], values[i]):
            sym_violations += 1
test(f"Symmetry ({sym_checks} pairs)", sym_violations == 0,
     f"{sym_violations} violations")


# ═══════════════════════════════════════════════════════════════
#  §2  SHAPE DISCRIMINATION
# ═══════════════════════════════════════════════════════════════

print()
print("=" * 70)
print("  §2  SHAPE DISCRIMINATION")
print("=" * 70)

shape_failures = 0
for v in values:
    if equal([v], {"k": v}) or equal({"k": v}, [v]):
        shape_failures += 1
    if equal([v, v], {1: v, 2: v, "n": 2}):
        shape_failures += 1
    if equal(v, [v]):
        shape_failures += 1
test("Sequence ≠ mapping ≠ wrapped value", shape_failures == 0,
     f"{shape_failures} failures")

dense = {1: "a", 2: "b"}
test("dict with keys 1..N is a sequence",
     classify(dense) is Kind.SEQUENCE and equal(dense, ["a", "b"]))

holey = Table(fields={1: "a", 3: "c"})
test("Table with a hole is a mapping",
     classify(holey) is Kind.MAPPING,
     f"classify = {classify(holey).name}")

test("True vs 1 (bool never equals a number)",
     not equal(True, 1) and not equal([1], [True]))

nan = float("nan")
test("Same NaN object is equal to itself", equal(nan, nan) and equal([nan], [nan]))


# ═══════════════════════════════════════════════════════════════
#  §3  LENGTH SENSITIVITY
# ═══════════════════════════════════════════════════════════════

print()
print("=" * 70)
print("  §3  LENGTH SENSITIVITY")
print("=" * 70)

length_failures = 0
length_checks = 0
for v in values:
    if not isinstance(v, list):
        continue
    length_checks += 1
    longer = v + ["extra"]
    m = first_mismatch(longer, v)
    if equal(longer, v) or m is None or m.reason is not MismatchReason.LENGTH:
        length_failures += 1
test(f"Appending an element breaks equality ({length_checks} lists)",
     length_failures == 0, f"{length_failures} failures")


# ═══════════════════════════════════════════════════════════════
#  §4  FIRST MISMATCH — planted differences
# ═══════════════════════════════════════════════════════════════

print()
print("=" * 70)
print("  §4  FIRST MISMATCH LOCATES PLANTED CHANGES")
print("=" * 70)

plant_failures = 0
for v in values:
    path = random.choice(leaf_paths(v))
    changed = plant(copy.deepcopy(v), path, "__planted__")
    m = first_mismatch(changed, v)
    if m is None or m.path != path or m.reason is not MismatchReason.VALUE:
        plant_failures += 1
        if plant_failures <= 3:
            print(f"    WRONG LOCATION: planted at {path}, found {m!r}")
test(f"Mismatch path = planted path ({len(values)} values)",
     plant_failures == 0, f"{plant_failures} failures")


# ═══════════════════════════════════════════════════════════════
#  §5  BUILDERS — arity and propagation
# ═══════════════════════════════════════════════════════════════

print()
print("=" * 70)
print("  §5  BUILDERS")
print("=" * 70)

arity_failures = 0
for name in VOCABULARY:
    op = operation(name)
    handler = make_handler(name, lambda parts: Table(parts))
    extra = random.randint(0, 5) if op.variadic else 0
    args = [f"x{i}" for i in range(op.arity + extra)]
    built = handler(*args)
    if rawlen(built) != 1 + len(args) or rawget(built, 1) != name:
        arity_failures += 1
        print(f"    ARITY: {name} built {render(built)}")
test(f"Node length = 1 + arity ({len(VOCABULARY)} operations)",
     arity_failures == 0, f"{arity_failures} failures")

closure_failures = 0
h = propagating_handlers()
for _ in range(300):
    a, b = Table(["a"], metatable=h), Table(["b"], metatable=h)
    x, y = random.choice(BINARY), random.choice(BINARY)
    z = random.choice(BINARY)
    tree = invoke(z, invoke(x, a, b), invoke(y, b, a))
    expected = [z, [x, ["a"], ["b"]], [y, ["b"], ["a"]]]
    if not equal(tree, expected):
        closure_failures += 1
test("Random depth-3 compositions of binary operations", closure_failures == 0,
     f"{closure_failures} failures")


# ═══════════════════════════════════════════════════════════════
#  §6  DEEP CHAINS / PERFORMANCE (wall-clock)
# ═══════════════════════════════════════════════════════════════

print()
print("=" * 70)
print("  §6  DEEP CHAINS (wall-clock)")
print("=" * 70)

for depth in [100, 1000, 5000, 20000]:
    h = propagating_handlers(["add"])
    a, b = Table(["a"], metatable=h), Table(["b"], metatable=h)
    x = a
    expected = ["a"]
    for _ in range(depth):
        x = x + b
        expected = ["add", expected, ["b"]]

    t0 = time.perf_counter()
    same = equal(x, expected)
    dt_cmp = time.perf_counter() - t0

    t0 = time.perf_counter()
    text = render(x)
    dt_render = time.perf_counter() - t0

    print(f"  Depth {depth}: compare {dt_cmp*1000:.1f}ms  render {dt_render*1000:.1f}ms")
    test(f"Chain of {depth} additions equals its expected tree", same)
    test(f"Render of depth {depth} is balanced", text.count("{") == text.count("}"))


# ═══════════════════════════════════════════════════════════════
#  SUMMARY
# ═══════════════════════════════════════════════════════════════

print()
print("=" * 70)
print("  STRESS TEST SUMMARY")
print("=" * 70)
print("  If you see FAIL above, there's a bug.")
print("  If everything is PASS, the implementation is correct")
print("  for the tested cases (not a proof, but high confidence).")
