"""Driver-side assertions: compare, and on failure report both rendered sides."""

import logging
from typing import Any, Iterable, Optional

from .core import first_mismatch
from .errors import TreeMismatchError
from .fixtures import Case, TruncationCase
from .formats import render
from .runtime import length, length_results


log = logging.getLogger(__name__)


def check(actual: Any, expected: Any, label: Optional[str] = None) -> None:
    """
    Assert that `actual` is structurally equal to `expected`.

    Raises TreeMismatchError carrying both rendered trees and the first
    mismatch; returns None otherwise.
    """
    if log.isEnabledFor(logging.DEBUG):
        log.debug("%s actual:   %s", label or "check", render(actual))
        log.debug("%s expected: %s", label or "check", render(expected))

    mismatch = first_mismatch(actual, expected)
    if mismatch is not None:
        raise TreeMismatchError(label, render(actual), render(expected), mismatch)


def check_truncation(case: TruncationCase) -> None:
    value = case.build()
    results = length_results(value)
    check(length(value), case.expected_first, label=f"{case.name}: first result")
    check(results.count, case.expected_count, label=f"{case.name}: result count")
    check(results.unpack(3), case.expected_unpack(3), label=f"{case.name}: unpacked")


def run_cases(cases: Iterable[Case]) -> int:
    """
    Evaluate and check each case in order, stopping at the first failure.
    Returns the number of cases that passed.
    """
    passed = 0
    for case in cases:
        try:
            check(case.evaluate(), case.expected, label=case.name)
        except TreeMismatchError:
            log.error("%s: failed after %d passing cases", case.name, passed)
            raise
        log.debug("%s: ok", case.name)
        passed += 1
    log.info("%d cases passed", passed)
    return passed
