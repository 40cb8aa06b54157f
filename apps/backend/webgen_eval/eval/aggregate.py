"""Fold per-scenario results into suite statistics and failure clusters."""

from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Optional, Sequence

from webgen_eval.eval.models import (
    DRIVER_LABEL,
    ELEMENTS_LABEL,
    FUNCTIONAL_LABEL,
    PATTERNS_LABEL,
    SYNTAX_LABEL,
    TIMEOUT_LABEL,
    CategoryStats,
    FailureCluster,
    SuiteSummary,
    TestResult,
    TestSuiteResult,
)
from webgen_eval.services.errors import AggregationError

MAX_FAILURE_EXAMPLES = 3
FAILURE_TYPES = (
    DRIVER_LABEL,
    TIMEOUT_LABEL,
    SYNTAX_LABEL,
    ELEMENTS_LABEL,
    PATTERNS_LABEL,
    FUNCTIONAL_LABEL,
)
OTHER_FAILURE = "other"


def failure_type(error: str) -> str:
    label, sep, _ = error.partition(":")
    if sep and label.strip() in FAILURE_TYPES:
        return label.strip()
    return OTHER_FAILURE


def _checked(results: Optional[Iterable[TestResult]]) -> List[TestResult]:
    if results is None or isinstance(results, (str, bytes)):
        raise AggregationError("results must be a sequence of TestResult")
    checked = list(results)
    for idx, item in enumerate(checked):
        if not isinstance(item, TestResult):
            raise AggregationError(f"results[{idx}] is {type(item).__name__}, not TestResult")
    return checked


def common_failures(results: Sequence[TestResult], *, max_examples: int = MAX_FAILURE_EXAMPLES) -> List[FailureCluster]:
    counts: Dict[str, int] = {}
    examples: Dict[str, List[str]] = {}
    for result in results:
        # count is scenarios affected, not error lines
        seen = set()
        for error in result.errors:
            key = failure_type(error)
            if key not in seen:
                seen.add(key)
                counts[key] = counts.get(key, 0) + 1
            bucket = examples.setdefault(key, [])
            if len(bucket) < max_examples and error not in bucket:
                bucket.append(error)
    # sorted() is stable, so equal counts keep first-seen order
    ordered = sorted(counts, key=lambda key: -counts[key])
    return [FailureCluster(type=key, count=counts[key], examples=examples[key]) for key in ordered]


def summarise(results: Optional[Iterable[TestResult]]) -> SuiteSummary:
    items = _checked(results)
    total = len(items)
    passed = sum(1 for r in items if r.success)

    by_category: Dict[str, Dict[str, int]] = {}
    for result in items:
        stats = by_category.setdefault(result.category, {"total": 0, "passed": 0, "failed": 0})
        stats["total"] += 1
        stats["passed" if result.success else "failed"] += 1

    return SuiteSummary(
        total=total,
        passed=passed,
        failed=total - passed,
        success_rate=passed / total if total else 0.0,
        average_time=sum(r.execution_time for r in items) / total if total else 0.0,
        by_category={name: CategoryStats(**stats) for name, stats in by_category.items()},
        common_failures=common_failures(items),
    )


def build_suite_result(
    results: Optional[Iterable[TestResult]],
    *,
    provider: str,
    model: str,
    order: Optional[Callable[[str], int]] = None,
) -> TestSuiteResult:
    """`order` maps a scenario id to its registry position; completion order is discarded."""

    items = _checked(results)
    if order is not None:
        items = sorted(items, key=lambda r: order(r.id))
    return TestSuiteResult(provider=provider, model=model, results=items, summary=summarise(items))
