import pytest

from webgen_eval.eval.aggregate import build_suite_result, common_failures, failure_type, summarise
from webgen_eval.eval.models import TestResult, ValidationResult
from webgen_eval.services.errors import AggregationError


def _result(scenario_id, category="ui", *, missing_patterns=None, errors=None, elapsed=100.0):
    validation = ValidationResult(
        syntax_valid=True,
        dom_elements_present=True,
        patterns_found=not missing_patterns,
        missing_patterns=missing_patterns,
        functionality_works=True,
    )
    errors = list(errors or []) + [f"patterns: {p}" for p in missing_patterns or []]
    return TestResult(
        id=scenario_id,
        scenario=scenario_id,
        category=category,
        prompt="p",
        success=validation.all_passed and not any(e.startswith(("driver: ", "timeout: ")) for e in errors),
        errors=errors,
        execution_time=elapsed,
        validation_results=validation,
    )


def test_one_pass_one_pattern_failure():
    summary = summarise([
        _result("a", elapsed=100.0),
        _result("b", "style", missing_patterns=["#e65100"], elapsed=300.0),
    ])
    assert (summary.total, summary.passed, summary.failed) == (2, 1, 1)
    assert summary.success_rate == 0.5
    assert summary.average_time == 200.0
    assert [(c.type, c.count) for c in summary.common_failures] == [("patterns", 1)]
    assert summary.common_failures[0].examples == ["patterns: #e65100"]


def test_by_category_partitions_results():
    results = [_result("a"), _result("b", "style"), _result("c", "style", missing_patterns=["x"])]
    summary = summarise(results)
    assert sum(stats.total for stats in summary.by_category.values()) == summary.total
    assert summary.by_category["style"].to_report() == {"total": 2, "passed": 1, "failed": 1}


def test_empty_results():
    summary = summarise([])
    assert summary.total == 0
    assert summary.success_rate == 0.0
    assert summary.average_time == 0.0
    assert summary.common_failures == []


def test_failure_clusters_sorted_by_count_and_capped():
    results = [
        _result("a", errors=["timeout: Scenario exceeded its 10ms deadline"]),
        _result("b", missing_patterns=["x", "y"]),
        _result("c", missing_patterns=["z"]),
        _result("d", missing_patterns=["w"]),
        _result("e", missing_patterns=["v"]),
    ]
    clusters = common_failures(results)
    assert [(c.type, c.count) for c in clusters] == [("patterns", 4), ("timeout", 1)]
    assert len(clusters[0].examples) == 3


def test_unlabelled_errors_cluster_as_other():
    assert failure_type("something odd") == "other"
    assert failure_type("functional: uncaught error") == "functional"


@pytest.mark.parametrize("bad", [None, "results", [object()]])
def test_malformed_input_raises(bad):
    with pytest.raises(AggregationError):
        summarise(bad)


def test_build_suite_result_restores_order():
    results = [_result("c"), _result("a"), _result("b")]
    position = {"a": 0, "b": 1, "c": 2}
    suite = build_suite_result(results, provider="p", model="m", order=position.__getitem__)
    assert [r.id for r in suite.results] == ["a", "b", "c"]
    assert suite.summary.total == len(suite.results)
    report = suite.to_report()
    assert set(report) == {"timestamp", "provider", "model", "results", "summary"}
    assert set(report["summary"]) >= {"total", "passed", "failed", "successRate", "averageTime", "byCategory"}
