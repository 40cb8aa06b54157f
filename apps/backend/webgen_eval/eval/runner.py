from __future__ import annotations
import argparse
import asyncio
import json
import logging
import sys
import time
from dataclasses import replace
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Sequence

import sentry_sdk

from webgen_eval.config import HarnessConfig
from webgen_eval.eval.aggregate import build_suite_result
from webgen_eval.eval.driver import AssistantDriver, DriverOutput, ReplayDriver
from webgen_eval.eval.fixtures import Fixture, normalize_path
from webgen_eval.eval.judge import LLMJudge, QualitativeEvaluator
from webgen_eval.eval.models import (
    DRIVER_LABEL,
    TIMEOUT_LABEL,
    LLMEvaluation,
    TestResult,
    TestSuiteResult,
    ValidationResult,
)
from webgen_eval.eval.sandbox import FunctionalProbe, ProbeHints, build_probe
from webgen_eval.eval.scenarios import (
    CATEGORIES,
    QUICK_SCENARIO_IDS,
    Scenario,
    ScenarioRegistry,
    load_scenarios,
)
from webgen_eval.eval.validator import labelled_failures, validate
from webgen_eval.services.errors import AssistantError, EvaluatorUnavailable, ScenarioTimeoutError

logger = logging.getLogger(__name__)


class _NotExercised:
    """Stands in for the browser probe when there is no generated project to load."""

    def __init__(self, reason: str):
        self.reason = reason

    async def probe(self, files: Mapping[str, str], hints: ProbeHints) -> List[str]:
        return [f"not exercised: {self.reason}"]


def _capture(exc: BaseException, scenario: Scenario, provider: Optional[str], model: Optional[str]) -> None:
    # Never let observability break the failure path.
    try:
        with sentry_sdk.new_scope() as scope:
            scope.set_tag("scenario_id", scenario.id)
            scope.set_tag("provider", provider or "unknown")
            scope.set_tag("model", model or "unknown")
            sentry_sdk.capture_exception(exc)
    except Exception:
        logger.debug("sentry capture failed", exc_info=True)


def _normalized(output: DriverOutput) -> DriverOutput:
    try:
        return replace(
            output,
            modified_files={normalize_path(p): c for p, c in output.modified_files.items()},
            created_files={normalize_path(p): c for p, c in output.created_files.items()},
        )
    except ValueError as exc:
        raise AssistantError(f"assistant returned an invalid path: {exc}") from exc


async def _drive(
    scenario: Scenario,
    driver: AssistantDriver,
    fixture: Fixture,
    timeout_ms: int,
) -> tuple[Optional[DriverOutput], Optional[str]]:
    timeout_s = timeout_ms / 1000
    try:
        async with asyncio.timeout(timeout_s):
            output = await driver.run(scenario.prompt, fixture.files(), timeout=timeout_s)
        return _normalized(output), None
    except TimeoutError:
        error = ScenarioTimeoutError(timeout_ms)
        logger.warning("scenario %s timed out after %sms", scenario.id, timeout_ms)
        return None, f"{TIMEOUT_LABEL}: {error.message}"
    except AssistantError as exc:
        logger.warning("scenario %s: assistant failed: %s", scenario.id, exc.message)
        return None, f"{DRIVER_LABEL}: {exc.message}"
    except Exception as exc:
        logger.exception("scenario %s: driver crashed", scenario.id)
        _capture(exc, scenario, getattr(driver, "provider", None), getattr(driver, "model", None))
        error = AssistantError(f"unexpected driver failure: {exc}")
        return None, f"{DRIVER_LABEL}: {error.message}"


async def _judge(
    scenario: Scenario,
    judge: QualitativeEvaluator,
    files: Mapping[str, str],
    validation: ValidationResult,
    timeout_ms: int,
) -> Optional[LLMEvaluation]:
    timeout_s = timeout_ms / 1000
    try:
        async with asyncio.timeout(timeout_s):
            return await judge.evaluate(scenario.prompt, files, validation, timeout=timeout_s)
    except TimeoutError:
        logger.warning("scenario %s: judge timed out, no qualitative evaluation", scenario.id)
    except EvaluatorUnavailable as exc:
        logger.warning("scenario %s: judge unavailable: %s", scenario.id, exc.message)
    except Exception as exc:
        logger.warning("scenario %s: judge failed: %s", scenario.id, exc)
    return None


async def run_scenario(
    scenario: Scenario,
    driver: AssistantDriver,
    *,
    config: HarnessConfig,
    probe: Optional[FunctionalProbe] = None,
    judge: Optional[QualitativeEvaluator] = None,
) -> TestResult:
    started = time.perf_counter()
    timeout_ms = config.timeout_for(scenario.timeout)
    fixture = Fixture.from_scenario(scenario)
    logger.info("scenario %s started (timeout %sms)", scenario.id, timeout_ms)

    output, driver_error = await _drive(scenario, driver, fixture, timeout_ms)
    if output is None:
        # No partial files from a failed or cancelled call reach the final set.
        final_files = fixture.files()
        probe = _NotExercised("assistant did not complete")
    else:
        final_files = fixture.apply(output)

    validation = await validate(
        final_files,
        expected_elements=scenario.expected_elements,
        expected_patterns=scenario.expected_patterns,
        probe=probe,
    )

    evaluation = None
    if judge is not None and output is not None:
        evaluation = await _judge(scenario, judge, final_files, validation, timeout_ms)

    errors = ([driver_error] if driver_error else []) + labelled_failures(validation)
    result = TestResult(
        id=scenario.id,
        scenario=scenario.name,
        category=scenario.category,
        prompt=scenario.prompt,
        success=validation.all_passed and driver_error is None,
        files_modified=list(output.modified_files) if output else [],
        files_created=list(output.created_files) if output else [],
        errors=errors,
        execution_time=(time.perf_counter() - started) * 1000,
        llm_calls=output.llm_calls if output else 0,
        validation_results=validation,
        provider=getattr(driver, "provider", None) or config.provider,
        model=getattr(driver, "model", None) or config.model,
        tool_calls=output.tool_calls() if output else None,
        llm_responses=output.responses() if output else None,
        generated_content=dict(final_files),
        llm_evaluation=evaluation,
    )
    logger.info(
        "scenario %s %s in %.0fms", scenario.id, "passed" if result.success else "failed", result.execution_time
    )
    return result


async def run_suite(
    scenarios: Iterable[Scenario],
    driver: AssistantDriver,
    *,
    config: HarnessConfig,
    probe: Optional[FunctionalProbe] = None,
    judge: Optional[QualitativeEvaluator] = None,
) -> TestSuiteResult:
    # Each scenario runs at most once per suite.
    unique = list({s.id: s for s in scenarios}.values())

    if config.parallel:
        semaphore = asyncio.Semaphore(config.concurrency)

        async def bounded(scenario: Scenario) -> TestResult:
            async with semaphore:
                return await run_scenario(scenario, driver, config=config, probe=probe, judge=judge)

        results: List[TestResult] = list(await asyncio.gather(*(bounded(s) for s in unique)))
    else:
        results = []
        for scenario in unique:
            results.append(await run_scenario(scenario, driver, config=config, probe=probe, judge=judge))

    position = {s.id: idx for idx, s in enumerate(unique)}
    return build_suite_result(
        results,
        provider=getattr(driver, "provider", None) or config.provider,
        model=getattr(driver, "model", None) or config.model,
        order=lambda scenario_id: position.get(scenario_id, len(position)),
    )


def select_scenarios(
    registry: ScenarioRegistry,
    *,
    ids: Sequence[str] = (),
    category: Optional[str] = None,
    quick: bool = False,
) -> List[Scenario]:
    if ids:
        selected = [registry.by_id(i) for i in dict.fromkeys(ids)]
    elif quick:
        selected = [registry.by_id(i) for i in QUICK_SCENARIO_IDS]
    else:
        selected = list(registry.list_all())
    if category:
        selected = [s for s in selected if s.category == category]
    return selected


def write_report(suite: TestSuiteResult, output_path: Path) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(suite.to_report(), ensure_ascii=False, indent=2), encoding="utf-8")
    return output_path


def default_report_path(config: HarnessConfig, suite: TestSuiteResult) -> Path:
    stamp = suite.timestamp.replace(":", "-").split(".")[0]
    return config.results_path / f"results-{stamp}.json"


def summarise_and_log(suite: TestSuiteResult, output_path: Path | None = None, *, verbose: bool = False) -> int:
    summary = suite.summary
    print(
        f"Passed {summary.passed}/{summary.total} scenarios | "
        f"success rate {summary.success_rate:.0%} | avg {summary.average_time:.0f}ms "
        f"| {suite.provider}/{suite.model}",
        file=sys.stderr,
    )
    for result in suite.results:
        status = "PASS" if result.success else "FAIL"
        score = f" | judge {result.llm_evaluation.score:.2f}" if result.llm_evaluation else ""
        print(f"[{status}] {result.id}: {result.execution_time:.0f}ms{score}", file=sys.stderr)
        if verbose or not result.success:
            for error in result.errors:
                print(f"    - {error}", file=sys.stderr)
    for cluster in summary.common_failures:
        print(f"  {cluster.type}: {cluster.count}", file=sys.stderr)

    if output_path:
        write_report(suite, output_path)
        print(f"Report written to {output_path}", file=sys.stderr)

    return 0 if summary.passed == summary.total else 1


def build_driver(config: HarnessConfig, replay: str | None = None) -> AssistantDriver:
    if replay:
        return ReplayDriver.from_file(replay)
    from webgen_eval.agent.assistant import LLMAssistantDriver

    return LLMAssistantDriver(provider=config.provider, model=config.model)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run web code-generation scenarios against the assistant.")
    parser.add_argument("--scenario", action="append", default=[], help="Scenario id (repeatable)")
    parser.add_argument("--category", choices=CATEGORIES, default=None, help="Only run this category")
    parser.add_argument("--quick", action="store_true", help="Run the quick smoke subset")
    parser.add_argument("--extra-scenarios", type=str, default=None, help="JSON file with additional scenarios")
    parser.add_argument("--replay", type=str, default=None, help="Replay recorded assistant outputs from JSON")
    parser.add_argument("--provider", type=str, default=None, help="LLM provider id")
    parser.add_argument("--model", type=str, default=None, help="Assistant model id")
    parser.add_argument("--timeout", type=int, default=None, help="Default per-scenario timeout in ms")
    parser.add_argument("--parallel", action="store_true", default=None, help="Run scenarios concurrently")
    parser.add_argument("--concurrency", type=int, default=None, help="Concurrency limit when parallel")
    parser.add_argument("--judge", dest="judge_enabled", action="store_true", default=None, help="Enable the LLM judge")
    parser.add_argument("--judge-model", type=str, default=None, help="LLM judge model id")
    parser.add_argument("--threshold", dest="judge_threshold", type=float, default=None, help="Judge passing threshold")
    parser.add_argument("--no-functional", dest="functional_enabled", action="store_false", default=None,
                        help="Skip the headless browser check")
    parser.add_argument("--output", type=str, default=None, help="Write the JSON report to this path")
    parser.add_argument("--verbose", action="store_true", default=None, help="Log every check failure")
    args = parser.parse_args(argv)

    config = HarnessConfig.from_env().with_overrides(
        provider=args.provider,
        model=args.model,
        timeout_ms=args.timeout,
        parallel=args.parallel,
        concurrency=args.concurrency,
        judge_enabled=args.judge_enabled,
        judge_model=args.judge_model,
        judge_threshold=args.judge_threshold,
        functional_enabled=args.functional_enabled,
        verbose=args.verbose,
    )
    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    registry = load_scenarios(args.extra_scenarios)
    scenarios = select_scenarios(registry, ids=args.scenario, category=args.category, quick=args.quick)
    driver = build_driver(config, args.replay)
    judge = (
        LLMJudge(provider=config.provider, model=config.judge_model, threshold=config.judge_threshold)
        if config.judge_enabled
        else None
    )
    probe = build_probe(enabled=config.functional_enabled, duration_ms=config.probe_ms, headless=config.headless)

    suite = asyncio.run(run_suite(scenarios, driver, config=config, probe=probe, judge=judge))
    output_path = Path(args.output) if args.output else None
    if output_path is None and config.save_results:
        output_path = default_report_path(config, suite)
    return summarise_and_log(suite, output_path, verbose=config.verbose)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
