from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import List, Optional

import sentry_sdk

from webgen_eval.config import HarnessConfig
from webgen_eval.eval.judge import LLMJudge
from webgen_eval.eval.models import TestSuiteResult
from webgen_eval.eval.runner import build_driver, run_suite, select_scenarios
from webgen_eval.eval.sandbox import build_probe
from webgen_eval.eval.scenarios import Scenario, ScenarioRegistry, load_scenarios
from webgen_eval.schemas.runs import RunStart, RunStatus, RunTrace
from webgen_eval.services.errors import RunNotFoundError
from webgen_eval.storage.memory import (
    add_event,
    create_run as store_create_run,
    get_report as store_get_report,
    get_run as store_get_run,
    get_trace as store_get_trace,
    save_report as store_save_report,
    set_status as store_set_status,
)

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_registry() -> ScenarioRegistry:
    return load_scenarios(os.getenv("WEBGEN_EXTRA_SCENARIOS") or None)


def list_scenarios(category: Optional[str] = None) -> List[Scenario]:
    registry = get_registry()
    return list(registry.by_category(category) if category else registry.list_all())


def get_scenario(scenario_id: str) -> Scenario:
    return get_registry().by_id(scenario_id)


def _config_for(body: RunStart) -> HarnessConfig:
    return HarnessConfig.from_env().with_overrides(
        provider=body.provider,
        model=body.model,
        judge_enabled=body.judge,
        parallel=body.parallel,
    )


def start_run(body: RunStart) -> RunStatus:
    # Resolve ids up front so unknown scenarios fail the request, not the background task.
    scenarios = select_scenarios(
        get_registry(), ids=body.scenario_ids, category=body.category, quick=body.quick
    )
    return store_create_run([s.id for s in scenarios])


async def execute_run(run_id: str, body: RunStart) -> Optional[TestSuiteResult]:
    status = store_get_run(run_id)
    if status is None:
        raise RunNotFoundError(f"run '{run_id}' not found")

    config = _config_for(body)
    registry = get_registry()
    scenarios = [registry.by_id(sid) for sid in status.scenario_ids]
    store_set_status(run_id, "running")
    add_event(run_id, "info", f"running against {config.provider}/{config.model}")

    try:
        driver = build_driver(config)
        judge = (
            LLMJudge(provider=config.provider, model=config.judge_model, threshold=config.judge_threshold)
            if config.judge_enabled
            else None
        )
        probe = build_probe(enabled=config.functional_enabled, duration_ms=config.probe_ms, headless=config.headless)
        suite = await run_suite(scenarios, driver, config=config, probe=probe, judge=judge)
    except Exception as exc:
        logger.exception(f"Suite run {run_id} failed: {exc}")
        try:
            with sentry_sdk.new_scope() as scope:
                scope.set_tag("run_id", run_id)
                sentry_sdk.capture_exception(exc)
        except Exception:
            logger.debug("sentry capture failed", exc_info=True)
        store_set_status(run_id, "failed", error=str(exc))
        add_event(run_id, "error", f"suite failed: {exc}")
        return None

    for result in suite.results:
        add_event(
            run_id,
            "info" if result.success else "warn",
            f"{result.id} {'passed' if result.success else 'failed'}",
            {"executionTime": result.execution_time, "errors": len(result.errors)},
        )
    store_save_report(run_id, suite)
    store_set_status(run_id, "completed")
    add_event(run_id, "info", f"passed {suite.summary.passed}/{suite.summary.total}")
    return suite


def fetch_status(run_id: str) -> Optional[RunStatus]:
    return store_get_run(run_id)


def fetch_trace(run_id: str) -> Optional[RunTrace]:
    return store_get_trace(run_id)


def fetch_report(run_id: str) -> Optional[TestSuiteResult]:
    return store_get_report(run_id)
