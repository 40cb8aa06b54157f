import asyncio
import json

import pytest

from webgen_eval.config import HarnessConfig
from webgen_eval.eval.driver import DriverOutput, TranscriptEntry
from webgen_eval.eval.models import LLMEvaluation
from webgen_eval.eval.runner import run_scenario, run_suite, select_scenarios, summarise_and_log
from webgen_eval.eval.scenarios import BASIC_CSS, Scenario, default_registry
from webgen_eval.services.errors import AssistantError, EvaluatorUnavailable, ScenarioNotFoundError

CONFIG = HarnessConfig(timeout_ms=2_000)


class StaticJudge:
    def __init__(self, outcome):
        self.outcome = outcome
        self.calls = 0

    async def evaluate(self, prompt, files, deterministic, *, timeout):
        self.calls += 1
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


class PerPromptDelayDriver:
    provider = "stub"
    model = "stub-model"

    def __init__(self, delays):
        self.delays = delays
        self.finished = []

    async def run(self, prompt, files, *, timeout):
        await asyncio.sleep(self.delays.get(prompt, 0))
        self.finished.append(prompt)
        return DriverOutput(llm_calls=1)


def _scenario(scenario_id, prompt=None, **kwargs):
    kwargs.setdefault("category", "ui")
    kwargs.setdefault("setup_files", {"/index.html": "<p>hi</p>"})
    return Scenario(id=scenario_id, name=scenario_id, prompt=prompt or scenario_id, **kwargs)


@pytest.mark.asyncio
async def test_gradient_scenario_passes(make_driver, quiet_probe):
    scenario = default_registry().by_id("style-background-gradient")
    styles = BASIC_CSS + "\nbody { background: linear-gradient(135deg, #ff8c42, #e65100); }"
    driver = make_driver({
        scenario.prompt: DriverOutput(
            modified_files={"styles.css": styles},
            llm_calls=2,
            transcript=(
                TranscriptEntry(kind="tool_call", name="write_file", arguments={"path": "/styles.css"}, content="ok"),
                TranscriptEntry(kind="assistant", content="Done."),
            ),
        )
    })

    result = await run_scenario(scenario, driver, config=CONFIG, probe=quiet_probe)

    assert result.success, result.errors
    assert result.errors == []
    assert result.files_modified == ["/styles.css"]
    assert result.files_created == []
    assert result.llm_calls == 2
    assert result.tool_calls == [{"name": "write_file", "arguments": {"path": "/styles.css"}, "result": "ok"}]
    assert result.llm_responses == ["Done."]
    assert result.generated_content["/styles.css"] == styles
    assert result.provider == "stub"
    assert quiet_probe.calls[0]["/styles.css"] == styles


@pytest.mark.asyncio
async def test_hamburger_still_missing(make_driver, quiet_probe):
    scenario = default_registry().by_id("ui-hamburger-menu")
    driver = make_driver({
        scenario.prompt: DriverOutput(modified_files={"/index.html": scenario.setup_files["/index.html"]})
    })

    result = await run_scenario(scenario, driver, config=CONFIG, probe=quiet_probe)

    assert not result.success
    assert not result.validation_results.dom_elements_present
    assert result.validation_results.missing_elements == [".hamburger"]
    assert "elements: .hamburger" in result.errors


@pytest.mark.asyncio
async def test_timeout_keeps_only_fixture_files(make_driver, quiet_probe):
    scenario = _scenario("slow", timeout=50)
    driver = make_driver(
        {"slow": DriverOutput(created_files={"/late.js": "let late = true;"})}, delay=1.0
    )

    result = await run_scenario(scenario, driver, config=CONFIG, probe=quiet_probe)

    assert not result.success
    assert result.errors[0] == "timeout: Scenario exceeded its 50ms deadline"
    assert result.generated_content == {"/index.html": "<p>hi</p>"}
    assert result.files_created == [] and result.llm_calls == 0
    assert not result.validation_results.functionality_works
    assert result.execution_time < 1_000
    assert quiet_probe.calls == []


@pytest.mark.asyncio
async def test_assistant_error_is_recorded(make_driver):
    scenario = _scenario("broken")
    driver = make_driver({"broken": AssistantError("model refused")})
    judge = StaticJudge(LLMEvaluation(success=True, score=1.0))

    result = await run_scenario(scenario, driver, config=CONFIG, judge=judge)

    assert not result.success
    assert result.driver_failed
    assert result.errors[0] == "driver: model refused"
    assert result.llm_evaluation is None
    assert judge.calls == 0


@pytest.mark.asyncio
async def test_unexpected_driver_crash_is_wrapped(make_driver):
    driver = make_driver({"crash": KeyError("choices")})
    result = await run_scenario(_scenario("crash"), driver, config=CONFIG)
    assert result.errors[0].startswith("driver: unexpected driver failure:")


@pytest.mark.asyncio
async def test_judge_is_advisory(make_driver, quiet_probe):
    scenario = _scenario("judged")
    verdict = LLMEvaluation(success=False, score=0.1, reasoning="ugly")

    judged = await run_scenario(
        scenario, make_driver(), config=CONFIG, probe=quiet_probe, judge=StaticJudge(verdict)
    )
    assert judged.success
    assert judged.llm_evaluation == verdict

    unavailable = await run_scenario(
        scenario,
        make_driver(),
        config=CONFIG,
        probe=quiet_probe,
        judge=StaticJudge(EvaluatorUnavailable("no key")),
    )
    assert unavailable.success
    assert unavailable.llm_evaluation is None
    assert "llmEvaluation" not in unavailable.to_report()


@pytest.mark.asyncio
async def test_probe_errors_fail_the_scenario(make_driver, make_probe):
    result = await run_scenario(
        _scenario("js"), make_driver(), config=CONFIG, probe=make_probe(["uncaught error: x is not defined"])
    )
    assert not result.success
    assert result.errors == ["functional: uncaught error: x is not defined"]


@pytest.mark.asyncio
async def test_parallel_results_follow_registry_order(quiet_probe):
    scenarios = [_scenario("first"), _scenario("second", category="style"), _scenario("third")]
    driver = PerPromptDelayDriver({"first": 0.2, "second": 0.1, "third": 0.0})
    config = HarnessConfig(timeout_ms=2_000, parallel=True, concurrency=3)

    suite = await run_suite(scenarios, driver, config=config, probe=quiet_probe)

    assert driver.finished == ["third", "second", "first"]
    assert [r.id for r in suite.results] == ["first", "second", "third"]
    assert suite.summary.total == 3 and suite.summary.passed == 3
    assert suite.summary.by_category["ui"].total == 2


@pytest.mark.asyncio
async def test_suite_continues_after_failures(make_driver, quiet_probe):
    scenarios = [_scenario("ok"), _scenario("bad"), _scenario("ok")]
    driver = make_driver({"bad": AssistantError("boom")})

    suite = await run_suite(scenarios, driver, config=CONFIG, probe=quiet_probe)

    assert [r.id for r in suite.results] == ["ok", "bad"]
    assert (suite.summary.passed, suite.summary.failed) == (1, 1)
    assert [(c.type, c.count) for c in suite.summary.common_failures] == [("driver", 1), ("functional", 1)]


def test_select_scenarios():
    registry = default_registry()
    assert [s.id for s in select_scenarios(registry, quick=True)] == [
        "style-background-gradient",
        "ui-hamburger-menu",
        "js-countdown-timer",
    ]
    assert len(select_scenarios(registry, category="javascript")) == 2
    assert [s.id for s in select_scenarios(registry, ids=["js-fetch-api", "js-fetch-api"])] == ["js-fetch-api"]
    assert len(select_scenarios(registry)) == len(registry)
    with pytest.raises(ScenarioNotFoundError):
        select_scenarios(registry, ids=["nope"])


@pytest.mark.asyncio
async def test_summarise_and_log_writes_report(tmp_path, make_driver, quiet_probe, capsys):
    suite = await run_suite([_scenario("ok")], make_driver(), config=CONFIG, probe=quiet_probe)
    out = tmp_path / "nested" / "report.json"

    assert summarise_and_log(suite, out) == 0
    report = json.loads(out.read_text(encoding="utf-8"))
    assert report["summary"]["successRate"] == 1.0
    assert report["results"][0]["validationResults"]["functionalityWorks"] is True
    assert "[PASS] ok" in capsys.readouterr().err


@pytest.mark.asyncio
@pytest.mark.parametrize("parallel", [False, True])
async def test_invalid_driver_paths_fail_only_that_scenario(make_driver, quiet_probe, parallel):
    scenarios = [_scenario("bad-path"), _scenario("ok")]
    driver = make_driver({
        "bad-path": DriverOutput(
            modified_files={"index.html": "<p>changed</p>"},
            created_files={"/": "oops"},
        )
    })
    config = HarnessConfig(timeout_ms=2_000, parallel=parallel)

    suite = await run_suite(scenarios, driver, config=config, probe=quiet_probe)

    bad, ok = suite.results
    assert not bad.success
    assert bad.errors[0] == "driver: assistant returned an invalid path: '/' does not name a file"
    assert bad.generated_content == {"/index.html": "<p>hi</p>"}
    assert bad.files_modified == [] and bad.files_created == []
    assert ok.success
    assert (suite.summary.passed, suite.summary.failed) == (1, 1)


@pytest.mark.asyncio
async def test_driver_paths_are_normalised(make_driver, quiet_probe):
    driver = make_driver({"paths": DriverOutput(modified_files={"./index.html": "<p>x</p>"}, created_files={"js/app.js": ""})})
    result = await run_scenario(_scenario("paths"), driver, config=CONFIG, probe=quiet_probe)
    assert result.files_modified == ["/index.html"]
    assert result.files_created == ["/js/app.js"]
    assert result.generated_content == {"/index.html": "<p>x</p>", "/js/app.js": ""}
