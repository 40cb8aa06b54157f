import re

import pytest

from webgen_eval.eval import validator
from webgen_eval.eval.fixtures import Fixture
from webgen_eval.eval.models import ValidationResult
from webgen_eval.eval.scenarios import default_registry
from webgen_eval.eval.validator import (
    check_elements,
    check_patterns,
    check_syntax,
    labelled_failures,
    validate,
)

GRADIENT = [
    re.compile(r"linear-gradient", re.I),
    re.compile(r"#ff8c42", re.I),
    re.compile(r"#e65100", re.I),
]


def test_missing_hamburger_is_reported():
    scenario = default_registry().by_id("ui-hamburger-menu")
    files = Fixture.from_scenario(scenario).files()
    outcome = check_elements(files, scenario.expected_elements)
    assert not outcome.passed
    assert outcome.failures == [".hamburger"]


def test_gradient_patterns_found():
    files = {"/styles.css": "body { background: linear-gradient(#FF8C42, #e65100); }"}
    outcome = check_patterns(files, GRADIENT)
    assert outcome.passed
    assert outcome.failures == []


def test_patterns_match_across_files():
    files = {"/index.html": "<div class='todo'></div>", "/script.js": "localStorage.setItem('k', 1)"}
    outcome = check_patterns(files, [re.compile("todo"), re.compile("localStorage")])
    assert outcome.passed


def test_missing_patterns_keep_declared_order():
    outcome = check_patterns({"/a.css": "linear-gradient"}, GRADIENT)
    assert outcome.failures == ["#ff8c42", "#e65100"]


def test_empty_expectations_pass_regardless_of_content():
    files = {"/index.html": "<div", "/script.js": "???"}
    assert check_elements(files, ()).passed
    assert check_patterns(files, ()).passed


def test_selector_group_matches_any_member():
    files = {"/index.html": "<div id='theme-toggle'></div>"}
    assert check_elements(files, ["#nope, #theme-toggle"]).passed
    assert not check_elements(files, ["#nope, .also-nope"]).passed


def test_elements_rendered_from_script_templates_count():
    files = {
        "/index.html": "<main id='app'></main>",
        "/script.js": "app.innerHTML = `<ul class=\"todo-list\"><li class=\"todo-item\">x</li></ul>`;",
    }
    assert check_elements(files, [".todo-list", ".todo-item"]).passed


def test_invalid_selector_counts_as_missing():
    outcome = check_elements({"/index.html": "<div></div>"}, ["div[", "div"])
    assert outcome.failures == ["div["]


def test_syntax_errors_are_prefixed_with_path():
    outcome = check_syntax({"/index.html": "<div>", "/notes.txt": "<<<", "/a.css": "a { color: red; }"})
    assert not outcome.passed
    assert outcome.failures[0].startswith("/index.html: ")
    assert len(outcome.failures) == 1


@pytest.mark.asyncio
async def test_validate_runs_every_check(make_probe):
    files = {"/index.html": "<div>", "/a.js": "let x = 1;"}
    result = await validate(
        files,
        expected_elements=[".hamburger"],
        expected_patterns=[re.compile("gradient")],
        probe=make_probe(["uncaught error: boom"]),
    )
    assert not result.syntax_valid
    assert result.missing_elements == [".hamburger"]
    assert result.missing_patterns == ["gradient"]
    assert result.functionality_errors == ["uncaught error: boom"]
    labelled = labelled_failures(result)
    assert labelled[0].startswith("syntax: /index.html: ")
    assert labelled[1:] == [
        "elements: .hamburger",
        "patterns: gradient",
        "functional: uncaught error: boom",
    ]


@pytest.mark.asyncio
async def test_validate_without_probe_passes_functional():
    result = await validate({"/index.html": "<p>ok</p>"})
    assert result.all_passed
    assert result.to_report() == {
        "syntaxValid": True,
        "domElementsPresent": True,
        "patternsFound": True,
        "functionalityWorks": True,
    }


@pytest.mark.asyncio
async def test_validate_is_idempotent(quiet_probe):
    scenario = default_registry().by_id("ui-modal-dialog")
    files = Fixture.from_scenario(scenario).files()
    kwargs = dict(
        expected_elements=scenario.expected_elements,
        expected_patterns=scenario.expected_patterns,
        probe=quiet_probe,
    )
    first = await validate(files, **kwargs)
    second = await validate(files, **kwargs)
    assert first == second
    assert quiet_probe.calls[0] == dict(files)


@pytest.mark.asyncio
async def test_crashing_check_is_recorded_against_that_check_only(monkeypatch):
    def explode(files, patterns):
        raise RuntimeError("parser blew up")

    monkeypatch.setattr(validator, "check_patterns", explode)
    result = await validate({"/index.html": "<p>ok</p>"}, expected_patterns=[re.compile("x")])
    assert result.syntax_valid and result.dom_elements_present and result.functionality_works
    assert not result.patterns_found
    assert result.missing_patterns == ["patterns check crashed: parser blew up"]


@pytest.mark.asyncio
async def test_crashing_probe_is_recorded_as_functional_failure():
    class BrokenProbe:
        async def probe(self, files, hints):
            raise RuntimeError("browser missing")

    result = await validate({"/index.html": "<p>ok</p>"}, probe=BrokenProbe())
    assert result.functionality_errors == ["functional check crashed: browser missing"]


def test_validation_result_requires_reasons_for_failures():
    with pytest.raises(ValueError):
        ValidationResult(
            syntax_valid=False,
            dom_elements_present=True,
            patterns_found=True,
            functionality_works=True,
        )
