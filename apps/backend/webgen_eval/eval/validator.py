"""The four deterministic checks run against a final file set.

Each check is an independent function over the same read-only file mapping; `validate`
runs all of them without short-circuiting so every dimension is reported.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Mapping, Optional, Sequence

from bs4 import BeautifulSoup
from soupsieve import SelectorSyntaxError

from webgen_eval.eval.models import (
    ELEMENTS_LABEL,
    FUNCTIONAL_LABEL,
    PATTERNS_LABEL,
    SYNTAX_LABEL,
    ValidationResult,
)
from webgen_eval.eval.sandbox import FunctionalProbe, ProbeHints
from webgen_eval.eval.syntax import grammar_for, is_markup
from webgen_eval.services.errors import ValidationCheckError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CheckOutcome:
    passed: bool
    failures: List[str] = field(default_factory=list)

    @classmethod
    def from_failures(cls, failures: Iterable[str]) -> "CheckOutcome":
        items = list(failures)
        return cls(passed=not items, failures=items)


def check_syntax(files: Mapping[str, str]) -> CheckOutcome:
    failures: List[str] = []
    for path, content in files.items():
        grammar = grammar_for(path)
        if grammar is None:
            continue
        for error in grammar(content):
            failures.append(f"{path}: {error}")
    return CheckOutcome.from_failures(failures)


def _documents(files: Mapping[str, str]) -> List[BeautifulSoup]:
    return [BeautifulSoup(content, "html.parser") for path, content in files.items() if is_markup(path)]


def _fragments(files: Mapping[str, str]) -> List[BeautifulSoup]:
    """HTML produced from script template strings, e.g. ``el.innerHTML = `<div class="x">```."""

    pieces = []
    for path, content in files.items():
        if grammar_for(path) is None or is_markup(path):
            continue
        for literal in re.findall(r"`([^`]*<[a-zA-Z][^`]*)`|'([^'\n]*<[a-zA-Z][^'\n]*)'|\"([^\"\n]*<[a-zA-Z][^\"\n]*)\"", content):
            text = next((part for part in literal if part), "")
            if text:
                pieces.append(text)
    if not pieces:
        return []
    return [BeautifulSoup("\n".join(pieces), "html.parser")]


def check_elements(files: Mapping[str, str], selectors: Sequence[str]) -> CheckOutcome:
    if not selectors:
        return CheckOutcome(passed=True)
    documents = _documents(files) + _fragments(files)
    missing: List[str] = []
    for selector in selectors:
        try:
            found = any(doc.select_one(selector) is not None for doc in documents)
        except SelectorSyntaxError as exc:
            logger.debug("invalid selector %r: %s", selector, exc)
            found = False
        if not found:
            missing.append(selector)
    return CheckOutcome.from_failures(missing)


def concatenate(files: Mapping[str, str]) -> str:
    return "\n".join(files.values())


def check_patterns(files: Mapping[str, str], patterns: Sequence[re.Pattern[str]]) -> CheckOutcome:
    if not patterns:
        return CheckOutcome(passed=True)
    haystack = concatenate(files)
    return CheckOutcome.from_failures(p.pattern for p in patterns if not p.search(haystack))


async def check_functionality(
    files: Mapping[str, str],
    probe: Optional[FunctionalProbe],
    hints: ProbeHints,
) -> CheckOutcome:
    if probe is None:
        logger.warning("functional probe disabled; functional check passes without running")
        return CheckOutcome(passed=True)
    return CheckOutcome.from_failures(await probe.probe(files, hints))


def _guarded(label: str, check: Callable[[], CheckOutcome]) -> CheckOutcome:
    try:
        return check()
    except Exception as exc:
        error = ValidationCheckError(label, f"{label} check crashed: {exc}")
        logger.exception(error.message)
        return CheckOutcome(passed=False, failures=[error.message])


async def validate(
    files: Mapping[str, str],
    *,
    expected_elements: Sequence[str] = (),
    expected_patterns: Sequence[re.Pattern[str]] = (),
    probe: Optional[FunctionalProbe] = None,
) -> ValidationResult:
    syntax = _guarded(SYNTAX_LABEL, lambda: check_syntax(files))
    elements = _guarded(ELEMENTS_LABEL, lambda: check_elements(files, expected_elements))
    patterns = _guarded(PATTERNS_LABEL, lambda: check_patterns(files, expected_patterns))
    try:
        functional = await check_functionality(
            files, probe, ProbeHints.derive(expected_elements, expected_patterns)
        )
    except Exception as exc:
        error = ValidationCheckError(FUNCTIONAL_LABEL, f"{FUNCTIONAL_LABEL} check crashed: {exc}")
        logger.exception(error.message)
        functional = CheckOutcome(passed=False, failures=[error.message])

    return build_validation_result(syntax, elements, patterns, functional)


def build_validation_result(
    syntax: CheckOutcome,
    elements: CheckOutcome,
    patterns: CheckOutcome,
    functional: CheckOutcome,
) -> ValidationResult:
    return ValidationResult(
        syntax_valid=syntax.passed,
        syntax_errors=None if syntax.passed else syntax.failures,
        dom_elements_present=elements.passed,
        missing_elements=None if elements.passed else elements.failures,
        patterns_found=patterns.passed,
        missing_patterns=None if patterns.passed else patterns.failures,
        functionality_works=functional.passed,
        functionality_errors=None if functional.passed else functional.failures,
    )


def labelled_failures(result: ValidationResult) -> List[str]:
    """Flatten the four failure lists into `label: message` strings, in check order."""

    labelled: List[str] = []
    for label, entries in (
        (SYNTAX_LABEL, result.syntax_errors),
        (ELEMENTS_LABEL, result.missing_elements),
        (PATTERNS_LABEL, result.missing_patterns),
        (FUNCTIONAL_LABEL, result.functionality_errors),
    ):
        labelled.extend(f"{label}: {entry}" for entry in entries or [])
    return labelled
