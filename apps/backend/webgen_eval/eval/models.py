"""Report models. Serialised field names are camelCase and stable across runs."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ReportModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_report(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# Label prefixes used in TestResult.errors; the aggregator clusters on them.
DRIVER_LABEL = "driver"
TIMEOUT_LABEL = "timeout"
SYNTAX_LABEL = "syntax"
ELEMENTS_LABEL = "elements"
PATTERNS_LABEL = "patterns"
FUNCTIONAL_LABEL = "functional"
DRIVER_ERROR_PREFIXES = (f"{DRIVER_LABEL}: ", f"{TIMEOUT_LABEL}: ")

_CHECK_PAIRS = (
    ("syntax_valid", "syntax_errors"),
    ("dom_elements_present", "missing_elements"),
    ("patterns_found", "missing_patterns"),
    ("functionality_works", "functionality_errors"),
)


class ValidationResult(ReportModel):
    syntax_valid: bool
    syntax_errors: Optional[List[str]] = None
    dom_elements_present: bool
    missing_elements: Optional[List[str]] = None
    patterns_found: bool
    missing_patterns: Optional[List[str]] = None
    functionality_works: bool
    functionality_errors: Optional[List[str]] = None

    @model_validator(mode="after")
    def _failures_pair_with_verdicts(self) -> "ValidationResult":
        for flag, failures in _CHECK_PAIRS:
            verdict = getattr(self, flag)
            entries = getattr(self, failures)
            if verdict and entries:
                raise ValueError(f"{failures} must be empty when {flag} is true")
            if not verdict and not entries:
                raise ValueError(f"{failures} must describe why {flag} is false")
        return self

    @property
    def all_passed(self) -> bool:
        return (
            self.syntax_valid
            and self.dom_elements_present
            and self.patterns_found
            and self.functionality_works
        )


class EvaluationAspects(ReportModel):
    functionality_implemented: bool = False
    code_quality: bool = False
    requirements_met: bool = False
    user_experience_good: bool = False


class LLMEvaluation(ReportModel):
    success: bool
    score: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""
    aspects: EvaluationAspects = Field(default_factory=EvaluationAspects)


class TestResult(ReportModel):
    __test__ = False  # keep pytest from collecting this model

    id: str
    scenario: str
    category: str
    prompt: str
    success: bool
    files_modified: List[str] = Field(default_factory=list)
    files_created: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    execution_time: float = Field(ge=0.0)
    llm_calls: int = Field(default=0, ge=0)
    validation_results: ValidationResult
    timestamp: str = Field(default_factory=utc_now_iso)
    provider: Optional[str] = None
    model: Optional[str] = None
    tool_calls: Optional[List[Dict[str, Any]]] = None
    llm_responses: Optional[List[str]] = None
    generated_content: Optional[Dict[str, str]] = None
    llm_evaluation: Optional[LLMEvaluation] = None

    @property
    def driver_failed(self) -> bool:
        return any(error.startswith(DRIVER_ERROR_PREFIXES) for error in self.errors)

    @model_validator(mode="after")
    def _success_is_derived(self) -> "TestResult":
        expected = self.validation_results.all_passed and not self.driver_failed
        if self.success != expected:
            raise ValueError("success must equal all checks passing with no driver failure")
        return self


class CategoryStats(ReportModel):
    total: int = 0
    passed: int = 0
    failed: int = 0


class FailureCluster(ReportModel):
    type: str
    count: int
    examples: List[str] = Field(default_factory=list)


class SuiteSummary(ReportModel):
    total: int
    passed: int
    failed: int
    success_rate: float
    average_time: float
    by_category: Dict[str, CategoryStats] = Field(default_factory=dict)
    common_failures: List[FailureCluster] = Field(default_factory=list)

    @model_validator(mode="after")
    def _counts_add_up(self) -> "SuiteSummary":
        if self.passed + self.failed != self.total:
            raise ValueError("passed + failed must equal total")
        return self


class TestSuiteResult(ReportModel):
    __test__ = False

    timestamp: str = Field(default_factory=utc_now_iso)
    provider: str
    model: str
    results: List[TestResult] = Field(default_factory=list)
    summary: SuiteSummary

    @model_validator(mode="after")
    def _summary_matches_results(self) -> "TestSuiteResult":
        if self.summary.total != len(self.results):
            raise ValueError("summary.total must equal the number of results")
        return self
