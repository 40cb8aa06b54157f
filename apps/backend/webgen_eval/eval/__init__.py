"""Evaluation harness for the web code-generation assistant."""

from .driver import AssistantDriver, DriverOutput, ReplayDriver, TranscriptEntry
from .judge import LLMJudge, QualitativeEvaluator
from .models import TestResult, TestSuiteResult, ValidationResult
from .scenarios import Scenario, ScenarioRegistry, default_registry, load_scenarios

__all__ = [
    "AssistantDriver",
    "DriverOutput",
    "ReplayDriver",
    "TranscriptEntry",
    "LLMJudge",
    "QualitativeEvaluator",
    "TestResult",
    "TestSuiteResult",
    "ValidationResult",
    "Scenario",
    "ScenarioRegistry",
    "default_registry",
    "load_scenarios",
]
