"""LLM-based qualitative grading. Advisory only; never decides pass/fail."""

from __future__ import annotations

import json
import math
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, runtime_checkable

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from webgen_eval.agent.llm import make_llm
from webgen_eval.eval.models import EvaluationAspects, LLMEvaluation, ValidationResult
from webgen_eval.services.errors import EvaluatorUnavailable

MAX_FILE_CHARS = 12_000


@runtime_checkable
class QualitativeEvaluator(Protocol):
    async def evaluate(
        self,
        prompt: str,
        files: Mapping[str, str],
        deterministic: ValidationResult,
        *,
        timeout: float,
    ) -> LLMEvaluation:
        """Raise `EvaluatorUnavailable` when no verdict can be produced."""
        ...


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


class LLMJudge:
    """LLM-as-judge scoring of generated web projects."""

    def __init__(
        self,
        provider: str = "openai",
        model: str | None = None,
        threshold: float = 0.6,
        llm_factory: Callable[..., ChatOpenAI] = make_llm,
    ):
        self.provider = provider
        self.model_name = model or "gpt-4o-mini"
        self.threshold = threshold
        self._llm_factory = llm_factory

    @staticmethod
    def _parse_response(raw_text: str) -> Dict[str, object]:
        text = (raw_text or "").strip()
        if text.startswith("```"):
            # Drop optional fence language hint and closing fence
            first_newline = text.find("\n")
            if first_newline != -1:
                text = text[first_newline + 1 :]
            if text.endswith("```"):
                text = text[: -3]
            text = text.strip()
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            start = text.find("{")
            end = text.rfind("}")
            if start != -1 and end != -1 and end > start:
                snippet = text[start : end + 1]
                try:
                    return json.loads(snippet)
                except json.JSONDecodeError as exc:
                    raise EvaluatorUnavailable(f"Judge returned malformed JSON: {raw_text}") from exc
            raise EvaluatorUnavailable(f"Judge returned malformed JSON: {raw_text}")

    def _to_evaluation(self, data: Dict[str, object]) -> LLMEvaluation:
        if not isinstance(data, dict):
            raise EvaluatorUnavailable("Judge verdict must be a JSON object")
        try:
            score = float(data.get("score", 0.0))  # type: ignore[arg-type]
        except (TypeError, ValueError) as exc:
            raise EvaluatorUnavailable(f"Judge returned a non-numeric score: {data.get('score')!r}") from exc
        if not math.isfinite(score):
            raise EvaluatorUnavailable(f"Judge returned a non-finite score: {score!r}")
        score = max(0.0, min(1.0, score))
        aspects = data.get("aspects") if isinstance(data.get("aspects"), dict) else {}
        verdict = data.get("success")
        return LLMEvaluation(
            success=_truthy(verdict) if verdict is not None else score >= self.threshold,
            score=score,
            reasoning=str(data.get("reasoning") or "").strip(),
            aspects=EvaluationAspects(
                functionality_implemented=_truthy(aspects.get("functionalityImplemented")),
                code_quality=_truthy(aspects.get("codeQuality")),
                requirements_met=_truthy(aspects.get("requirementsMet")),
                user_experience_good=_truthy(aspects.get("userExperienceGood")),
            ),
        )

    async def evaluate(
        self,
        prompt: str,
        files: Mapping[str, str],
        deterministic: ValidationResult,
        *,
        timeout: float,
    ) -> LLMEvaluation:
        try:
            llm = self._llm_factory(self.provider, self.model_name, timeout)
        except (RuntimeError, ValueError) as exc:
            raise EvaluatorUnavailable(f"judge unavailable: {exc}") from exc

        system = SystemMessage(
            content=(
                "You are a meticulous senior front-end reviewer. "
                "Judge whether the generated project fulfils the user's request. "
                "Return JSON with keys success (bool), score (0-1), reasoning (string) and "
                "aspects (object with booleans functionalityImplemented, codeQuality, "
                "requirementsMet, userExperienceGood)."
            )
        )
        human_payload: Dict[str, object] = {
            "task_prompt": prompt,
            "files": {path: content[:MAX_FILE_CHARS] for path, content in files.items()},
            "automated_checks": deterministic.to_report(),
        }
        human = HumanMessage(content=json.dumps(human_payload, ensure_ascii=False))

        try:
            raw = await llm.ainvoke([system, human])
        except Exception as exc:
            raise EvaluatorUnavailable(f"judge call failed: {exc}") from exc
        content: Optional[str] = raw.content if isinstance(raw.content, str) else None
        if content is None:
            raise EvaluatorUnavailable("judge returned non-text content")
        return self._to_evaluation(self._parse_response(content))
