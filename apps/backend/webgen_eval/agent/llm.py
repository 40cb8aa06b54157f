from __future__ import annotations
from dataclasses import dataclass
from functools import lru_cache
import os
from typing import Any, Optional, Type, TypeVar
from langchain_core.messages import BaseMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)


@dataclass(frozen=True, slots=True)
class Provider:
    id: str
    base_url: Optional[str]
    api_key_env: str


# OpenAI-compatible endpoints only; each is reached through ChatOpenAI.
PROVIDERS: dict[str, Provider] = {
    "openai": Provider("openai", None, "OPENAI_API_KEY"),
    "openrouter": Provider("openrouter", "https://openrouter.ai/api/v1", "OPENROUTER_API_KEY"),
    "groq": Provider("groq", "https://api.groq.com/openai/v1", "GROQ_API_KEY"),
}


def get_provider(provider_id: str) -> Provider:
    try:
        return PROVIDERS[provider_id]
    except KeyError:
        known = ", ".join(sorted(PROVIDERS))
        raise ValueError(f"unknown provider '{provider_id}' (known: {known})") from None


@lru_cache(maxsize=8)
def make_llm(provider: str = "openai", model: str | None = None, timeout: float | None = None) -> ChatOpenAI:
    endpoint = get_provider(provider)
    api_key = os.getenv(endpoint.api_key_env)
    if not api_key:
        raise RuntimeError(f"{endpoint.api_key_env} is not configured")
    model_name = model or os.getenv("WEBGEN_MODEL", "gpt-4o-mini")
    max_out = int(os.getenv("WEBGEN_MAX_OUTPUT_TOKENS", "8000"))
    temperature = float(os.getenv("WEBGEN_TEMPERATURE", "0.2"))
    kwargs: dict[str, Any] = {
        "model": model_name,
        "max_tokens": max_out,
        "temperature": temperature,
        "api_key": api_key,
        "timeout": timeout,
    }
    if endpoint.base_url:
        kwargs["base_url"] = endpoint.base_url
    return ChatOpenAI(**kwargs)


@dataclass(slots=True)
class StructuredCall:
    """Parsed output plus how many model round-trips it took."""

    parsed: BaseModel
    attempts: int
    raw_text: str


async def acall_llm_structured(
    messages: list[BaseMessage],
    schema: Type[T],
    *,
    llm: ChatOpenAI,
    retries: int = 2,
) -> StructuredCall:
    ms = list(messages)
    last_exc: Optional[Exception] = None
    attempts = max(1, retries + 1)
    for attempt in range(attempts):
        try:
            runnable = llm.with_structured_output(schema, include_raw=True)
            out = await runnable.ainvoke(ms)
            parsed = out.get("parsed")
            parsing_error = out.get("parsing_error")
            if parsing_error:
                raise parsing_error
            if not isinstance(parsed, schema):
                parsed = schema.model_validate(parsed)
            raw_msg = out.get("raw")
            raw_text = raw_msg.content if isinstance(getattr(raw_msg, "content", None), str) else ""
            return StructuredCall(parsed=parsed, attempts=attempt + 1, raw_text=raw_text)
        except Exception as exc:
            last_exc = exc
            if attempt < attempts - 1:
                # Repair retry: explicitly nudge the model to comply
                ms = ms + [
                    SystemMessage(
                        content=(
                            "Your last response did not match the required schema.\n"
                            "Return ONLY a valid structured output for the schema. Do not add extra keys.\n"
                            f"Validation/parsing error: {str(exc)[:900]}"
                        )
                    )
                ]
                continue
            raise

    raise last_exc or RuntimeError("acall_llm_structured failed")
