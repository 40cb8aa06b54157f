from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

DEFAULT_TIMEOUT_MS = 30_000
DEFAULT_PROVIDER = "openrouter"
DEFAULT_MODEL = "openai/gpt-4o-mini"


def _get_int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except Exception:
        return default


def _get_float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except Exception:
        return default


def _get_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True, slots=True)
class HarnessConfig:
    """Knobs for one suite run. CLI flags are layered on top via `with_overrides`."""

    provider: str = DEFAULT_PROVIDER
    model: str = DEFAULT_MODEL
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    parallel: bool = False
    concurrency: int = 2
    verbose: bool = False
    save_results: bool = False
    results_path: Path = Path("test-results")
    judge_enabled: bool = False
    judge_model: str | None = None
    judge_threshold: float = 0.6
    functional_enabled: bool = True
    probe_ms: int = 1500
    headless: bool = True

    @classmethod
    def from_env(cls) -> "HarnessConfig":
        return cls(
            provider=os.getenv("WEBGEN_PROVIDER", DEFAULT_PROVIDER),
            model=os.getenv("WEBGEN_MODEL", DEFAULT_MODEL),
            timeout_ms=max(1, _get_int_env("WEBGEN_TIMEOUT_MS", DEFAULT_TIMEOUT_MS)),
            parallel=_get_bool_env("WEBGEN_PARALLEL", False),
            concurrency=max(1, _get_int_env("WEBGEN_CONCURRENCY", 2)),
            verbose=_get_bool_env("WEBGEN_VERBOSE", False),
            save_results=_get_bool_env("WEBGEN_SAVE_RESULTS", False),
            results_path=Path(os.getenv("WEBGEN_RESULTS_PATH", "test-results")),
            judge_enabled=_get_bool_env("WEBGEN_JUDGE", False),
            judge_model=os.getenv("WEBGEN_JUDGE_MODEL") or None,
            judge_threshold=_get_float_env("WEBGEN_JUDGE_THRESHOLD", 0.6),
            functional_enabled=_get_bool_env("WEBGEN_FUNCTIONAL", True),
            probe_ms=max(0, _get_int_env("WEBGEN_PROBE_MS", 1500)),
            headless=_get_bool_env("WEBGEN_HEADLESS", True),
        )

    def with_overrides(self, **overrides: Any) -> "HarnessConfig":
        # None means "flag not given"
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def timeout_for(self, scenario_timeout: int | None) -> int:
        return scenario_timeout if scenario_timeout else self.timeout_ms
