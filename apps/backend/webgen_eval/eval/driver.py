"""Assistant driver contract and a replay implementation for offline runs."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Literal, Mapping, Optional, Protocol, runtime_checkable

from webgen_eval.services.errors import AssistantError


@dataclass(frozen=True, slots=True)
class TranscriptEntry:
    kind: Literal["tool_call", "assistant"]
    content: str
    name: Optional[str] = None
    arguments: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def as_tool_call(self) -> Dict[str, Any]:
        return {"name": self.name or "", "arguments": dict(self.arguments), "result": self.content}


@dataclass(frozen=True, slots=True)
class DriverOutput:
    modified_files: Mapping[str, str] = field(default_factory=dict, hash=False)
    created_files: Mapping[str, str] = field(default_factory=dict, hash=False)
    llm_calls: int = 0
    transcript: tuple[TranscriptEntry, ...] = ()

    def __post_init__(self) -> None:
        if self.llm_calls < 0:
            raise ValueError("llm_calls must be >= 0")
        object.__setattr__(self, "modified_files", MappingProxyType(dict(self.modified_files)))
        object.__setattr__(self, "created_files", MappingProxyType(dict(self.created_files)))
        object.__setattr__(self, "transcript", tuple(self.transcript))

    def tool_calls(self) -> List[Dict[str, Any]]:
        return [e.as_tool_call() for e in self.transcript if e.kind == "tool_call"]

    def responses(self) -> List[str]:
        return [e.content for e in self.transcript if e.kind == "assistant"]


@runtime_checkable
class AssistantDriver(Protocol):
    """Anything that can turn a prompt and a file set into file changes.

    Implementations raise `AssistantError` when they cannot produce a result. The
    harness enforces the deadline; `timeout` is passed so a driver can bound its own
    network calls.
    """

    provider: Optional[str]
    model: Optional[str]

    async def run(self, prompt: str, files: Mapping[str, str], *, timeout: float) -> DriverOutput:
        ...


def driver_output_from_dict(data: Mapping[str, Any]) -> DriverOutput:
    transcript = []
    for item in data.get("transcript") or []:
        transcript.append(
            TranscriptEntry(
                kind=item.get("kind", "assistant"),
                content=str(item.get("content", "")),
                name=item.get("name"),
                arguments=item.get("arguments") or {},
            )
        )
    return DriverOutput(
        modified_files=data.get("modifiedFiles") or {},
        created_files=data.get("createdFiles") or {},
        llm_calls=int(data.get("llmCalls", 0)),
        transcript=tuple(transcript),
    )


class ReplayDriver:
    """Returns recorded outputs keyed by scenario prompt."""

    def __init__(
        self,
        recordings: Mapping[str, DriverOutput],
        *,
        provider: str = "replay",
        model: str = "recorded",
    ):
        self._recordings = dict(recordings)
        self.provider = provider
        self.model = model

    @classmethod
    def from_file(cls, path: str | Path) -> "ReplayDriver":
        """Load ``{"provider", "model", "recordings": {prompt: output}}`` from JSON."""

        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        recordings = {
            prompt: driver_output_from_dict(item)
            for prompt, item in (raw.get("recordings") or {}).items()
        }
        return cls(
            recordings,
            provider=raw.get("provider", "replay"),
            model=raw.get("model", "recorded"),
        )

    async def run(self, prompt: str, files: Mapping[str, str], *, timeout: float) -> DriverOutput:
        try:
            return self._recordings[prompt]
        except KeyError:
            raise AssistantError(f"no recording for prompt: {prompt[:80]}") from None
