from __future__ import annotations

import json
import logging
from typing import Callable, Literal, Mapping, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, Field

from webgen_eval.agent.llm import acall_llm_structured, make_llm
from webgen_eval.eval.driver import DriverOutput, TranscriptEntry
from webgen_eval.eval.fixtures import normalize_path
from webgen_eval.services.errors import AssistantError

logger = logging.getLogger(__name__)


class FileChange(BaseModel):
    path: str = Field(..., min_length=1, description="Project path, e.g. /index.html")
    action: Literal["create", "modify"]
    content: str = Field(..., description="Complete new file content")


class FileEdits(BaseModel):
    summary: str = Field("", description="One or two sentences describing the change")
    files: list[FileChange] = Field(default_factory=list)


SYSTEM_PROMPT = (
    "You are a web developer editing a small static site made of HTML, CSS and JavaScript.\n"
    "You receive the task and every current project file.\n"
    "Rules:\n"
    "- Return only the files you change or create, each with its COMPLETE new content.\n"
    "- Use action 'modify' for existing paths and 'create' for new ones.\n"
    "- Keep paths absolute (leading '/').\n"
    "- Plain HTML/CSS/JS only. No build step, no frameworks, no external packages.\n"
    "- Preserve working code you were not asked to change.\n"
)


def render_project(files: Mapping[str, str]) -> str:
    if not files:
        return "(the project is empty)"
    return "\n\n".join(f"=== {path} ===\n{content}" for path, content in files.items())


class LLMAssistantDriver:
    """Asks a chat model for whole-file edits in one structured round-trip."""

    def __init__(
        self,
        *,
        provider: str = "openai",
        model: Optional[str] = None,
        retries: int = 2,
        llm_factory: Callable[..., ChatOpenAI] = make_llm,
    ):
        self.provider = provider
        self.model = model
        self.retries = retries
        self._llm_factory = llm_factory

    async def run(self, prompt: str, files: Mapping[str, str], *, timeout: float) -> DriverOutput:
        try:
            llm = self._llm_factory(self.provider, self.model, timeout)
        except (RuntimeError, ValueError) as exc:
            raise AssistantError(f"assistant unavailable: {exc}") from exc

        messages = [
            SystemMessage(content=SYSTEM_PROMPT),
            HumanMessage(
                content=(
                    f"Task:\n{prompt}\n\n"
                    f"Current project files:\n{render_project(files)}\n\n"
                    "Return the edits now."
                )
            ),
        ]
        try:
            call = await acall_llm_structured(messages, FileEdits, llm=llm, retries=self.retries)
        except Exception as exc:
            logger.warning("assistant call failed: %s", exc)
            raise AssistantError(f"assistant call failed: {exc}") from exc

        edits: FileEdits = call.parsed  # type: ignore[assignment]
        existing = {normalize_path(p) for p in files}
        modified: dict[str, str] = {}
        created: dict[str, str] = {}
        transcript = []
        for change in edits.files:
            try:
                path = normalize_path(change.path)
            except ValueError as exc:
                raise AssistantError(f"assistant returned an invalid path: {exc}") from exc
            # Trust the file set over the model's own label.
            target = modified if path in existing else created
            target[path] = change.content
            transcript.append(
                TranscriptEntry(
                    kind="tool_call",
                    name="write_file",
                    arguments={"path": path, "action": change.action},
                    content=f"{len(change.content)} chars",
                )
            )
        transcript.append(
            TranscriptEntry(kind="assistant", content=edits.summary or call.raw_text or json.dumps([c.path for c in edits.files]))
        )
        return DriverOutput(
            modified_files=modified,
            created_files=created,
            llm_calls=call.attempts,
            transcript=tuple(transcript),
        )
