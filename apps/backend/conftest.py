from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import pytest


def pytest_configure() -> None:
    """
    Ensure local packages are importable regardless of pytest rootdir selection.

    - `import webgen_eval...` expects `/apps/backend` on sys.path
    """
    backend_root = Path(__file__).resolve().parent

    if str(backend_root) not in sys.path:
        sys.path.insert(0, str(backend_root))


class StubDriver:
    """Returns a canned output per prompt. An exception value is raised instead."""

    provider = "stub"
    model = "stub-model"

    def __init__(self, outputs: Optional[Dict[str, object]] = None, *, delay: float = 0.0):
        self.outputs = outputs or {}
        self.delay = delay
        self.prompts: List[str] = []

    async def run(self, prompt: str, files: Mapping[str, str], *, timeout: float):
        from webgen_eval.eval.driver import DriverOutput

        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        output = self.outputs.get(prompt)
        if isinstance(output, BaseException):
            raise output
        return output if output is not None else DriverOutput(llm_calls=1)


class StubProbe:
    """Functional probe with a fixed error list; never launches a browser."""

    def __init__(self, errors: Optional[List[str]] = None):
        self.errors = list(errors or [])
        self.calls: List[Dict[str, str]] = []

    async def probe(self, files, hints) -> List[str]:
        self.calls.append(dict(files))
        return list(self.errors)


@pytest.fixture
def make_driver():
    return StubDriver


@pytest.fixture
def make_probe():
    return StubProbe


@pytest.fixture
def quiet_probe():
    return StubProbe()
