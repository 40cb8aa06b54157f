"""Per-scenario virtual project files."""

from __future__ import annotations

import posixpath
from types import MappingProxyType
from typing import Dict, Mapping

from webgen_eval.eval.driver import DriverOutput
from webgen_eval.eval.scenarios import Scenario

FileSet = Mapping[str, str]


def normalize_path(path: str) -> str:
    """`index.html`, `./index.html` and `/index.html` all name the same file."""

    cleaned = (path or "").strip().replace("\\", "/")
    if not cleaned:
        raise ValueError("file path must not be empty")
    normalized = posixpath.normpath("/" + cleaned.lstrip("/"))
    if normalized == "/":
        raise ValueError(f"'{path}' does not name a file")
    return normalized


class Fixture:
    """The file set one scenario execution starts from. Never shared between executions."""

    def __init__(self, files: Mapping[str, str] | None = None):
        self._files: Dict[str, str] = {
            normalize_path(path): content for path, content in (files or {}).items()
        }

    @classmethod
    def from_scenario(cls, scenario: Scenario) -> "Fixture":
        return cls(scenario.setup_files)

    def files(self) -> FileSet:
        """A read-only copy, safe to hand to a driver."""
        return MappingProxyType(dict(self._files))

    def apply(self, output: DriverOutput) -> FileSet:
        """Overlay the driver's files on the fixture, producing the final file set.

        Order is fixture files first, then created files in the order the driver
        returned them.
        """
        final: Dict[str, str] = dict(self._files)
        for path, content in output.modified_files.items():
            final[normalize_path(path)] = content
        for path, content in output.created_files.items():
            final[normalize_path(path)] = content
        return MappingProxyType(final)
