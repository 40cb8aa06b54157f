from __future__ import annotations


class HarnessError(RuntimeError):
    """Base error for harness failures; `status_code` is what the HTTP layer maps to."""

    status_code: int = 400

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.__class__.__name__
        super().__init__(self.message)


class AssistantError(HarnessError):
    """The assistant driver could not produce a result."""

    status_code = 502


class ScenarioTimeoutError(HarnessError, TimeoutError):
    status_code = 504

    def __init__(self, timeout_ms: int, message: str | None = None) -> None:
        self.timeout_ms = timeout_ms
        super().__init__(message or f"Scenario exceeded its {timeout_ms}ms deadline")


class ValidationCheckError(HarnessError):
    """A validation check itself crashed; recorded against that check only."""

    status_code = 500

    def __init__(self, check: str, message: str | None = None) -> None:
        self.check = check
        super().__init__(message or f"{check} check crashed")


class EvaluatorUnavailable(HarnessError):
    status_code = 503


class AggregationError(HarnessError):
    status_code = 500


class ScenarioNotFoundError(HarnessError):
    status_code = 404


class RunNotFoundError(HarnessError):
    status_code = 404
