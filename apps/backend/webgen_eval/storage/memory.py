from __future__ import annotations
import time
from typing import List, Dict, Optional
from uuid import uuid4
from webgen_eval.eval.models import TestSuiteResult
from webgen_eval.schemas.runs import RunEvent, RunStatus, RunTrace

# Process-local only; a restart forgets every run.
_RUNS: Dict[str, RunStatus] = {}
_EVENTS: Dict[str, List[RunEvent]] = {}
_REPORTS: Dict[str, TestSuiteResult] = {}
_STARTED: Dict[str, float] = {}

def create_run(scenario_ids: List[str]) -> RunStatus:
    run_id = str(uuid4())
    status = RunStatus(id=run_id, status="queued", scenario_ids=scenario_ids)
    _RUNS[run_id] = status
    _STARTED[run_id] = time.monotonic()
    _EVENTS[run_id] = [RunEvent(ts_ms=0, level="info", message=f"queued {len(scenario_ids)} scenarios")]
    return status

def get_run(run_id: str) -> Optional[RunStatus]:
    return _RUNS.get(run_id)

def set_status(run_id: str, status: str, error: Optional[str] = None) -> Optional[RunStatus]:
    current = _RUNS.get(run_id)
    if current is None:
        return None
    updated = current.model_copy(update={"status": status, "error": error})
    _RUNS[run_id] = updated
    return updated

def add_event(run_id: str, level: str, message: str, data: dict | None = None) -> None:
    elapsed = int((time.monotonic() - _STARTED.get(run_id, time.monotonic())) * 1000)
    _EVENTS.setdefault(run_id, []).append(RunEvent(ts_ms=elapsed, level=level, message=message, data=data))

def get_trace(run_id: str) -> Optional[RunTrace]:
    if run_id not in _RUNS:
        return None
    return RunTrace(id=run_id, events=_EVENTS.get(run_id, []))

def save_report(run_id: str, report: TestSuiteResult) -> None:
    _REPORTS[run_id] = report

def get_report(run_id: str) -> Optional[TestSuiteResult]:
    return _REPORTS.get(run_id)

def clear() -> None:
    _RUNS.clear()
    _EVENTS.clear()
    _REPORTS.clear()
    _STARTED.clear()
