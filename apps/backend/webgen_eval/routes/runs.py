from fastapi import APIRouter, BackgroundTasks, HTTPException, status

from webgen_eval.eval.models import TestSuiteResult
from webgen_eval.schemas.runs import RunStart, RunStatus, RunTrace
from webgen_eval.services import runs as run_service
from webgen_eval.services.errors import HarnessError

runs_router = APIRouter(prefix="/runs", tags=["runs"])


@runs_router.post("", status_code=status.HTTP_201_CREATED, response_model=RunStatus)
def create_run(payload: RunStart, background_tasks: BackgroundTasks):
    try:
        run = run_service.start_run(payload)
    except HarnessError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    background_tasks.add_task(run_service.execute_run, run.id, payload)
    return run


@runs_router.get("/{run_id}", response_model=RunStatus)
def get_run(run_id: str):
    status_payload = run_service.fetch_status(run_id)
    if not status_payload:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="run not found")
    return status_payload


@runs_router.get("/{run_id}/trace", response_model=RunTrace)
def get_run_trace(run_id: str):
    trace = run_service.fetch_trace(run_id)
    if not trace:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="trace not found")
    return trace


@runs_router.get(
    "/{run_id}/report",
    response_model=TestSuiteResult,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
def get_run_report(run_id: str):
    report = run_service.fetch_report(run_id)
    if not report:
        if run_service.fetch_status(run_id):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="report not ready")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="run not found")
    return report
