from typing import List, Literal, Optional

from fastapi import APIRouter, HTTPException

from webgen_eval.schemas.scenarios import ScenarioView
from webgen_eval.services import runs as run_service
from webgen_eval.services.errors import ScenarioNotFoundError

scenarios_router = APIRouter(prefix="/scenarios", tags=["scenarios"])


@scenarios_router.get("", response_model=List[ScenarioView])
def list_scenarios(category: Optional[Literal["ui", "style", "javascript", "complex"]] = None):
    return [ScenarioView.from_scenario(s) for s in run_service.list_scenarios(category)]


@scenarios_router.get("/{scenario_id}", response_model=ScenarioView)
def get_scenario(scenario_id: str):
    try:
        scenario = run_service.get_scenario(scenario_id)
    except ScenarioNotFoundError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    return ScenarioView.from_scenario(scenario)
