from pydantic import BaseModel, Field
from typing import Literal, List, Optional


class RunStart(BaseModel):
    scenario_ids: List[str] = Field(default_factory=list)
    category: Optional[Literal["ui", "style", "javascript", "complex"]] = None
    quick: bool = False
    provider: Optional[str] = None
    model: Optional[str] = None
    judge: Optional[bool] = None
    parallel: Optional[bool] = None

class RunStatus(BaseModel):
    id: str
    status: Literal["queued", "running", "completed", "failed"]
    scenario_ids: List[str] = Field(default_factory=list)
    error: Optional[str] = None

class RunEvent(BaseModel):
    ts_ms: int
    level: Literal["info", "warn", "error"]
    message: str
    data: dict | None = None

class RunTrace(BaseModel):
    id: str
    events: List[RunEvent]
