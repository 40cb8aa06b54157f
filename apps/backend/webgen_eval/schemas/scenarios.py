from pydantic import BaseModel
from typing import List, Optional

from webgen_eval.eval.scenarios import Scenario


class ScenarioView(BaseModel):
    id: str
    name: str
    category: str
    prompt: str
    setup_files: List[str]
    expected_elements: List[str]
    expected_patterns: List[str]
    timeout: Optional[int] = None

    @classmethod
    def from_scenario(cls, scenario: Scenario) -> "ScenarioView":
        return cls(
            id=scenario.id,
            name=scenario.name,
            category=scenario.category,
            prompt=scenario.prompt,
            setup_files=list(scenario.setup_files),
            expected_elements=list(scenario.expected_elements),
            expected_patterns=[p.pattern for p in scenario.expected_patterns],
            timeout=scenario.timeout,
        )
