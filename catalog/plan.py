"""
Condensed view of a MongoDB ``explain`` result, for observing index use.
"""

from typing import Any, Dict, Iterator, Optional

from pydantic import BaseModel, Field


def _walk_stages(stage: Optional[Dict[str, Any]]) -> Iterator[Dict[str, Any]]:
    """Yield a plan stage and all of its input stages, depth first."""
    if not stage:
        return
    yield stage
    if "inputStage" in stage:
        yield from _walk_stages(stage["inputStage"])
    for child in stage.get("inputStages", []):
        yield from _walk_stages(child)


class PlanSummary(BaseModel):
    """Winning plan and execution statistics of a query."""
    stage: str = Field(..., description="Access stage of the winning plan, e.g. COLLSCAN or IXSCAN")
    index_name: Optional[str] = Field(None, description="Index used by the winning plan")
    n_returned: Optional[int] = None
    total_docs_examined: Optional[int] = None
    total_keys_examined: Optional[int] = None
    execution_time_millis: Optional[int] = None

    @property
    def uses_index(self) -> bool:
        return self.stage == "IXSCAN" or self.index_name is not None

    @classmethod
    def from_explain(cls, explain: Dict[str, Any]) -> "PlanSummary":
        """
        Extract the access stage and statistics from an explain document.

        Args:
            explain: Raw result of the explain command

        Returns:
            PlanSummary; statistics are None when the verbosity did not include them
        """
        planner = explain.get("queryPlanner", {})
        winning = planner.get("winningPlan", {})
        # Newer servers nest the classic plan under queryPlan
        winning = winning.get("queryPlan", winning)

        access_stage = "UNKNOWN"
        index_name = None
        for stage in _walk_stages(winning):
            name = stage.get("stage")
            if name in ("COLLSCAN", "IXSCAN", "IDHACK", "EOF"):
                access_stage = name
                index_name = stage.get("indexName")
                break
        else:
            if winning.get("stage"):
                access_stage = winning["stage"]

        stats = explain.get("executionStats", {})
        return cls(
            stage=access_stage,
            index_name=index_name,
            n_returned=stats.get("nReturned"),
            total_docs_examined=stats.get("totalDocsExamined"),
            total_keys_examined=stats.get("totalKeysExamined"),
            execution_time_millis=stats.get("executionTimeMillis"),
        )
