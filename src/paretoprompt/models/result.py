"""Evaluation and optimization result models."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .task import Task
from .variant import PromptVariant


class RunResult(BaseModel):
    """Outcome of one task run for one variant."""

    model_config = ConfigDict(frozen=True)

    task: Task
    success: bool
    output: Optional[str] = None
    tokens: int = Field(default=0, ge=0)
    latency_ms: int = Field(default=0, ge=0)
    error: Optional[str] = None


class EvalResult(BaseModel):
    """Aggregated metrics of a variant over a task set."""

    model_config = ConfigDict(frozen=True)

    accuracy: float = Field(ge=0.0, le=1.0, description="Passed tasks ratio")
    token_cost: int = Field(ge=0, description="Sum of runner tokens")
    latency_ms: int = Field(ge=0, description="Mean task latency")
    results: List[RunResult] = Field(description="Per-task results, in task order")

    @property
    def failures(self) -> List[RunResult]:
        """Run results that did not pass."""
        return [result for result in self.results if not result.success]

    def __str__(self) -> str:
        return (
            f"Acc={self.accuracy:.2%}, Cost={self.token_cost}tok, "
            f"Latency={self.latency_ms}ms"
        )


class OptimizationResult(BaseModel):
    """GEPA optimization result with Pareto front and final population."""

    run_id: str
    seed: PromptVariant
    best_variants: List[PromptVariant]
    best_accuracy: float
    final_population: List[PromptVariant]
    generations_run: int
    total_evaluations: int
    all_generations: List[List[PromptVariant]] = Field(default_factory=list)
    started_at: datetime
    finished_at: datetime
    duration_seconds: float
