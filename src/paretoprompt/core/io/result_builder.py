"""Optimization result builder."""

import time
from datetime import datetime
from typing import List

from loguru import logger

from ...models import OptimizationResult, PromptVariant
from ..pareto import ParetoSelector


class ResultBuilder:
    """Build and log optimization results."""

    def __init__(self, pareto_selector: ParetoSelector):
        """Initialize result builder."""
        self.pareto_selector = pareto_selector

    def build(
        self,
        run_id: str,
        seed: PromptVariant,
        population: List[PromptVariant],
        all_generations: List[List[PromptVariant]],
        generations_run: int,
        total_evaluations: int,
        start_time: float
    ) -> OptimizationResult:
        """Build optimization result from the final population."""
        best_variants = self.pareto_selector.get_pareto_frontier(population)
        best_accuracy = max((v.accuracy for v in best_variants), default=0.0)
        elapsed = time.time() - start_time
        return OptimizationResult(
            run_id=run_id,
            seed=seed,
            best_variants=best_variants,
            best_accuracy=best_accuracy,
            final_population=population,
            generations_run=generations_run,
            total_evaluations=total_evaluations,
            all_generations=all_generations,
            started_at=datetime.fromtimestamp(start_time),
            finished_at=datetime.now(),
            duration_seconds=elapsed
        )

    def log_result(self, result: OptimizationResult, evaluation_cache_size: int) -> None:
        """Log optimization result summary."""
        logger.success(
            f"Optimization {result.run_id} complete in {result.duration_seconds:.1f}s: "
            f"{result.generations_run} generations, best accuracy {result.best_accuracy:.2%}"
        )
        logger.info(
            f"Evaluations: {result.total_evaluations} counted, "
            f"{evaluation_cache_size} unique templates evaluated"
        )
        logger.info(f"Pareto frontier ({len(result.best_variants)} variants):")
        for variant in result.best_variants:
            logger.info(f"  {variant}")

        if result.best_variants:
            self.pareto_selector.get_recommended_candidate(result.best_variants)
