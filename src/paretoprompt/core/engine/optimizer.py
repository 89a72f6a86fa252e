"""GEPA Optimizer - Main genetic-Pareto optimization loop."""

import asyncio
import json
import random
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from loguru import logger
from pydantic import ValidationError

from ...clients import Runner
from ...errors import GEPAError, InvalidArgumentsError
from ...models import EvalResult, OptimizationConfig, OptimizationResult, PromptVariant, Task
from ...models.variant import Template
from ...telemetry import COMPLETE_EVENT, EVALUATION_EVENT, GENERATION_EVENT, Telemetry
from ..evaluator import PromptEvaluator, ensure_no_running_loop
from ..io.result_builder import ResultBuilder
from ..pareto import ParetoSelector
from ..reflector import Reflector
from ..ui.progress_tracker import ProgressTracker
from .evolution_engine import EvolutionEngine

MIN_SURVIVORS = 2
INITIAL_REFLECTION = "Initial population generation"


def template_key(template: Template) -> str:
    """Stable text key for a string or map template."""
    if isinstance(template, str):
        return template
    return json.dumps(template, sort_keys=True, default=str)


def count_new_evaluations(
    old_population: Sequence[PromptVariant],
    new_population: Sequence[PromptVariant]
) -> int:
    """Approximate evaluations done in a generation from population deltas."""
    old_evaluated = sum(1 for v in old_population if v.evaluated)
    new_evaluated = sum(1 for v in new_population if v.evaluated)
    return max(0, new_evaluated - old_evaluated + len(new_population) - len(old_population))


class GEPAOptimizer:
    """Genetic-Pareto optimizer for prompt templates.

    Each generation evaluates unevaluated variants, keeps Pareto survivors
    and asks the runner for mutation and crossover offspring. The loop always
    runs the configured number of generations.
    """

    def __init__(self, config: OptimizationConfig, telemetry: Optional[Telemetry] = None):
        """Initialize optimizer; raises ConfigurationError on invalid limits or runner."""
        config.check_limits()
        self.config = config
        self.telemetry = telemetry or Telemetry()

        self.evaluator = PromptEvaluator(
            runner=config.runner,
            parallel=config.parallel,
            timeout_ms=config.task_timeout_ms,
            runner_opts=config.runner_opts
        )
        self.reflector = Reflector(runner=config.runner, runner_opts=config.runner_opts)
        self.pareto_selector = ParetoSelector(
            objectives=config.objectives,
            strategy=config.selection_strategy,
            weights=config.weights
        )
        self.result_builder = ResultBuilder(self.pareto_selector)
        self.rng = random.Random(config.seed)
        self.evolution_engine = EvolutionEngine(
            reflector=self.reflector,
            telemetry=self.telemetry,
            rng=self.rng,
            lookup_evaluation=self._lookup_evaluation,
            reflective_mutation=config.reflective_mutation
        )

        self.evaluation_cache: Dict[Tuple[str, Tuple[str, ...]], EvalResult] = {}
        self._tasks_key: Tuple[str, ...] = ()
        self.run_id: Optional[str] = None

    def optimize(self, seed_template: Template, tasks: Sequence[Task]) -> OptimizationResult:
        """Run GEPA optimization from a seed template (blocking)."""
        ensure_no_running_loop("optimize")
        return asyncio.run(self.aoptimize(seed_template, tasks))

    async def aoptimize(self, seed_template: Template, tasks: Sequence[Task]) -> OptimizationResult:
        """Run GEPA optimization from a seed template."""
        if not isinstance(tasks, (list, tuple)) or not all(isinstance(t, Task) for t in tasks):
            raise InvalidArgumentsError("tasks must be a list of Task")
        try:
            seed = PromptVariant.seed(seed_template)
        except ValidationError as e:
            raise InvalidArgumentsError(f"invalid seed template: {e}") from e

        start_time = time.time()
        self.run_id = f"gepa_run_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
        self.evaluation_cache = {}
        logger.info(f"Starting GEPA optimization: {self.run_id}")
        self._log_run_settings(len(tasks))

        population = self._initialize_population(seed)
        all_generations: List[List[PromptVariant]] = []
        total_evaluations = 0

        with ProgressTracker(self.config.generations, enabled=self.config.show_progress) as progress:
            for generation in range(self.config.generations):
                self._log_generation_header(generation)
                new_population = await self.arun_generation(population, tasks, generation)
                total_evaluations += count_new_evaluations(population, new_population)
                population = new_population
                all_generations.append(list(population))
                best = max((v.accuracy for v in population if v.evaluated), default=0.0)
                progress.update_generation(generation, best)

        result = self.result_builder.build(
            run_id=self.run_id,
            seed=seed,
            population=population,
            all_generations=all_generations,
            generations_run=self.config.generations,
            total_evaluations=total_evaluations,
            start_time=start_time
        )
        self._emit_complete(result)
        self.result_builder.log_result(result, len(self.evaluation_cache))
        return result

    def run_generation(
        self,
        variants: Sequence[PromptVariant],
        tasks: Sequence[Task],
        generation: int
    ) -> List[PromptVariant]:
        """Evaluate, select survivors and breed the next population (blocking)."""
        ensure_no_running_loop("run_generation")
        return asyncio.run(self.arun_generation(variants, tasks, generation))

    async def arun_generation(
        self,
        variants: Sequence[PromptVariant],
        tasks: Sequence[Task],
        generation: int
    ) -> List[PromptVariant]:
        """Evaluate, select survivors and breed the next population."""
        if not isinstance(variants, (list, tuple)) or not all(isinstance(v, PromptVariant) for v in variants):
            raise InvalidArgumentsError("variants must be a list of PromptVariant")
        if not isinstance(tasks, (list, tuple)):
            raise InvalidArgumentsError("tasks must be a list of Task")
        self._tasks_key = tuple(task.id for task in tasks)

        evaluated = await self._evaluate_population(list(variants), tasks, generation)

        survivor_count = max(MIN_SURVIVORS, self.config.population_size // 2)
        survivors = self.pareto_selector.select_population(evaluated, survivor_count)
        self._emit_generation(evaluated, generation)

        offspring = self.evolution_engine.generate_offspring(
            survivors,
            mutation_count=self.config.mutation_count,
            crossover_rate=self.config.crossover_rate
        )

        next_population: List[PromptVariant] = []
        seen_ids = set()
        for variant in survivors + offspring:
            if variant.id in seen_ids:
                continue
            seen_ids.add(variant.id)
            next_population.append(variant)
        return next_population[:self.config.population_size]

    def best_variants(self, variants: Sequence[PromptVariant]) -> List[PromptVariant]:
        """Pareto front of a population under the configured objectives."""
        return self.pareto_selector.get_pareto_frontier(variants)

    def _initialize_population(self, seed: PromptVariant) -> List[PromptVariant]:
        """Expand the seed with one round of mutations."""
        mutation_count = min(self.config.population_size - 1, self.config.mutation_count)
        if mutation_count <= 0:
            return [seed]

        try:
            templates = self.reflector.propose_mutations(
                seed,
                INITIAL_REFLECTION,
                mutation_count=mutation_count
            )
        except Exception as e:
            logger.warning(f"Initial mutations failed, starting from seed only: {e}")
            return [seed]

        children = [seed.create_child(template) for template in templates]
        logger.info(f"Initial population: seed + {len(children)} mutations")
        return [seed] + children

    async def _evaluate_population(
        self,
        variants: List[PromptVariant],
        tasks: Sequence[Task],
        generation: int
    ) -> List[PromptVariant]:
        """Evaluate variants lacking metrics; evaluated ones pass through."""
        return [
            variant if variant.evaluated else await self._evaluate_variant(variant, tasks, generation)
            for variant in variants
        ]

    async def _evaluate_variant(
        self,
        variant: PromptVariant,
        tasks: Sequence[Task],
        generation: int
    ) -> PromptVariant:
        """Attach metrics from a (cached) evaluation; rejected evaluations score zero."""
        try:
            result = await self._evaluate_with_cache(variant, tasks)
        except GEPAError as e:
            logger.warning(f"Evaluation of {variant.id} failed ({e.reason}): {e}")
            return variant.with_metrics(accuracy=0.0, token_cost=0)

        updated = variant.with_metrics(
            accuracy=result.accuracy,
            token_cost=result.token_cost,
            latency_ms=result.latency_ms
        )
        self.telemetry.emit(
            EVALUATION_EVENT,
            {
                "accuracy": updated.accuracy or 0.0,
                "token_cost": updated.token_cost or 0,
                "latency_ms": updated.latency_ms or 0,
            },
            {"variant_id": updated.id, "generation": generation}
        )
        return updated

    async def _evaluate_with_cache(self, variant: PromptVariant, tasks: Sequence[Task]) -> EvalResult:
        """Evaluate template with caching to avoid redundant runner calls."""
        key = (template_key(variant.template), tuple(task.id for task in tasks))
        if key in self.evaluation_cache:
            logger.debug(f"Cache HIT for {variant.id}")
            return self.evaluation_cache[key]
        logger.debug(f"Cache MISS for {variant.id} - evaluating...")
        result = await self.evaluator.aevaluate_variant(variant, tasks)
        self.evaluation_cache[key] = result
        return result

    def _lookup_evaluation(self, variant: PromptVariant) -> Optional[EvalResult]:
        """Cached evaluation of a variant on the current task set, if any."""
        return self.evaluation_cache.get((template_key(variant.template), self._tasks_key))

    def _emit_generation(self, variants: List[PromptVariant], generation: int) -> None:
        evaluated = [v for v in variants if v.evaluated]
        if not evaluated:
            return

        accuracies = [v.accuracy for v in evaluated]
        front = self.pareto_selector.get_pareto_frontier(evaluated)
        best_accuracy = max(accuracies)
        avg_accuracy = sum(accuracies) / len(accuracies)
        logger.info(
            f"Generation {generation}: best={best_accuracy:.2%}, "
            f"avg={avg_accuracy:.2%}, front={len(front)}"
        )
        self.telemetry.emit(
            GENERATION_EVENT,
            {
                "best_accuracy": best_accuracy,
                "avg_accuracy": avg_accuracy,
                "token_cost": sum(v.token_cost for v in evaluated),
                "pareto_front_size": len(front),
            },
            {"generation": generation, "population_size": len(variants)}
        )

    def _emit_complete(self, result: OptimizationResult) -> None:
        best_id = result.best_variants[0].id if result.best_variants else None
        self.telemetry.emit(
            COMPLETE_EVENT,
            {
                "total_generations": result.generations_run,
                "total_evaluations": result.total_evaluations,
                "best_accuracy": result.best_accuracy,
            },
            {"best_variant_id": best_id, "pareto_front_size": len(result.best_variants)}
        )

    def _log_run_settings(self, task_count: int) -> None:
        """Log core run settings."""
        logger.info(f"Tasks: {task_count}")
        logger.info(f"Generations: {self.config.generations}")
        logger.info(f"Population: {self.config.population_size}")

    def _log_generation_header(self, generation: int) -> None:
        """Log generation header."""
        logger.info(f"\n{'='*60}")
        logger.info(f"Generation {generation + 1}/{self.config.generations}")
        logger.info(f"{'='*60}")


def _build_config(runner: Optional[Runner], options: Dict[str, Any]) -> OptimizationConfig:
    try:
        return OptimizationConfig(runner=runner, **options)
    except ValidationError as e:
        raise InvalidArgumentsError(f"invalid optimization options: {e}") from e


def optimize(
    seed_template: Template,
    tasks: Sequence[Task],
    runner: Optional[Runner] = None,
    telemetry: Optional[Telemetry] = None,
    **options: Any
) -> OptimizationResult:
    """Run GEPA optimization; options are OptimizationConfig fields."""
    config = _build_config(runner, options)
    return GEPAOptimizer(config, telemetry=telemetry).optimize(seed_template, tasks)


async def aoptimize(
    seed_template: Template,
    tasks: Sequence[Task],
    runner: Optional[Runner] = None,
    telemetry: Optional[Telemetry] = None,
    **options: Any
) -> OptimizationResult:
    """Async twin of optimize for callers already inside an event loop."""
    config = _build_config(runner, options)
    return await GEPAOptimizer(config, telemetry=telemetry).aoptimize(seed_template, tasks)
