"""Evolution engine for offspring generation."""

import math
import random
from typing import Callable, List, Optional, Tuple

from loguru import logger

from ...models import EvalResult, PromptVariant
from ...telemetry import MUTATION_EVENT, Telemetry
from ..reflector import Reflector

MIN_CROSSOVER_POPULATION = 2
CROSSOVER_CHILDREN_PER_PAIR = 2
GENERIC_REFLECTION = "Generate improved variants"

EvaluationLookup = Callable[[PromptVariant], Optional[EvalResult]]


def round_half_up(value: float) -> int:
    """Round to nearest integer, halves away from zero (value >= 0)."""
    return int(math.floor(value + 0.5))


class EvolutionEngine:
    """Generate mutation and crossover offspring from survivors.

    A failed reflector call for one survivor or pair only removes that
    source's offspring; the rest of the generation proceeds.
    """

    def __init__(
        self,
        reflector: Reflector,
        telemetry: Telemetry,
        rng: random.Random,
        lookup_evaluation: Optional[EvaluationLookup] = None,
        reflective_mutation: bool = True
    ):
        """Initialize evolution engine."""
        self.reflector = reflector
        self.telemetry = telemetry
        self.rng = rng
        self.lookup_evaluation = lookup_evaluation
        self.reflective_mutation = reflective_mutation

    def generate_offspring(
        self,
        survivors: List[PromptVariant],
        mutation_count: int,
        crossover_rate: float
    ) -> List[PromptVariant]:
        """Split the offspring budget between mutation and crossover."""
        total_to_generate = len(survivors) * mutation_count
        crossover_count = round_half_up(total_to_generate * crossover_rate)
        mutation_total = total_to_generate - crossover_count

        offspring = self._generate_mutation_candidates(survivors, mutation_total)
        if crossover_count > 0 and len(survivors) >= MIN_CROSSOVER_POPULATION:
            offspring.extend(self._generate_crossover_candidates(survivors, crossover_count))

        logger.info(
            f"Offspring: {len(offspring)} "
            f"(budget {mutation_total} mutations + {crossover_count} crossovers)"
        )
        return offspring

    def _generate_mutation_candidates(
        self,
        survivors: List[PromptVariant],
        mutation_total: int
    ) -> List[PromptVariant]:
        """Request an even share of mutations for every survivor."""
        per_survivor = mutation_total // max(1, len(survivors))
        if per_survivor <= 0:
            return []

        new_candidates: List[PromptVariant] = []
        for survivor in survivors:
            try:
                children = self._mutate(survivor, per_survivor)
            except Exception as e:
                logger.warning(f"Mutation of {survivor.id} failed: {e}")
                continue

            new_candidates.extend(children)
            self.telemetry.emit(
                MUTATION_EVENT,
                {"mutation_count": len(children)},
                {"parent_id": survivor.id, "generation": survivor.generation}
            )
        return new_candidates

    def _mutate(self, survivor: PromptVariant, count: int) -> List[PromptVariant]:
        """Reflect on known failures when available, else ask for generic improvements."""
        eval_result = None
        if self.reflective_mutation and self.lookup_evaluation is not None:
            eval_result = self.lookup_evaluation(survivor)

        if eval_result is not None and eval_result.failures:
            return self.reflector.mutate_prompt(survivor, eval_result, mutation_count=count)

        templates = self.reflector.propose_mutations(
            survivor,
            GENERIC_REFLECTION,
            mutation_count=count
        )
        return [survivor.create_child(template) for template in templates]

    def _generate_crossover_candidates(
        self,
        survivors: List[PromptVariant],
        crossover_count: int
    ) -> List[PromptVariant]:
        """Cross shuffled disjoint survivor pairs, two children per pair."""
        pairs = self._select_crossover_pairs(survivors, crossover_count)
        new_candidates: List[PromptVariant] = []
        for parent_a, parent_b in pairs:
            try:
                children = self.reflector.crossover(
                    parent_a,
                    parent_b,
                    children_count=CROSSOVER_CHILDREN_PER_PAIR
                )
            except Exception as e:
                logger.warning(f"Crossover {parent_a.id} + {parent_b.id} failed: {e}")
                continue
            new_candidates.extend(children)
        return new_candidates[:crossover_count]

    def _select_crossover_pairs(
        self,
        survivors: List[PromptVariant],
        crossover_count: int
    ) -> List[Tuple[PromptVariant, PromptVariant]]:
        """Shuffle survivors and chunk them into disjoint pairs."""
        shuffled = list(survivors)
        self.rng.shuffle(shuffled)
        pairs = [
            (shuffled[i], shuffled[i + 1])
            for i in range(0, len(shuffled) - 1, 2)
        ]
        return pairs[:crossover_count // 2 + 1]
