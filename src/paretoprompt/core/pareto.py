"""Pareto selection for multi-objective optimization.

A variant A dominates B when it is at least as good on every objective and
strictly better on at least one. A metric missing on either side counts as a
tie for that objective. Only evaluated variants take part in fronts and
survivor selection.

All functions are deterministic: sorts are stable and nothing is random, so
identical inputs give identical output order.
"""

import math
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from ..models import PromptVariant
from ..models.config import DEFAULT_OBJECTIVES, Direction, Objective, SelectionStrategy

INFINITY = math.inf

ObjectiveLike = Tuple[str, str]


def _objectives(objectives: Optional[Iterable[ObjectiveLike]]) -> List[Objective]:
    if objectives is None:
        return list(DEFAULT_OBJECTIVES)
    return [Objective(metric, Direction(direction)) for metric, direction in objectives]


def _metric(variant: PromptVariant, metric: str) -> Optional[float]:
    return getattr(variant, metric, None)


def _compare(value_a: Optional[float], value_b: Optional[float], direction: Direction) -> int:
    """1 if a is better, -1 if worse, 0 on tie or missing value."""
    if value_a is None or value_b is None or value_a == value_b:
        return 0
    if direction == Direction.MAXIMIZE:
        return 1 if value_a > value_b else -1
    return 1 if value_a < value_b else -1


def dominates(
    variant_a: PromptVariant,
    variant_b: PromptVariant,
    objectives: Optional[Iterable[ObjectiveLike]] = None
) -> bool:
    """Check if variant_a Pareto-dominates variant_b."""
    comparisons = [
        _compare(_metric(variant_a, metric), _metric(variant_b, metric), direction)
        for metric, direction in _objectives(objectives)
    ]
    return all(c >= 0 for c in comparisons) and any(c > 0 for c in comparisons)


def pareto_front(
    variants: Sequence[PromptVariant],
    objectives: Optional[Iterable[ObjectiveLike]] = None
) -> List[PromptVariant]:
    """Extract non-dominated evaluated variants, in input order."""
    resolved = _objectives(objectives)
    evaluated = [v for v in variants if v.evaluated]
    return [
        variant for variant in evaluated
        if not any(
            other.id != variant.id and dominates(other, variant, resolved)
            for other in evaluated
        )
    ]


def crowding_distance(
    variants: Sequence[PromptVariant],
    objectives: Optional[Iterable[ObjectiveLike]] = None
) -> Dict[str, float]:
    """NSGA-II crowding distance per variant id; boundaries get infinity."""
    if len(variants) <= 2:
        return {v.id: INFINITY for v in variants}

    distances: Dict[str, float] = {v.id: 0.0 for v in variants}
    for metric, direction in _objectives(objectives):
        _add_objective_distance(variants, metric, direction, distances)
    return distances


def _add_objective_distance(
    variants: Sequence[PromptVariant],
    metric: str,
    direction: Direction,
    distances: Dict[str, float]
) -> None:
    """Accumulate one objective's normalized neighbour gaps into distances."""

    def value(v: PromptVariant) -> float:
        return _metric(v, metric) or 0

    sign = -1 if direction == Direction.MAXIMIZE else 1
    ordered = sorted(variants, key=lambda v: sign * value(v))
    values = [value(v) for v in ordered]
    value_range = max(values) - min(values)
    if value_range == 0:
        return

    distances[ordered[0].id] = INFINITY
    distances[ordered[-1].id] = INFINITY
    for idx in range(1, len(ordered) - 1):
        variant_id = ordered[idx].id
        if distances[variant_id] == INFINITY:
            continue
        distances[variant_id] += abs(values[idx + 1] - values[idx - 1]) / value_range


def _pick_by_crowding(
    variants: List[PromptVariant],
    count: int,
    objectives: List[Objective]
) -> List[PromptVariant]:
    """Keep the most isolated variants: infinity first, then descending distance."""
    distances = crowding_distance(variants, objectives)

    def sort_key(v: PromptVariant) -> Tuple[int, float]:
        distance = distances.get(v.id, 0.0)
        if distance == INFINITY:
            return (0, 0.0)
        return (1, -distance)

    return sorted(variants, key=sort_key)[:count]


def _without(variants: List[PromptVariant], removed: List[PromptVariant]) -> List[PromptVariant]:
    removed_ids = {v.id for v in removed}
    return [v for v in variants if v.id not in removed_ids]


def _pareto_first_select(
    variants: List[PromptVariant],
    count: int,
    objectives: List[Objective]
) -> List[PromptVariant]:
    """Take whole fronts recursively, trimming the last one by crowding."""
    if not variants or count <= 0:
        return []

    front = pareto_front(variants, objectives)
    if not front:
        return variants[:count]
    if len(front) >= count:
        return _pick_by_crowding(front, count, objectives)

    remainder = _without(variants, front)
    if not remainder:
        return front
    return front + _pareto_first_select(remainder, count - len(front), objectives)


def _nsga2_select(
    variants: List[PromptVariant],
    count: int,
    objectives: List[Objective]
) -> List[PromptVariant]:
    """Peel successive non-dominated fronts until the budget is filled."""
    selected: List[PromptVariant] = []
    remaining = list(variants)

    while remaining and len(selected) < count:
        needed = count - len(selected)
        front = pareto_front(remaining, objectives)
        if not front:
            selected.extend(remaining[:needed])
            break
        if len(front) <= needed:
            selected.extend(front)
            remaining = _without(remaining, front)
        else:
            selected.extend(_pick_by_crowding(front, needed, objectives))
            break

    return selected[:count]


def _default_weights(objectives: List[Objective]) -> Dict[str, float]:
    if not objectives:
        return {}
    weight = 1.0 / len(objectives)
    return {metric: weight for metric, _ in objectives}


def weighted_score(
    variant: PromptVariant,
    objectives: Optional[Iterable[ObjectiveLike]] = None,
    weights: Optional[Dict[str, float]] = None
) -> float:
    """Weighted sum of per-objective scores (minimized metrics are inverted)."""
    resolved = _objectives(objectives)
    weights = weights if weights is not None else _default_weights(resolved)

    score = 0.0
    for metric, direction in resolved:
        value = _metric(variant, metric) or 0
        if direction == Direction.MAXIMIZE:
            normalized = value
        else:
            normalized = 1.0 / value if value > 0 else 1.0
        score += normalized * weights.get(metric, 0)
    return score


def _weighted_select(
    variants: List[PromptVariant],
    count: int,
    objectives: List[Objective],
    weights: Optional[Dict[str, float]]
) -> List[PromptVariant]:
    if count <= 0:
        return []
    ranked = sorted(variants, key=lambda v: weighted_score(v, objectives, weights), reverse=True)
    return ranked[:count]


def select_survivors(
    variants: Sequence[PromptVariant],
    count: int,
    strategy: str = SelectionStrategy.PARETO_FIRST.value,
    objectives: Optional[Iterable[ObjectiveLike]] = None,
    weights: Optional[Dict[str, float]] = None
) -> List[PromptVariant]:
    """Select up to count evaluated variants for the next generation."""
    resolved = _objectives(objectives)
    evaluated = [v for v in variants if v.evaluated]

    try:
        strategy = SelectionStrategy(strategy)
    except ValueError:
        logger.warning(f"Unknown selection strategy '{strategy}', using pareto_first")
        strategy = SelectionStrategy.PARETO_FIRST

    if strategy == SelectionStrategy.NSGA2:
        selected = _nsga2_select(evaluated, count, resolved)
    elif strategy == SelectionStrategy.WEIGHTED:
        selected = _weighted_select(evaluated, count, resolved, weights)
    else:
        selected = _pareto_first_select(evaluated, count, resolved)

    logger.debug(
        f"Selected {len(selected)} survivors from {len(evaluated)} evaluated "
        f"({strategy.value})"
    )
    return selected


class ParetoSelector:
    """Pareto frontier selection bound to objectives and a strategy."""

    def __init__(
        self,
        objectives: Optional[Iterable[ObjectiveLike]] = None,
        strategy: str = SelectionStrategy.PARETO_FIRST.value,
        weights: Optional[Dict[str, float]] = None
    ):
        """Initialize selector with objectives, strategy and optional weights."""
        self.objectives = _objectives(objectives)
        self.strategy = strategy
        self.weights = weights

    def get_pareto_frontier(self, variants: Sequence[PromptVariant]) -> List[PromptVariant]:
        """Extract non-dominated variants from population."""
        frontier = pareto_front(variants, self.objectives)
        logger.debug(f"Pareto frontier: {len(frontier)} / {len(variants)} variants")
        return frontier

    def select_population(
        self,
        variants: Sequence[PromptVariant],
        count: int
    ) -> List[PromptVariant]:
        """Select survivors using the configured strategy."""
        return select_survivors(
            variants,
            count,
            strategy=self.strategy,
            objectives=self.objectives,
            weights=self.weights
        )

    def get_recommended_candidate(self, frontier: Sequence[PromptVariant]) -> PromptVariant:
        """Select best-balanced variant from a Pareto frontier."""
        if not frontier:
            raise ValueError("Cannot recommend from empty frontier")

        best = max(frontier, key=lambda v: weighted_score(v, self.objectives, self.weights))
        logger.info(
            f"Recommended variant: {best.id} with "
            f"score={weighted_score(best, self.objectives, self.weights):.3f}"
        )
        return best
