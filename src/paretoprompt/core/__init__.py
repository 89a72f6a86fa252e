"""Core GEPA optimization engine."""

from .evaluator import PromptEvaluator, evaluate_variant, run_single_task
from .engine.optimizer import GEPAOptimizer, aoptimize, optimize
from .pareto import ParetoSelector, dominates, pareto_front, select_survivors
from .reflector import Reflector, crossover, mutate_prompt, propose_mutations, reflect_on_failures

__all__ = [
    "GEPAOptimizer",
    "PromptEvaluator",
    "ParetoSelector",
    "Reflector",
    "optimize",
    "aoptimize",
    "evaluate_variant",
    "run_single_task",
    "dominates",
    "pareto_front",
    "select_survivors",
    "reflect_on_failures",
    "propose_mutations",
    "mutate_prompt",
    "crossover",
]
