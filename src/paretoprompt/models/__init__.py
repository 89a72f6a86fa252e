"""Data models for GEPA optimization."""

from .config import (
    DEFAULT_OBJECTIVES,
    PROFILE_PRESETS,
    SUPPORTED_PROFILES,
    Direction,
    Objective,
    OptimizationConfig,
    SelectionStrategy,
)
from .result import EvalResult, OptimizationResult, RunResult
from .task import Task
from .variant import PromptVariant

__all__ = [
    "DEFAULT_OBJECTIVES",
    "PROFILE_PRESETS",
    "SUPPORTED_PROFILES",
    "Direction",
    "Objective",
    "OptimizationConfig",
    "SelectionStrategy",
    "EvalResult",
    "OptimizationResult",
    "RunResult",
    "Task",
    "PromptVariant",
]
