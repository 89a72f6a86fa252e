"""GEPA - Genetic-Pareto Prompt Optimizer."""

from .clients import BaseRunner, RunnerOutput
from .config import Settings, get_settings
from .core import (
    GEPAOptimizer,
    ParetoSelector,
    PromptEvaluator,
    Reflector,
    aoptimize,
    evaluate_variant,
    optimize,
)
from .errors import (
    ConfigurationError,
    GEPAError,
    InvalidArgumentsError,
    InvalidRunnerResponseError,
)
from .models import (
    EvalResult,
    OptimizationConfig,
    OptimizationResult,
    PromptVariant,
    RunResult,
    Task,
)
from .telemetry import CollectingSink, Telemetry, TelemetryEvent

__version__ = "0.1.0"

__all__ = [
    "optimize",
    "aoptimize",
    "evaluate_variant",
    "GEPAOptimizer",
    "PromptEvaluator",
    "Reflector",
    "ParetoSelector",
    "BaseRunner",
    "RunnerOutput",
    "Settings",
    "get_settings",
    "OptimizationConfig",
    "OptimizationResult",
    "PromptVariant",
    "Task",
    "RunResult",
    "EvalResult",
    "Telemetry",
    "TelemetryEvent",
    "CollectingSink",
    "GEPAError",
    "ConfigurationError",
    "InvalidArgumentsError",
    "InvalidRunnerResponseError",
]
