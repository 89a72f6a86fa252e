"""Optimization configuration models."""

from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional, Set

from pydantic import BaseModel, ConfigDict, Field

from ..clients import validate_runner
from ..config import Settings
from ..errors import ConfigurationError

DEFAULT_GENERATIONS = 10
DEFAULT_POPULATION_SIZE = 8
DEFAULT_MUTATION_COUNT = 3
DEFAULT_CROSSOVER_RATE = 0.2
DEFAULT_TASK_TIMEOUT_MS = 30_000
MAX_GENERATIONS = 1000
MAX_POPULATION_SIZE = 100
MAX_MUTATION_COUNT = 20


class Direction(str, Enum):
    """Optimization direction of an objective."""

    MAXIMIZE = "maximize"
    MINIMIZE = "minimize"


class Objective(NamedTuple):
    """Metric name plus direction."""

    metric: str
    direction: Direction


DEFAULT_OBJECTIVES: List[Objective] = [
    Objective("accuracy", Direction.MAXIMIZE),
    Objective("token_cost", Direction.MINIMIZE),
]


class SelectionStrategy(str, Enum):
    """Survivor selection strategies."""

    PARETO_FIRST = "pareto_first"
    NSGA2 = "nsga2"
    WEIGHTED = "weighted"


DEFAULT_REFLECTION_TEMPLATE = """You are analyzing a prompt that failed on some tasks. Your goal is to understand WHY it failed and identify patterns.

## Current Prompt Template

{template_text}

## Failed Tasks ({sample_count} of {failure_count} failures)

{failures_text}

## Analysis Request

Analyze these failures and identify:
1. Common patterns in why the prompt failed
2. What the prompt is missing or doing wrong
3. Specific weaknesses in the prompt's instructions

Provide a concise analysis (2-4 paragraphs) focusing on actionable insights."""

DEFAULT_MUTATION_TEMPLATE = """You are improving a prompt based on failure analysis. Generate {mutation_count} improved versions.

## Current Prompt Template

{template_text}

## Failure Analysis

{reflection}

## Mutation Request

Generate exactly {mutation_count} improved prompt templates. Each should address the identified issues differently:

1. **Clarification**: Add clearer instructions or constraints
2. **Restructuring**: Reorganize or reformat the prompt
3. **Enhancement**: Add examples, context, or emphasis

Format your response as:

{format_blocks}

Important:
- Keep the {{{{input}}}} placeholder for the task input
- Each mutation should be a complete, standalone prompt template
- Focus on fixing the identified issues"""

DEFAULT_CROSSOVER_TEMPLATE = """You are combining elements from two successful prompts to create hybrid versions.

## Parent Prompt A

{template_a}

## Parent Prompt B

{template_b}

## Crossover Request

Create {children_count} hybrid prompt templates that combine the best elements from both parents.
Look for:
- Effective phrasing from either parent
- Structural elements that work well
- Instructions or constraints that improve clarity

Format your response as:

{format_blocks}

Important:
- Keep the {{{{input}}}} placeholder for the task input
- Each hybrid should be a complete, standalone prompt template
- Combine strengths from both parents rather than just concatenating"""


SUPPORTED_PROFILES: Set[str] = {"fast", "balanced", "quality", "advanced"}

PROFILE_PRESETS: Dict[str, Dict[str, Any]] = {
    "fast": {
        "generations": 4,
        "population_size": 12,
        "mutation_count": 2,
        "crossover_rate": 0.4,
        "parallel": True,
        "reflective_mutation": False,
    },
    "balanced": {
        "generations": 8,
        "population_size": 10,
        "mutation_count": 3,
        "crossover_rate": 0.35,
        "parallel": True,
        "reflective_mutation": True,
    },
    "quality": {
        "generations": 12,
        "population_size": 8,
        "mutation_count": 3,
        "crossover_rate": 0.2,
        "selection_strategy": SelectionStrategy.NSGA2.value,
        "reflective_mutation": True,
    },
    "advanced": {},
}


class OptimizationConfig(BaseModel):
    """GEPA optimization configuration."""

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid")

    runner: Optional[Any] = None
    generations: int = Field(default=DEFAULT_GENERATIONS, ge=1)
    population_size: int = Field(default=DEFAULT_POPULATION_SIZE, ge=1)
    mutation_count: int = Field(default=DEFAULT_MUTATION_COUNT, ge=0)
    objectives: List[Objective] = Field(default_factory=lambda: list(DEFAULT_OBJECTIVES))
    crossover_rate: float = Field(default=DEFAULT_CROSSOVER_RATE, ge=0.0, le=1.0)
    runner_opts: Dict[str, Any] = Field(default_factory=dict)
    selection_strategy: str = SelectionStrategy.PARETO_FIRST.value
    weights: Optional[Dict[str, float]] = None
    parallel: bool = False
    task_timeout_ms: int = Field(default=DEFAULT_TASK_TIMEOUT_MS, ge=1)
    reflective_mutation: bool = True
    seed: Optional[int] = None
    show_progress: bool = False

    def check_limits(self) -> None:
        """Validate runner and resource bounds before any work starts."""
        validate_runner(self.runner)
        if self.generations > MAX_GENERATIONS:
            raise ConfigurationError(
                "generations_exceeds_max",
                f"generations must be <= {MAX_GENERATIONS}, got {self.generations}"
            )
        if self.population_size > MAX_POPULATION_SIZE:
            raise ConfigurationError(
                "population_size_exceeds_max",
                f"population_size must be <= {MAX_POPULATION_SIZE}, got {self.population_size}"
            )
        if self.mutation_count > MAX_MUTATION_COUNT:
            raise ConfigurationError(
                "mutation_count_exceeds_max",
                f"mutation_count must be <= {MAX_MUTATION_COUNT}, got {self.mutation_count}"
            )

    @classmethod
    def from_profile(cls, profile: str, **overrides: Any) -> "OptimizationConfig":
        """Create config from a named profile with optional overrides."""
        if profile not in SUPPORTED_PROFILES:
            raise ValueError(
                f"Unknown profile '{profile}'. "
                f"Supported: {', '.join(sorted(SUPPORTED_PROFILES))}"
            )
        defaults = dict(PROFILE_PRESETS.get(profile, {}))
        defaults.update(overrides)
        return cls(**defaults)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        **overrides: Any
    ) -> "OptimizationConfig":
        """Create config from environment settings with optional overrides."""
        settings = settings or Settings()
        defaults: Dict[str, Any] = {
            "generations": settings.generations,
            "population_size": settings.population_size,
            "mutation_count": settings.mutation_count,
            "crossover_rate": settings.crossover_rate,
            "task_timeout_ms": settings.task_timeout_ms,
            "parallel": settings.parallel,
            "show_progress": settings.show_progress,
        }
        defaults.update(overrides)
        return cls(**defaults)
