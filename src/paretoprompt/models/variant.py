"""Prompt variant model for evolutionary optimization."""

import math
import uuid
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

Template = Union[str, Dict[str, Any]]

HIGHER_IS_BETTER = {"accuracy"}
CROSSOVER_MUTATION_TYPE = "crossover"


def _variant_id() -> str:
    return f"pv_{uuid.uuid4().hex[:16]}"


def _clamp_accuracy(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    return max(0.0, min(1.0, float(value)))


def _non_negative_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    return round(max(0, value))


class PromptVariant(BaseModel):
    """Candidate prompt template with lineage and optional metrics."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_variant_id)
    template: Template = Field(description="Prompt template, string or map of fragments")
    generation: int = Field(default=0, ge=0, description="Lineage depth, 0 = seed")
    parents: List[str] = Field(default_factory=list, max_length=2)
    accuracy: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    token_cost: Optional[int] = Field(default=None, ge=0)
    latency_ms: Optional[int] = Field(default=None, ge=0)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("template")
    @classmethod
    def _template_not_empty(cls, value: Template) -> Template:
        if len(value) == 0:
            raise ValueError("template must be a non-empty string or map")
        return value

    @property
    def evaluated(self) -> bool:
        """Both accuracy and token cost are known."""
        return self.accuracy is not None and self.token_cost is not None

    @classmethod
    def seed(cls, template: Template, **kwargs: Any) -> "PromptVariant":
        """Create a generation-0 variant with no parents."""
        return cls(template=template, generation=0, parents=[], **kwargs)

    def create_child(self, template: Template) -> "PromptVariant":
        """Create a single-parent mutation child."""
        return PromptVariant(
            template=template,
            generation=self.generation + 1,
            parents=[self.id],
            metadata=dict(self.metadata.get("inherited", {}))
        )

    @classmethod
    def crossover_child(
        cls,
        parent_a: "PromptVariant",
        parent_b: "PromptVariant",
        template: Template
    ) -> "PromptVariant":
        """Create a two-parent crossover child."""
        return cls(
            template=template,
            generation=max(parent_a.generation, parent_b.generation) + 1,
            parents=[parent_a.id, parent_b.id],
            metadata={"mutation_type": CROSSOVER_MUTATION_TYPE}
        )

    def with_metrics(
        self,
        accuracy: Any,
        token_cost: Any,
        latency_ms: Any = None
    ) -> "PromptVariant":
        """Return a copy with metrics attached (accuracy clamped, costs rounded)."""
        return self.model_copy(update={
            "accuracy": _clamp_accuracy(accuracy),
            "token_cost": _non_negative_int(token_cost),
            "latency_ms": _non_negative_int(latency_ms),
        })

    def compare(self, other: "PromptVariant", metric: str) -> str:
        """Compare on one metric: 'gt' means self is better."""
        mine = getattr(self, metric, None)
        theirs = getattr(other, metric, None)
        if mine is None or theirs is None or mine == theirs:
            return "eq"
        if metric in HIGHER_IS_BETTER:
            return "gt" if mine > theirs else "lt"
        return "gt" if mine < theirs else "lt"

    def __str__(self) -> str:
        if not self.evaluated:
            return f"Variant({self.id}, gen={self.generation}, unevaluated)"
        return (
            f"Variant({self.id}, gen={self.generation}, "
            f"Acc={self.accuracy:.2%}, Cost={self.token_cost}tok)"
        )
