"""Runner contract for LLM invocation."""

from .base import (
    BaseRunner,
    Runner,
    RunnerOutput,
    call_runner,
    coerce_runner_output,
    validate_runner,
)

__all__ = [
    "BaseRunner",
    "Runner",
    "RunnerOutput",
    "call_runner",
    "coerce_runner_output",
    "validate_runner",
]
