"""Runner contract used for every LLM invocation."""

import inspect
import math
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional, Protocol

from pydantic import BaseModel, Field

from ..errors import ConfigurationError, InvalidRunnerResponseError

RUNNER_ARITY = 3


class RunnerOutput(BaseModel):
    """Successful runner payload."""

    output: str
    tokens: int = Field(default=0, ge=0)


class Runner(Protocol):
    """Callable performing one LLM call: (prompt, input, options) -> payload.

    The payload is a mapping or object exposing ``output`` (str) and
    ``tokens`` (int). Failure is signalled by raising.
    """

    def __call__(self, prompt: Any, task_input: str, options: Dict[str, Any]) -> Any:
        ...


class BaseRunner(ABC):
    """Abstract base class for object-style runners."""

    @abstractmethod
    def invoke(self, prompt: Any, task_input: str, options: Dict[str, Any]) -> Any:
        """Execute one LLM call and return its payload."""
        pass

    def __call__(self, prompt: Any, task_input: str, options: Dict[str, Any]) -> Any:
        return self.invoke(prompt, task_input, options)


def validate_runner(runner: Optional[Runner]) -> Runner:
    """Check runner presence and 3-positional-argument arity."""
    if runner is None:
        raise ConfigurationError("runner_required", "runner is required")
    if not callable(runner):
        raise ConfigurationError("invalid_runner", "runner must be callable")

    try:
        signature = inspect.signature(runner)
    except (TypeError, ValueError):
        # Builtins and some C callables expose no signature.
        return runner

    try:
        signature.bind(*([None] * RUNNER_ARITY))
    except TypeError:
        raise ConfigurationError(
            "invalid_runner",
            f"runner must accept exactly {RUNNER_ARITY} positional arguments"
        ) from None
    return runner


def coerce_runner_output(payload: Any) -> RunnerOutput:
    """Normalize a runner payload, rejecting ones without text output."""
    if isinstance(payload, RunnerOutput):
        return payload

    if isinstance(payload, Mapping):
        output = payload.get("output")
        tokens = payload.get("tokens")
    else:
        output = getattr(payload, "output", None)
        tokens = getattr(payload, "tokens", None)

    if not isinstance(output, str):
        raise InvalidRunnerResponseError(
            f"runner payload has no text output: {type(payload).__name__}"
        )

    if isinstance(tokens, bool) or not isinstance(tokens, (int, float)) or not math.isfinite(tokens):
        tokens = 0
    return RunnerOutput(output=output, tokens=max(0, round(tokens)))


def call_runner(
    runner: Runner,
    prompt: Any,
    task_input: str,
    options: Optional[Dict[str, Any]] = None
) -> RunnerOutput:
    """Invoke runner and normalize its payload; runner exceptions propagate."""
    payload = runner(prompt, task_input, dict(options or {}))
    return coerce_runner_output(payload)
