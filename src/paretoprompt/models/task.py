"""Test task model for prompt evaluation."""

import re
import uuid
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator

Validator = Callable[[str], bool]

_WHITESPACE = re.compile(r"\s+")


def _task_id() -> str:
    return f"task_{uuid.uuid4().hex[:16]}"


def normalize(text: str) -> str:
    """Lower-case, trim and collapse whitespace."""
    return _WHITESPACE.sub(" ", text.strip().lower())


class Task(BaseModel):
    """Immutable test case: an input plus a success criterion.

    The ``validator`` must come from trusted code. It runs on every
    ``success`` call and receives the raw model output.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_task_id)
    input: str = Field(description="Task input sent to the runner")
    expected: Optional[str] = None
    validator: Optional[Validator] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("input")
    @classmethod
    def _input_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("input cannot be empty")
        return value

    def success(self, output: str) -> bool:
        """Check output against the validator, else the expected text."""
        if self.validator is not None:
            try:
                return self.validator(output) is True
            except Exception as e:
                logger.debug(f"Validator for task {self.id} raised: {e}")
                return False

        if self.expected is not None:
            if not isinstance(output, str):
                return False
            expected_normalized = normalize(self.expected)
            output_normalized = normalize(output)
            return (
                expected_normalized in output_normalized
                or output_normalized == expected_normalized
            )

        # No criterion: exploratory task, always passes.
        return True

    @classmethod
    def from_input(cls, text: str) -> "Task":
        """Create a task with no success criterion."""
        return cls(input=text)

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[str, str]]) -> List["Task"]:
        """Create tasks from (input, expected) pairs."""
        return [cls(input=text, expected=expected) for text, expected in pairs]
