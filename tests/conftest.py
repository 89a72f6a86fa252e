"""Shared fixtures: deterministic in-process runners."""

import itertools
import re
import threading
from typing import Any, Dict, List, Optional

import pytest

from paretoprompt.models import PromptVariant, Task

MUTATION_REQUEST = re.compile(r"Generate exactly (\d+) improved")
CROSSOVER_REQUEST = re.compile(r"Create (\d+) hybrid")

ANSWERS = {"2+2": "4", "3*3": "9", "10-7": "3"}


def mutation_blocks(count: int, prefix: str, counter: Any) -> str:
    """LLM-style response with count delimited templates."""
    return "\n\n".join(
        f"---MUTATION {i}---\n{prefix} #{next(counter)}: think step by step, then answer {{{{input}}}}"
        for i in range(1, count + 1)
    )


class ArithmeticRunner:
    """Answers arithmetic tasks and meta-prompts without any network."""

    def __init__(self, fail_inputs: Optional[List[str]] = None):
        self.fail_inputs = set(fail_inputs or [])
        self.calls: List[Dict[str, Any]] = []
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def __call__(self, prompt: Any, task_input: str, options: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            self.calls.append({"prompt": prompt, "input": task_input, "options": options})

        if task_input == "":
            return {"output": self._meta_response(prompt), "tokens": 50}
        if task_input in self.fail_inputs:
            raise RuntimeError(f"runner failed on {task_input}")

        answer = ANSWERS.get(task_input, "unknown")
        # Seed-style prompts only get the first task right.
        if "step by step" not in str(prompt) and task_input != "2+2":
            answer = "no idea"
        return {"output": f"The answer is {answer}", "tokens": len(str(prompt)) // 4}

    @property
    def task_calls(self) -> List[Dict[str, Any]]:
        return [call for call in self.calls if call["input"] != ""]

    def _meta_response(self, prompt: str) -> str:
        mutation = MUTATION_REQUEST.search(prompt)
        if mutation:
            return mutation_blocks(int(mutation.group(1)), "Improved", self._counter)
        crossover = CROSSOVER_REQUEST.search(prompt)
        if crossover:
            return mutation_blocks(int(crossover.group(1)), "Hybrid", self._counter)
        return "The prompt gives no reasoning guidance, so multi-step arithmetic fails."


@pytest.fixture
def runner() -> ArithmeticRunner:
    return ArithmeticRunner()


@pytest.fixture
def arithmetic_tasks() -> List[Task]:
    return Task.from_pairs([("2+2", "4"), ("3*3", "9"), ("10-7", "3")])


@pytest.fixture
def seed_variant() -> PromptVariant:
    return PromptVariant.seed("Answer: {{input}}")


def _make_variant(accuracy: float, token_cost: int, **kwargs: Any) -> PromptVariant:
    """Evaluated variant with the given metrics."""
    template = kwargs.pop("template", f"Prompt acc={accuracy} cost={token_cost}: {{{{input}}}}")
    return PromptVariant.seed(template, **kwargs).with_metrics(accuracy, token_cost)


@pytest.fixture
def make_variant():
    return _make_variant
