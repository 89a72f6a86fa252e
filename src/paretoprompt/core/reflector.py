"""LLM-driven reflection, mutation and crossover of prompt variants."""

from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from ..clients import Runner, call_runner, validate_runner
from ..errors import InvalidArgumentsError
from ..models import EvalResult, PromptVariant, RunResult
from ..models.config import (
    DEFAULT_CROSSOVER_TEMPLATE,
    DEFAULT_MUTATION_COUNT,
    DEFAULT_MUTATION_TEMPLATE,
    DEFAULT_REFLECTION_TEMPLATE,
)
from ..models.variant import Template
from .parsing import format_blocks, parse_mutations

MAX_FAILURE_SAMPLES = 5
MAX_INPUT_CHARS = 300
MAX_OUTPUT_CHARS = 500
DEFAULT_CHILDREN_COUNT = 2
NO_FAILURES_MESSAGE = "No failures to analyze. The prompt performed well on all tasks."


def truncate(text: Optional[str], max_length: int) -> str:
    """Cut text to max_length characters, marking the cut with '...'."""
    if text is None:
        return "(none)"
    if len(text) > max_length:
        return text[:max_length] + "..."
    return text


def format_template(template: Template) -> str:
    """Render a template as a fenced block for inclusion in meta-prompts."""
    if isinstance(template, dict):
        body = "\n".join(f"{key}: {value!r}" for key, value in template.items())
    else:
        body = str(template)
    return f"```\n{body}\n```"


def format_failure(result: RunResult, index: int) -> str:
    """Format one failing run for the reflection prompt."""
    task = result.task
    if task.expected is not None:
        expected = f"Expected: {task.expected}"
    elif task.validator is not None:
        expected = "Validator: custom function"
    else:
        expected = "No explicit criteria"

    if result.error:
        output = f"Error: {result.error}"
    elif result.output is not None:
        output = f"Output: {truncate(result.output, MAX_OUTPUT_CHARS)}"
    else:
        output = "Output: (none)"

    return (
        f"### Failure {index}\n"
        f"Input: {truncate(task.input, MAX_INPUT_CHARS)}\n"
        f"{expected}\n"
        f"{output}"
    )


def build_reflection_prompt(variant: PromptVariant, failing_results: Sequence[RunResult]) -> str:
    """Ask for a root-cause analysis of sampled failures."""
    sampled = list(failing_results[:MAX_FAILURE_SAMPLES])
    failures_text = "\n\n".join(
        format_failure(result, i) for i, result in enumerate(sampled, 1)
    )
    return DEFAULT_REFLECTION_TEMPLATE.format(
        template_text=format_template(variant.template),
        sample_count=len(sampled),
        failure_count=len(failing_results),
        failures_text=failures_text
    )


def build_mutation_prompt(variant: PromptVariant, reflection: str, mutation_count: int) -> str:
    """Ask for mutation_count improved templates in delimited blocks."""
    return DEFAULT_MUTATION_TEMPLATE.format(
        mutation_count=mutation_count,
        template_text=format_template(variant.template),
        reflection=reflection,
        format_blocks=format_blocks(mutation_count, "Your improved prompt template here")
    )


def build_crossover_prompt(
    variant_a: PromptVariant,
    variant_b: PromptVariant,
    children_count: int
) -> str:
    """Ask for children_count hybrids of two parent templates."""
    return DEFAULT_CROSSOVER_TEMPLATE.format(
        template_a=format_template(variant_a.template),
        template_b=format_template(variant_b.template),
        children_count=children_count,
        format_blocks=format_blocks(children_count, "Your hybrid prompt template here")
    )


class Reflector:
    """Generates new prompt variants through LLM reflection on failures.

    Runner exceptions propagate unchanged; a payload without text output
    raises InvalidRunnerResponseError.
    """

    def __init__(self, runner: Optional[Runner], runner_opts: Optional[Dict[str, Any]] = None):
        """Initialize reflector; raises ConfigurationError for a bad runner."""
        self.runner = validate_runner(runner)
        self.runner_opts = dict(runner_opts or {})

    def reflect_on_failures(
        self,
        variant: PromptVariant,
        failing_results: Sequence[RunResult]
    ) -> str:
        """Analyze why tasks failed and return a natural-language reflection."""
        if not isinstance(variant, PromptVariant) or not isinstance(failing_results, (list, tuple)):
            raise InvalidArgumentsError("reflect_on_failures expects a variant and a list of results")
        if not failing_results:
            return NO_FAILURES_MESSAGE

        logger.debug(f"Reflecting on {len(failing_results)} failures of {variant.id}")
        reflection = self._ask(build_reflection_prompt(variant, failing_results)).strip()
        logger.debug(f"Reflection: {reflection[:200]}...")
        return reflection

    def propose_mutations(
        self,
        variant: PromptVariant,
        reflection: str,
        mutation_count: int = DEFAULT_MUTATION_COUNT
    ) -> List[str]:
        """Generate up to mutation_count improved templates from a reflection."""
        if not isinstance(variant, PromptVariant) or not isinstance(reflection, str):
            raise InvalidArgumentsError("propose_mutations expects a variant and reflection text")

        output = self._ask(build_mutation_prompt(variant, reflection, mutation_count))
        templates = parse_mutations(output, mutation_count)
        logger.debug(f"Proposed {len(templates)}/{mutation_count} mutations for {variant.id}")
        return templates

    def mutate_prompt(
        self,
        variant: PromptVariant,
        eval_result: EvalResult,
        mutation_count: int = DEFAULT_MUTATION_COUNT
    ) -> List[PromptVariant]:
        """Reflect on the evaluation's failures, then propose child variants."""
        if not isinstance(variant, PromptVariant) or not isinstance(eval_result, EvalResult):
            raise InvalidArgumentsError("mutate_prompt expects a variant and an EvalResult")

        failing_results = eval_result.failures
        if not failing_results:
            logger.debug(f"Variant {variant.id} has no failures, skipping mutation")
            return []

        reflection = self.reflect_on_failures(variant, failing_results)
        templates = self.propose_mutations(variant, reflection, mutation_count)
        return [variant.create_child(template) for template in templates]

    def crossover(
        self,
        variant_a: PromptVariant,
        variant_b: PromptVariant,
        children_count: int = DEFAULT_CHILDREN_COUNT
    ) -> List[PromptVariant]:
        """Create hybrid children combining two parent templates."""
        if not isinstance(variant_a, PromptVariant) or not isinstance(variant_b, PromptVariant):
            raise InvalidArgumentsError("crossover expects two variants")

        output = self._ask(build_crossover_prompt(variant_a, variant_b, children_count))
        templates = parse_mutations(output, children_count)
        logger.debug(
            f"Crossover {variant_a.id} + {variant_b.id} produced {len(templates)} children"
        )
        return [
            PromptVariant.crossover_child(variant_a, variant_b, template)
            for template in templates
        ]

    def _ask(self, prompt: str) -> str:
        return call_runner(self.runner, prompt, "", self.runner_opts).output


def reflect_on_failures(
    variant: PromptVariant,
    failing_results: Sequence[RunResult],
    runner: Optional[Runner] = None,
    runner_opts: Optional[Dict[str, Any]] = None
) -> str:
    """Analyze failing results; see Reflector.reflect_on_failures."""
    return Reflector(runner, runner_opts).reflect_on_failures(variant, failing_results)


def propose_mutations(
    variant: PromptVariant,
    reflection: str,
    runner: Optional[Runner] = None,
    mutation_count: int = DEFAULT_MUTATION_COUNT,
    runner_opts: Optional[Dict[str, Any]] = None
) -> List[str]:
    """Propose improved templates; see Reflector.propose_mutations."""
    return Reflector(runner, runner_opts).propose_mutations(variant, reflection, mutation_count)


def mutate_prompt(
    variant: PromptVariant,
    eval_result: EvalResult,
    runner: Optional[Runner] = None,
    mutation_count: int = DEFAULT_MUTATION_COUNT,
    runner_opts: Optional[Dict[str, Any]] = None
) -> List[PromptVariant]:
    """Reflect then propose child variants; see Reflector.mutate_prompt."""
    return Reflector(runner, runner_opts).mutate_prompt(variant, eval_result, mutation_count)


def crossover(
    variant_a: PromptVariant,
    variant_b: PromptVariant,
    runner: Optional[Runner] = None,
    children_count: int = DEFAULT_CHILDREN_COUNT,
    runner_opts: Optional[Dict[str, Any]] = None
) -> List[PromptVariant]:
    """Create hybrid children; see Reflector.crossover."""
    return Reflector(runner, runner_opts).crossover(variant_a, variant_b, children_count)
