"""Prompt variant evaluation on a task set."""

import asyncio
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from ..clients import Runner, call_runner, validate_runner
from ..errors import GEPAError, InvalidArgumentsError
from ..models import EvalResult, PromptVariant, RunResult, Task
from ..models.config import DEFAULT_TASK_TIMEOUT_MS
from ..models.variant import Template

PARALLEL_TIMEOUT_BUFFER_MS = 5_000
TIMEOUT_ERROR = "timeout"
INPUT_PLACEHOLDERS = ("{{input}}", "{{ input }}")
RUNNER_THREAD_PREFIX = "paretoprompt-runner"


def ensure_no_running_loop(entry_point: str) -> None:
    """Blocking entry points own their event loop; refuse to nest one."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return
    raise RuntimeError(
        f"{entry_point}() cannot be called from a running event loop; "
        f"await a{entry_point}() instead"
    )


def render_template(template: Template, task_input: str) -> Template:
    """Substitute the task input into a string or map template."""
    if isinstance(template, str):
        rendered = template
        for placeholder in INPUT_PLACEHOLDERS:
            rendered = rendered.replace(placeholder, task_input)
        return rendered
    if isinstance(template, dict):
        return {
            key: render_template(value, task_input) if isinstance(value, str) else value
            for key, value in template.items()
        }
    return template


def aggregate_results(results: List[RunResult]) -> EvalResult:
    """Aggregate per-task results into variant metrics."""
    total = len(results)
    successes = sum(1 for result in results if result.success)
    accuracy = successes / total if total > 0 else 0.0
    token_cost = sum(result.tokens for result in results)
    latency_ms = sum(result.latency_ms for result in results) // total if total > 0 else 0
    return EvalResult(
        accuracy=accuracy,
        token_cost=token_cost,
        latency_ms=latency_ms,
        results=results
    )


def _check_args(variant: Any, tasks: Any) -> None:
    if not isinstance(variant, PromptVariant):
        raise InvalidArgumentsError(f"variant must be a PromptVariant, got {type(variant).__name__}")
    if not isinstance(tasks, (list, tuple)) or not all(isinstance(t, Task) for t in tasks):
        raise InvalidArgumentsError("tasks must be a list of Task")


class PromptEvaluator:
    """Runs a prompt variant against tasks through the runner."""

    def __init__(
        self,
        runner: Optional[Runner],
        parallel: bool = False,
        timeout_ms: int = DEFAULT_TASK_TIMEOUT_MS,
        runner_opts: Optional[Dict[str, Any]] = None
    ):
        """Initialize evaluator; raises ConfigurationError for a bad runner."""
        self.runner = validate_runner(runner)
        self.parallel = parallel
        self.timeout_ms = timeout_ms
        self.runner_opts = dict(runner_opts or {})

    def evaluate_variant(self, variant: PromptVariant, tasks: Sequence[Task]) -> EvalResult:
        """Evaluate variant on tasks (blocking)."""
        _check_args(variant, tasks)
        ensure_no_running_loop("evaluate_variant")
        return asyncio.run(self.aevaluate_variant(variant, tasks))

    async def aevaluate_variant(self, variant: PromptVariant, tasks: Sequence[Task]) -> EvalResult:
        """Evaluate variant on tasks."""
        _check_args(variant, tasks)
        tasks = list(tasks)
        logger.debug(
            f"Evaluating {variant.id} on {len(tasks)} tasks "
            f"({'parallel' if self.parallel else 'sequential'})..."
        )
        start_time = time.monotonic()

        # Abandoned (timed out) calls keep their worker, so every task gets one.
        executor = ThreadPoolExecutor(
            max_workers=max(1, len(tasks)),
            thread_name_prefix=RUNNER_THREAD_PREFIX
        )
        try:
            if self.parallel:
                results = await self._run_parallel(variant, tasks, executor)
            else:
                results = [
                    await self._run_task(variant, task, executor)
                    for task in tasks
                ]
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        eval_result = aggregate_results(results)
        elapsed = time.monotonic() - start_time
        logger.debug(f"Evaluation of {variant.id} complete in {elapsed:.1f}s: {eval_result}")
        return eval_result

    def run_single_task(self, variant: PromptVariant, task: Task) -> RunResult:
        """Run one task with the variant's rendered template (blocking)."""
        ensure_no_running_loop("run_single_task")
        return asyncio.run(self.arun_single_task(variant, task))

    async def arun_single_task(self, variant: PromptVariant, task: Task) -> RunResult:
        """Run one task with the variant's rendered template."""
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=RUNNER_THREAD_PREFIX)
        try:
            return await self._run_task(variant, task, executor)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    async def _run_parallel(
        self,
        variant: PromptVariant,
        tasks: List[Task],
        executor: ThreadPoolExecutor
    ) -> List[RunResult]:
        """Run all tasks concurrently under an overall deadline, keeping task order."""
        if not tasks:
            return []

        total_timeout_ms = self.timeout_ms * len(tasks) + PARALLEL_TIMEOUT_BUFFER_MS
        units = [
            asyncio.ensure_future(self._run_task(variant, task, executor))
            for task in tasks
        ]
        _, pending = await asyncio.wait(units, timeout=total_timeout_ms / 1000)

        if pending:
            logger.warning(
                f"{len(pending)}/{len(units)} tasks exceeded the overall "
                f"{total_timeout_ms}ms deadline"
            )
            for unit in pending:
                unit.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        return [
            self._timeout_result(task, total_timeout_ms) if unit in pending else unit.result()
            for task, unit in zip(tasks, units)
        ]

    async def _run_task(
        self,
        variant: PromptVariant,
        task: Task,
        executor: ThreadPoolExecutor
    ) -> RunResult:
        """Race one runner call against the per-task deadline."""
        loop = asyncio.get_running_loop()
        prompt = render_template(variant.template, task.input)
        start_time = time.monotonic()

        try:
            payload = await asyncio.wait_for(
                loop.run_in_executor(
                    executor, call_runner, self.runner, prompt, task.input, self.runner_opts
                ),
                timeout=self.timeout_ms / 1000
            )
        except asyncio.TimeoutError:
            logger.debug(f"Task {task.id} timed out after {self.timeout_ms}ms")
            return self._timeout_result(task, self._elapsed_ms(start_time))
        except GEPAError as e:
            logger.debug(f"Task {task.id} got unusable runner payload: {e}")
            return self._error_result(task, e.reason, self._elapsed_ms(start_time))
        except Exception as e:
            logger.debug(f"Task {task.id} runner failed: {e}")
            return self._error_result(task, f"exception: {e}", self._elapsed_ms(start_time))

        return RunResult(
            task=task,
            success=task.success(payload.output),
            output=payload.output,
            tokens=payload.tokens,
            latency_ms=self._elapsed_ms(start_time),
            error=None
        )

    def _timeout_result(self, task: Task, latency_ms: int) -> RunResult:
        return self._error_result(task, TIMEOUT_ERROR, latency_ms)

    def _error_result(self, task: Task, error: str, latency_ms: int) -> RunResult:
        return RunResult(
            task=task,
            success=False,
            output=None,
            tokens=0,
            latency_ms=latency_ms,
            error=error
        )

    @staticmethod
    def _elapsed_ms(start_time: float) -> int:
        return max(0, round((time.monotonic() - start_time) * 1000))


def evaluate_variant(
    variant: PromptVariant,
    tasks: Sequence[Task],
    runner: Optional[Runner] = None,
    parallel: bool = False,
    timeout_ms: int = DEFAULT_TASK_TIMEOUT_MS,
    runner_opts: Optional[Dict[str, Any]] = None
) -> EvalResult:
    """Evaluate a variant against tasks; see PromptEvaluator."""
    _check_args(variant, tasks)
    evaluator = PromptEvaluator(
        runner=runner,
        parallel=parallel,
        timeout_ms=timeout_ms,
        runner_opts=runner_opts
    )
    return evaluator.evaluate_variant(variant, tasks)


async def aevaluate_variant(
    variant: PromptVariant,
    tasks: Sequence[Task],
    runner: Optional[Runner] = None,
    parallel: bool = False,
    timeout_ms: int = DEFAULT_TASK_TIMEOUT_MS,
    runner_opts: Optional[Dict[str, Any]] = None
) -> EvalResult:
    """Async twin of evaluate_variant for callers already inside an event loop."""
    _check_args(variant, tasks)
    evaluator = PromptEvaluator(
        runner=runner,
        parallel=parallel,
        timeout_ms=timeout_ms,
        runner_opts=runner_opts
    )
    return await evaluator.aevaluate_variant(variant, tasks)


def run_single_task(
    variant: PromptVariant,
    task: Task,
    runner: Optional[Runner] = None,
    timeout_ms: int = DEFAULT_TASK_TIMEOUT_MS,
    runner_opts: Optional[Dict[str, Any]] = None
) -> RunResult:
    """Run one task for a variant; see PromptEvaluator."""
    evaluator = PromptEvaluator(runner=runner, timeout_ms=timeout_ms, runner_opts=runner_opts)
    return evaluator.run_single_task(variant, task)
