"""Minimal GEPA example: sentiment classification with an offline runner.

The runner below stands in for a real LLM call. Swap ``keyword_runner`` for a
function that calls your model and returns ``{"output": ..., "tokens": ...}``.
"""

import re

from paretoprompt import GEPAOptimizer, OptimizationConfig, Task, Telemetry
from paretoprompt.telemetry import CollectingSink

POSITIVE_WORDS = {"love", "great", "excellent", "wonderful"}
MUTATION_REQUEST = re.compile(r"Generate exactly (\d+) improved")
CROSSOVER_REQUEST = re.compile(r"Create (\d+) hybrid")

TASKS = Task.from_pairs([
    ("I love this phone, the battery is great", "positive"),
    ("Terrible support, never again", "negative"),
    ("Excellent build quality", "positive"),
    ("The screen cracked after a day", "negative"),
])


def meta_response(prompt: str) -> str:
    """Answer reflection, mutation and crossover requests."""
    match = MUTATION_REQUEST.search(prompt) or CROSSOVER_REQUEST.search(prompt)
    if not match:
        return "The prompt never names the allowed labels."
    return "\n\n".join(
        f"---MUTATION {i}---\nClassify the sentiment as positive or negative (variant {i}): {{{{input}}}}"
        for i in range(1, int(match.group(1)) + 1)
    )


def keyword_runner(prompt, task_input, options):
    """Offline stand-in for an LLM call."""
    if task_input == "":
        return {"output": meta_response(prompt), "tokens": 80}

    if "positive or negative" not in prompt:
        return {"output": "It is a review.", "tokens": len(prompt) // 4}
    words = set(task_input.lower().replace(",", " ").split())
    label = "positive" if words & POSITIVE_WORDS else "negative"
    return {"output": label, "tokens": len(prompt) // 4}


if __name__ == "__main__":
    sink = CollectingSink()
    config = OptimizationConfig.from_profile(
        "fast",
        runner=keyword_runner,
        seed=42,
        show_progress=True,
    )
    optimizer = GEPAOptimizer(config, telemetry=Telemetry([sink]))
    result = optimizer.optimize("Review: {{input}}", TASKS)

    print(f"\nBest accuracy: {result.best_accuracy:.1%}")
    print(f"Generations:   {result.generations_run}")
    print(f"Events:        {len(sink.events)}")
    for variant in result.best_variants:
        print(f"  {variant}\n    {variant.template}")
