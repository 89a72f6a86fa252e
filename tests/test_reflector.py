"""Test reflection, mutation and crossover."""

import pytest

from paretoprompt.core.parsing import format_blocks, parse_mutations
from paretoprompt.core.reflector import (
    NO_FAILURES_MESSAGE,
    Reflector,
    build_reflection_prompt,
    propose_mutations,
    reflect_on_failures,
)
from paretoprompt.errors import ConfigurationError, InvalidRunnerResponseError
from paretoprompt.models import EvalResult, PromptVariant, RunResult, Task

THREE_BLOCKS = """Sure, here they are.

---MUTATION 1---
Solve carefully: {{input}}

---MUTATION 2---
Think step by step about {{input}}

---MUTATION 3---
Give only the final answer to {{input}}
"""


def fixed_runner(output):
    calls = []

    def runner(prompt, task_input, options):
        calls.append(prompt)
        return {"output": output, "tokens": 7}

    runner.calls = calls
    return runner


class TestParseMutations:
    """Test tolerant output parsing."""

    def test_delimited_blocks(self):
        """Test well-formed blocks are extracted in order."""
        assert parse_mutations(THREE_BLOCKS, 3) == [
            "Solve carefully: {{input}}",
            "Think step by step about {{input}}",
            "Give only the final answer to {{input}}",
        ]

    def test_truncates_to_expected_count(self):
        """Test extra blocks are dropped."""
        assert len(parse_mutations(THREE_BLOCKS, 2)) == 2

    def test_case_insensitive_markers(self):
        """Test lower-case markers are accepted."""
        output = "---mutation 1---\nA reasonably long template {{input}}"
        assert parse_mutations(output, 1) == ["A reasonably long template {{input}}"]

    def test_paragraph_fallback(self):
        """Test prose paragraphs are used when markers are missing."""
        output = (
            "Here are ideas.\n\n"
            "First improved prompt template about {{input}}\n\n"
            "# A heading line that is long enough\n\n"
            "```\ncode fence content here\n```\n\n"
            "Second improved prompt template for {{input}}"
        )
        assert parse_mutations(output, 3) == [
            "First improved prompt template about {{input}}",
            "Second improved prompt template for {{input}}",
        ]

    def test_zero_expected(self):
        """Test nothing requested yields nothing."""
        assert parse_mutations(THREE_BLOCKS, 0) == []

    def test_format_blocks(self):
        """Test response layout markers."""
        layout = format_blocks(2, "Your prompt")
        assert "---MUTATION 1---\n[Your prompt]" in layout
        assert "---MUTATION 2---" in layout


class TestReflector:
    """Test runner-backed operations."""

    def test_propose_mutations(self, seed_variant):
        """Test mutation prompt content and parsed templates."""
        runner = fixed_runner(THREE_BLOCKS)
        templates = propose_mutations(seed_variant, "Needs reasoning", runner=runner, mutation_count=3)

        assert len(templates) == 3
        prompt = runner.calls[0]
        assert "Answer: {{input}}" in prompt
        assert "Needs reasoning" in prompt
        assert "Generate exactly 3 improved prompt templates" in prompt
        assert "---MUTATION 3---" in prompt

    def test_no_failures_skips_runner(self, seed_variant):
        """Test canned reflection without a runner call."""
        runner = fixed_runner("unused")
        assert reflect_on_failures(seed_variant, [], runner=runner) == NO_FAILURES_MESSAGE
        assert runner.calls == []

    def test_reflection_prompt_truncates_and_samples(self, seed_variant):
        """Test at most five failures and truncated inputs/outputs."""
        failures = [
            RunResult(task=Task(input="i" * 400, expected="x"), success=False, output="o" * 600)
            for _ in range(7)
        ]
        prompt = build_reflection_prompt(seed_variant, failures)
        assert "(5 of 7 failures)" in prompt
        assert "### Failure 5" in prompt
        assert "### Failure 6" not in prompt
        assert "i" * 300 + "..." in prompt
        assert "o" * 500 + "..." in prompt
        assert "o" * 501 not in prompt

    def test_reflection_strips_output(self, seed_variant):
        """Test reflection text is trimmed."""
        runner = fixed_runner("  Too vague.  \n")
        failure = RunResult(task=Task(input="a", expected="b"), success=False, error="timeout")
        assert reflect_on_failures(seed_variant, [failure], runner=runner) == "Too vague."
        assert "Error: timeout" in runner.calls[0]

    def test_mutate_prompt_builds_children(self, seed_variant):
        """Test reflect-then-propose produces lineage-linked children."""
        runner = fixed_runner(THREE_BLOCKS)
        task = Task(input="2+2", expected="4")
        eval_result = EvalResult(
            accuracy=0.0,
            token_cost=1,
            latency_ms=1,
            results=[RunResult(task=task, success=False, output="5")]
        )
        children = Reflector(runner).mutate_prompt(seed_variant, eval_result, mutation_count=2)

        assert len(runner.calls) == 2
        assert [c.template for c in children] == ["Solve carefully: {{input}}", "Think step by step about {{input}}"]
        assert all(c.parents == [seed_variant.id] and c.generation == 1 for c in children)

    def test_crossover(self, make_variant):
        """Test crossover children reference both parents."""
        a = make_variant(0.9, 100, template="Parent A {{input}}")
        b = make_variant(0.6, 10, template="Parent B {{input}}")
        runner = fixed_runner(THREE_BLOCKS)
        children = Reflector(runner).crossover(a, b)

        assert len(children) == 2
        assert "Parent A {{input}}" in runner.calls[0]
        assert "Parent B {{input}}" in runner.calls[0]
        for child in children:
            assert child.parents == [a.id, b.id]
            assert child.metadata["mutation_type"] == "crossover"

    def test_invalid_runner_response(self, seed_variant):
        """Test payload without output is rejected."""
        def runner(prompt, task_input, options):
            return {"tokens": 3}

        with pytest.raises(InvalidRunnerResponseError) as exc:
            propose_mutations(seed_variant, "r", runner=runner)
        assert exc.value.reason == "invalid_runner_response"

    def test_runner_exception_propagates(self, seed_variant):
        """Test runner errors reach the caller unchanged."""
        def runner(prompt, task_input, options):
            raise RuntimeError("rate limited")

        with pytest.raises(RuntimeError, match="rate limited"):
            propose_mutations(seed_variant, "r", runner=runner)

    def test_runner_arity(self):
        """Test two-argument runners are rejected."""
        with pytest.raises(ConfigurationError) as exc:
            Reflector(lambda prompt, task_input: None)
        assert exc.value.reason == "invalid_runner"


class TestPartialDelimiters:
    """Test output with fewer blocks than requested."""

    def test_falls_back_to_paragraphs_with_markers(self):
        """Test paragraph fallback keeps the marker line in each paragraph."""
        output = (
            "---MUTATION 1---\nFirst template for {{input}}\n\n"
            "---MUTATION 2---\nSecond template for {{input}}"
        )
        assert parse_mutations(output, 3) == [
            "---MUTATION 1---\nFirst template for {{input}}",
            "---MUTATION 2---\nSecond template for {{input}}",
        ]


class TestNonFiniteTokens:
    """Test runner payloads with unusable token counts."""

    @pytest.mark.parametrize("tokens", [float("inf"), float("nan"), -float("inf")])
    def test_tokens_default_to_zero(self, seed_variant, tokens):
        """Test non-finite tokens do not break mutation proposals."""
        def runner(prompt, task_input, options):
            return {"output": THREE_BLOCKS, "tokens": tokens}

        assert len(propose_mutations(seed_variant, "r", runner=runner)) == 3

    def test_coerce_runner_output(self):
        """Test coercion maps non-finite tokens to zero."""
        from paretoprompt.clients import coerce_runner_output

        assert coerce_runner_output({"output": "x", "tokens": float("inf")}).tokens == 0
        assert coerce_runner_output({"output": "x", "tokens": float("nan")}).tokens == 0
        assert coerce_runner_output({"output": "x", "tokens": 2.6}).tokens == 3
