"""Test task, variant and result models."""

import pytest
from pydantic import ValidationError

from paretoprompt.models import EvalResult, PromptVariant, RunResult, Task


class TestTask:
    """Test task success criteria."""

    def test_expected_substring_match_is_normalized(self):
        """Test expected text matches case- and whitespace-insensitively."""
        task = Task(input="2+2", expected="Four")
        assert task.success("The answer is   FOUR.")
        assert not task.success("The answer is five")

    def test_validator_takes_precedence(self):
        """Test validator decides even when expected is set."""
        task = Task(input="x", expected="yes", validator=lambda output: output.startswith("ok"))
        assert task.success("ok then")
        assert not task.success("yes")

    def test_validator_must_return_true(self):
        """Test truthy non-True validator results do not pass."""
        task = Task(input="x", validator=lambda output: "truthy")
        assert not task.success("anything")

    def test_raising_validator_fails_task(self):
        """Test a validator exception counts as failure."""
        def broken(output):
            raise ValueError("bad")

        task = Task(input="x", validator=broken)
        assert task.success("anything") is False

    def test_no_criterion_always_passes(self):
        """Test exploratory tasks pass on any output."""
        assert Task.from_input("free text").success("whatever")

    def test_blank_input_rejected(self):
        """Test blank inputs fail validation."""
        with pytest.raises(ValidationError):
            Task(input="   ")

    def test_from_pairs_and_unique_ids(self):
        """Test pair construction assigns distinct ids."""
        tasks = Task.from_pairs([("a", "1"), ("b", "2")])
        assert [t.expected for t in tasks] == ["1", "2"]
        assert tasks[0].id != tasks[1].id
        assert tasks[0].id.startswith("task_")


class TestPromptVariant:
    """Test variant lineage and metrics."""

    def test_seed_defaults(self):
        """Test seed variant has no lineage and no metrics."""
        seed = PromptVariant.seed("Answer: {{input}}")
        assert seed.generation == 0
        assert seed.parents == []
        assert not seed.evaluated
        assert seed.id.startswith("pv_")

    def test_empty_template_rejected(self):
        """Test empty string and empty map templates are invalid."""
        with pytest.raises(ValidationError):
            PromptVariant.seed("")
        with pytest.raises(ValidationError):
            PromptVariant.seed({})

    def test_create_child(self):
        """Test mutation child lineage."""
        parent = PromptVariant.seed("A {{input}}", metadata={"inherited": {"team": "qa"}})
        child = parent.create_child("B {{input}}")
        assert child.generation == 1
        assert child.parents == [parent.id]
        assert child.metadata == {"team": "qa"}
        assert not child.evaluated

    def test_crossover_child(self):
        """Test crossover child takes deeper parent generation."""
        a = PromptVariant(template="A", generation=3)
        b = PromptVariant(template="B", generation=1)
        child = PromptVariant.crossover_child(a, b, "AB")
        assert child.generation == 4
        assert child.parents == [a.id, b.id]
        assert child.metadata["mutation_type"] == "crossover"

    def test_at_most_two_parents(self):
        """Test parents list is capped at two."""
        with pytest.raises(ValidationError):
            PromptVariant(template="x", parents=["a", "b", "c"])

    def test_with_metrics_clamps_and_keeps_identity(self):
        """Test metrics are clamped and id is preserved."""
        seed = PromptVariant.seed("x")
        scored = seed.with_metrics(1.5, 12.6, latency_ms=-3)
        assert scored.id == seed.id
        assert scored.accuracy == 1.0
        assert scored.token_cost == 13
        assert scored.latency_ms == 0
        assert scored.evaluated
        assert not seed.evaluated

    def test_with_metrics_drops_non_numeric(self):
        """Test non-numeric metrics become missing."""
        scored = PromptVariant.seed("x").with_metrics("high", None)
        assert scored.accuracy is None
        assert scored.token_cost is None

    def test_frozen(self):
        """Test variants are immutable."""
        seed = PromptVariant.seed("x")
        with pytest.raises(ValidationError):
            seed.accuracy = 0.5

    def test_compare(self, make_variant):
        """Test per-metric comparison respects direction."""
        cheap = make_variant(0.5, 10)
        pricey = make_variant(0.9, 100)
        assert pricey.compare(cheap, "accuracy") == "gt"
        assert pricey.compare(cheap, "token_cost") == "lt"
        assert cheap.compare(PromptVariant.seed("y"), "accuracy") == "eq"


class TestEvalResult:
    """Test evaluation result helpers."""

    def test_failures(self):
        """Test failures lists unsuccessful runs in order."""
        ok, bad = Task.from_pairs([("a", "1"), ("b", "2")])
        result = EvalResult(
            accuracy=0.5,
            token_cost=3,
            latency_ms=1,
            results=[
                RunResult(task=ok, success=True, output="1", tokens=2),
                RunResult(task=bad, success=False, error="timeout", tokens=1),
            ]
        )
        assert [r.task.id for r in result.failures] == [bad.id]
        assert "Acc=50.00%" in str(result)


class TestNonFiniteMetrics:
    """Test metric attachment with non-finite numbers."""

    def test_non_finite_become_missing(self):
        """Test nan and inf metrics are dropped."""
        scored = PromptVariant.seed("x").with_metrics(float("nan"), float("inf"), latency_ms=float("-inf"))
        assert scored.accuracy is None
        assert scored.token_cost is None
        assert scored.latency_ms is None
