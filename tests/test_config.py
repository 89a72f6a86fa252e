"""Test configuration, settings and profiles."""

import pytest
from pydantic import ValidationError

from paretoprompt.config import Settings
from paretoprompt.errors import ConfigurationError
from paretoprompt.models import OptimizationConfig
from paretoprompt.models.config import DEFAULT_OBJECTIVES, Direction, SelectionStrategy


def runner(prompt, task_input, options):
    return {"output": "ok", "tokens": 1}


class TestOptimizationConfig:
    """Test option defaults and bounds."""

    def test_defaults(self):
        """Test default option values."""
        config = OptimizationConfig(runner=runner)
        assert config.generations == 10
        assert config.population_size == 8
        assert config.mutation_count == 3
        assert config.crossover_rate == 0.2
        assert config.task_timeout_ms == 30_000
        assert config.parallel is False
        assert config.reflective_mutation is True
        assert config.objectives == DEFAULT_OBJECTIVES
        assert config.selection_strategy == SelectionStrategy.PARETO_FIRST.value

    def test_lower_bounds(self):
        """Test non-positive sizes fail validation."""
        with pytest.raises(ValidationError):
            OptimizationConfig(runner=runner, generations=0)
        with pytest.raises(ValidationError):
            OptimizationConfig(runner=runner, crossover_rate=1.5)

    def test_objectives_from_tuples(self):
        """Test objective tuples are coerced."""
        config = OptimizationConfig(runner=runner, objectives=[("latency_ms", "minimize")])
        assert config.objectives[0].direction == Direction.MINIMIZE

    def test_check_limits(self):
        """Test upper bounds raise with reason codes."""
        OptimizationConfig(runner=runner, generations=1000).check_limits()
        with pytest.raises(ConfigurationError) as exc:
            OptimizationConfig(runner=runner, generations=1001).check_limits()
        assert exc.value.reason == "generations_exceeds_max"
        with pytest.raises(ConfigurationError) as exc:
            OptimizationConfig(runner="not callable").check_limits()
        assert exc.value.reason == "invalid_runner"


class TestProfiles:
    """Test named profiles."""

    def test_quality_profile(self):
        """Test quality profile uses NSGA-II."""
        config = OptimizationConfig.from_profile("quality", runner=runner)
        assert config.generations == 12
        assert config.selection_strategy == "nsga2"

    def test_overrides_win(self):
        """Test explicit overrides replace profile values."""
        config = OptimizationConfig.from_profile("fast", runner=runner, generations=2)
        assert config.generations == 2
        assert config.parallel is True

    def test_advanced_uses_defaults(self):
        """Test advanced profile has no presets."""
        assert OptimizationConfig.from_profile("advanced").generations == 10

    def test_unknown_profile(self):
        """Test unsupported profile names."""
        with pytest.raises(ValueError, match="Unknown profile"):
            OptimizationConfig.from_profile("turbo")


class TestSettings:
    """Test environment-driven defaults."""

    def test_env_prefix(self, monkeypatch):
        """Test GEPA_ variables feed the config."""
        monkeypatch.setenv("GEPA_GENERATIONS", "5")
        monkeypatch.setenv("GEPA_PARALLEL", "true")
        config = OptimizationConfig.from_settings(runner=runner)
        assert config.generations == 5
        assert config.parallel is True

    def test_explicit_settings(self):
        """Test direct settings and overrides."""
        config = OptimizationConfig.from_settings(Settings(population_size=6), mutation_count=1)
        assert config.population_size == 6
        assert config.mutation_count == 1


class TestExtraOptions:
    """Test unknown config fields."""

    def test_unknown_field_forbidden(self):
        """Test misspelled fields fail validation."""
        with pytest.raises(ValidationError):
            OptimizationConfig(runner=runner, generation=5)

    def test_unknown_profile_override_forbidden(self):
        """Test profile overrides are checked too."""
        with pytest.raises(ValidationError):
            OptimizationConfig.from_profile("fast", runner=runner, populaton_size=4)
