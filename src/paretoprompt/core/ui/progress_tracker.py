"""Progress tracker for optimization runs using tqdm."""

from types import TracebackType
from typing import Optional, Type

from tqdm import tqdm


class ProgressTracker:
    """Track generation progress with tqdm; a no-op when disabled."""

    def __init__(self, num_generations: int, enabled: bool = True):
        """Initialize progress tracker."""
        self.num_generations = num_generations
        self.enabled = enabled
        self.seed_accuracy = 0.0
        self.best_accuracy = 0.0
        self._pbar: Optional[tqdm] = None

    def start(self) -> None:
        """Open the bar unless disabled."""
        if not self.enabled:
            return
        self._pbar = tqdm(
            total=self.num_generations,
            desc="Evolving prompts",
            unit="generation",
            leave=False,
            dynamic_ncols=True,
        )

    def close(self) -> None:
        """Close the bar if open."""
        if self._pbar:
            self._pbar.close()
            self._pbar = None

    def __enter__(self) -> "ProgressTracker":
        self.start()
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.close()

    def update_generation(self, generation: int, best_accuracy: float) -> None:
        """Record a finished generation and its best accuracy."""
        if generation == 0:
            self.seed_accuracy = best_accuracy
        self.best_accuracy = max(self.best_accuracy, best_accuracy)

        improvement = (self.best_accuracy - self.seed_accuracy) * 100
        if self._pbar:
            self._pbar.set_postfix({
                "gen": f"{generation + 1}/{self.num_generations}",
                "best": f"{self.best_accuracy:.1%}",
                "impr": f"{improvement:+.1f}%",
            })
            self._pbar.update(1)
