"""Fire-and-forget telemetry events for optimization runs."""

from typing import Any, Callable, Dict, Iterable, List, Optional

from loguru import logger
from pydantic import BaseModel, Field

GENERATION_EVENT = "generation"
EVALUATION_EVENT = "evaluation"
MUTATION_EVENT = "mutation"
COMPLETE_EVENT = "complete"


class TelemetryEvent(BaseModel):
    """Structured event with numeric measurements and descriptive metadata."""

    name: str
    measurements: Dict[str, Any] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)


EventSink = Callable[[TelemetryEvent], None]


class Telemetry:
    """Dispatch events to injected sinks; sink failures never reach the caller."""

    def __init__(self, sinks: Optional[Iterable[EventSink]] = None):
        """Initialize dispatcher with optional sinks."""
        self.sinks: List[EventSink] = list(sinks or [])

    def subscribe(self, sink: EventSink) -> None:
        """Register an additional sink."""
        self.sinks.append(sink)

    def emit(
        self,
        name: str,
        measurements: Dict[str, Any],
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """Emit an event to every sink."""
        event = TelemetryEvent(name=name, measurements=measurements, metadata=metadata or {})
        logger.debug(f"Telemetry {name}: {measurements}")
        for sink in self.sinks:
            try:
                sink(event)
            except Exception as e:
                logger.warning(f"Telemetry sink failed on '{name}' event: {e}")


class CollectingSink:
    """Sink that keeps events in memory."""

    def __init__(self):
        """Initialize empty event list."""
        self.events: List[TelemetryEvent] = []

    def __call__(self, event: TelemetryEvent) -> None:
        self.events.append(event)

    def named(self, name: str) -> List[TelemetryEvent]:
        """Events with the given name, in emission order."""
        return [event for event in self.events if event.name == name]
