"""Event system for surfacing generation progress to outside listeners.

Stepped runs publish one event per collapse so a renderer can reveal the
structure as it forms, and every driver run publishes a completion event.

USE FOR:
- Progressive visualisation of a stepped run
- Progress bars, logs and debug overlays

DO NOT USE FOR:
- Driving the solver (call ``SteppedRun.step()`` directly)
- Error handling or exception propagation

The event bus is fire-and-forget: handlers run synchronously in publish
order and their return values are ignored. A failing handler is logged and
does not stop the run.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tessera.types import GridPos, PrototypeId, RandomSeed

if TYPE_CHECKING:
    from tessera.environment.generators.driver import RunResult
    from tessera.environment.generators.projection import Projection

logger = logging.getLogger(__name__)


@dataclass
class GeneratorEvent:
    """Base class for all generator events."""

    pass


@dataclass
class WFCStepEvent(GeneratorEvent):
    """One collapse of a stepped run.

    Attributes:
        seed: Seed of the run.
        step: Collapse counter after the step.
        position: Cell collapsed by the step, if any.
        prototype_id: Prototype chosen for that cell, if any.
        projection: Projection of the grid after the step.
    """

    seed: RandomSeed
    step: int
    position: GridPos | None
    prototype_id: PrototypeId | None
    projection: Projection


@dataclass
class WFCRunCompletedEvent(GeneratorEvent):
    """A run reached a terminal outcome or its step limit."""

    result: RunResult


class EventBus:
    """Simple event bus for publish/subscribe pattern."""

    def __init__(self) -> None:
        self._handlers: dict[type, list[Callable]] = {}

    def subscribe(self, event_type: type, handler: Callable) -> None:
        """Subscribe a handler to an event type."""
        if event_type not in self._handlers:
            self._handlers[event_type] = []
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: type, handler: Callable) -> None:
        """Unsubscribe a handler from an event type."""
        if event_type in self._handlers:
            with suppress(ValueError):
                self._handlers[event_type].remove(handler)

    def publish(self, event: GeneratorEvent) -> None:
        """Publish an event to all subscribed handlers."""
        event_type = type(event)
        if event_type in self._handlers:
            # Copy the handler list to allow safe subscribe/unsubscribe during dispatch
            for handler in list(self._handlers[event_type]):
                try:
                    handler(event)
                except Exception:
                    logger.exception(f"Error handling event {event_type.__name__}")


# Global event bus instance
_global_event_bus = EventBus()


def get_event_bus() -> EventBus:
    return _global_event_bus


def subscribe_to_event(event_type: type, handler: Callable) -> None:
    """Subscribe to an event type globally."""
    _global_event_bus.subscribe(event_type, handler)


def unsubscribe_from_event(event_type: type, handler: Callable) -> None:
    """Unsubscribe from an event type globally."""
    _global_event_bus.unsubscribe(event_type, handler)


def publish_event(event: GeneratorEvent) -> None:
    """Publish an event globally."""
    _global_event_bus.publish(event)


def reset_event_bus_for_testing() -> None:
    """Reset the global event bus. Use only in tests."""
    global _global_event_bus
    _global_event_bus = EventBus()
