from __future__ import annotations

from collections.abc import Iterator

import pytest

from tessera.events import reset_event_bus_for_testing
from tessera.util.live_vars import metric_registry


@pytest.fixture(autouse=True)
def clear_metric_registry() -> Iterator[None]:
    """Clear the global metric registry before and after each test."""
    metric_registry.clear()
    metric_registry.strict = False
    yield
    metric_registry.clear()
    metric_registry.strict = True


@pytest.fixture(autouse=True)
def fresh_event_bus() -> Iterator[None]:
    """Give every test an empty global event bus."""
    reset_event_bus_for_testing()
    yield
    reset_event_bus_for_testing()
