"""Performance tests for the WFC solver.

These tests verify the solver meets its timing targets on the sample tileset.
"""

from __future__ import annotations

import time

from tessera.environment.generators.driver import WFCDriver
from tests.helpers import island_catalog


class TestWFCPerformance:
    """Performance benchmarks for WFCDriver."""

    def test_default_size_under_2s(self) -> None:
        """WFC should solve the default 8x3x8 grid in under 2s."""
        driver = WFCDriver(island_catalog(), (8, 3, 8))

        start = time.perf_counter()
        result = driver.run(42)
        elapsed = time.perf_counter() - start

        assert result.succeeded
        assert elapsed < 2.0, f"WFC took {elapsed:.2f}s, expected <2.0s"

    def test_determinism_preserved(self) -> None:
        """Same seed produces identical results on a larger grid."""
        catalog = island_catalog()

        result1 = WFCDriver(catalog, (12, 5, 12)).run(123)
        result2 = WFCDriver(catalog, (12, 5, 12)).run(123)

        assert result1.trace == result2.trace
        assert result1.projection == result2.projection

    def test_large_preset_under_10s(self) -> None:
        """The large 12x5x12 preset should complete in under 10s."""
        driver = WFCDriver(island_catalog(), (12, 5, 12))

        start = time.perf_counter()
        driver.run(777)
        elapsed = time.perf_counter() - start

        assert elapsed < 10.0, f"WFC took {elapsed:.2f}s, expected <10.0s"
