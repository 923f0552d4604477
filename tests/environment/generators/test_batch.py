"""Tests for generating several independent regions."""

from __future__ import annotations

import pytest

from tessera.environment.generators.batch import (
    RegionBatchGenerator,
    RegionBatchStats,
    RegionRequest,
    generate_regions,
    plan_regions,
)
from tessera.environment.generators.driver import WFCDriver
from tessera.environment.prototypes import load_catalog
from tests.helpers import island_catalog, make_record


class TestPlanRegions:
    """Tests for laying out region sizes and seeds."""

    def test_plan_is_reproducible(self) -> None:
        assert plan_regions(6, base_seed=3) == plan_regions(6, base_seed=3)

    def test_sizes_within_bounds(self) -> None:
        requests = plan_regions(20, base_seed=1, min_size=(2, 1, 2), max_size=(4, 3, 5))

        for request in requests:
            sx, sy, sz = request.size
            assert 2 <= sx <= 4
            assert 1 <= sy <= 3
            assert 2 <= sz <= 5

    def test_sequential_seeds(self) -> None:
        requests = plan_regions(4, base_seed=100, use_random_seeds=False)

        assert [r.seed for r in requests] == [100, 101, 102, 103]
        assert [r.index for r in requests] == [0, 1, 2, 3]

    def test_invalid_bounds(self) -> None:
        with pytest.raises(ValueError):
            plan_regions(2, min_size=(5, 1, 1), max_size=(4, 1, 1))
        with pytest.raises(ValueError):
            plan_regions(-1)


class TestRegionBatchGenerator:
    """Tests for solving regions serially and on worker threads."""

    def test_results_keep_request_order(self) -> None:
        requests = plan_regions(5, base_seed=2, min_size=(3, 2, 3), max_size=(5, 3, 5))

        results = generate_regions(island_catalog(), requests)

        assert [r.request for r in results] == requests
        assert all(r.succeeded for r in results)

    def test_region_matches_standalone_run(self) -> None:
        """A region's result depends only on its size and seed."""
        catalog = island_catalog()
        request = RegionRequest(0, (4, 3, 4), 77)

        region = generate_regions(catalog, [request])[0]
        standalone = WFCDriver(catalog, (4, 3, 4)).run(77)

        assert region.result.trace == standalone.trace

    def test_worker_count_does_not_change_results(self) -> None:
        catalog = island_catalog()
        requests = plan_regions(6, base_seed=9, min_size=(3, 2, 3), max_size=(5, 3, 5))

        serial = generate_regions(catalog, requests, max_workers=1)
        threaded = generate_regions(catalog, requests, max_workers=4)

        assert [r.result.trace for r in serial] == [r.result.trace for r in threaded]

    def test_retries_per_region(self) -> None:
        catalog = load_catalog(
            {"a": make_record(everywhere=[]), "b": make_record(everywhere=[])}
        )
        requests = [RegionRequest(0, (2, 1, 1), 10)]

        results = RegionBatchGenerator(catalog, max_attempts=3).generate(requests)

        assert results[0].attempted_seeds == (10, 11, 12)
        assert not results[0].succeeded

    def test_stats(self) -> None:
        requests = plan_regions(3, base_seed=4, min_size=(2, 2, 2), max_size=(3, 2, 3))
        results = generate_regions(island_catalog(), requests)

        stats = RegionBatchStats.from_results(results)

        assert stats.total == 3
        assert stats.collapsed + stats.failed == 3
        assert stats.mean_elapsed_ms == pytest.approx(stats.total_elapsed_ms / 3)

    def test_empty_stats(self) -> None:
        stats = RegionBatchStats.from_results([])

        assert stats.total == 0
        assert stats.mean_elapsed_ms == 0.0

    def test_invalid_workers(self) -> None:
        with pytest.raises(ValueError):
            RegionBatchGenerator(island_catalog(), max_workers=0)
