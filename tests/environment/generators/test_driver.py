"""Tests for seeded batch and stepped runs."""

from __future__ import annotations

import json

import pytest

from tessera.environment.errors import WFCContradiction
from tessera.environment.generators.boundary import GROUNDED_OPEN_FACES
from tessera.environment.generators.driver import (
    SOLVE_TIME_METRIC,
    RunMode,
    RunOutcome,
    RunResult,
    WFCDriver,
)
from tessera.environment.generators.projection import Projection
from tessera.environment.prototypes import load_catalog
from tessera.events import EventBus, WFCRunCompletedEvent, WFCStepEvent
from tessera.util.live_vars import metric_registry
from tests.helpers import (
    bottom_only_top_catalog,
    chain_catalog,
    island_catalog,
    make_record,
    neighbour_pairs,
)


def _dead_end_catalog():
    return load_catalog(
        {"a": make_record(everywhere=[]), "b": make_record(everywhere=[])}
    )


class TestDeterminism:
    """The same seed reproduces the same run."""

    def test_same_seed_same_trace_and_grid(self) -> None:
        driver = WFCDriver(island_catalog(), (6, 3, 6))

        first = driver.run(42)
        second = driver.run(42)

        assert first.trace == second.trace
        assert first.projection == second.projection
        assert first.outcome == second.outcome
        assert first.grid is not None and second.grid is not None
        assert (first.grid.wave == second.grid.wave).all()

    def test_separate_drivers_agree(self) -> None:
        catalog = island_catalog()

        first = WFCDriver(catalog, (5, 3, 5)).run(7)
        second = WFCDriver(catalog, (5, 3, 5)).run(7)

        assert first.trace == second.trace

    def test_different_seeds_differ(self) -> None:
        driver = WFCDriver(island_catalog(), (6, 3, 6))

        traces = {driver.run(seed).trace for seed in range(5)}

        assert len(traces) > 1

    def test_contradiction_is_reproducible(self) -> None:
        driver = WFCDriver(_dead_end_catalog(), (2, 1, 1))

        first = driver.run(3)
        second = driver.run(3)

        assert first.outcome is RunOutcome.CONTRADICTION
        assert first.contradiction == second.contradiction

    def test_stepped_mode_matches_batch_mode(self) -> None:
        driver = WFCDriver(island_catalog(), (5, 3, 5))

        batch = driver.run(11, mode=RunMode.BATCH)
        stepped = driver.run(11, mode=RunMode.STEPPED)

        assert batch.trace == stepped.trace
        assert batch.projection == stepped.projection


class TestRunResult:
    """Tests for what a finished run reports."""

    def test_collapsed_run(self) -> None:
        result = WFCDriver(chain_catalog(), (4, 2, 4)).run(1)

        assert result.succeeded
        assert result.outcome is RunOutcome.COLLAPSED
        assert result.steps == len(result.trace)
        assert len(result.projection.placements) == 32
        assert result.projection.complete
        assert result.contradiction is None
        assert result.elapsed_ms >= 0.0
        result.raise_for_outcome()

    def test_collapsed_grid_is_sound(self) -> None:
        catalog = island_catalog()
        result = WFCDriver(catalog, (5, 4, 5)).run(3)
        placed = {p.position: p.prototype_id for p in result.projection.placements}

        for pos, direction, npos in neighbour_pairs(result.size):
            assert catalog[placed[pos]].allows(direction, placed[npos])

    def test_contradiction_raises_on_request(self) -> None:
        result = WFCDriver(_dead_end_catalog(), (2, 1, 1)).run(0)

        assert not result.succeeded
        with pytest.raises(WFCContradiction) as excinfo:
            result.raise_for_outcome()
        assert excinfo.value.pos == result.contradiction.position

    def test_bottom_tag_never_placed_above_the_bottom_layer(self) -> None:
        """A cell only a bottom-tagged tile could fill is a contradiction."""
        result = WFCDriver(bottom_only_top_catalog(), (1, 2, 1)).run(0)

        assert result.outcome is RunOutcome.CONTRADICTION
        assert result.contradiction.position == (0, 1, 0)
        assert result.steps == 0

    def test_max_steps_gives_incomplete(self) -> None:
        result = WFCDriver(chain_catalog(), (4, 1, 4), max_steps=3).run(0)

        assert result.outcome is RunOutcome.INCOMPLETE
        assert result.steps == 3
        assert len(result.trace) == 3
        assert result.projection.undetermined
        with pytest.raises(WFCContradiction):
            result.raise_for_outcome()

    def test_snapshot_is_json_serialisable(self) -> None:
        result = WFCDriver(chain_catalog(), (2, 1, 2)).run(5)

        snapshot = json.loads(json.dumps(result.snapshot()))

        assert snapshot["size"] == [2, 1, 2]
        assert snapshot["outcome"] == "collapsed"
        assert len(snapshot["cells"]) == 4
        assert all(cell["collapsed"] for cell in snapshot["cells"])

    def test_skip_empty_drops_void_placements(self) -> None:
        driver = WFCDriver(island_catalog(), (4, 3, 4), skip_empty=True)

        result = driver.run(2)

        assert all(p.mesh_name != "-1" for p in result.projection.placements)

    def test_grounded_faces_are_used(self) -> None:
        driver = WFCDriver(island_catalog(), (3, 2, 3), open_faces=GROUNDED_OPEN_FACES)

        result = driver.run(0)

        assert result.boundary is not None
        assert result.succeeded

    def test_solve_time_metric_recorded(self) -> None:
        metric_registry.strict = True
        driver = WFCDriver(chain_catalog(), (3, 1, 3))

        driver.run(0)
        driver.run(1)

        metric = metric_registry.get_metric(SOLVE_TIME_METRIC)
        assert metric is not None
        assert metric.samples.count == 2


class TestRetries:
    """Tests for run_with_retries."""

    def test_first_success_stops(self) -> None:
        driver = WFCDriver(chain_catalog(), (3, 1, 3))

        result, attempted = driver.run_with_retries(10, max_attempts=5)

        assert result.succeeded
        assert attempted == [10]

    def test_exhausted_retries_return_last_attempt(self) -> None:
        driver = WFCDriver(_dead_end_catalog(), (2, 1, 1))

        result, attempted = driver.run_with_retries(4, max_attempts=3)

        assert attempted == [4, 5, 6]
        assert result.seed == 6
        assert result.outcome is RunOutcome.CONTRADICTION

    def test_invalid_attempts(self) -> None:
        driver = WFCDriver(chain_catalog(), (2, 1, 1))

        with pytest.raises(ValueError):
            driver.run_with_retries(0, max_attempts=0)


class TestSteppedRun:
    """Tests for caller-driven stepping and its events."""

    def test_step_by_step(self) -> None:
        bus = EventBus()
        driver = WFCDriver(chain_catalog(), (3, 1, 3), event_bus=bus)
        run = driver.start(8)

        seen = 0
        while not run.done:
            run.step()
            seen += 1
            projection = run.projection()
            assert len(projection.placements) + len(projection.undetermined) == 9

        result = run.finish()
        assert result.succeeded
        assert seen >= result.steps
        assert run.finish() is result

    def test_step_events_published(self) -> None:
        bus = EventBus()
        steps: list[WFCStepEvent] = []
        completed: list[WFCRunCompletedEvent] = []
        bus.subscribe(WFCStepEvent, steps.append)
        bus.subscribe(WFCRunCompletedEvent, completed.append)
        driver = WFCDriver(chain_catalog(), (3, 1, 3), event_bus=bus)

        result = driver.run(4, mode=RunMode.STEPPED)

        assert steps
        assert [e.step for e in steps][-1] == result.steps
        assert all(e.seed == 4 for e in steps)
        assert all(isinstance(e.projection, Projection) for e in steps)
        assert isinstance(completed[0].result, RunResult)
        assert completed == [WFCRunCompletedEvent(result)]

    def test_batch_mode_publishes_only_completion(self) -> None:
        bus = EventBus()
        steps: list[WFCStepEvent] = []
        completed: list[WFCRunCompletedEvent] = []
        bus.subscribe(WFCStepEvent, steps.append)
        bus.subscribe(WFCRunCompletedEvent, completed.append)

        WFCDriver(chain_catalog(), (3, 1, 3), event_bus=bus).run(4)

        assert steps == []
        assert len(completed) == 1

    def test_negative_max_steps_rejected(self) -> None:
        with pytest.raises(ValueError):
            WFCDriver(chain_catalog(), (2, 1, 1), max_steps=-1)
