"""Seeded generation runs over a prototype catalog.

The driver owns everything that makes a run reproducible: a fresh grid, a
fresh ``RNGProvider`` built from the seed, the boundary pass and the
iterate loop. Running the same seed twice gives the same trace and the same
final grid.

Two ways to drive a run:

    result = driver.run(seed)              # batch: iterate to the end

    run = driver.start(seed)               # stepped: one collapse per tick
    while not run.done:
        run.step()
        draw(run.projection())
    result = run.finish()

The stepped form has no notion of frames or time; the caller owns the loop.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum, auto
from time import perf_counter
from typing import TypeAlias

from tessera import config
from tessera.environment.directions import Direction
from tessera.environment.errors import WFCContradiction
from tessera.environment.grid import Grid
from tessera.environment.prototypes import PrototypeCatalog
from tessera.events import (
    EventBus,
    WFCRunCompletedEvent,
    WFCStepEvent,
    get_event_bus,
)
from tessera.types import GridPos, GridSize, PrototypeId, RandomSeed
from tessera.util.live_vars import MetricSpec, metric_registry, record_metric_value
from tessera.util.rng import RNGProvider

from .boundary import ALL_OPEN_FACES, BoundaryConstraintApplier, BoundaryReport
from .projection import Projection, ResultProjector
from .wfc_solver import ConstraintEngine, Contradiction, StepOutcome, StepResult

logger = logging.getLogger(__name__)

SOLVE_TIME_METRIC = "wfc.solve_ms"

SOLVER_METRICS = [
    MetricSpec(
        SOLVE_TIME_METRIC,
        "Wall-clock time of one full solver run",
        config.SOLVE_TIME_SAMPLE_SIZE,
    ),
]


def register_solver_metrics() -> None:
    """Register the solver's metrics; safe to call more than once."""
    metric_registry.register_metrics(SOLVER_METRICS)


class RunMode(Enum):
    BATCH = auto()
    STEPPED = auto()


class RunOutcome(Enum):
    COLLAPSED = auto()
    CONTRADICTION = auto()
    # Stopped by max_steps before reaching a terminal state
    INCOMPLETE = auto()


TraceEntry: TypeAlias = tuple[GridPos, PrototypeId]


@dataclass(frozen=True)
class RunResult:
    """Everything one run produced.

    Attributes:
        seed: Seed the run was started from.
        size: Grid size.
        outcome: How the run ended.
        steps: Collapse counter at the end of the run.
        trace: Every collapse choice in order, as (position, prototype id).
        projection: Placements of the final grid.
        contradiction: Where the run failed, if it did.
        elapsed_ms: Wall-clock time spent solving.
        boundary: Report of the boundary pass.
        grid: Final grid state.
    """

    seed: RandomSeed
    size: GridSize
    outcome: RunOutcome
    steps: int
    trace: tuple[TraceEntry, ...]
    projection: Projection
    contradiction: Contradiction | None
    elapsed_ms: float
    boundary: BoundaryReport | None = None
    grid: Grid | None = field(default=None, repr=False, compare=False)

    @property
    def succeeded(self) -> bool:
        return self.outcome is RunOutcome.COLLAPSED

    def raise_for_outcome(self) -> None:
        """Raise ``WFCContradiction`` if the run did not collapse fully."""
        if self.outcome is RunOutcome.CONTRADICTION:
            assert self.contradiction is not None
            raise WFCContradiction(
                f"Seed {self.seed}: contradiction at {self.contradiction.position} "
                f"on step {self.contradiction.step}",
                pos=self.contradiction.position,
            )
        if self.outcome is RunOutcome.INCOMPLETE:
            raise WFCContradiction(
                f"Seed {self.seed}: stopped after {self.steps} steps before collapsing"
            )

    def snapshot(self) -> dict[str, object]:
        """JSON-serialisable dump of the run and its final grid."""
        data: dict[str, object] = {
            "seed": self.seed,
            "outcome": self.outcome.name.lower(),
            "steps": self.steps,
            "elapsed_ms": round(self.elapsed_ms, 3),
            "contradiction": (
                None
                if self.contradiction is None
                else {
                    "position": list(self.contradiction.position),
                    "step": self.contradiction.step,
                }
            ),
        }
        if self.grid is not None:
            data.update(self.grid.snapshot())
        else:
            data["size"] = list(self.size)
        return data


class SteppedRun:
    """A run advanced one collapse at a time by the caller."""

    def __init__(
        self,
        driver: WFCDriver,
        seed: RandomSeed,
        publish_steps: bool = True,
    ) -> None:
        self.driver = driver
        self.seed = seed
        self.publish_steps = publish_steps

        start = perf_counter()
        self.grid = Grid(driver.size, driver.catalog)
        self.boundary = BoundaryConstraintApplier(driver.open_faces).apply(self.grid)
        self.engine = ConstraintEngine(
            self.grid, RNGProvider(seed).get(config.WFC_RNG_DOMAIN)
        )

        self.trace: list[TraceEntry] = []
        self.last: StepResult | None = None
        self.elapsed_ms = (perf_counter() - start) * 1000
        self._result: RunResult | None = None

    @property
    def done(self) -> bool:
        if self.last is not None and self.last.is_terminal:
            return True
        max_steps = self.driver.max_steps
        return max_steps is not None and self.engine.collapse_counter >= max_steps

    def step(self) -> StepResult:
        """Advance by one iteration. Terminal results repeat once reached."""
        start = perf_counter()
        result = self.engine.iterate()
        self.elapsed_ms += (perf_counter() - start) * 1000

        if (
            result.position is not None
            and result.prototype_id is not None
            and (self.last is None or not self.last.is_terminal)
        ):
            self.trace.append((result.position, result.prototype_id))
        self.last = result

        if self.publish_steps:
            self.driver.publish(
                WFCStepEvent(
                    seed=self.seed,
                    step=result.step,
                    position=result.position,
                    prototype_id=result.prototype_id,
                    projection=self.projection(),
                )
            )
        return result

    def projection(self) -> Projection:
        """Projection of the grid as it stands between steps."""
        return self.driver.projector.project(self.grid)

    def finish(self) -> RunResult:
        """Build the run's result. Runs remaining steps if not done yet."""
        if self._result is not None:
            return self._result

        while not self.done:
            self.step()

        outcome = self._outcome()
        projection = self.driver.projector.project(
            self.grid, strict=outcome is RunOutcome.COLLAPSED
        )
        self._result = RunResult(
            seed=self.seed,
            size=self.grid.size,
            outcome=outcome,
            steps=self.engine.collapse_counter,
            trace=tuple(self.trace),
            projection=projection,
            contradiction=self.engine.contradiction,
            elapsed_ms=self.elapsed_ms,
            boundary=self.boundary,
            grid=self.grid,
        )
        self.driver.report(self._result)
        return self._result

    def _outcome(self) -> RunOutcome:
        if self.last is not None:
            if self.last.outcome is StepOutcome.COLLAPSED:
                return RunOutcome.COLLAPSED
            if self.last.outcome is StepOutcome.CONTRADICTION:
                return RunOutcome.CONTRADICTION
        return RunOutcome.INCOMPLETE


class WFCDriver:
    """Runs seeded solves of one catalog at one grid size."""

    def __init__(
        self,
        catalog: PrototypeCatalog,
        size: GridSize = config.DEFAULT_GRID_SIZE,
        *,
        open_faces: Iterable[Direction] = ALL_OPEN_FACES,
        max_steps: int | None = None,
        skip_empty: bool = False,
        event_bus: EventBus | None = None,
    ) -> None:
        """
        Args:
            catalog: Prototypes to place. Shared, never modified.
            size: Grid size (x, y, z), y vertical.
            open_faces: Grid faces that border open space.
            max_steps: Stop a run after this many collapses.
            skip_empty: Leave empty-prototype cells out of projections.
            event_bus: Where events go. Defaults to the global bus.
        """
        if max_steps is not None and max_steps < 0:
            raise ValueError(f"max_steps must be non-negative, got {max_steps}")

        self.catalog = catalog
        self.size = size
        self.open_faces = frozenset(open_faces)
        self.max_steps = max_steps
        self.projector = ResultProjector(skip_empty=skip_empty)
        self.event_bus = event_bus
        register_solver_metrics()

    def publish(self, event: WFCStepEvent | WFCRunCompletedEvent) -> None:
        bus = self.event_bus if self.event_bus is not None else get_event_bus()
        bus.publish(event)

    def start(self, seed: RandomSeed = config.RANDOM_SEED) -> SteppedRun:
        """Begin a stepped run. The caller calls ``step()`` once per tick."""
        return SteppedRun(self, seed, publish_steps=True)

    def run(
        self,
        seed: RandomSeed = config.RANDOM_SEED,
        mode: RunMode = RunMode.BATCH,
    ) -> RunResult:
        """Solve from ``seed`` to a terminal state (or ``max_steps``).

        In STEPPED mode a ``WFCStepEvent`` is published after every step.
        """
        run = SteppedRun(self, seed, publish_steps=mode is RunMode.STEPPED)
        return run.finish()

    def run_with_retries(
        self,
        seed: int = config.RANDOM_SEED,
        max_attempts: int = config.DEFAULT_MAX_ATTEMPTS,
    ) -> tuple[RunResult, list[int]]:
        """Try ``seed``, ``seed + 1``, ... until a run collapses.

        Returns:
            The last run's result and every seed attempted.
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

        attempted: list[int] = []
        result: RunResult | None = None
        for attempt in range(max_attempts):
            current = seed + attempt
            attempted.append(current)
            result = self.run(current)
            if result.succeeded:
                return result, attempted

        assert result is not None
        logger.warning(
            "No seed in %d..%d collapsed a %s grid",
            seed,
            seed + max_attempts - 1,
            self.size,
        )
        return result, attempted

    def report(self, result: RunResult) -> None:
        """Log, time and announce a finished run."""
        record_metric_value(SOLVE_TIME_METRIC, result.elapsed_ms)

        if result.outcome is RunOutcome.CONTRADICTION:
            assert result.contradiction is not None
            logger.warning(
                "Seed %s: contradiction at %s on step %d",
                result.seed,
                result.contradiction.position,
                result.contradiction.step,
            )
        elif result.outcome is RunOutcome.INCOMPLETE:
            logger.warning(
                "Seed %s: stopped after %d steps with %d cells undecided",
                result.seed,
                result.steps,
                len(result.projection.undetermined),
            )

        logger.info(
            "Seed %s: %s after %d steps in %.1f ms",
            result.seed,
            result.outcome.name.lower(),
            result.steps,
            result.elapsed_ms,
        )
        self.publish(WFCRunCompletedEvent(result))

