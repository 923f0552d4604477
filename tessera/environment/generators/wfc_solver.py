"""Wave Function Collapse constraint engine for 3D prototype grids.

The engine drives one ``Grid`` from its initial domains to either a fully
collapsed state or a contradiction, one ``iterate()`` call at a time:

    engine = ConstraintEngine(grid, RNGProvider(seed).get("wfc.collapse"))
    while (result := engine.iterate()).outcome is StepOutcome.PROGRESS:
        ...

Each iteration is one atomic unit of work:

1. Select the undecided cell with minimum weighted entropy, breaking ties
   uniformly with the run's random stream.
2. Collapse it by a weighted random draw over its remaining prototypes.
3. Propagate the reduction to a fixed point, or stop at the first cell whose
   domain becomes empty.

There is no backtracking. A contradiction is a terminal outcome reported in
the returned ``StepResult``, not an exception; the caller's recourse is a
fresh run with another seed.

Performance notes:
    Domains are rows of the grid's boolean wave. For each direction the
    catalog supplies a compatibility matrix, so the set a cell allows next
    to it is the OR of the matrix rows selected by its domain. Entropy for
    all undecided cells is two matrix-vector products.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum, auto
from types import MappingProxyType

import numpy as np

from tessera import config
from tessera.environment.directions import DIRECTIONS
from tessera.environment.errors import WFCInvariantError
from tessera.environment.grid import Grid
from tessera.environment.prototypes import Prototype
from tessera.types import GridPos, PrototypeId
from tessera.util.rng import RNG

logger = logging.getLogger(__name__)


class EngineState(Enum):
    READY = auto()
    ITERATING = auto()
    COLLAPSED = auto()
    CONTRADICTION = auto()


class StepOutcome(Enum):
    PROGRESS = auto()
    COLLAPSED = auto()
    CONTRADICTION = auto()


@dataclass(frozen=True, slots=True)
class Contradiction:
    """Where and when a cell's domain became empty."""

    position: GridPos
    step: int


@dataclass(frozen=True, slots=True)
class StepResult:
    """Outcome of one ``iterate()`` call.

    Attributes:
        outcome: PROGRESS while undecided cells remain, otherwise terminal.
        step: Collapse counter after the call.
        position: Cell collapsed by this call, if any.
        prototype_id: Prototype chosen for that cell, if any.
        contradiction: Set when the outcome is CONTRADICTION.
    """

    outcome: StepOutcome
    step: int
    position: GridPos | None = None
    prototype_id: PrototypeId | None = None
    contradiction: Contradiction | None = None

    @property
    def is_terminal(self) -> bool:
        return self.outcome is not StepOutcome.PROGRESS


class ConstraintEngine:
    """Collapses one grid, one cell per ``iterate()`` call."""

    def __init__(self, grid: Grid, rng: RNG) -> None:
        """Prepare the engine. No domain is touched until the first iteration.

        Args:
            grid: Grid to solve. Its domains may already be reduced, e.g. by
                the boundary pass.
            rng: Random stream used for tie-breaks and collapse draws.
        """
        self.grid = grid
        self.catalog = grid.catalog
        self.rng = rng

        self.state = EngineState.READY
        self.collapse_counter = 0
        self.contradiction: Contradiction | None = None
        self._terminal: StepResult | None = None

        self._compat = tuple(self.catalog.compatibility(d) for d in DIRECTIONS)
        self._weights = self.catalog.weights
        self._weight_log_weight = self._weights * np.log(self._weights)
        self._neighbors = grid.neighbors.tolist()

    # -------------------------------------------------------------------------
    # Main loop
    # -------------------------------------------------------------------------

    def iterate(self) -> StepResult:
        """Perform one select-collapse-propagate cycle.

        Once the engine is COLLAPSED or in CONTRADICTION, every further call
        returns the same terminal result and changes nothing.
        """
        if self._terminal is not None:
            return self._terminal

        if self.state is EngineState.READY:
            self.state = EngineState.ITERATING
            failed = self._validate_initial_domains()
            if failed is not None:
                return self._fail(failed)

        index = self._select_cell()
        if index is None:
            return self._finish()

        prototype_id = self._collapse_cell(index)
        failed = self._propagate([index])
        self.collapse_counter += 1

        position = self.grid.pos_of(index)
        logger.debug(
            "Step %d: collapsed %s to %s", self.collapse_counter, position, prototype_id
        )

        if failed is not None:
            return self._fail(failed, position, prototype_id)

        if not self._has_undecided():
            return self._finish(position, prototype_id)

        return StepResult(
            StepOutcome.PROGRESS,
            self.collapse_counter,
            position=position,
            prototype_id=prototype_id,
        )

    def _validate_initial_domains(self) -> int | None:
        """Propagate from every cell so pre-reduced domains are consistent."""
        wave = self.grid.wave
        empty = np.flatnonzero(~wave.any(axis=1))
        if len(empty):
            return int(empty[0])
        return self._propagate(range(self.grid.cell_count))

    def _finish(
        self,
        position: GridPos | None = None,
        prototype_id: PrototypeId | None = None,
    ) -> StepResult:
        self.state = EngineState.COLLAPSED
        self._terminal = StepResult(
            StepOutcome.COLLAPSED,
            self.collapse_counter,
            position=position,
            prototype_id=prototype_id,
        )
        return self._terminal

    def _fail(
        self,
        index: int,
        position: GridPos | None = None,
        prototype_id: PrototypeId | None = None,
    ) -> StepResult:
        self.state = EngineState.CONTRADICTION
        self.contradiction = Contradiction(
            self.grid.pos_of(index), self.collapse_counter
        )
        self._terminal = StepResult(
            StepOutcome.CONTRADICTION,
            self.collapse_counter,
            position=position,
            prototype_id=prototype_id,
            contradiction=self.contradiction,
        )
        logger.debug(
            "Contradiction at %s on step %d",
            self.contradiction.position,
            self.contradiction.step,
        )
        return self._terminal

    # -------------------------------------------------------------------------
    # Selection and collapse
    # -------------------------------------------------------------------------

    def _entropies(self, rows: np.ndarray) -> np.ndarray:
        """Weighted Shannon entropy, ``ln W - sum(w ln w) / W``, per row."""
        total = rows @ self._weights
        weighted_log = rows @ self._weight_log_weight
        return np.log(total) - weighted_log / total

    def _select_cell(self) -> int | None:
        """Flat index of the undecided cell with minimum entropy."""
        wave = self.grid.wave
        undecided = np.flatnonzero(wave.sum(axis=1) > 1)
        if len(undecided) == 0:
            return None

        entropies = self._entropies(wave[undecided])
        lowest = entropies.min()
        tied = undecided[entropies <= lowest + config.ENTROPY_TIE_TOLERANCE]
        if len(tied) == 1:
            return int(tied[0])
        return int(self.rng.choice(tied.tolist()))

    def _collapse_cell(self, index: int) -> PrototypeId:
        """Draw one prototype for the cell, weighted by prototype weight."""
        row = self.grid.wave[index]
        options = np.flatnonzero(row).tolist()
        weights = self._weights[options].tolist()
        chosen = self.rng.choices(options, weights=weights)[0]

        row[:] = False
        row[chosen] = True
        return self.catalog.ids[chosen]

    def _has_undecided(self) -> bool:
        return bool((self.grid.wave.sum(axis=1) > 1).any())

    # -------------------------------------------------------------------------
    # Propagation
    # -------------------------------------------------------------------------

    def _propagate(self, start: Iterable[int]) -> int | None:
        """Narrow domains outward from ``start`` to a fixed point.

        Collapsed neighbours are checked like any other, so a collapsed cell
        that no longer fits is reported.

        Returns:
            Flat index of the first cell whose domain became empty, or None.

        Raises:
            WFCInvariantError: If propagation does more work than the total
                number of removable possibilities allows.
        """
        wave = self.grid.wave
        neighbors = self._neighbors
        compat = self._compat

        stack = list(start)
        in_stack = set(stack)
        budget = len(stack) + wave.size

        while stack:
            budget -= 1
            if budget < 0:
                raise WFCInvariantError("Propagation exceeded its work bound")

            index = stack.pop()
            in_stack.discard(index)
            row = wave[index]

            for direction, neighbor in zip(DIRECTIONS, neighbors[index], strict=True):
                if neighbor < 0:
                    continue

                allowed = compat[direction][row].any(axis=0)
                current = wave[neighbor]
                narrowed = current & allowed
                if np.array_equal(narrowed, current):
                    continue

                wave[neighbor] = narrowed
                if not narrowed.any():
                    return neighbor

                if neighbor not in in_stack:
                    stack.append(neighbor)
                    in_stack.add(neighbor)

        return None

    # -------------------------------------------------------------------------
    # Seeding fixed tiles
    # -------------------------------------------------------------------------

    def constrain(self, pos: GridPos, allowed_ids: Iterable[PrototypeId]) -> StepResult:
        """Limit the cell at ``pos`` to ``allowed_ids`` and propagate.

        Useful for seeding fixed tiles before or between iterations. An empty
        result is recorded as a contradiction, exactly as during a collapse.

        Raises:
            WFCInvariantError: If the engine already reached a terminal state.
            KeyError: If an id is not in the catalog.
        """
        if self._terminal is not None:
            raise WFCInvariantError(
                f"Cannot constrain {pos}: engine already {self.state.name}"
            )
        if self.state is EngineState.READY:
            self.state = EngineState.ITERATING
            failed = self._validate_initial_domains()
            if failed is not None:
                return self._fail(failed)

        index = self.grid.index_of(pos)
        removed = self.grid.restrict(pos, self.catalog.mask_of(allowed_ids))
        if not self.grid.wave[index].any():
            return self._fail(index)

        if removed:
            failed = self._propagate([index])
            if failed is not None:
                return self._fail(failed)

        return StepResult(StepOutcome.PROGRESS, self.collapse_counter)

    def collapse_at(self, pos: GridPos, prototype_id: PrototypeId) -> StepResult:
        """Fix the cell at ``pos`` to one prototype and propagate."""
        return self.constrain(pos, (prototype_id,))

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    def is_collapsed(self) -> bool:
        """True when every cell has exactly one possibility."""
        return bool((self.grid.wave.sum(axis=1) == 1).all())

    def get_possibilities(self, pos: GridPos) -> Mapping[PrototypeId, Prototype]:
        """Read-only snapshot of the domain at ``pos``."""
        return MappingProxyType(dict(self.grid.cell_at(*pos).domain))

    def entropy_at(self, pos: GridPos) -> float:
        """Weighted entropy of the domain at ``pos`` (0 when decided)."""
        row = self.grid.wave[self.grid.index_of(pos)]
        if row.sum() <= 1:
            return 0.0
        return float(self._entropies(row[np.newaxis, :])[0])

    def collapsed_count(self) -> int:
        return int((self.grid.wave.sum(axis=1) == 1).sum())

    def progress(self) -> float:
        """Fraction of cells decided, 0.0 to 1.0."""
        return self.collapsed_count() / self.grid.cell_count
