"""One-time boundary pass run before the first collapse.

Cells on an outer face of the grid border open space, so they may only hold
prototypes that accept the void prototype on that side. Layer tags pin
prototypes to the lowest or highest layer. The pass edits domains directly
and does not propagate; the engine's first iteration does that.

A void filter that would empty a cell's domain is skipped. Layer tags are
absolute: a tag removal that empties a domain still applies, and the engine
reports that cell as a contradiction on its first iteration. The pass is
idempotent: every batch that ran the first time removes nothing the second
time, and every void filter that was skipped is skipped again.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

import numpy as np

from tessera import config
from tessera.environment.directions import DIRECTIONS, Direction
from tessera.environment.grid import Grid
from tessera.environment.prototypes import PrototypeCatalog

logger = logging.getLogger(__name__)

# Faces bordering open space when the structure floats freely
ALL_OPEN_FACES: frozenset[Direction] = frozenset(DIRECTIONS)

# Structure standing on the ground: the bottom face is not filtered
GROUNDED_OPEN_FACES: frozenset[Direction] = ALL_OPEN_FACES - {Direction.DOWN}

_VOID_PREFIX = "void:"

_HORIZONTAL_FACES = (Direction.POS_X, Direction.NEG_X, Direction.POS_Z, Direction.NEG_Z)


@dataclass(frozen=True, slots=True)
class BoundaryReport:
    """What one boundary pass did."""

    removed: int
    skipped_batches: int


class BoundaryConstraintApplier:
    """Removes prototypes that cannot sit on the grid's outer faces or layers."""

    def __init__(
        self,
        open_faces: Iterable[Direction] = ALL_OPEN_FACES,
        void_id: str = config.EMPTY_PROTOTYPE_ID,
    ) -> None:
        self.open_faces = frozenset(open_faces)
        self.void_id = void_id

    def _keep_masks(self, catalog: PrototypeCatalog) -> dict[str, np.ndarray]:
        """Boolean keep-masks in catalog order for every batch kind."""
        masks: dict[str, np.ndarray] = {}

        has_void = self.void_id in catalog
        void_col = catalog.index_of(self.void_id) if has_void else -1
        for direction in DIRECTIONS:
            if has_void:
                # Column of the void prototype: who accepts void on this side
                keep = catalog.compatibility(direction)[:, void_col].copy()
            else:
                keep = np.zeros(len(catalog), dtype=bool)
            masks[f"{_VOID_PREFIX}{direction.name}"] = keep

        tags = [p.constrain_to for p in catalog.values()]
        masks["not_bottom"] = np.array(
            [t not in config.BOTTOM_CONSTRAINT_TAGS for t in tags], dtype=bool
        )
        masks["not_top"] = np.array(
            [t not in config.TOP_CONSTRAINT_TAGS for t in tags], dtype=bool
        )
        return masks

    def _batches_for(self, grid: Grid, x: int, y: int, z: int) -> list[str]:
        """Batch keys for one cell, in the order they are applied."""
        sx, sy, sz = grid.size
        top = sy - 1
        batches: list[str] = []

        if y == top and Direction.UP in self.open_faces:
            batches.append(f"{_VOID_PREFIX}{Direction.UP.name}")
        if y > 0:
            batches.append("not_bottom")
        if y < top:
            batches.append("not_top")

        for direction in _HORIZONTAL_FACES:
            if direction in self.open_faces and (
                grid.neighbor(x, y, z, direction) is None
            ):
                batches.append(f"{_VOID_PREFIX}{direction.name}")

        if y == 0 and Direction.DOWN in self.open_faces:
            batches.append(f"{_VOID_PREFIX}{Direction.DOWN.name}")
        return batches

    def apply(self, grid: Grid) -> BoundaryReport:
        """Run the pass over every cell of ``grid`` in x-fastest order."""
        masks = self._keep_masks(grid.catalog)
        removed = 0
        skipped = 0

        for index, (x, y, z) in enumerate(grid.positions()):
            for key in self._batches_for(grid, x, y, z):
                row = grid.wave[index]
                kept = row & masks[key]
                if not kept.any() and key.startswith(_VOID_PREFIX):
                    skipped += 1
                    continue
                dropped = int(row.sum() - kept.sum())
                if dropped:
                    grid.wave[index] = kept
                    removed += dropped

        report = BoundaryReport(removed=removed, skipped_batches=skipped)
        logger.debug(
            "Boundary pass on %s removed %d possibilities, skipped %d batches",
            grid.size,
            removed,
            skipped,
        )
        return report
