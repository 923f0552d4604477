"""Turns grid domains into placement records for a renderer.

Only decided cells produce a placement. Undecided and contradicted cells are
listed separately so a mid-run projection can still be drawn, and a final
projection can insist that there are none.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from tessera import config
from tessera.environment.errors import WFCInvariantError
from tessera.environment.grid import Grid
from tessera.types import EulerDegrees, GridPos, PrototypeId, QuarterTurns, WorldPos


@dataclass(frozen=True, slots=True)
class PlacementRecord:
    """One object for the renderer to instantiate."""

    position: GridPos
    prototype_id: PrototypeId
    rotation: QuarterTurns
    mesh_name: str

    def world_position(self, spacing: float = config.DEFAULT_SPACING) -> WorldPos:
        x, y, z = self.position
        return (x * spacing, y * spacing, z * spacing)

    def euler_degrees(self) -> EulerDegrees:
        """Rotation in the mesh placement convention: tilt, then quarter turns."""
        return (config.MESH_TILT_DEGREES, self.rotation * 90.0, 0.0)

    def to_dict(self, spacing: float = config.DEFAULT_SPACING) -> dict[str, object]:
        return {
            "position": list(self.position),
            "prototype_id": self.prototype_id,
            "rotation": self.rotation,
            "mesh_name": self.mesh_name,
            "world_position": list(self.world_position(spacing)),
            "euler_degrees": list(self.euler_degrees()),
        }


@dataclass(frozen=True, slots=True)
class Projection:
    """Placements plus the cells that could not be placed, all x-fastest."""

    placements: tuple[PlacementRecord, ...]
    undetermined: tuple[GridPos, ...]
    contradicted: tuple[GridPos, ...]

    @property
    def complete(self) -> bool:
        return not self.undetermined and not self.contradicted

    def __len__(self) -> int:
        return len(self.placements)


class ResultProjector:
    """Reads a grid and emits one placement per decided cell."""

    def __init__(self, skip_empty: bool = False) -> None:
        """
        Args:
            skip_empty: Drop placements of the empty prototype, which has
                no mesh to instantiate.
        """
        self.skip_empty = skip_empty

    def project(self, grid: Grid, *, strict: bool = False) -> Projection:
        """Project the current domains of ``grid``.

        Args:
            grid: Grid in any state.
            strict: The grid is expected to be fully collapsed; any
                undetermined or contradicted cell is an invariant violation.

        Raises:
            WFCInvariantError: In strict mode, if any cell is not decided.
        """
        catalog = grid.catalog
        ids = catalog.ids
        sizes = grid.domain_sizes()

        placements: list[PlacementRecord] = []
        undetermined: list[GridPos] = []
        contradicted: list[GridPos] = []

        for index, pos in enumerate(grid.positions()):
            size = sizes[index]
            if size == 0:
                contradicted.append(pos)
                continue
            if size > 1:
                undetermined.append(pos)
                continue

            prototype = catalog[ids[int(np.argmax(grid.wave[index]))]]
            if self.skip_empty and prototype.is_empty:
                continue
            placements.append(
                PlacementRecord(
                    position=pos,
                    prototype_id=prototype.id,
                    rotation=prototype.rotation,
                    mesh_name=prototype.mesh_name,
                )
            )

        if strict and (undetermined or contradicted):
            raise WFCInvariantError(
                f"Final projection found {len(undetermined)} undetermined and "
                f"{len(contradicted)} contradicted cells"
            )

        return Projection(tuple(placements), tuple(undetermined), tuple(contradicted))
