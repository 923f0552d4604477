"""Dense 3D grid of cell domains.

Every cell's domain is one row of a boolean array of shape
``(cell_count, prototype_count)``; column ``j`` is set while catalog
prototype ``j`` is still possible. Rows are laid out x-fastest:

    index = x + y * size_x + z * size_x * size_y

A grid belongs to exactly one run. It is never shared between threads,
although the catalog it reads from may be.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType

import numpy as np

from tessera.types import GridPos, GridSize, PrototypeId

from .directions import DIR_OFFSETS, DIRECTIONS, Direction
from .errors import OutOfBoundsError
from .prototypes import Prototype, PrototypeCatalog


@dataclass(frozen=True, slots=True)
class Cell:
    """Read-only view of one grid cell at the moment it was taken."""

    pos: GridPos
    domain: Mapping[PrototypeId, Prototype]

    @property
    def collapsed(self) -> bool:
        return len(self.domain) == 1

    @property
    def contradicted(self) -> bool:
        return len(self.domain) == 0

    @property
    def prototype(self) -> Prototype | None:
        """The sole remaining prototype, or None while undecided."""
        if len(self.domain) != 1:
            return None
        return next(iter(self.domain.values()))


class Grid:
    """Cell domains for one generation run."""

    def __init__(self, size: GridSize, catalog: PrototypeCatalog) -> None:
        """Allocate every cell with the full catalog as its domain.

        Raises:
            ValueError: If any dimension is not a positive integer.
        """
        if len(size) != 3 or any(
            isinstance(n, bool) or not isinstance(n, int) or n <= 0 for n in size
        ):
            raise ValueError(f"Grid size must be three positive integers, got {size}")

        self.size: GridSize = (size[0], size[1], size[2])
        self.catalog = catalog
        sx, sy, sz = self.size
        self.cell_count = sx * sy * sz

        self.wave = np.ones((self.cell_count, len(catalog)), dtype=bool)
        self.neighbors = self._build_neighbor_table()

    def _build_neighbor_table(self) -> np.ndarray:
        """Flat neighbour index per (cell, direction), -1 past the boundary."""
        sx, sy, sz = self.size
        # Arrays indexed [z, y, x] so ravel() gives x-fastest order
        z, y, x = np.meshgrid(
            np.arange(sz), np.arange(sy), np.arange(sx), indexing="ij"
        )
        x, y, z = x.ravel(), y.ravel(), z.ravel()

        table = np.full((self.cell_count, len(DIRECTIONS)), -1, dtype=np.int64)
        for direction in DIRECTIONS:
            dx, dy, dz = DIR_OFFSETS[direction]
            nx, ny, nz = x + dx, y + dy, z + dz
            inside = (
                (nx >= 0) & (nx < sx) & (ny >= 0) & (ny < sy) & (nz >= 0) & (nz < sz)
            )
            flat = nx + ny * sx + nz * sx * sy
            table[inside, direction] = flat[inside]
        table.flags.writeable = False
        return table

    def __repr__(self) -> str:
        return f"Grid(size={self.size}, prototypes={len(self.catalog)})"

    # -------------------------------------------------------------------------
    # Addressing
    # -------------------------------------------------------------------------

    def in_bounds(self, x: int, y: int, z: int) -> bool:
        sx, sy, sz = self.size
        return 0 <= x < sx and 0 <= y < sy and 0 <= z < sz

    def index_of(self, pos: GridPos) -> int:
        """Flat row index of ``pos``.

        Raises:
            OutOfBoundsError: If ``pos`` lies outside the grid.
        """
        x, y, z = pos
        if not self.in_bounds(x, y, z):
            raise OutOfBoundsError(pos, self.size)
        sx, sy, _ = self.size
        return x + y * sx + z * sx * sy

    def pos_of(self, index: int) -> GridPos:
        """Inverse of ``index_of``."""
        if not 0 <= index < self.cell_count:
            raise IndexError(f"Cell index {index} out of range 0..{self.cell_count}")
        sx, sy, _ = self.size
        z, rest = divmod(index, sx * sy)
        y, x = divmod(rest, sx)
        return (x, y, z)

    def positions(self) -> Iterator[GridPos]:
        """Every cell position, x fastest, then y, then z."""
        sx, sy, sz = self.size
        for z in range(sz):
            for y in range(sy):
                for x in range(sx):
                    yield (x, y, z)

    def neighbor(self, x: int, y: int, z: int, direction: Direction) -> GridPos | None:
        """Position adjacent to ``(x, y, z)`` in ``direction``.

        Returns:
            The neighbour position, or None at the grid boundary.

        Raises:
            OutOfBoundsError: If ``(x, y, z)`` itself lies outside the grid.
        """
        if not self.in_bounds(x, y, z):
            raise OutOfBoundsError((x, y, z), self.size)
        dx, dy, dz = DIR_OFFSETS[direction]
        nx, ny, nz = x + dx, y + dy, z + dz
        if not self.in_bounds(nx, ny, nz):
            return None
        return (nx, ny, nz)

    # -------------------------------------------------------------------------
    # Domains
    # -------------------------------------------------------------------------

    def cell_at(self, x: int, y: int, z: int) -> Cell:
        """Snapshot view of the cell at ``(x, y, z)``.

        Raises:
            OutOfBoundsError: If the position lies outside the grid.
        """
        pos = (x, y, z)
        return Cell(pos, self._domain_mapping(self.index_of(pos)))

    def _domain_mapping(self, index: int) -> Mapping[PrototypeId, Prototype]:
        ids = self.catalog.ids
        return MappingProxyType(
            {
                ids[j]: self.catalog[ids[j]]
                for j in np.flatnonzero(self.wave[index])
            }
        )

    def domain_ids(self, pos: GridPos) -> list[PrototypeId]:
        """Ids still possible at ``pos``, in catalog order."""
        ids = self.catalog.ids
        return [ids[j] for j in np.flatnonzero(self.wave[self.index_of(pos)])]

    def domain_size(self, pos: GridPos) -> int:
        return int(self.wave[self.index_of(pos)].sum())

    def domain_sizes(self) -> np.ndarray:
        """Domain size of every cell in flat order."""
        return self.wave.sum(axis=1)

    def restrict(self, pos: GridPos, keep: np.ndarray) -> int:
        """Intersect the domain at ``pos`` with the boolean mask ``keep``.

        Does not propagate. May leave the domain empty; callers that must
        avoid that check the mask first.

        Returns:
            Number of possibilities removed.
        """
        index = self.index_of(pos)
        row = self.wave[index]
        new_row = row & keep
        removed = int(row.sum() - new_row.sum())
        if removed:
            self.wave[index] = new_row
        return removed

    def copy(self) -> Grid:
        """Independent grid with the same domains, sharing the catalog."""
        clone = Grid.__new__(Grid)
        clone.size = self.size
        clone.catalog = self.catalog
        clone.cell_count = self.cell_count
        clone.wave = self.wave.copy()
        clone.neighbors = self.neighbors
        return clone

    def snapshot(self) -> dict[str, object]:
        """JSON-serialisable dump of every cell's state, x-fastest order."""
        ids = self.catalog.ids
        cells = []
        for index, pos in enumerate(self.positions()):
            possible = [ids[j] for j in np.flatnonzero(self.wave[index])]
            cells.append(
                {
                    "position": list(pos),
                    "collapsed": len(possible) == 1,
                    "selected": possible[0] if len(possible) == 1 else None,
                    "possible": possible,
                }
            )
        return {"size": list(self.size), "cells": cells}
