"""The six grid directions and their data-file index order.

Prototype files store adjacency as six lists indexed 0..5. The files were
authored in a Z-up tool, so their "posY/negY" labels are the grid's
horizontal z axis and "posZ/negZ" are the grid's vertical y axis:

    index  name    grid offset   data label
    0      POS_X   (+1, 0, 0)    posX
    1      POS_Z   (0, 0, +1)    posY
    2      NEG_X   (-1, 0, 0)    negX
    3      NEG_Z   (0, 0, -1)    negY
    4      UP      (0, +1, 0)    posZ
    5      DOWN    (0, -1, 0)    negZ

Every module uses this table; nothing else maps indices to axes.
"""

from __future__ import annotations

from enum import IntEnum

from tessera.types import GridPos


class Direction(IntEnum):
    """Direction index into ``Prototype.valid_neighbours``."""

    POS_X = 0
    POS_Z = 1
    NEG_X = 2
    NEG_Z = 3
    UP = 4
    DOWN = 5

    @property
    def offset(self) -> GridPos:
        return DIR_OFFSETS[self]

    @property
    def opposite(self) -> Direction:
        return OPPOSITE_DIR[self]


DIRECTIONS: tuple[Direction, ...] = tuple(Direction)

DIR_OFFSETS: dict[Direction, GridPos] = {
    Direction.POS_X: (1, 0, 0),
    Direction.POS_Z: (0, 0, 1),
    Direction.NEG_X: (-1, 0, 0),
    Direction.NEG_Z: (0, 0, -1),
    Direction.UP: (0, 1, 0),
    Direction.DOWN: (0, -1, 0),
}

OPPOSITE_DIR: dict[Direction, Direction] = {
    Direction.POS_X: Direction.NEG_X,
    Direction.POS_Z: Direction.NEG_Z,
    Direction.NEG_X: Direction.POS_X,
    Direction.NEG_Z: Direction.POS_Z,
    Direction.UP: Direction.DOWN,
    Direction.DOWN: Direction.UP,
}

# Adjacency label key in prototype data files for each direction
DIR_LABEL_KEYS: dict[Direction, str] = {
    Direction.POS_X: "posX",
    Direction.POS_Z: "posY",
    Direction.NEG_X: "negX",
    Direction.NEG_Z: "negY",
    Direction.UP: "posZ",
    Direction.DOWN: "negZ",
}
