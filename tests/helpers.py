from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from tessera.environment.directions import DIRECTIONS, Direction
from tessera.environment.prototypes import PrototypeCatalog, load_catalog
from tessera.environment.tilesets import island_tileset

VOID = "p-1"


def make_record(
    *,
    neighbours: Sequence[Iterable[str]] | None = None,
    everywhere: Iterable[str] = (),
    mesh_name: str = "mesh",
    rotation: int = 0,
    weight: int = 1,
    constrain_to: str | None = None,
) -> dict[str, Any]:
    """Build one raw prototype record in the on-disk format.

    Either give the six neighbour lists explicitly or a single list of ids
    that applies in every direction.
    """
    if neighbours is None:
        allowed = list(everywhere)
        valid = [list(allowed) for _ in DIRECTIONS]
    else:
        valid = [list(group) for group in neighbours]
    return {
        "mesh_name": mesh_name,
        "mesh_rotation": rotation,
        "posX": "",
        "negX": "",
        "posY": "",
        "negY": "",
        "posZ": "",
        "negZ": "",
        "constrain_to": constrain_to,
        "constrain_from": None,
        "weight": weight,
        "valid_neighbours": valid,
    }


def free_catalog(weights: dict[str, int]) -> PrototypeCatalog:
    """Prototypes that may sit next to each other in any arrangement."""
    ids = list(weights)
    return load_catalog(
        {
            pid: make_record(everywhere=ids, mesh_name=pid, weight=weight)
            for pid, weight in weights.items()
        }
    )


def chain_catalog() -> PrototypeCatalog:
    """Three prototypes where A and C may never touch: A <-> B <-> C."""
    allowed = {"A": ["A", "B"], "B": ["A", "B", "C"], "C": ["B", "C"]}
    weights = {"A": 3, "B": 2, "C": 1}
    return load_catalog(
        {
            pid: make_record(everywhere=ids, mesh_name=pid, weight=weights[pid])
            for pid, ids in allowed.items()
        }
    )


def boundary_catalog() -> PrototypeCatalog:
    """A void tile, an interior-only block and tiles open on one side.

    ``solid`` never accepts void, so boundary cells must drop it; the void
    tile keeps every boundary domain non-empty.
    """
    ids = [VOID, "solid", "wall_px"]
    wall_neighbours: list[list[str]] = []
    for direction in DIRECTIONS:
        if direction is Direction.POS_X:
            wall_neighbours.append([VOID, "wall_px"])
        else:
            wall_neighbours.append(["solid", "wall_px"])
    solid_neighbours = [["solid", "wall_px"] for _ in DIRECTIONS]
    return load_catalog(
        {
            VOID: make_record(everywhere=ids, mesh_name="-1"),
            "solid": make_record(neighbours=solid_neighbours, mesh_name="solid"),
            "wall_px": make_record(neighbours=wall_neighbours, mesh_name="wall"),
        }
    )


def bottom_only_top_catalog() -> PrototypeCatalog:
    """Only the bottom-tagged ``base`` accepts void above it."""
    ids = [VOID, "base", "cap"]
    capped = [ids if d is not Direction.UP else ["base", "cap"] for d in DIRECTIONS]
    return load_catalog(
        {
            VOID: make_record(neighbours=capped),
            "base": make_record(everywhere=ids, constrain_to="bot"),
            "cap": make_record(neighbours=capped),
        }
    )


def island_catalog() -> PrototypeCatalog:
    return load_catalog(island_tileset())


def neighbour_pairs(
    size: tuple[int, int, int],
) -> Iterable[tuple[tuple, Direction, tuple]]:
    """Every (cell, direction, neighbour) triple inside a grid."""
    sx, sy, sz = size
    for z in range(sz):
        for y in range(sy):
            for x in range(sx):
                for direction in DIRECTIONS:
                    dx, dy, dz = direction.offset
                    nx, ny, nz = x + dx, y + dy, z + dz
                    if 0 <= nx < sx and 0 <= ny < sy and 0 <= nz < sz:
                        yield (x, y, z), direction, (nx, ny, nz)
