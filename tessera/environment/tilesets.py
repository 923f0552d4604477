"""Built-in sample tileset and the socket rules used to derive it.

Real prototype files ship with ``valid_neighbours`` already computed by the
authoring tool. The sample here is written by hand as socket labels instead,
and ``build_valid_neighbours`` turns the labels into the same six neighbour
lists. Two faces fit when their comma-separated socket tokens share at
least one token.

The island set is small but exercises every solver feature: a void tile,
a ground layer tagged for the bottom, stacked rock columns and a tree that
only grows on grass.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

from tessera import config

from .directions import DIR_LABEL_KEYS, DIRECTIONS, OPPOSITE_DIR


def socket_tokens(label: str) -> frozenset[str]:
    """Split a socket label like ``"g,-1"`` into its tokens."""
    return frozenset(t.strip() for t in label.split(",") if t.strip())


def sockets_compatible(a: str, b: str) -> bool:
    return bool(socket_tokens(a) & socket_tokens(b))


def build_valid_neighbours(
    records: Mapping[str, Mapping[str, Any]],
) -> dict[str, dict[str, Any]]:
    """Fill in ``valid_neighbours`` for every record from its socket labels.

    Prototype ``b`` is a valid neighbour of ``a`` in direction ``d`` when
    ``a``'s label facing ``d`` is compatible with ``b``'s label facing back.
    The result is symmetric by construction.

    Returns:
        A copy of ``records`` with ``valid_neighbours`` set.
    """
    result = copy.deepcopy({pid: dict(record) for pid, record in records.items()})
    for pid, record in result.items():
        neighbours: list[list[str]] = []
        for direction in DIRECTIONS:
            own = str(record.get(DIR_LABEL_KEYS[direction], ""))
            back_key = DIR_LABEL_KEYS[OPPOSITE_DIR[direction]]
            neighbours.append(
                [
                    other_id
                    for other_id, other in records.items()
                    if sockets_compatible(own, str(other.get(back_key, "")))
                ]
            )
        result[pid]["valid_neighbours"] = neighbours
    return result


def _record(
    mesh_name: str,
    *,
    side: str,
    up: str,
    down: str,
    rotation: int = 0,
    weight: int = 1,
    constrain_to: str | None = None,
) -> dict[str, Any]:
    return {
        "mesh_name": mesh_name,
        "mesh_rotation": rotation,
        "posX": side,
        "negX": side,
        "posY": side,
        "negY": side,
        "posZ": up,
        "negZ": down,
        "constrain_to": constrain_to,
        "constrain_from": None,
        "weight": weight,
    }


def island_tileset() -> dict[str, dict[str, Any]]:
    """Raw prototype records for a small floating-island tileset.

    The records use the on-disk format, so they can be fed to
    ``load_catalog`` directly or written out as JSON.
    """
    void = "-1"
    records = {
        config.EMPTY_PROTOTYPE_ID: _record(
            config.EMPTY_MESH_NAME, side=void, up=void, down=void, weight=3
        ),
        # Ground slab, only on the lowest layer
        "ground": _record(
            "ground", side="g,-1", up="gu,-1", down="-1", constrain_to="bot"
        ),
        "rock": _record("rock", side="r,-1", up="r,-1", down="r,gu", weight=2),
        "grass_top": _record("grass_top", side="g,-1", up="t,-1", down="r,gu"),
        "tree": _record(
            "tree", side=void, up=void, down="t", weight=2, constrain_to="top"
        ),
    }
    return build_valid_neighbours(records)
