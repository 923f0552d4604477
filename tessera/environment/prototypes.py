"""Tile prototype definitions and the read-only catalog that holds them.

A prototype is one placeable tile: a mesh, a quarter-turn rotation, six
adjacency labels and, authoritatively, six precomputed lists of prototype
ids allowed next to it (``valid_neighbours``, indexed by ``Direction``).

The catalog is built once from external data and never mutated afterwards,
so one instance can be shared by any number of grids, including grids being
solved on other threads. Everything the solver needs per direction is
precomputed here as numpy arrays:

    compatibility(d)[i, j] is True when prototype j may occupy the cell
    adjacent to prototype i in direction d.

Usage:
    catalog = load_catalog(Path("prototype_data.json"))
    catalog["p12"].weight
"""

from __future__ import annotations

import copy
import json
import logging
import os
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeAlias

import numpy as np

from tessera import config
from tessera.types import PrototypeId, QuarterTurns

from .directions import DIR_LABEL_KEYS, DIRECTIONS, OPPOSITE_DIR, Direction
from .errors import DataFormatError

logger = logging.getLogger(__name__)

# Data file label keys -> Prototype attribute names
_LABEL_ATTRS: dict[str, str] = {
    "posX": "pos_x",
    "negX": "neg_x",
    "posY": "pos_y",
    "negY": "neg_y",
    "posZ": "pos_z",
    "negZ": "neg_z",
}


@dataclass(frozen=True, slots=True)
class Prototype:
    """A single tile definition.

    Attributes:
        id: Unique catalog key.
        mesh_name: Opaque mesh reference, resolved by the renderer.
        rotation: Quarter turns about the vertical axis (0-3).
        pos_x, neg_x, pos_y, neg_y, pos_z, neg_z: Adjacency labels as
            authored. Informational; ``valid_neighbours`` is authoritative.
        constrain_to: Layer tag ("top", "bottom"/"bot") or None.
        constrain_from: Layer tag carried through from the data, or None.
        weight: Relative selection probability (positive integer).
        valid_neighbours: Six tuples of prototype ids, one per Direction.
    """

    id: PrototypeId
    mesh_name: str
    rotation: QuarterTurns = 0
    pos_x: str = ""
    neg_x: str = ""
    pos_y: str = ""
    neg_y: str = ""
    pos_z: str = ""
    neg_z: str = ""
    constrain_to: str | None = None
    constrain_from: str | None = None
    weight: int = 1
    valid_neighbours: tuple[tuple[PrototypeId, ...], ...] = field(
        default_factory=lambda: ((),) * len(DIRECTIONS)
    )

    def allows(self, direction: Direction, other_id: PrototypeId) -> bool:
        """Whether ``other_id`` may sit next to this prototype in ``direction``."""
        return other_id in self.valid_neighbours[direction]

    def label(self, direction: Direction) -> str:
        """The authored adjacency label on the face pointing in ``direction``."""
        return getattr(self, _LABEL_ATTRS[DIR_LABEL_KEYS[direction]])

    @property
    def is_empty(self) -> bool:
        """True for the open-space prototype, which has nothing to render."""
        return self.mesh_name == config.EMPTY_MESH_NAME


class PrototypeCatalog(Mapping[PrototypeId, Prototype]):
    """Immutable lookup of prototypes keyed by id.

    Iteration order is the order the prototypes were given in; the solver
    uses it as the column order of every domain bitset.
    """

    def __init__(self, prototypes: Iterable[Prototype]) -> None:
        """Build and validate the catalog.

        Args:
            prototypes: Prototype definitions with unique ids.

        Raises:
            DataFormatError: On an empty catalog, duplicate ids, a
                weight that is not a positive integer, a valid_neighbours
                table without six entries, or a neighbour id that is not in
                the catalog.
        """
        self._prototypes: dict[PrototypeId, Prototype] = {}
        for prototype in prototypes:
            if prototype.id in self._prototypes:
                raise DataFormatError(f"Duplicate prototype id '{prototype.id}'")
            weight = prototype.weight
            if isinstance(weight, bool) or not isinstance(weight, int) or weight <= 0:
                raise DataFormatError(
                    f"Prototype '{prototype.id}': weight must be a positive integer, "
                    f"got {weight!r}"
                )
            self._prototypes[prototype.id] = prototype

        if not self._prototypes:
            raise DataFormatError("Prototype catalog is empty")

        self._ids: tuple[PrototypeId, ...] = tuple(self._prototypes)
        self._index: dict[PrototypeId, int] = {
            pid: i for i, pid in enumerate(self._ids)
        }

        weights = np.array(
            [p.weight for p in self._prototypes.values()], dtype=np.float64
        )
        weights.flags.writeable = False
        self._weights = weights

        self._compatibility = self._build_compatibility()

    def _build_compatibility(self) -> tuple[np.ndarray, ...]:
        """Precompute one read-only (n, n) boolean matrix per direction."""
        n = len(self._ids)
        matrices = [np.zeros((n, n), dtype=bool) for _ in DIRECTIONS]

        for i, prototype in enumerate(self._prototypes.values()):
            if len(prototype.valid_neighbours) != len(DIRECTIONS):
                raise DataFormatError(
                    f"Prototype '{prototype.id}' has "
                    f"{len(prototype.valid_neighbours)} valid_neighbours lists, "
                    f"expected {len(DIRECTIONS)}"
                )
            for direction in DIRECTIONS:
                for neighbour_id in prototype.valid_neighbours[direction]:
                    j = self._index.get(neighbour_id)
                    if j is None:
                        raise DataFormatError(
                            f"Prototype '{prototype.id}' lists unknown neighbour "
                            f"'{neighbour_id}' in direction {direction.name}"
                        )
                    matrices[direction][i, j] = True

        for matrix in matrices:
            matrix.flags.writeable = False
        return tuple(matrices)

    # -------------------------------------------------------------------------
    # Mapping protocol
    # -------------------------------------------------------------------------

    def __getitem__(self, key: PrototypeId) -> Prototype:
        return self._prototypes[key]

    def __iter__(self) -> Iterator[PrototypeId]:
        return iter(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __repr__(self) -> str:
        return f"PrototypeCatalog({len(self)} prototypes)"

    # -------------------------------------------------------------------------
    # Solver support
    # -------------------------------------------------------------------------

    @property
    def ids(self) -> tuple[PrototypeId, ...]:
        return self._ids

    @property
    def weights(self) -> np.ndarray:
        """Read-only float64 weights in catalog order."""
        return self._weights

    def index_of(self, prototype_id: PrototypeId) -> int:
        """Column index of ``prototype_id`` in domain bitsets.

        Raises:
            KeyError: If the id is not in the catalog.
        """
        return self._index[prototype_id]

    def mask_of(self, prototype_ids: Iterable[PrototypeId]) -> np.ndarray:
        """Boolean mask in catalog order selecting ``prototype_ids``."""
        mask = np.zeros(len(self._ids), dtype=bool)
        for pid in prototype_ids:
            mask[self.index_of(pid)] = True
        return mask

    def compatibility(self, direction: Direction) -> np.ndarray:
        """Read-only matrix M where M[i, j] means j may neighbour i in direction."""
        return self._compatibility[direction]

    def asymmetric_pairs(self) -> list[tuple[PrototypeId, Direction, PrototypeId]]:
        """Find neighbour relations the data does not mirror.

        Returns:
            ``(a, d, b)`` for every ``b`` listed by ``a`` in direction ``d``
            while ``a`` is missing from ``b``'s list in the opposite direction.
        """
        pairs: list[tuple[PrototypeId, Direction, PrototypeId]] = []
        for direction in DIRECTIONS:
            forward = self._compatibility[direction]
            backward = self._compatibility[OPPOSITE_DIR[direction]]
            for i, j in np.argwhere(forward & ~backward.T):
                pairs.append((self._ids[i], direction, self._ids[j]))
        return pairs


# =============================================================================
# Loading
# =============================================================================

PrototypeRecords: TypeAlias = Mapping[str, Mapping[str, Any]]


def load_catalog(
    source: PrototypeRecords | str | os.PathLike[str],
    *,
    strict_symmetry: bool = False,
) -> PrototypeCatalog:
    """Parse external prototype definitions into a catalog.

    Args:
        source: A mapping of id -> record, a JSON document string, or a path
            to a JSON file holding such a mapping.
        strict_symmetry: Reject data where a neighbour relation is not
            mirrored in the opposite direction.

    Returns:
        The validated, read-only catalog.

    Raises:
        DataFormatError: If the data is malformed, incomplete, references
            unknown neighbour ids, or (with strict_symmetry) is asymmetric.
        OSError: If ``source`` is a path that cannot be read.
    """
    records = read_records(source)
    catalog = PrototypeCatalog(
        _parse_prototype(str(pid), record) for pid, record in records.items()
    )

    if strict_symmetry:
        asymmetric = catalog.asymmetric_pairs()
        if asymmetric:
            a, direction, b = asymmetric[0]
            raise DataFormatError(
                f"Asymmetric adjacency: '{a}' allows '{b}' to {direction.name}, "
                f"but '{b}' does not allow '{a}' to "
                f"{OPPOSITE_DIR[direction].name} "
                f"({len(asymmetric)} asymmetric relations in total)"
            )

    logger.info("Loaded %d prototypes", len(catalog))
    return catalog


def read_records(
    source: PrototypeRecords | str | os.PathLike[str],
) -> PrototypeRecords:
    """Raw prototype records from a mapping, a JSON string or a JSON file.

    Raises:
        DataFormatError: If the text is not JSON or not a JSON object.
        OSError: If ``source`` is a path that cannot be read.
    """
    if isinstance(source, Mapping):
        return source

    if isinstance(source, str) and source.lstrip().startswith("{"):
        text = source
    else:
        path = Path(source)
        with path.open(encoding="utf-8") as f:
            text = f.read()

    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DataFormatError(f"Prototype data is not valid JSON: {exc}") from exc

    if not isinstance(document, dict):
        raise DataFormatError(
            "Prototype data must be a JSON object keyed by prototype id"
        )
    return document


def _parse_prototype(pid: PrototypeId, record: Any) -> Prototype:
    if not isinstance(record, Mapping):
        raise DataFormatError(f"Prototype '{pid}' must be an object")

    mesh_name = _require(pid, record, "mesh_name")
    if not isinstance(mesh_name, str):
        raise DataFormatError(f"Prototype '{pid}': mesh_name must be a string")

    rotation = _require_int(pid, record, "mesh_rotation")
    if rotation not in (0, 1, 2, 3):
        raise DataFormatError(
            f"Prototype '{pid}': mesh_rotation must be 0-3, got {rotation}"
        )

    weight = _require_int(pid, record, "weight")
    if weight <= 0:
        raise DataFormatError(f"Prototype '{pid}': weight must be positive")

    labels = {}
    for key, attr in _LABEL_ATTRS.items():
        value = record.get(key, "")
        labels[attr] = "" if value is None else str(value)

    return Prototype(
        id=pid,
        mesh_name=mesh_name,
        rotation=rotation,
        constrain_to=_optional_tag(pid, record, "constrain_to"),
        constrain_from=_optional_tag(pid, record, "constrain_from"),
        weight=weight,
        valid_neighbours=_parse_valid_neighbours(pid, record),
        **labels,
    )


def _require(pid: PrototypeId, record: Mapping[str, Any], key: str) -> Any:
    if key not in record or record[key] is None:
        raise DataFormatError(f"Prototype '{pid}' is missing required field '{key}'")
    return record[key]


def _require_int(pid: PrototypeId, record: Mapping[str, Any], key: str) -> int:
    value = _require(pid, record, key)
    # bool is an int subclass but never a valid count or rotation
    if isinstance(value, bool) or not isinstance(value, int):
        raise DataFormatError(f"Prototype '{pid}': {key} must be an integer")
    return value


def _optional_tag(pid: PrototypeId, record: Mapping[str, Any], key: str) -> str | None:
    value = record.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise DataFormatError(f"Prototype '{pid}': {key} must be a string")
    return value


def _parse_valid_neighbours(
    pid: PrototypeId, record: Mapping[str, Any]
) -> tuple[tuple[PrototypeId, ...], ...]:
    groups = _require(pid, record, "valid_neighbours")
    if not isinstance(groups, list | tuple) or len(groups) != len(DIRECTIONS):
        raise DataFormatError(
            f"Prototype '{pid}': valid_neighbours must be a list of "
            f"{len(DIRECTIONS)} lists"
        )

    parsed: list[tuple[PrototypeId, ...]] = []
    for direction, group in zip(DIRECTIONS, groups, strict=True):
        if not isinstance(group, list | tuple) or not all(
            isinstance(n, str) for n in group
        ):
            raise DataFormatError(
                f"Prototype '{pid}': valid_neighbours[{int(direction)}] must be "
                "a list of prototype ids"
            )
        parsed.append(tuple(group))
    return tuple(parsed)


# =============================================================================
# Data migration
# =============================================================================


def remap_rotations(
    records: PrototypeRecords,
    table: Mapping[int, int] = config.ROTATION_REMAP,
) -> dict[str, dict[str, Any]]:
    """Convert ``mesh_rotation`` values between the two rotation conventions.

    Prototype files exported from the authoring tool count quarter turns in
    the opposite sense to the mesh placement layer. The empty prototype is
    left alone, as are rotations the table does not cover.

    Args:
        records: Raw prototype records keyed by id. Not modified.
        table: Old rotation -> new rotation.

    Returns:
        A deep copy of ``records`` with remapped rotations.
    """
    remapped: dict[str, dict[str, Any]] = copy.deepcopy(
        {pid: dict(record) for pid, record in records.items()}
    )
    changed = 0
    for pid, record in remapped.items():
        if pid == config.EMPTY_PROTOTYPE_ID:
            continue
        if record.get("mesh_name") == config.EMPTY_MESH_NAME:
            continue
        rotation = record.get("mesh_rotation")
        if rotation in table and table[rotation] != rotation:
            record["mesh_rotation"] = table[rotation]
            changed += 1

    logger.info("Remapped rotation of %d prototypes", changed)
    return remapped
