"""Tests for the boundary pass run before the first collapse."""

from __future__ import annotations

import numpy as np

from tessera.environment.directions import DIRECTIONS, Direction
from tessera.environment.generators.boundary import (
    GROUNDED_OPEN_FACES,
    BoundaryConstraintApplier,
)
from tessera.environment.grid import Grid
from tessera.environment.prototypes import load_catalog
from tests.helpers import (
    VOID,
    boundary_catalog,
    bottom_only_top_catalog,
    island_catalog,
    make_record,
)


class TestVoidFilter:
    """Outer faces keep only prototypes that accept void on that side."""

    def test_boundary_cells_accept_void_outward(self) -> None:
        """In a 3x3x3 grid every cell but the centre is filtered."""
        grid = Grid((3, 3, 3), boundary_catalog())

        report = BoundaryConstraintApplier().apply(grid)

        assert report.skipped_batches == 0
        for x, y, z in grid.positions():
            domain = grid.cell_at(x, y, z).domain
            for direction in DIRECTIONS:
                if grid.neighbor(x, y, z, direction) is not None:
                    continue
                for prototype in domain.values():
                    assert VOID in prototype.valid_neighbours[direction]

    def test_interior_cell_untouched(self) -> None:
        grid = Grid((3, 3, 3), boundary_catalog())

        BoundaryConstraintApplier().apply(grid)

        assert grid.domain_ids((1, 1, 1)) == [VOID, "solid", "wall_px"]

    def test_face_specific_prototype_survives_on_its_face(self) -> None:
        """wall_px accepts void only to +X, so it stays only on the +X face."""
        grid = Grid((3, 3, 3), boundary_catalog())

        BoundaryConstraintApplier().apply(grid)

        assert grid.domain_ids((2, 1, 1)) == [VOID, "wall_px"]
        assert grid.domain_ids((0, 1, 1)) == [VOID]
        assert grid.domain_ids((2, 2, 1)) == [VOID]

    def test_grounded_faces_leave_bottom_open(self) -> None:
        """Without DOWN in the open faces the bottom layer is not filtered."""
        grid = Grid((3, 3, 3), boundary_catalog())

        BoundaryConstraintApplier(GROUNDED_OPEN_FACES).apply(grid)

        assert Direction.DOWN not in GROUNDED_OPEN_FACES
        assert grid.domain_ids((1, 0, 1)) == [VOID, "solid", "wall_px"]

    def test_batch_that_would_empty_domain_is_skipped(self) -> None:
        """Without a void-compatible prototype the filter leaves the cell alone."""
        catalog = load_catalog({"solid": make_record(everywhere=["solid"])})
        grid = Grid((2, 1, 1), catalog)

        report = BoundaryConstraintApplier().apply(grid)

        assert report.removed == 0
        assert report.skipped_batches > 0
        assert grid.domain_ids((0, 0, 0)) == ["solid"]
        assert grid.domain_ids((1, 0, 0)) == ["solid"]


class TestLayerTags:
    """Layer tags pin prototypes to the lowest or highest layer."""

    def _tagged_catalog(self):
        ids = [VOID, "floor", "roof", "beam"]
        return load_catalog(
            {
                VOID: make_record(everywhere=ids),
                "floor": make_record(everywhere=ids, constrain_to="bottom"),
                "roof": make_record(everywhere=ids, constrain_to="top"),
                "beam": make_record(everywhere=ids, constrain_to="bot"),
            }
        )

    def test_bottom_and_top_tags(self) -> None:
        grid = Grid((1, 3, 1), self._tagged_catalog())

        BoundaryConstraintApplier().apply(grid)

        assert grid.domain_ids((0, 0, 0)) == [VOID, "floor", "beam"]
        assert grid.domain_ids((0, 1, 0)) == [VOID]
        assert grid.domain_ids((0, 2, 0)) == [VOID, "roof"]

    def test_single_layer_allows_both(self) -> None:
        """With one layer the only layer is both the bottom and the top."""
        grid = Grid((1, 1, 1), self._tagged_catalog())

        BoundaryConstraintApplier().apply(grid)

        assert grid.domain_ids((0, 0, 0)) == [VOID, "floor", "roof", "beam"]

    def test_tag_removal_may_empty_a_domain(self) -> None:
        """Layer tags apply even when nothing else could fill the cell."""
        grid = Grid((1, 2, 1), bottom_only_top_catalog())

        report = BoundaryConstraintApplier().apply(grid)

        assert grid.domain_ids((0, 1, 0)) == []
        assert grid.domain_ids((0, 0, 0)) == [VOID, "base", "cap"]
        assert report.skipped_batches == 4


class TestBoundaryIdempotence:
    """Running the pass twice gives the same domains as running it once."""

    def test_idempotent_on_boundary_catalog(self) -> None:
        once = Grid((3, 3, 3), boundary_catalog())
        BoundaryConstraintApplier().apply(once)
        twice = once.copy()

        report = BoundaryConstraintApplier().apply(twice)

        assert report.removed == 0
        np.testing.assert_array_equal(once.wave, twice.wave)

    def test_idempotent_with_skipped_batches(self) -> None:
        """Skipped batches are skipped again rather than applied later."""
        catalog = load_catalog(
            {
                "a": make_record(everywhere=["a"], constrain_to="top"),
                "b": make_record(everywhere=["a", "b"]),
            }
        )
        once = Grid((2, 2, 2), catalog)
        first = BoundaryConstraintApplier().apply(once)
        twice = once.copy()

        second = BoundaryConstraintApplier().apply(twice)

        assert second.removed == 0
        assert second.skipped_batches == first.skipped_batches
        np.testing.assert_array_equal(once.wave, twice.wave)

    def test_idempotent_on_island_tileset(self) -> None:
        once = Grid((6, 4, 5), island_catalog())
        BoundaryConstraintApplier().apply(once)
        twice = once.copy()

        BoundaryConstraintApplier().apply(twice)

        np.testing.assert_array_equal(once.wave, twice.wave)
