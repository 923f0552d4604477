"""Exceptions raised by the tile solver.

A contradiction during a run is normally reported as a run outcome, not
raised. ``WFCContradiction`` exists for callers that prefer exceptions and
ask for one via ``RunResult.raise_for_outcome()``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tessera.types import GridPos


class WFCError(Exception):
    """Base class for all solver errors."""


class DataFormatError(WFCError, ValueError):
    """Prototype source data is malformed or incomplete."""


class OutOfBoundsError(WFCError, IndexError):
    """A cell outside the grid bounds was accessed."""

    def __init__(self, pos: GridPos, size: tuple[int, int, int]) -> None:
        super().__init__(f"Cell {pos} is outside grid of size {size}")
        self.pos = pos
        self.size = size


class WFCInvariantError(WFCError, RuntimeError):
    """The solver reached a state its own invariants rule out."""


class WFCContradiction(WFCError):
    """Raised on request when a run ended with an empty cell domain.

    This occurs when constraint propagation eliminates all possibilities
    for a cell, meaning no valid solution exists for the choices made so far.
    """

    def __init__(self, message: str, pos: GridPos | None = None) -> None:
        super().__init__(message)
        self.pos = pos
