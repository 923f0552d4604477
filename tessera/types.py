from __future__ import annotations

from typing import TypeAlias

# =============================================================================
# SPATIAL TYPES
# =============================================================================

GridCoord: TypeAlias = int  # Always integer cell position

# Grid coordinates - x and z are horizontal, y is the vertical layer
GridPos: TypeAlias = tuple[GridCoord, GridCoord, GridCoord]  # Example: (2, 0, 5)

# Grid dimensions in cells
GridSize: TypeAlias = tuple[int, int, int]  # Example: (8, 3, 8)

# World-space position after applying cell spacing
WorldPos: TypeAlias = tuple[float, float, float]

# Euler rotation in degrees (x, y, z) as used by the mesh placement layer
EulerDegrees: TypeAlias = tuple[float, float, float]

# =============================================================================
# TILE TYPES
# =============================================================================

# Unique key of a prototype in the catalog, e.g. "p12" or "p-1"
PrototypeId: TypeAlias = str

# Quarter turns about the vertical axis (0, 1, 2 or 3)
QuarterTurns: TypeAlias = int

# =============================================================================
# RANDOMNESS
# =============================================================================

RandomSeed: TypeAlias = int | str | None
