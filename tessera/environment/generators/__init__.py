"""Tile structure generation for Tessera.

This package provides the pieces of a seeded 3D Wave Function Collapse run:
- BoundaryConstraintApplier: one-time pass trimming outer faces and layers
- ConstraintEngine: entropy selection, weighted collapse and propagation
- ResultProjector: placement records for decided cells
- WFCDriver: seeded batch and stepped runs, retries and timing

And batch generation of independent regions:
- RegionBatchGenerator: many regions, optionally on worker threads
- plan_regions: reproducible region sizes and seeds from one base seed
"""

from .batch import (
    RegionBatchGenerator,
    RegionBatchStats,
    RegionRequest,
    RegionResult,
    generate_regions,
    plan_regions,
)
from .boundary import (
    ALL_OPEN_FACES,
    GROUNDED_OPEN_FACES,
    BoundaryConstraintApplier,
    BoundaryReport,
)
from .driver import (
    RunMode,
    RunOutcome,
    RunResult,
    SteppedRun,
    WFCDriver,
)
from .projection import PlacementRecord, Projection, ResultProjector
from .wfc_solver import (
    ConstraintEngine,
    Contradiction,
    EngineState,
    StepOutcome,
    StepResult,
)

__all__ = [
    "ALL_OPEN_FACES",
    "GROUNDED_OPEN_FACES",
    "BoundaryConstraintApplier",
    "BoundaryReport",
    "ConstraintEngine",
    "Contradiction",
    "EngineState",
    "PlacementRecord",
    "Projection",
    "RegionBatchGenerator",
    "RegionBatchStats",
    "RegionRequest",
    "RegionResult",
    "ResultProjector",
    "RunMode",
    "RunOutcome",
    "RunResult",
    "StepOutcome",
    "StepResult",
    "SteppedRun",
    "WFCDriver",
    "generate_regions",
    "plan_regions",
]
