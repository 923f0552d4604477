"""
Configuration constants.

Centralizes all magic numbers and configuration values used by the solver.
Organized by functional area for easy maintenance.
"""

# =============================================================================
# GENERAL
# =============================================================================

# Seed used when the caller does not pick one (the interactive default)
RANDOM_SEED = 9

# Root log level for the command line entry point
LOG_LEVEL = "INFO"

# =============================================================================
# GRID
# =============================================================================

# Default grid size (x, y, z). y is the number of vertical layers.
DEFAULT_GRID_SIZE = (8, 3, 8)

# Named sizes offered by the seed entry screen
GRID_SIZE_PRESETS: dict[str, tuple[int, int, int]] = {
    "small": (8, 3, 8),
    "medium": (10, 4, 10),
    "large": (12, 5, 12),
}

# =============================================================================
# PROTOTYPE DATA
# =============================================================================

# Prototype representing open space. Boundary cells may only hold prototypes
# that list this id as a valid neighbour on the outward-facing side.
EMPTY_PROTOTYPE_ID = "p-1"

# Mesh name of the empty prototype. Nothing is rendered for it.
EMPTY_MESH_NAME = "-1"

# constrain_to values that pin a prototype to the lowest layer.
# "bot" is the spelling used by existing prototype files.
BOTTOM_CONSTRAINT_TAGS: frozenset[str] = frozenset({"bottom", "bot"})

# constrain_to values that pin a prototype to the highest layer
TOP_CONSTRAINT_TAGS: frozenset[str] = frozenset({"top"})

# Remaps mesh_rotation between the authoring tool's convention and the
# engine's convention (90 degrees in one is 270 in the other).
ROTATION_REMAP: dict[int, int] = {0: 0, 1: 3, 2: 2, 3: 1}

# =============================================================================
# PLACEMENT
# =============================================================================

# Fixed tilt applied about the x axis before the quarter-turn rotation
MESH_TILT_DEGREES = -90.0

# Distance between neighbouring cell origins in world units
DEFAULT_SPACING = 1.0

# =============================================================================
# SOLVER
# =============================================================================

# Cells whose entropy is within this distance of the minimum count as tied
ENTROPY_TIE_TOLERANCE = 1e-9

# Random stream used for selection and collapse draws within a run
WFC_RNG_DOMAIN = "wfc.collapse"

# Number of seeds tried by "run until solved" before giving up
DEFAULT_MAX_ATTEMPTS = 10

# =============================================================================
# REGION BATCH GENERATION
# =============================================================================

DEFAULT_REGION_COUNT = 10
REGION_MIN_SIZE = (8, 3, 8)
REGION_MAX_SIZE = (10, 5, 10)

# Random stream used to lay out region sizes and seeds
REGION_RNG_DOMAIN = "regions.layout"

# Worker threads for region generation. 1 keeps generation on the caller's thread.
REGION_MAX_WORKERS = 1

# =============================================================================
# METRICS
# =============================================================================

# Rolling window of solve times kept for percentile reporting
SOLVE_TIME_SAMPLE_SIZE = 256
