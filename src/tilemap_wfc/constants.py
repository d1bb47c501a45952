"""Contains global constants and default values used throughout the project."""

from tilemap_wfc.model.grid import Offset


# === NEIGHBOURHOOD PRESETS ===

# 4-connected cross, in (x, y) offsets.
CROSS_NEIGHBOURHOOD: tuple[Offset, ...] = (
    Offset(-1, 0),
    Offset(0, 1),
    Offset(1, 0),
    Offset(0, -1),
)

# 8-connected square, walked around the cell starting from the left.
SQUARE_NEIGHBOURHOOD: tuple[Offset, ...] = (
    Offset(-1, 0),
    Offset(-1, 1),
    Offset(0, 1),
    Offset(1, 1),
    Offset(1, 0),
    Offset(1, -1),
    Offset(0, -1),
    Offset(-1, -1),
)

# Pattern window that turns every example value into its own tile.
SELF_WINDOW: tuple[Offset, ...] = (Offset(0, 0),)

# === GENERATOR DEFAULTS ===

GENERATOR_MAX_ATTEMPTS_DEFAULT: int = 1
GENERATOR_MAX_ATTEMPTS_MAX_LIMIT: int = 1000

RANDOM_SEED_MAX: int = 999999999
