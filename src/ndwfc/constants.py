"""Contains global constants and default values used throughout the project."""

# === PATTERN CONSTANTS ===

# Tile rotation is only defined for 2D templates.
ROTATION_SUPPORT_DIMENSIONS: int = 2
# Number of additional 90 degree rotations registered for every extracted tile.
ROTATION_COUNT: int = 3

# Tiles of this edge length are handled by the simple tiled model instead of the overlapping model.
SIMPLE_TILED_TILE_SIZE: int = 1

# === DIRECTION CONSTANTS ===

# The per-axis components that direction vectors are built from.
DIRECTION_UNIT_RANGE: tuple[int, ...] = (-1, 0, 1)
