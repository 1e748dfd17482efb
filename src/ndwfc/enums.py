"""Contains all global enumeration classes used throughout the project."""

from __future__ import annotations

from enum import Enum


class WFCMode(Enum):
    """Defines the available tiling modes used by the WFC algorithm."""

    SIMPLE_TILED = "Simple Tiled"
    """Adjacency rules only specify which single template values might be placed next to each other."""
    OVERLAPPING = "Overlapping"
    """Adjacency rules specify which overlapping N^D (N >= 2) tiles might be placed next to each other."""


class WFCState(Enum):
    """Defines the lifecycle states of a WFC engine."""

    UNPREPARED = "Unprepared"
    """No output grid has been allocated yet. Iteration and queries are no-ops."""
    PREPARED = "Prepared"
    """An output grid exists and still contains uncollapsed cells."""
    FULLY_COLLAPSED = "Fully Collapsed"
    """Every cell of the output grid has been collapsed. Only a new preparation leaves this state."""


class DirectionPolicy(Enum):
    """Defines which offset vectors (with components in {-1, 0, 1}) count as neighbor directions."""

    DISTINCT_MAGNITUDES = "Distinct Magnitudes (Default)"
    """Keeps vectors whose component absolute values are pairwise distinct.

    In 1D this keeps all three vectors (including the zero vector), in 2D the four axis-aligned neighbors. From 3D on
    no vector qualifies, which effectively disables propagation.
    """
    AXIS_ALIGNED = "Axis Aligned"
    """Keeps vectors with exactly one non-zero component (the 2 * D face neighbors)."""
    FULL_NEIGHBORHOOD = "Full Neighborhood"
    """Keeps every non-zero vector (the 3^D - 1 Moore neighbors, diagonals included)."""

    def accepts(self, direction: tuple[int, ...]) -> bool:
        """Returns whether the given direction vector belongs to the direction set of this policy."""
        match self:
            case DirectionPolicy.DISTINCT_MAGNITUDES:
                magnitudes = [abs(unit) for unit in direction]
                return len(set(magnitudes)) == len(magnitudes)
            case DirectionPolicy.AXIS_ALIGNED:
                return sum(1 for unit in direction if unit != 0) == 1
            case DirectionPolicy.FULL_NEIGHBORHOOD:
                return any(unit != 0 for unit in direction)
