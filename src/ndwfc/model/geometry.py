"""Generic N-dimensional position and offset arithmetic."""

from __future__ import annotations

import itertools
from typing import Collection, Iterable, Iterator, Sequence, TypeVar, TYPE_CHECKING

from ndwfc.constants import DIRECTION_UNIT_RANGE

if TYPE_CHECKING:
    from ndwfc.enums import DirectionPolicy

T = TypeVar("T")


def cartesian_product(ranges: Sequence[Iterable[T]]) -> Iterator[tuple[T, ...]]:
    """Lazily yields the Cartesian product of the given ranges.

    The first range varies fastest, the last one slowest. This ordering is used for every enumeration of template
    positions, tile offsets, direction vectors and grid positions, so it is part of the reproducibility of a run.
    Every call returns a fresh generator. An empty sequence of ranges yields exactly one empty tuple.

    Args:
        ranges: One iterable of units per dimension.

    Returns:
        A generator of tuples with one unit per dimension.
    """
    # itertools.product varies its last argument fastest, so the ranges are fed in reverse order.
    for combination in itertools.product(*reversed([tuple(units) for units in ranges])):
        yield combination[::-1]


def cartesian_range(sizes: Sequence[int]) -> Iterator[tuple[int, ...]]:
    """Yields every position of a grid with the given extents (first axis fastest)."""
    return cartesian_product([range(size) for size in sizes])


def add(position: Sequence[int], offset: Sequence[int]) -> tuple[int, ...]:
    """Adds two vectors componentwise."""
    return tuple(unit + offset_unit for unit, offset_unit in zip(position, offset))


def insert_unit(position: Sequence[int], unit: int, dimension: int) -> tuple[int, ...]:
    """Returns a copy of the position with the unit inserted at the given dimension.

    Used to enumerate the positions along one axis while holding the coordinates of all other axes fixed.
    """
    return tuple(position[:dimension]) + (unit,) + tuple(position[dimension:])


def wrap_position(
    position: Sequence[int], size: Sequence[int], periodic_dimensions: Collection[int]
) -> tuple[int, ...] | None:
    """Maps a position into a grid, wrapping around along periodic dimensions.

    Args:
        position: The (possibly out-of-bounds) position.
        size: The extents of the grid.
        periodic_dimensions: The indices of the dimensions that wrap around.

    Returns:
        The wrapped position, or None if the position lies outside the grid along a non-periodic dimension.
    """
    wrapped = []
    for dimension, (unit, extent) in enumerate(zip(position, size)):
        if 0 <= unit < extent:
            wrapped.append(unit)
        elif dimension in periodic_dimensions:
            wrapped.append(unit % extent)
        else:
            return None
    return tuple(wrapped)


def get_directions(dimensions: int, policy: DirectionPolicy) -> list[tuple[int, ...]]:
    """Returns the direction set of the given dimension count, filtered by the given policy.

    Args:
        dimensions: The number of components of each direction vector.
        policy: Decides which offset vectors are kept.

    Returns:
        The list of kept direction vectors, in Cartesian product order.
    """
    unit_ranges = [DIRECTION_UNIT_RANGE] * dimensions
    return [direction for direction in cartesian_product(unit_ranges) if policy.accepts(direction)]
