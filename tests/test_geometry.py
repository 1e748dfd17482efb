"""Tests for the N-dimensional position and offset helpers."""

from __future__ import annotations

import pytest

from ndwfc.enums import DirectionPolicy
from ndwfc.model.geometry import add, cartesian_product, cartesian_range, get_directions, insert_unit, wrap_position


class TestCartesianProduct:
    """Tests for the Cartesian product enumeration."""

    def test_first_axis_varies_fastest(self) -> None:
        """Positions are enumerated with the first coordinate changing on every step."""
        assert list(cartesian_range((2, 3))) == [(0, 0), (1, 0), (0, 1), (1, 1), (0, 2), (1, 2)]

    def test_product_of_arbitrary_ranges(self) -> None:
        assert list(cartesian_product([("a", "b"), (1,)])) == [("a", 1), ("b", 1)]

    def test_no_ranges_yield_single_empty_tuple(self) -> None:
        assert list(cartesian_product([])) == [()]

    def test_empty_range_yields_nothing(self) -> None:
        assert list(cartesian_range((3, 0))) == []

    def test_each_call_restarts(self) -> None:
        """Consuming one generator does not affect the next call."""
        first = cartesian_range((2, 2))
        assert len(list(first)) == 4
        assert list(first) == []
        assert len(list(cartesian_range((2, 2)))) == 4

    def test_supports_higher_dimensions(self) -> None:
        positions = list(cartesian_range((2, 2, 2, 2)))
        assert len(positions) == 16
        assert len(set(positions)) == 16
        assert positions[1] == (1, 0, 0, 0)
        assert positions[-1] == (1, 1, 1, 1)


class TestVectorArithmetic:
    """Tests for componentwise addition and unit insertion."""

    def test_add(self) -> None:
        assert add((1, 2, 3), (-1, 0, 1)) == (0, 2, 4)

    @pytest.mark.parametrize(
        ("position", "unit", "dimension", "expected"),
        [
            ((4, 5), 9, 0, (9, 4, 5)),
            ((4, 5), 9, 1, (4, 9, 5)),
            ((4, 5), 9, 2, (4, 5, 9)),
            ((), 3, 0, (3,)),
        ],
    )
    def test_insert_unit(self, position: tuple[int, ...], unit: int, dimension: int, expected: tuple[int, ...]) -> None:
        assert insert_unit(position, unit, dimension) == expected

    def test_wrap_position_inside_grid_is_unchanged(self) -> None:
        assert wrap_position((1, 2), (3, 3), frozenset()) == (1, 2)

    def test_wrap_position_wraps_periodic_dimensions(self) -> None:
        assert wrap_position((-1, 3), (3, 3), {0, 1}) == (2, 0)

    def test_wrap_position_rejects_non_periodic_overflow(self) -> None:
        assert wrap_position((-1, 1), (3, 3), {1}) is None
        assert wrap_position((1, 3), (3, 3), {0}) is None


class TestDirections:
    """Tests for the direction set construction."""

    def test_distinct_magnitudes_in_2d_keeps_axis_neighbors(self) -> None:
        assert get_directions(2, DirectionPolicy.DISTINCT_MAGNITUDES) == [(0, -1), (-1, 0), (1, 0), (0, 1)]

    def test_distinct_magnitudes_in_1d_keeps_zero_vector(self) -> None:
        assert get_directions(1, DirectionPolicy.DISTINCT_MAGNITUDES) == [(-1,), (0,), (1,)]

    def test_distinct_magnitudes_in_3d_is_empty(self) -> None:
        """Three pairwise distinct magnitudes cannot be drawn from {0, 1}."""
        assert get_directions(3, DirectionPolicy.DISTINCT_MAGNITUDES) == []

    def test_axis_aligned_in_3d(self) -> None:
        directions = get_directions(3, DirectionPolicy.AXIS_ALIGNED)
        assert len(directions) == 6
        assert all(sum(abs(unit) for unit in direction) == 1 for direction in directions)

    def test_full_neighborhood_in_2d(self) -> None:
        directions = get_directions(2, DirectionPolicy.FULL_NEIGHBORHOOD)
        assert len(directions) == 8
        assert (0, 0) not in directions
        assert (1, 1) in directions

    def test_direction_sets_are_symmetric(self) -> None:
        """Every direction's negation is part of the same set."""
        for policy in DirectionPolicy:
            for dimensions in (1, 2, 3):
                directions = get_directions(dimensions, policy)
                for direction in directions:
                    assert tuple(-unit for unit in direction) in directions
