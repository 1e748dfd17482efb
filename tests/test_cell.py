"""Tests for the per-position superposition state."""

from __future__ import annotations

import math

import numpy as np
import pytest

from ndwfc.model.cell import Cell


@pytest.fixture
def weights() -> np.ndarray:
    return np.array([1, 2, 3], dtype=np.int_)


def expected_entropy(weights: list[int]) -> float:
    total = sum(weights)
    return -sum(weight / total * math.log(weight / total) for weight in weights)


class TestCellInitialization:
    """Tests for a freshly created cell."""

    def test_every_pattern_is_possible(self, weights: np.ndarray) -> None:
        cell = Cell(weights, (1, 2))
        assert cell.position == (1, 2)
        assert cell.possible_pattern_indices == (0, 1, 2)
        assert not cell.is_collapsed
        assert cell.try_get_collapsed_index() is None

    def test_aggregates(self, weights: np.ndarray) -> None:
        cell = Cell(weights, (0,))
        assert cell.sum_of_weights == 6
        assert cell.sum_of_weight_log_weights == pytest.approx(2 * math.log(2) + 3 * math.log(3))

    def test_entropy_matches_shannon_entropy(self, weights: np.ndarray) -> None:
        """The incremental formula equals the entropy of the normalized weight distribution."""
        cell = Cell(weights, (0,))
        assert cell.entropy == pytest.approx(expected_entropy([1, 2, 3]))

    def test_single_pattern_cell_is_not_collapsed(self) -> None:
        cell = Cell(np.array([5]), (0, 0))
        assert not cell.is_collapsed
        assert cell.entropy == pytest.approx(0.0)


class TestCellConstrain:
    """Tests for removing possible patterns."""

    def test_removes_pattern_and_updates_entropy(self, weights: np.ndarray) -> None:
        cell = Cell(weights, (0,))
        cell.constrain([0])

        assert cell.possible_pattern_indices == (1, 2)
        assert cell.sum_of_weights == 5
        assert cell.entropy == pytest.approx(expected_entropy([2, 3]))
        assert not cell.is_collapsed

    def test_ignores_patterns_that_are_not_possible(self, weights: np.ndarray) -> None:
        cell = Cell(weights, (0,))
        cell.constrain([0])
        cell.constrain([0])
        assert cell.possible_pattern_indices == (1, 2)
        assert cell.sum_of_weights == 5

    def test_collapses_when_one_pattern_remains(self, weights: np.ndarray) -> None:
        cell = Cell(weights, (0,))
        cell.constrain([0, 1])

        assert cell.is_collapsed
        assert cell.possible_pattern_indices == (2,)
        assert cell.try_get_collapsed_index() == 2
        assert cell.entropy == 0.0

    def test_collapsed_cell_ignores_constraints(self, weights: np.ndarray) -> None:
        cell = Cell(weights, (0,))
        cell.collapse(1)
        cell.constrain([1])
        assert cell.possible_pattern_indices == (1,)
        assert cell.is_collapsed

    def test_removing_every_pattern_fails_loudly(self, weights: np.ndarray) -> None:
        cell = Cell(weights, (0,))
        with pytest.raises(AssertionError):
            cell.constrain([0, 1, 2])


class TestCellCollapse:
    """Tests for forcing a cell into a single pattern."""

    def test_collapse(self, weights: np.ndarray) -> None:
        cell = Cell(weights, (0,))
        cell.collapse(1)

        assert cell.is_collapsed
        assert cell.possible_pattern_indices == (1,)
        assert cell.try_get_collapsed_index() == 1
        assert cell.entropy == 0.0
        assert cell.sum_of_weights == 0
        assert cell.sum_of_weight_log_weights == 0.0

    def test_collapse_is_noop_when_collapsed(self, weights: np.ndarray) -> None:
        cell = Cell(weights, (0,))
        cell.collapse(1)
        cell.collapse(2)
        assert cell.try_get_collapsed_index() == 1

    def test_collapse_into_impossible_pattern_fails_loudly(self, weights: np.ndarray) -> None:
        cell = Cell(weights, (0,))
        cell.constrain([0])
        with pytest.raises(AssertionError):
            cell.collapse(0)

    @pytest.mark.parametrize("removed", [[], [0], [2], [0, 1], [1, 2]])
    def test_collapsed_flag_tracks_remaining_patterns(self, weights: np.ndarray, removed: list[int]) -> None:
        cell = Cell(weights, (0,))
        cell.constrain(removed)
        assert cell.is_collapsed == (len(cell.possible_pattern_indices) == 1)
        if cell.is_collapsed:
            assert cell.entropy == 0.0


class TestCellClone:
    """Tests for the checkpoint copies of cells."""

    def test_clone_copies_state(self, weights: np.ndarray) -> None:
        cell = Cell(weights, (3, 4))
        cell.constrain([1])
        clone = cell.clone()

        assert clone is not cell
        assert clone.position == cell.position
        assert clone.possible_pattern_indices == cell.possible_pattern_indices
        assert clone.sum_of_weights == cell.sum_of_weights
        assert clone.sum_of_weight_log_weights == cell.sum_of_weight_log_weights
        assert clone.entropy == cell.entropy
        assert clone.is_collapsed == cell.is_collapsed

    def test_clone_is_independent(self, weights: np.ndarray) -> None:
        cell = Cell(weights, (0,))
        clone = cell.clone()

        clone.collapse(2)

        assert not cell.is_collapsed
        assert cell.possible_pattern_indices == (0, 1, 2)
        assert cell.sum_of_weights == 6

    def test_clone_preserves_collapsed_state(self, weights: np.ndarray) -> None:
        cell = Cell(weights, (0,))
        cell.collapse(0)
        clone = cell.clone()
        assert clone.is_collapsed
        assert clone.try_get_collapsed_index() == 0
