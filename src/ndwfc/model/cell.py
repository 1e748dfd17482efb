"""Contains the per-position superposition state of the WFC output grid."""

from __future__ import annotations

import math
from typing import Iterable, TYPE_CHECKING

if TYPE_CHECKING:
    import numpy as np
    from numpy.typing import NDArray


class Cell:
    """Represents a single cell in the WFC grid state.

    A cell tracks which patterns are still possible at its position. The sums needed for the Shannon entropy are
    maintained incrementally, so removing a pattern costs O(1) instead of a pass over all remaining patterns. After
    every mutation a cell is collapsed exactly if a single possible pattern remains.

    Attributes:
        position: The coordinates of the cell within the output grid.
    """

    position: tuple[int, ...]

    # The weight of each pattern (its number of occurrences in the template), shared between all cells.
    _weights: NDArray[np.int_]
    # The indices of the patterns still possible for this cell, in pattern order.
    _possible_pattern_indices: list[int]

    # Sum of weights of all patterns still possible.
    _sum_of_weights: int
    # Sum of weight * ln(weight) of all patterns still possible.
    _sum_of_weight_log_weights: float
    # Cached Shannon entropy, 0 once the cell is collapsed.
    _entropy: float

    # True if a single pattern remains for this cell.
    _is_collapsed: bool

    def __init__(self, weights: NDArray[np.int_], position: tuple[int, ...]) -> None:
        """Initializes a cell in which every pattern is still possible.

        Args:
            weights: The weight of each pattern, indexed by pattern index.
            position: The coordinates of the cell within the output grid.
        """
        self.position = tuple(position)
        self._weights = weights
        self._possible_pattern_indices = list(range(len(weights)))

        self._sum_of_weights = 0
        self._sum_of_weight_log_weights = 0.0
        for weight in weights:
            self._sum_of_weights += int(weight)
            self._sum_of_weight_log_weights += _weight_log_weight(int(weight))

        self._is_collapsed = False
        self._update_entropy()

    @property
    def possible_pattern_indices(self) -> tuple[int, ...]:
        """The indices of the patterns still possible for this cell."""
        return tuple(self._possible_pattern_indices)

    @property
    def sum_of_weights(self) -> int:
        return self._sum_of_weights

    @property
    def sum_of_weight_log_weights(self) -> float:
        return self._sum_of_weight_log_weights

    @property
    def entropy(self) -> float:
        """The Shannon entropy over the remaining patterns, weighted by pattern frequency."""
        return self._entropy

    @property
    def is_collapsed(self) -> bool:
        return self._is_collapsed

    def collapse(self, into: int) -> None:
        """Reduces the cell to the single given pattern. Does nothing if the cell is already collapsed."""
        if self._is_collapsed:
            return

        assert into in self._possible_pattern_indices, f"Pattern {into} is not possible for cell {self.position}"
        self._possible_pattern_indices = [into]
        self._is_collapsed = True

        self._sum_of_weights = 0
        self._sum_of_weight_log_weights = 0.0
        self._entropy = 0.0

    def constrain(self, pattern_indices: Iterable[int]) -> None:
        """Removes the given patterns from the possible patterns and updates the entropy sums.

        Indices that are not possible anymore are ignored. The cell collapses implicitly if a single pattern remains.
        Does nothing if the cell is already collapsed.

        Args:
            pattern_indices: The indices of the patterns to remove.
        """
        if self._is_collapsed:
            return

        for pattern_index in pattern_indices:
            if pattern_index in self._possible_pattern_indices:
                self._possible_pattern_indices.remove(pattern_index)

                weight = int(self._weights[pattern_index])
                self._sum_of_weights -= weight
                self._sum_of_weight_log_weights -= _weight_log_weight(weight)

        # Propagation has to detect contradictions before constraining, so an empty cell is a defect.
        assert self._possible_pattern_indices, f"Cell {self.position} has no possible pattern left"

        self._is_collapsed = len(self._possible_pattern_indices) == 1
        self._update_entropy()

    def try_get_collapsed_index(self) -> int | None:
        """Returns the index of the sole remaining pattern, or None if the cell is not collapsed yet."""
        if self._is_collapsed:
            return self._possible_pattern_indices[0]
        return None

    def clone(self) -> Cell:
        """Returns an independent copy of the cell (used as a checkpoint before speculative collapses)."""
        clone = Cell.__new__(Cell)
        clone.position = self.position
        clone._weights = self._weights
        clone._possible_pattern_indices = self._possible_pattern_indices.copy()
        clone._sum_of_weights = self._sum_of_weights
        clone._sum_of_weight_log_weights = self._sum_of_weight_log_weights
        clone._entropy = self._entropy
        clone._is_collapsed = self._is_collapsed
        return clone

    def _update_entropy(self) -> None:
        if self._is_collapsed:
            self._entropy = 0.0
            return

        assert self._sum_of_weights > 0, f"Cell {self.position} has no remaining pattern weight"
        self._entropy = math.log(self._sum_of_weights) - self._sum_of_weight_log_weights / self._sum_of_weights

    def __repr__(self) -> str:
        return f"Cell(position={self.position}, possible={self._possible_pattern_indices})"


def _weight_log_weight(weight: int) -> float:
    return weight * math.log(weight)
