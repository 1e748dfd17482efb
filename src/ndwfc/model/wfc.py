"""Implements the core WFC algorithm: entropy-guided collapse, constraint propagation and rollback."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import random
from typing import Any, Collection, Sequence, TYPE_CHECKING

import numpy as np

from ndwfc.constants import SIMPLE_TILED_TILE_SIZE
from ndwfc.enums import WFCState
from ndwfc.model.cell import Cell
from ndwfc.model.geometry import add, cartesian_range, wrap_position
from ndwfc.model.options import resolve_dimensions
from ndwfc.model.pattern_data import PatternDataOverlapping, PatternDataSimpleTiled

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

    from ndwfc.enums import WFCMode
    from ndwfc.model.options import WFCOptions
    from ndwfc.model.pattern_data import PatternData

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Element:
    """A cell touched by an iteration, projected onto the template values it can still take.

    Attributes:
        position: The coordinates of the cell within the output grid.
        values: The distinct template values still possible for the cell.
    """

    position: tuple[int, ...]
    values: tuple[Any, ...]


class WFC:
    """Synthesizes an output grid whose local neighborhoods resemble those of a template.

    Patterns and their adjacency rules are mined once at construction. Every call to prepare() allocates a fresh grid
    of cells in which every pattern is possible. Each iteration collapses the uncollapsed cell with the lowest entropy
    to a randomly drawn pattern (weighted by pattern frequency) and propagates the consequences to its neighbors. The
    whole grid is checkpointed before each collapse: if propagation runs into a contradiction, the checkpoint is
    restored and the failed pattern is permanently removed from the cell, so the same choice is never retried.

    All methods are synchronous and every iteration either fully commits or fully rolls back, so a consumer can stop
    calling iterate() at any time.
    """

    # === CONSTRUCTOR PARAMETERS (initialized in __init__()) ===

    # Patterns, their weights and their adjacency rules, derived from the template.
    _pattern_data: PatternData

    # === RUNTIME STATE (initialized in prepare()) ===

    # True once a grid has been allocated.
    _prepared: bool
    # The extents of the output grid.
    _output_size: tuple[int, ...]
    # The output dimensions that wrap around during propagation.
    _periodic_output_dimensions: frozenset[int]
    # Random number generator driving the pattern draws.
    _random: random.Random
    # Every output position, in grid iteration order.
    _cell_positions: list[tuple[int, ...]]
    # D-dimensional array of 'Cell' objects storing the superposition state of each position.
    _cells: NDArray[Any]
    # Number of cells collapsed so far.
    _collapsed_count: int

    def __init__(
        self, template: ArrayLike, dimensions: int, tile_size: int, options: WFCOptions | None = None
    ) -> None:
        """Mines the patterns of the template and determines their adjacency rules.

        A tile size of 1 selects the Simple Tiled model, larger tile sizes select the Overlapping model.

        Args:
            template: The D-dimensional sample array. Its values must be hashable.
            dimensions: The number of dimensions of the template and of the output.
            tile_size: The edge length of the extracted tiles.
            options: Pattern extraction options. Defaults to WFCOptions.DEFAULT.

        Raises:
            ValueError: If the template, dimension count, tile size or options are inconsistent.
        """
        if tile_size == SIMPLE_TILED_TILE_SIZE:
            self._pattern_data = PatternDataSimpleTiled(template, dimensions, tile_size, options)
        else:
            self._pattern_data = PatternDataOverlapping(template, dimensions, tile_size, options)

        self._prepared = False
        self._collapsed_count = 0

    @property
    def pattern_data(self) -> PatternData:
        return self._pattern_data

    @property
    def mode(self) -> WFCMode:
        return self._pattern_data.mode

    @property
    def dimensions(self) -> int:
        return self._pattern_data.dimensions

    @property
    def template_values(self) -> list[Any]:
        """The distinct template values in first-encountered order."""
        return list(self._pattern_data.template_values)

    @property
    def output_size(self) -> tuple[int, ...] | None:
        return self._output_size if self._prepared else None

    @property
    def cell_count(self) -> int:
        """The number of cells of the current grid (0 before preparation)."""
        return len(self._cell_positions) if self._prepared else 0

    @property
    def collapsed_count(self) -> int:
        return self._collapsed_count

    @property
    def is_prepared(self) -> bool:
        return self._prepared

    @property
    def is_fully_collapsed(self) -> bool:
        return self._prepared and self._collapsed_count == len(self._cell_positions)

    @property
    def state(self) -> WFCState:
        if not self._prepared:
            return WFCState.UNPREPARED
        if self.is_fully_collapsed:
            return WFCState.FULLY_COLLAPSED
        return WFCState.PREPARED

    def run(
        self,
        output_size: Sequence[int],
        seed: int | None = None,
        periodic_output_dimensions: Collection[int] | None = None,
    ) -> tuple[NDArray[Any], int]:
        """Prepares a new grid and iterates until every cell is collapsed.

        Args:
            output_size: The extent of the output along each dimension.
            seed: Seed for the pattern draws. Runs with equal seeds, templates, options and output parameters are
                identical. None seeds non-deterministically.
            periodic_output_dimensions: The output dimensions that wrap around during propagation. None wraps every
                dimension.

        Returns:
            A tuple (values, contradictions) of the fully collapsed output array and the total number of
                contradictions that had to be rolled back.
        """
        self.prepare(output_size, seed, periodic_output_dimensions)

        total_contradictions = 0
        while not self.is_fully_collapsed:
            contradictions, _ = self.iterate_until_success()
            total_contradictions += contradictions

        logger.info(f"Collapsed {self.cell_count} cells with {total_contradictions} contradictions")

        values = self.get_collapsed_values()
        assert values is not None
        return values, total_contradictions

    def prepare(
        self,
        output_size: Sequence[int],
        seed: int | None = None,
        periodic_output_dimensions: Collection[int] | None = None,
    ) -> None:
        """Allocates a fresh grid in which every pattern is possible, discarding any previous progress.

        Args:
            output_size: The extent of the output along each dimension.
            seed: Seed for the pattern draws. None seeds non-deterministically.
            periodic_output_dimensions: The output dimensions that wrap around during propagation. None wraps every
                dimension.

        Raises:
            ValueError: If the output size or the periodic output dimensions don't match the dimension count.
        """
        output_size = tuple(int(extent) for extent in output_size)
        if len(output_size) != self.dimensions:
            raise ValueError(f"The output size {output_size} does not have {self.dimensions} dimensions")
        if any(extent < 1 for extent in output_size):
            raise ValueError(f"The output size must be positive along every dimension, got {output_size}")
        if periodic_output_dimensions is not None:
            invalid_dimensions = sorted(d for d in periodic_output_dimensions if not 0 <= int(d) < self.dimensions)
            if invalid_dimensions:
                raise ValueError(f"Invalid periodic output dimensions {invalid_dimensions}")

        self._output_size = output_size
        self._periodic_output_dimensions = resolve_dimensions(periodic_output_dimensions, self.dimensions)
        self._random = random.Random(seed)
        self._cell_positions = list(cartesian_range(output_size))

        self._cells = np.empty(output_size, dtype=object)
        for position in self._cell_positions:
            self._cells[position] = Cell(self._pattern_data.weights, position)

        self._collapsed_count = 0
        self._prepared = True

        logger.debug(
            f"Prepared a {output_size} grid "
            f"(periodic dimensions {sorted(self._periodic_output_dimensions)}, seed {seed})"
        )

    def iterate(self) -> tuple[bool, list[Element]]:
        """Collapses the cell with the lowest entropy and propagates the consequences.

        Returns:
            A tuple (success, changed_elements). On success, changed_elements describes every cell touched by the
                iteration, starting with the collapsed cell. On a contradiction the grid is rolled back, the failed
                pattern is removed from the cell and no elements are returned. Before preparation the iteration fails,
                on a fully collapsed grid it trivially succeeds, both without elements.
        """
        if not self._prepared:
            return False, []
        if self.is_fully_collapsed:
            return True, []

        position = self._get_lowest_entropy_position()
        cell = self.get_cell(position)
        pattern_index = self._choose_pattern_index(cell)

        checkpoint = self._copy_cells()

        cell.collapse(pattern_index)
        success, collapsed_count, affected_cells = self._propagate(cell)

        if success:
            self._collapsed_count += collapsed_count + 1
            logger.debug(f"Collapsed cell {position} into pattern {pattern_index}")
            return True, [self._to_element(affected_cell) for affected_cell in affected_cells]

        self._cells = checkpoint
        restored_cell = self.get_cell(position)
        restored_cell.constrain([pattern_index])
        if restored_cell.is_collapsed:
            self._collapsed_count += 1

        logger.debug(f"Contradiction when collapsing cell {position} into pattern {pattern_index}, rolled back")
        return False, []

    def iterate_until_success(self) -> tuple[int, list[Element]]:
        """Iterates until an iteration succeeds.

        Returns:
            A tuple (contradictions, changed_elements) of the number of failed iterations and the changed elements of
                the successful one. Returns (0, []) before preparation or on a fully collapsed grid.
        """
        if not self._prepared or self.is_fully_collapsed:
            return 0, []

        contradictions = 0
        while True:
            success, changed_elements = self.iterate()
            if success:
                return contradictions, changed_elements
            contradictions += 1

    def get_cell(self, position: Sequence[int]) -> Cell:
        """Returns the cell at the given output position. Requires a prepared engine."""
        assert self._prepared, "The engine has not been prepared"
        return self._cells[tuple(position)]

    def get_collapsed_values(self, fill_value: Any = None) -> NDArray[Any] | None:
        """Returns the output array of collapsed values.

        Args:
            fill_value: The value used for positions whose cell has not collapsed yet.

        Returns:
            An object array of the output size, or None before preparation.
        """
        if not self._prepared:
            return None

        result = np.full(self._output_size, fill_value, dtype=object)
        for position in self._cell_positions:
            pattern_index = self._cells[position].try_get_collapsed_index()
            if pattern_index is not None:
                result[position] = self._pattern_data.get_template_value(pattern_index)
        return result

    def get_possible_values(self) -> NDArray[Any] | None:
        """Returns an object array holding, per position, the tuple of values still possible there.

        Returns None before preparation.
        """
        if not self._prepared:
            return None

        result = np.empty(self._output_size, dtype=object)
        for position in self._cell_positions:
            result[position] = self._pattern_data.get_values(self._cells[position].possible_pattern_indices)
        return result

    def get_all_possible_values(self) -> tuple[Any, ...] | None:
        """Returns the distinct values represented by any pattern, or None before preparation."""
        if not self._prepared:
            return None
        return self._pattern_data.get_all_possible_values()

    def _get_lowest_entropy_position(self) -> tuple[int, ...]:
        """Returns the position of the uncollapsed cell with the lowest entropy (the first one on ties)."""
        lowest_entropy: float | None = None
        lowest_position: tuple[int, ...] | None = None

        for position in self._cell_positions:
            cell = self._cells[position]
            if cell.is_collapsed:
                continue
            if lowest_entropy is None or cell.entropy < lowest_entropy:
                lowest_entropy = cell.entropy
                lowest_position = position

        assert lowest_position is not None, "No uncollapsed cell left"
        return lowest_position

    def _choose_pattern_index(self, cell: Cell) -> int:
        """Randomly picks one of the cell's possible patterns, weighed by pattern frequency."""
        possible_pattern_indices = cell.possible_pattern_indices
        weights = self._pattern_data.weights

        total_weight = sum(int(weights[pattern_index]) for pattern_index in possible_pattern_indices)
        label = self._random.random() * total_weight

        for pattern_index in possible_pattern_indices:
            total_weight -= int(weights[pattern_index])
            if total_weight <= label:
                return pattern_index

        # Unreachable: the running total ends at 0, which never exceeds the label.
        return possible_pattern_indices[-1]

    def _propagate(self, origin: Cell) -> tuple[bool, int, list[Cell]]:
        """Removes the patterns that became incompatible with the origin cell, transitively.

        Args:
            origin: The cell whose possible patterns changed.

        Returns:
            A tuple (success, collapsed_count, affected_cells). success is False if some cell would be left without
                any possible pattern (a contradiction), in which case the grid is left half-propagated and has to be
                rolled back by the caller. collapsed_count is the number of cells collapsed by the propagation and
                affected_cells lists every visited cell, starting with the origin.
        """
        affected_cells = {origin.position: origin}
        collapsed_count = 0
        cells_to_propagate = [origin]

        while cells_to_propagate:
            current_cell = cells_to_propagate.pop()
            possible_pattern_indices = current_cell.possible_pattern_indices

            for direction_index, direction in enumerate(self._pattern_data.directions):
                neighbor_position = wrap_position(
                    add(current_cell.position, direction), self._output_size, self._periodic_output_dimensions
                )
                if neighbor_position is None:
                    continue

                neighbor = self._cells[neighbor_position]
                affected_cells.setdefault(neighbor_position, neighbor)

                if neighbor.is_collapsed or neighbor is current_cell:
                    continue

                neighbor_pattern_indices = neighbor.possible_pattern_indices
                incompatible_pattern_indices = self._pattern_data.get_incompatible_pattern_indices(
                    neighbor_pattern_indices, possible_pattern_indices, direction_index
                )

                if not incompatible_pattern_indices:
                    continue

                if len(neighbor_pattern_indices) - len(incompatible_pattern_indices) < 1:
                    return False, collapsed_count, []

                neighbor.constrain(incompatible_pattern_indices)
                if neighbor.is_collapsed:
                    collapsed_count += 1

                cells_to_propagate.append(neighbor)

        return True, collapsed_count, list(affected_cells.values())

    def _copy_cells(self) -> NDArray[Any]:
        """Returns an independent copy of the cell grid."""
        copy = np.empty(self._output_size, dtype=object)
        for position in self._cell_positions:
            copy[position] = self._cells[position].clone()
        return copy

    def _to_element(self, cell: Cell) -> Element:
        return Element(cell.position, self._pattern_data.get_values(cell.possible_pattern_indices))
