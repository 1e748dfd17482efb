"""Manages pattern data for the WFC algorithm."""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
from typing import Any, Iterable, Sequence, TYPE_CHECKING

import numpy as np

from ndwfc.constants import ROTATION_COUNT, ROTATION_SUPPORT_DIMENSIONS, SIMPLE_TILED_TILE_SIZE
from ndwfc.enums import WFCMode
from ndwfc.model.geometry import cartesian_range, get_directions, insert_unit, wrap_position
from ndwfc.model.options import WFCOptions

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

logger = logging.getLogger(__name__)


class PatternData(ABC):
    """Abstract base class for mining patterns from a template and deriving their adjacency rules.

    Tiles of size tile_size^D are extracted at every valid template position and stored as arrays of indices into the
    template value table. Identical tiles are merged into a single pattern whose weight counts their occurrences.
    Subclasses define how the adjacency rules between the mined patterns are determined.

    Attributes:
        mode: The tiling mode implemented by the subclass.
        dimensions: The number of dimensions of the template (and of the output).
        tile_size: The edge length of the extracted tiles.
        template_values: The distinct template values in first-encountered order.
        patterns: The mined patterns, where the list index corresponds to the pattern index.
        weights: The weight of each pattern (used as probability weights).
        directions: The neighbor directions, indexed like the last axis of the adjacency rules.
    """

    mode: WFCMode

    dimensions: int
    tile_size: int
    template_values: list[Any]
    patterns: list[Pattern]
    weights: NDArray[np.int_]
    directions: list[tuple[int, ...]]

    # The D-dimensional template which is used for pattern extraction.
    _template: NDArray[Any]
    # The extents of the template.
    _template_size: tuple[int, ...]
    # Rotation, periodicity, reflection and direction settings.
    _options: WFCOptions
    # True if tiles are additionally registered in their rotated forms.
    _rotation_enabled: bool
    # The template dimensions that wrap around during tile extraction.
    _periodic_input_dimensions: frozenset[int]
    # The dimensions along which tiles are additionally registered mirrored.
    _reflected_dimensions: frozenset[int]

    # Maps each distinct template value to its index in template_values.
    _value_indices: dict[Any, int]
    # Maps the raw bytes of a pattern's index array to the pattern.
    _patterns_by_key: dict[bytes, Pattern]

    # The local offsets of a tile, in enumeration order.
    _tile_offsets: list[tuple[int, ...]]
    # The local offsets of a tile with one dimension removed (the axis that gets mirrored).
    _reflection_offsets: list[tuple[int, ...]]

    # The 3D boolean array defining compatibility: [p1, p2, direction] is True exactly if pattern p1 can be placed at
    # the offset of the specified direction from pattern p2.
    _adjacency_rules: NDArray[np.bool_]

    def __init__(
        self, template: ArrayLike, dimensions: int, tile_size: int, options: WFCOptions | None = None
    ) -> None:
        """Validates the input, mines the patterns and determines the adjacency rules.

        Args:
            template: The D-dimensional sample array. Its values must be hashable.
            dimensions: The number of dimensions of the template.
            tile_size: The edge length of the extracted tiles.
            options: Pattern extraction options. Defaults to WFCOptions.DEFAULT.

        Raises:
            ValueError: If the template, dimension count, tile size or options are inconsistent.
        """
        self._options = options if options is not None else WFCOptions.DEFAULT
        self._template = np.asarray(template)
        self.dimensions = dimensions
        self.tile_size = tile_size
        self._validate()

        self._template_size = tuple(int(extent) for extent in self._template.shape)
        self._periodic_input_dimensions = self._options.get_periodic_input_dimensions(self.dimensions)
        self._reflected_dimensions = self._options.get_reflected_dimensions(self.dimensions)
        self._rotation_enabled = self._options.rotation and self.dimensions == ROTATION_SUPPORT_DIMENSIONS
        if self._options.rotation and not self._rotation_enabled:
            logger.warning(f"Rotation is only supported for {ROTATION_SUPPORT_DIMENSIONS}D templates, ignoring it")

        self._tile_offsets = list(cartesian_range([self.tile_size] * self.dimensions))
        self._reflection_offsets = list(cartesian_range([self.tile_size] * (self.dimensions - 1)))

        self._extract_and_count_patterns()
        self.weights = np.array([pattern.weight for pattern in self.patterns], dtype=np.int_)
        logger.info(
            f"Extracted {self.pattern_count} patterns ({len(self.template_values)} distinct values) from a "
            f"{self._template_size} template with tile size {self.tile_size}"
        )

        self.directions = get_directions(self.dimensions, self._options.direction_policy)
        self._determine_adjacency_rules()
        logger.info(
            f"Determined {self.mode.value} adjacency rules for {self.pattern_count} patterns along "
            f"{len(self.directions)} directions"
        )

    @property
    def pattern_count(self) -> int:
        """The total number of unique patterns discovered."""
        return len(self.patterns)

    @property
    def adjacency_rules(self) -> NDArray[np.bool_]:
        """A read-only view of the [p1, p2, direction] compatibility array."""
        view = self._adjacency_rules.view()
        view.flags.writeable = False
        return view

    def get_incompatible_pattern_indices(
        self, pattern_indices: Sequence[int], base_pattern_indices: Sequence[int], direction_index: int
    ) -> list[int]:
        """Returns the pattern indices that cannot be placed in the given direction from any of the base patterns.

        Args:
            pattern_indices: The candidate pattern indices (e.g. the remaining patterns of a neighbor cell).
            base_pattern_indices: The pattern indices still possible at the origin of the direction.
            direction_index: The index of the direction within the direction set.

        Returns:
            The candidates without any compatible base pattern, in candidate order.
        """
        if not pattern_indices:
            return []
        rules = self._adjacency_rules[:, :, direction_index]
        compatible = rules[np.ix_(list(pattern_indices), list(base_pattern_indices))].any(axis=1)
        return [
            pattern_index for pattern_index, is_compatible in zip(pattern_indices, compatible) if not is_compatible
        ]

    def get_template_value(self, pattern_index: int) -> Any:
        """Returns the template value at the origin (all local coordinates 0) of the pattern."""
        return self.template_values[self.patterns[pattern_index].first_index]

    def get_values(self, pattern_indices: Iterable[int]) -> tuple[Any, ...]:
        """Returns the distinct template values represented by the given patterns, in pattern order."""
        return tuple(dict.fromkeys(self.get_template_value(pattern_index) for pattern_index in pattern_indices))

    def get_all_possible_values(self) -> tuple[Any, ...]:
        """Returns the distinct template values represented by any mined pattern."""
        return self.get_values(range(self.pattern_count))

    def get_index_template(self) -> NDArray[np.int_]:
        """Returns the template converted into an array of template value indices."""
        index_template = np.empty(self._template_size, dtype=np.int_)
        for position in cartesian_range(self._template_size):
            index_template[position] = self._get_template_value_index(position)
        return index_template

    @abstractmethod
    def _determine_adjacency_rules(self) -> None:
        """Defines the logic for determining pattern compatibility."""
        pass

    def _validate(self) -> None:
        """Rejects inputs that would corrupt the pattern and adjacency data."""
        if self.dimensions < 1:
            raise ValueError(f"The dimension count must be positive, got {self.dimensions}")
        if self._template.ndim != self.dimensions:
            raise ValueError(
                f"The template has {self._template.ndim} dimensions, but {self.dimensions} were specified"
            )
        if any(extent < 1 for extent in self._template.shape):
            raise ValueError(f"The template must not have empty dimensions, got shape {self._template.shape}")
        if self.tile_size < 1:
            raise ValueError(f"The tile size must be positive, got {self.tile_size}")

        self._options.validate(self.dimensions)

        periodic_input_dimensions = self._options.get_periodic_input_dimensions(self.dimensions)
        for dimension, extent in enumerate(self._template.shape):
            if dimension not in periodic_input_dimensions and self.tile_size > extent:
                raise ValueError(
                    f"The tile size {self.tile_size} exceeds the extent {extent} of the non-periodic template "
                    f"dimension {dimension}"
                )

    def _extract_and_count_patterns(self) -> None:
        """Extracts all unique tiles (and their rotations and reflections) and counts their occurrences."""
        self.template_values = []
        self.patterns = []
        self._value_indices = {}
        self._patterns_by_key = {}

        for position in cartesian_range(self._template_size):
            if not self._is_valid_tile_start(position):
                continue

            tile = self._get_tile(position)
            self._register_pattern(tile)

            if self._rotation_enabled:
                rotated_tile = tile
                for _ in range(ROTATION_COUNT):
                    rotated_tile = self._rotate_tile(rotated_tile)
                    self._register_pattern(rotated_tile)

            for dimension in range(self.dimensions):
                if dimension in self._reflected_dimensions:
                    self._register_pattern(self._reflect_tile(tile, dimension))

    def _is_valid_tile_start(self, position: tuple[int, ...]) -> bool:
        """Checks whether a tile starting at the position stays inside the template along non-periodic dimensions."""
        for dimension, (unit, extent) in enumerate(zip(position, self._template_size)):
            if dimension not in self._periodic_input_dimensions and unit + self.tile_size > extent:
                return False
        return True

    def _get_tile(self, start: tuple[int, ...]) -> NDArray[np.int_]:
        """Extracts the tile of template value indices starting at the given position."""
        tile = np.empty([self.tile_size] * self.dimensions, dtype=np.int_)
        for offset in self._tile_offsets:
            position = tuple(
                (unit + offset_unit) % extent for unit, offset_unit, extent in zip(start, offset, self._template_size)
            )
            tile[offset] = self._get_template_value_index(position)
        return tile

    def _get_template_value_index(self, position: tuple[int, ...]) -> int:
        """Returns the index of the template value at the position, registering the value if it is new."""
        value = self._template.item(position)
        index = self._value_indices.get(value)
        if index is None:
            index = len(self.template_values)
            self.template_values.append(value)
            self._value_indices[value] = index
        return index

    def _register_pattern(self, tile: NDArray[np.int_]) -> None:
        """Adds the tile as a new pattern, or increases the weight of the identical pattern."""
        key = tile.tobytes()
        pattern = self._patterns_by_key.get(key)
        if pattern is not None:
            pattern.increase_weight()
            return

        new_pattern = Pattern(len(self.patterns), tile)
        self.patterns.append(new_pattern)
        self._patterns_by_key[key] = new_pattern

    def _reflect_tile(self, tile: NDArray[np.int_], dimension: int) -> NDArray[np.int_]:
        """Mirrors the tile about the given axis (local offset i is swapped with tile_size - 1 - i)."""
        reflected_tile = np.empty_like(tile)
        for position in self._reflection_offsets:
            for unit in range(self.tile_size):
                source = insert_unit(position, unit, dimension)
                target = insert_unit(position, self.tile_size - unit - 1, dimension)
                reflected_tile[target] = tile[source]
        return reflected_tile

    def _rotate_tile(self, tile: NDArray[np.int_]) -> NDArray[np.int_]:
        """Rotates a 2D tile by 90 degrees (transposition followed by a reflection about the first axis)."""
        return self._reflect_tile(np.ascontiguousarray(tile.T), 0)


class PatternDataOverlapping(PatternData):
    """Pattern data implementation for the Overlapping WFC model.

    Two patterns are compatible along a direction if the regions where they overlap, when the second tile is shifted
    by the direction vector, contain identical template values.
    """

    mode = WFCMode.OVERLAPPING

    def _determine_adjacency_rules(self) -> None:
        """Calculates compatibility by checking overlapping pattern regions."""
        self._adjacency_rules = np.full(
            (self.pattern_count, self.pattern_count, len(self.directions)), False, dtype=bool
        )

        for p1 in self.patterns:
            for p2 in self.patterns:
                for direction_index, direction in enumerate(self.directions):
                    self._adjacency_rules[p1.index, p2.index, direction_index] = p1.overlaps(p2, direction)


class PatternDataSimpleTiled(PatternData):
    """Pattern data implementation for the Simple Tiled WFC model.

    Each unique template value is treated as a pattern of size 1^D. Single-value tiles never overlap their neighbors,
    so adjacency is determined by checking the neighboring values in the template instead: [p1, p2, direction] is
    True if the value of p1 occurs at least once at the offset of the direction from the value of p2. Rotated and
    reflected templates contribute neighbor pairs when the corresponding options are enabled.
    """

    mode = WFCMode.SIMPLE_TILED

    def _validate(self) -> None:
        super()._validate()
        if self.tile_size != SIMPLE_TILED_TILE_SIZE:
            raise ValueError(f"The Simple Tiled model requires a tile size of {SIMPLE_TILED_TILE_SIZE}")

    def _determine_adjacency_rules(self) -> None:
        """Extracts allowed value adjacencies directly from the template."""
        self._adjacency_rules = np.full(
            (self.pattern_count, self.pattern_count, len(self.directions)), False, dtype=bool
        )

        # Patterns are 1^D tiles, so the pattern index of a position is found through its value index.
        pattern_indices_by_value_index = {pattern.first_index: pattern.index for pattern in self.patterns}
        index_template = self.get_index_template()
        pattern_template = np.vectorize(pattern_indices_by_value_index.__getitem__, otypes=[np.int_])(index_template)

        sampled_directions = np.full(len(self.directions), False, dtype=bool)
        for variant, periodic_dimensions in self._get_template_variants(pattern_template):
            variant_size = variant.shape
            for position in cartesian_range(variant_size):
                for direction_index, direction in enumerate(self.directions):
                    neighbor_position = wrap_position(
                        tuple(unit + offset for unit, offset in zip(position, direction)),
                        variant_size,
                        periodic_dimensions,
                    )
                    if neighbor_position is None:
                        continue
                    self._adjacency_rules[variant[neighbor_position], variant[position], direction_index] = True
                    sampled_directions[direction_index] = True

        # The template holds no neighbor pair along these directions (e.g. a non-periodic axis of extent 1), so they
        # don't constrain anything.
        unsampled_direction_indices = np.flatnonzero(~sampled_directions)
        if unsampled_direction_indices.size:
            self._adjacency_rules[:, :, unsampled_direction_indices] = True
            logger.debug(
                f"No template neighbors along directions "
                f"{[self.directions[index] for index in unsampled_direction_indices]}, allowing every pattern pair"
            )

    def _get_template_variants(
        self, pattern_template: NDArray[np.int_]
    ) -> list[tuple[NDArray[np.int_], frozenset[int]]]:
        """Returns the template plus its enabled rotations and reflections, each with its periodic dimensions."""
        periodic_dimensions = self._periodic_input_dimensions
        variants = [(pattern_template, periodic_dimensions)]

        if self._rotation_enabled:
            rotated_template = pattern_template
            rotated_periodic_dimensions = periodic_dimensions
            for _ in range(ROTATION_COUNT):
                # Rotating swaps the two axes, and with them the periodic dimensions.
                rotated_template = np.flip(rotated_template.T, axis=0)
                rotated_periodic_dimensions = frozenset(1 - dimension for dimension in rotated_periodic_dimensions)
                variants.append((rotated_template, rotated_periodic_dimensions))

        for dimension in sorted(self._reflected_dimensions):
            variants.append((np.flip(pattern_template, axis=dimension), periodic_dimensions))

        return variants


class Pattern:
    """Represents a single unique tile of template value indices.

    Attributes:
        index: The unique integer ID of this pattern.
        size: The extent of the tile along each dimension.
        indices: The read-only array of template value indices that define the pattern.
        first_index: The template value index at the tile's local origin.
        weight: The number of times this pattern was found while mining the template.
    """

    index: int
    size: tuple[int, ...]
    indices: NDArray[np.int_]
    first_index: int
    weight: int

    def __init__(self, index: int, tile: NDArray[np.int_]) -> None:
        """Initializes a pattern object. Weight starts at 1 upon creation."""
        self.index = index
        self.indices = tile.copy()
        self.indices.flags.writeable = False
        self.size = tuple(int(extent) for extent in tile.shape)
        self.first_index = int(tile[(0,) * tile.ndim])
        self.weight = 1

    def overlaps(self, other: Pattern, offset: Sequence[int]) -> bool:
        """Checks whether this pattern can be placed at the given offset from the other pattern.

        Local position p of this pattern coincides with local position p + offset of the other pattern. Every local
        position covered by both tiles must hold the same template value index. Offsets that leave no overlap along
        some axis (magnitude >= tile extent) are incompatible.

        Args:
            other: The pattern this pattern is placed next to.
            offset: The offset vector from the other pattern to this pattern, one unit per dimension.

        Returns:
            True if the overlapping regions of both patterns match.
        """
        if len(offset) != len(self.size) or len(other.size) != len(self.size):
            return False

        own_region = []
        other_region = []
        for unit, extent, other_extent in zip(offset, self.size, other.size):
            if abs(unit) >= extent:
                return False
            # Local position p of this pattern corresponds to local position p + unit of the other pattern.
            start = max(0, -unit)
            stop = min(extent, other_extent - unit)
            own_region.append(slice(start, stop))
            other_region.append(slice(start + unit, stop + unit))

        return bool(np.array_equal(self.indices[tuple(own_region)], other.indices[tuple(other_region)]))

    def increase_weight(self) -> None:
        self.weight += 1
