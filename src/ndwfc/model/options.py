"""Contains the options record controlling pattern extraction."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Iterable

from ndwfc.enums import DirectionPolicy


@dataclass(frozen=True)
class WFCOptions:
    """Options controlling how patterns are mined from the template and how neighbors are defined.

    The dimension sets are None by default, which selects every dimension of the template. An empty set selects none.

    Attributes:
        rotation: Additionally registers the three 90 degree rotations of every tile. Only effective for 2D templates.
        periodic_input_dimensions: Indices of the template dimensions that wrap around when extracting tiles. Tiles
            never run past the template edge along the other dimensions.
        reflected_dimensions: Indices of the dimensions along which every tile is additionally registered mirrored.
        direction_policy: Decides which offset vectors are used as neighbor directions.
    """

    DEFAULT: ClassVar[WFCOptions]

    rotation: bool = False
    periodic_input_dimensions: frozenset[int] | None = None
    reflected_dimensions: frozenset[int] | None = None
    direction_policy: DirectionPolicy = DirectionPolicy.DISTINCT_MAGNITUDES

    def __post_init__(self) -> None:
        # Accept any iterable of dimension indices (lists, tuples, ranges) and store it as a frozenset.
        object.__setattr__(self, "periodic_input_dimensions", _to_dimension_set(self.periodic_input_dimensions))
        object.__setattr__(self, "reflected_dimensions", _to_dimension_set(self.reflected_dimensions))

    def get_periodic_input_dimensions(self, dimensions: int) -> frozenset[int]:
        """Returns the periodic input dimensions of a template with the given dimension count."""
        return resolve_dimensions(self.periodic_input_dimensions, dimensions)

    def get_reflected_dimensions(self, dimensions: int) -> frozenset[int]:
        """Returns the reflected dimensions of a template with the given dimension count."""
        return resolve_dimensions(self.reflected_dimensions, dimensions)

    def validate(self, dimensions: int) -> None:
        """Raises a ValueError if any dimension index lies outside of [0, dimensions)."""
        for name, dimension_set in (
            ("periodic_input_dimensions", self.periodic_input_dimensions),
            ("reflected_dimensions", self.reflected_dimensions),
        ):
            if dimension_set is None:
                continue
            invalid = sorted(dimension for dimension in dimension_set if not 0 <= dimension < dimensions)
            if invalid:
                raise ValueError(f"{name} contains invalid dimension indices {invalid} for {dimensions} dimensions")


def resolve_dimensions(dimension_set: Iterable[int] | None, dimensions: int) -> frozenset[int]:
    """Returns the given dimension indices as a frozenset, where None stands for all of the dimensions."""
    if dimension_set is None:
        return frozenset(range(dimensions))
    return frozenset(int(dimension) for dimension in dimension_set)


def _to_dimension_set(dimensions: Iterable[int] | None) -> frozenset[int] | None:
    if dimensions is None:
        return None
    return frozenset(int(dimension) for dimension in dimensions)


WFCOptions.DEFAULT = WFCOptions()
