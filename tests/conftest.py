from __future__ import annotations

import numpy as np
import pytest

from ndwfc import WFCOptions


@pytest.fixture
def uniform_template() -> np.ndarray:
    """A 3x3 template holding a single value."""
    return np.full((3, 3), 7, dtype=np.int_)


@pytest.fixture
def checkerboard_template() -> np.ndarray:
    """A 2x2 checkerboard tile, meant to be mined with both input dimensions periodic."""
    return np.array([[0, 1], [1, 0]], dtype=np.int_)


@pytest.fixture
def periodic_2d_options() -> WFCOptions:
    return WFCOptions(periodic_input_dimensions={0, 1}, reflected_dimensions=())


@pytest.fixture
def river_template() -> np.ndarray:
    """A small 2D template with a horizontal and a vertical stripe crossing on a uniform background."""
    return np.array(
        [
            ["g", "g", "w", "g", "g", "g"],
            ["g", "g", "w", "g", "g", "g"],
            ["w", "w", "w", "w", "w", "w"],
            ["g", "g", "w", "g", "g", "g"],
            ["g", "g", "w", "g", "g", "g"],
            ["g", "g", "w", "g", "g", "g"],
        ]
    )
