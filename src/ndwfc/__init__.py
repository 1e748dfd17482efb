"""N-dimensional Wave Function Collapse engine."""

from ndwfc.enums import DirectionPolicy, WFCMode, WFCState
from ndwfc.model.cell import Cell
from ndwfc.model.options import WFCOptions
from ndwfc.model.pattern_data import Pattern, PatternData, PatternDataOverlapping, PatternDataSimpleTiled
from ndwfc.model.wfc import WFC, Element

__all__ = [
    "Cell",
    "DirectionPolicy",
    "Element",
    "Pattern",
    "PatternData",
    "PatternDataOverlapping",
    "PatternDataSimpleTiled",
    "WFC",
    "WFCMode",
    "WFCOptions",
    "WFCState",
]
