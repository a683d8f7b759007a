"""Core types: boards, levels and solve traces."""

from .types import (
    Color,
    Direction,
    Board,
    LevelSpec,
    LevelValidationError,
    validate_level,
    make_tile,
    tile_color,
    tile_has_star,
    is_walkable,
)
from .trace import SolveTrace, TraceEntry, JSONLTraceWriter, read_traces

__all__ = [
    # Types
    "Color",
    "Direction",
    "Board",
    "LevelSpec",
    "LevelValidationError",
    "validate_level",
    "make_tile",
    "tile_color",
    "tile_has_star",
    "is_walkable",
    # Traces
    "SolveTrace",
    "TraceEntry",
    "JSONLTraceWriter",
    "read_traces",
]
